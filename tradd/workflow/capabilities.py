"""Environment capabilities injected into the add workflow."""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Awaitable, Callable, Sequence

from .models import (
    AddRequest,
    AddResult,
    LiveTorrent,
    NotificationKind,
    TorrentBlob,
    TorrentDescriptor,
    TrackerMergeRequest,
)

if TYPE_CHECKING:
    from ..sources import TorrentReader
    from ..torrent import TorrentClient

logger = logging.getLogger(__name__)

PromptResult = list[str] | str | None
PromptForPaths = Callable[[list[str], bool], Awaitable[PromptResult]]
Notify = Callable[[NotificationKind, str, str], None]


@dataclass
class Capabilities:
    """Everything the workflow needs from the outside world."""

    read_local_path: Callable[[str], Awaitable[TorrentDescriptor]]
    read_blob: Callable[[TorrentBlob], Awaitable[str]]
    prompt_for_paths: PromptForPaths
    dispatch_add: Callable[[AddRequest], Awaitable[AddResult]]
    dispatch_merge: Callable[[TrackerMergeRequest], Awaitable[None]]
    delete_file: Callable[[str], None]
    notify: Notify
    live_torrents: Callable[[], Sequence[LiveTorrent]]


def delete_file(path: str) -> None:
    """Remove a file, logging instead of raising on failure."""
    try:
        Path(path).unlink(missing_ok=True)
        logger.info(f"Deleted {path}")
    except OSError as e:
        logger.warning(f"Failed to delete {path}: {e}")


async def no_prompt(extensions: list[str], multiple: bool) -> PromptResult:
    """Prompt stand-in for non-interactive front ends."""
    raise RuntimeError("Interactive file selection is not available")


def build_capabilities(
    client: "TorrentClient",
    reader: "TorrentReader",
    notify: Notify,
    live_torrents: Sequence[LiveTorrent] = (),
    prompt: PromptForPaths = no_prompt,
) -> Capabilities:
    """Wire a daemon client and a reader into workflow capabilities.

    Args:
        client: Daemon client used for add and merge requests
        reader: Reader for local files and uploads
        notify: Notification sink
        live_torrents: Snapshot of torrents on the daemon
        prompt: Interactive path prompt

    Returns:
        Capabilities ready for AddTorrentWorkflow
    """
    snapshot = list(live_torrents)
    return Capabilities(
        read_local_path=reader.read_path,
        read_blob=reader.read_blob,
        prompt_for_paths=prompt,
        dispatch_add=client.add_torrent,
        dispatch_merge=client.add_trackers,
        delete_file=delete_file,
        notify=notify,
        live_torrents=lambda: snapshot,
    )
