"""Detect torrents that already exist on the daemon."""

from typing import Sequence

from .models import ExistingMatch, LiveTorrent, TorrentDescriptor


def find_existing_torrent(
    descriptors: Sequence[TorrentDescriptor],
    live_torrents: Sequence[LiveTorrent],
) -> ExistingMatch | None:
    """Find the live torrent matching a single descriptor.

    Batches of more than one descriptor are never matched: adding all of them
    as new is preferred over silently merging one of several.

    Args:
        descriptors: Descriptors collected by the workflow
        live_torrents: Snapshot of torrents known to the daemon

    Returns:
        ExistingMatch, or None if there is nothing to match
    """
    if len(descriptors) != 1:
        return None

    descriptor = descriptors[0]
    if not descriptor.info_hash:
        return None

    info_hash = descriptor.info_hash.lower()
    for torrent in live_torrents:
        if torrent.hash.lower() == info_hash:
            return ExistingMatch(torrent=torrent, descriptor=descriptor)

    return None
