"""Local .torrent file reader backed by torf."""

import asyncio
import base64
import io
import logging
from pathlib import Path

from torf import Torrent

from ..workflow.models import ManifestEntry, TorrentBlob, TorrentDescriptor
from .base import TorrentReader

logger = logging.getLogger(__name__)


class LocalTorrentReader(TorrentReader):
    """Reads .torrent files from disk and memory.

    Parsing runs in the default executor so that reading a batch of files
    does not block the event loop.
    """

    def __init__(self, validate: bool = True):
        """Initialize reader.

        Args:
            validate: Reject metadata that torf considers invalid
        """
        self.validate = validate

    async def read_path(self, path: str) -> TorrentDescriptor:
        resolved = Path(path).expanduser()
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._read_path_sync, resolved)

    def _read_path_sync(self, path: Path) -> TorrentDescriptor:
        """Synchronous read and parse."""
        data = path.read_bytes()
        torrent = Torrent.read_stream(io.BytesIO(data), validate=self.validate)

        manifest = [
            ManifestEntry(name="/".join(f.parts), length=f.size)
            for f in torrent.files
        ]

        trackers: list[str] = []
        for tier in torrent.trackers:
            for url in map(str, tier):
                if url not in trackers:
                    trackers.append(url)

        logger.debug(f"Read {path}: {torrent.name} ({len(manifest)} files, {len(trackers)} trackers)")

        return TorrentDescriptor(
            origin_path=str(path),
            metadata=base64.b64encode(data).decode("ascii"),
            name=torrent.name or path.stem,
            info_hash=torrent.infohash.lower(),
            manifest=manifest,
            trackers=trackers,
        )

    async def read_blob(self, blob: TorrentBlob) -> str:
        # No size limit here, the whole upload is already in memory
        return base64.b64encode(blob.data).decode("ascii")
