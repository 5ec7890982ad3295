"""Base class for torrent metadata readers."""

from abc import ABC, abstractmethod

from ..workflow.models import TorrentBlob, TorrentDescriptor


class TorrentReader(ABC):
    """Abstract base class for reading .torrent files.

    Both entry points produce data for the same TorrentDescriptor shape: the
    path variant returns a full descriptor, the blob variant only the base64
    payload since an upload carries no parsed metadata.
    """

    @abstractmethod
    async def read_path(self, path: str) -> TorrentDescriptor:
        """Read a .torrent file from the file system.

        Args:
            path: Path to the .torrent file

        Returns:
            TorrentDescriptor with metadata, name, info hash, manifest and trackers

        Raises:
            OSError: If the file cannot be read
            torf.TorfError: If the file is not valid torrent metadata
        """
        ...

    @abstractmethod
    async def read_blob(self, blob: TorrentBlob) -> str:
        """Encode an in-memory .torrent file.

        Args:
            blob: Uploaded file content

        Returns:
            Base64 encoded metadata
        """
        ...
