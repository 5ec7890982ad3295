"""Torrent metadata readers."""

from .base import TorrentReader
from .local import LocalTorrentReader

__all__ = [
    "TorrentReader",
    "LocalTorrentReader",
]
