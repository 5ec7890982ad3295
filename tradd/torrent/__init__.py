"""
Torrent daemon access and link decoding.

Supported clients:
- Transmission (via transmission-rpc)
"""

from .client import TorrentClient, TransmissionClient, TransmissionError, parse_tracker_tiers
from .magnet import MagnetData, decode_magnet_link

__all__ = [
    # Clients
    "TorrentClient",
    "TransmissionClient",
    "TransmissionError",
    "parse_tracker_tiers",
    # Links
    "MagnetData",
    "decode_magnet_link",
]
