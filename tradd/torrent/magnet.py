"""Magnet link decoding."""

import base64
import re
from dataclasses import dataclass, field
from urllib.parse import unquote

MAGNET_PREFIX = "magnet:?"

_BTIH_RE = re.compile(r"^urn:btih:([a-f0-9]{40}|[a-z2-7]{32})$", re.IGNORECASE)
_TRACKER_KEY_RE = re.compile(r"^tr(\.\d+)?$", re.IGNORECASE)


@dataclass
class MagnetData:
    """Identity and tracker hints carried by a magnet link."""

    hash: str  # lowercase hex, empty when unknown
    trackers: list[str] = field(default_factory=list)
    name: str = ""


def _normalize_hash(token: str) -> str:
    if len(token) == 32:
        return base64.b32decode(token.upper()).hex()
    return token.lower()


def decode_magnet_link(text: str) -> MagnetData | None:
    """Decode a magnet link or torrent URL.

    Args:
        text: Magnet URI or http(s) URL as typed or pasted by the user

    Returns:
        MagnetData, or None if the text is not decodable. Plain http(s) URLs
        decode to an empty hash and no trackers since the identity is only
        known once the daemon fetches the file.
    """
    text = text.strip()
    if not text:
        return None

    lowered = text.lower()
    if lowered.startswith(("http://", "https://")):
        return MagnetData(hash="")
    if not lowered.startswith(MAGNET_PREFIX):
        return None

    info_hash = ""
    name = ""
    trackers: list[str] = []

    for param in text[len(MAGNET_PREFIX):].split("&"):
        key, sep, value = param.partition("=")
        if not sep:
            continue
        key = key.lower()
        if key == "xt" and not info_hash:
            match = _BTIH_RE.match(value)
            if match:
                info_hash = _normalize_hash(match.group(1))
        elif key == "dn" and not name:
            name = unquote(value)
        elif _TRACKER_KEY_RE.match(key):
            tracker = unquote(value)
            if tracker and tracker not in trackers:
                trackers.append(tracker)

    if not info_hash:
        return None

    return MagnetData(hash=info_hash, trackers=trackers, name=name)
