"""
Torrent daemon client implementations.

Supports:
- Transmission (via transmission-rpc)
"""

import asyncio
import base64
import logging
from abc import ABC, abstractmethod
from typing import Any

import transmission_rpc
from transmission_rpc import TransmissionError

from ..workflow.models import (
    AddOutcome,
    AddRequest,
    AddResult,
    LiveTorrent,
    TrackerMergeRequest,
)

logger = logging.getLogger(__name__)


class TorrentClient(ABC):
    """Abstract base class for torrent daemon clients."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the name of this client."""
        ...

    @abstractmethod
    async def add_torrent(self, request: AddRequest) -> AddResult:
        """
        Add a torrent from metadata or a magnet link/URL.

        Returns:
            AddResult telling whether the torrent was added or already present
        """
        ...

    @abstractmethod
    async def add_trackers(self, request: TrackerMergeRequest) -> None:
        """Append trackers to an existing torrent."""
        ...

    @abstractmethod
    async def list_torrents(self) -> list[LiveTorrent]:
        """List all torrents known to the daemon."""
        ...

    async def get_default_download_dir(self) -> str:
        """Return the daemon's default download directory.

        Note: Not all clients support this. Default returns empty string.
        """
        return ""

    async def aclose(self) -> None:
        """Release network resources."""


# =============================================================================
# Transmission
# =============================================================================


def parse_tracker_tiers(tracker_list: str) -> list[list[str]]:
    """Split Transmission's trackerList text into tiers.

    Tiers are separated by blank lines, trackers within a tier by newlines.
    """
    tiers = []
    for block in tracker_list.strip().split("\n\n"):
        tier = [line.strip() for line in block.splitlines() if line.strip()]
        if tier:
            tiers.append(tier)
    return tiers


class TransmissionClient(TorrentClient):
    """
    Transmission client via transmission-rpc.

    The library is synchronous, so each call runs in a worker thread. The
    underlying client connects on construction and is created on first use.
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = 9091,
        username: str | None = None,
        password: str | None = None,
        path: str = "/transmission/rpc",
        protocol: str = "http",
        timeout: float = 30.0,
        rpc_client: Any = None,
    ):
        """
        Initialize Transmission client.

        Args:
            host: Daemon host
            port: RPC port
            username: RPC username, if authentication is enabled
            password: RPC password
            path: RPC endpoint path
            protocol: "http" or "https"
            timeout: Request timeout in seconds
            rpc_client: Preconfigured transmission_rpc.Client (used by tests)
        """
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.path = path
        self.protocol = protocol
        self.timeout = timeout
        self._client = rpc_client

    @property
    def name(self) -> str:
        return "Transmission"

    def _get_client(self) -> transmission_rpc.Client:
        if self._client is None:
            self._client = transmission_rpc.Client(
                protocol=self.protocol,
                host=self.host,
                port=self.port,
                path=self.path,
                username=self.username,
                password=self.password,
                timeout=self.timeout,
            )
            logger.debug(f"Connected to Transmission at {self.host}:{self.port}")
        return self._client

    async def _run(self, method: str, *args, **kwargs) -> Any:
        def call():
            return getattr(self._get_client(), method)(*args, **kwargs)

        return await asyncio.to_thread(call)

    async def add_torrent(self, request: AddRequest) -> AddResult:
        if request.metainfo:
            torrent: bytes | str = base64.b64decode(request.metainfo)
        elif request.url:
            torrent = request.url
        else:
            raise ValueError("AddRequest carries neither metainfo nor url")

        # torrent-add answers duplicates like additions, so compare with what
        # was already there
        known = {t.hash_string.lower() for t in await self._run("get_torrents", arguments=["hashString"])}

        added = await self._run(
            "add_torrent",
            torrent,
            download_dir=request.download_dir or None,
            labels=list(request.labels) or None,
            paused=request.paused,
            bandwidthPriority=int(request.priority),
            files_unwanted=list(request.unwanted) if request.unwanted else None,
        )

        info_hash = (added.hash_string or "").lower()
        outcome = AddOutcome.DUPLICATE if info_hash in known else AddOutcome.ADDED
        logger.info(f"Transmission {outcome.value} {added.name} (id {added.id})")

        return AddResult(outcome=outcome, name=added.name or "", hash=info_hash, id=added.id)

    async def add_trackers(self, request: TrackerMergeRequest) -> None:
        try:
            torrent = await self._run("get_torrent", request.torrent_id, arguments=["id", "trackerList"])
        except KeyError:
            raise TransmissionError(f"Torrent {request.torrent_id} not found")

        tiers = parse_tracker_tiers(torrent.fields.get("trackerList") or "")
        known = {url for tier in tiers for url in tier}

        # Each new tracker becomes its own tier
        for tracker in request.trackers:
            if tracker not in known:
                tiers.append([tracker])
                known.add(tracker)

        await self._run("change_torrent", request.torrent_id, tracker_list=tiers)

    async def list_torrents(self) -> list[LiveTorrent]:
        torrents = await self._run("get_torrents", arguments=["id", "hashString", "name"])
        return [
            LiveTorrent(
                id=t.id,
                hash=(t.hash_string or "").lower(),
                name=t.name or "",
            )
            for t in torrents
        ]

    async def get_default_download_dir(self) -> str:
        session = await self._run("get_session")
        return session.download_dir or ""

    async def aclose(self) -> None:
        self._client = None
