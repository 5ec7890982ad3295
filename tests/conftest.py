"""Shared fixtures: fake workflow environment and real .torrent files."""

import asyncio
from pathlib import Path

import pytest
from torf import Torrent

from tradd.workflow import (
    AddOutcome,
    AddRequest,
    AddResult,
    Capabilities,
    CollectingNotifier,
    LiveTorrent,
    LocationHistory,
    ManifestEntry,
    NotificationKind,
    TorrentBlob,
    TorrentDescriptor,
    TrackerMergeRequest,
)


class FakeEnvironment:
    """Records everything the workflow asks of the outside world."""

    def __init__(self):
        self.descriptors: dict[str, TorrentDescriptor] = {}
        self.read_errors: dict[str, Exception] = {}
        self.read_delays: dict[str, float] = {}
        self.read_calls: list[str] = []

        self.prompt_result: list[str] | str | None = None
        self.prompt_error: Exception | None = None
        self.prompt_calls: list[tuple[list[str], bool]] = []

        self.live: list[LiveTorrent] = []

        self.add_requests: list[AddRequest] = []
        self.add_errors: dict[str, Exception] = {}
        self.add_delays: dict[str, float] = {}
        self.duplicates: set[str] = set()
        self.settled_adds = 0

        self.merge_requests: list[TrackerMergeRequest] = []
        self.merge_error: Exception | None = None

        self.deleted: list[str] = []
        self.notifier = CollectingNotifier()

    def add_file(self, path: str, name: str, info_hash: str = "", trackers=None, manifest=None) -> TorrentDescriptor:
        descriptor = TorrentDescriptor(
            origin_path=path,
            metadata=f"b64:{name}",
            name=name,
            info_hash=info_hash,
            manifest=manifest,
            trackers=list(trackers or []),
        )
        self.descriptors[path] = descriptor
        return descriptor

    @staticmethod
    def _key(request: AddRequest) -> str:
        return request.origin_path or request.url or request.metainfo or ""

    async def read_local_path(self, path: str) -> TorrentDescriptor:
        self.read_calls.append(path)
        await asyncio.sleep(self.read_delays.get(path, 0))
        if path in self.read_errors:
            raise self.read_errors[path]
        if path not in self.descriptors:
            raise FileNotFoundError(path)
        return self.descriptors[path]

    async def read_blob(self, blob: TorrentBlob) -> str:
        if blob.name in self.read_errors:
            raise self.read_errors[blob.name]
        return f"b64:{blob.data.decode()}"

    async def prompt_for_paths(self, extensions: list[str], multiple: bool):
        self.prompt_calls.append((extensions, multiple))
        if self.prompt_error is not None:
            raise self.prompt_error
        return self.prompt_result

    async def dispatch_add(self, request: AddRequest) -> AddResult:
        key = self._key(request)
        self.add_requests.append(request)
        try:
            await asyncio.sleep(self.add_delays.get(key, 0))
            if key in self.add_errors:
                raise self.add_errors[key]
            outcome = AddOutcome.DUPLICATE if key in self.duplicates else AddOutcome.ADDED
            return AddResult(outcome=outcome, name=f"name:{key}", hash="", id=len(self.add_requests))
        finally:
            self.settled_adds += 1

    async def dispatch_merge(self, request: TrackerMergeRequest) -> None:
        self.merge_requests.append(request)
        if self.merge_error is not None:
            raise self.merge_error

    def delete_file(self, path: str) -> None:
        self.deleted.append(path)

    @property
    def notifications(self):
        return self.notifier.notifications

    def errors(self):
        return [n for n in self.notifications if n.kind == NotificationKind.ERROR]

    def capabilities(self) -> Capabilities:
        return Capabilities(
            read_local_path=self.read_local_path,
            read_blob=self.read_blob,
            prompt_for_paths=self.prompt_for_paths,
            dispatch_add=self.dispatch_add,
            dispatch_merge=self.dispatch_merge,
            delete_file=self.delete_file,
            notify=self.notifier,
            live_torrents=lambda: self.live,
        )


@pytest.fixture
def env() -> FakeEnvironment:
    return FakeEnvironment()


@pytest.fixture
def history(tmp_path: Path) -> LocationHistory:
    return LocationHistory(history_file=tmp_path / "locations.json", server="test")


@pytest.fixture
def manifest() -> list[ManifestEntry]:
    return [
        ManifestEntry(name="Show/Season 1/e01.mkv", length=1000),
        ManifestEntry(name="Show/Season 1/e02.mkv", length=1200),
        ManifestEntry(name="Show/Extras/making-of.mkv", length=500),
        ManifestEntry(name="Show/info.nfo", length=10),
    ]


@pytest.fixture
def make_torrent(tmp_path: Path):
    """Create a real .torrent file with torf and return (path, Torrent)."""

    def _make(name: str, files: dict[str, bytes], trackers: list[str] | None = None):
        content = tmp_path / "content" / name
        if len(files) == 1 and "" in files:
            content.parent.mkdir(parents=True, exist_ok=True)
            content.write_bytes(files[""])
        else:
            for relative, data in files.items():
                target = content / relative
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_bytes(data)

        torrent = Torrent(path=content, trackers=trackers or [])
        torrent.generate()
        out = tmp_path / f"{name}.torrent"
        torrent.write(out)
        return out, torrent

    return _make
