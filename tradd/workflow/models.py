"""Data model for the add-torrent workflow."""

from dataclasses import dataclass, field
from enum import Enum


class WorkflowState(str, Enum):
    """Add workflow states."""

    IDLE = "idle"
    COLLECTING_INPUT = "collecting_input"
    RESOLVING = "resolving"
    READY = "ready"
    SUBMITTING = "submitting"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"


class Priority(int, Enum):
    """Torrent bandwidth priority, valued as Transmission expects."""

    LOW = -1
    NORMAL = 0
    HIGH = 1

    @classmethod
    def from_name(cls, name: str) -> "Priority":
        return cls[name.upper()]


class NotificationKind(str, Enum):
    SUCCESS = "success"
    ERROR = "error"


class AddOutcome(str, Enum):
    """How the daemon answered an add request."""

    ADDED = "added"
    DUPLICATE = "duplicate"


# =============================================================================
# Input sources
# =============================================================================


@dataclass
class MagnetOrUrl:
    """A magnet link or URL typed by the user."""

    text: str


@dataclass
class LocalPaths:
    """One or more .torrent files on the local file system."""

    paths: list[str]


@dataclass
class TorrentBlob:
    """An in-memory .torrent file, e.g. an HTTP upload."""

    name: str
    data: bytes


@dataclass
class Blobs:
    blobs: list[TorrentBlob]


@dataclass
class Unspecified:
    """No input given; the user is prompted for files."""


InputSource = MagnetOrUrl | LocalPaths | Blobs | Unspecified


# =============================================================================
# Descriptors
# =============================================================================


@dataclass
class ManifestEntry:
    """A file listed in torrent metadata."""

    name: str  # path within the torrent, "/" separated
    length: int  # bytes


@dataclass
class TorrentDescriptor:
    """A torrent to be added, normalized from any input source."""

    origin_path: str = ""  # local .torrent path, empty for blobs and links
    metadata: str = ""  # base64 of the raw .torrent file, empty for links
    url: str = ""  # magnet link or URL, empty for files
    name: str = ""
    info_hash: str = ""  # lowercase hex, empty when unknown
    manifest: list[ManifestEntry] | None = None
    trackers: list[str] = field(default_factory=list)


@dataclass
class LiveTorrent:
    """A torrent known to the daemon."""

    id: int
    hash: str
    name: str = ""


@dataclass
class ExistingMatch:
    """A descriptor that is already present on the daemon."""

    torrent: LiveTorrent
    descriptor: TorrentDescriptor


# =============================================================================
# Requests and results
# =============================================================================


@dataclass
class AddOptions:
    """User-editable add options."""

    download_dir: str = ""
    labels: list[str] = field(default_factory=list)
    start: bool = True
    priority: Priority = Priority.NORMAL


@dataclass
class AddRequest:
    """Request to add a new torrent. Exactly one of metainfo and url is set."""

    metainfo: str | None = None
    url: str | None = None
    download_dir: str = ""
    labels: list[str] = field(default_factory=list)
    paused: bool = False
    priority: Priority = Priority.NORMAL
    unwanted: list[int] | None = None
    origin_path: str = ""


@dataclass
class TrackerMergeRequest:
    """Request to append trackers to an existing torrent."""

    torrent_id: int
    trackers: list[str]


@dataclass
class AddResult:
    outcome: AddOutcome
    name: str
    hash: str = ""
    id: int | None = None


@dataclass
class UnitResult:
    """Settled outcome of one add request."""

    request: AddRequest
    name: str
    result: AddResult | None = None
    error: Exception | None = None

    @property
    def success(self) -> bool:
        return self.error is None


@dataclass
class SubmissionReport:
    """Everything that happened during one submission."""

    merged: bool = False
    merge_error: Exception | None = None
    units: list[UnitResult] = field(default_factory=list)

    @property
    def failed(self) -> list[UnitResult]:
        return [u for u in self.units if not u.success]
