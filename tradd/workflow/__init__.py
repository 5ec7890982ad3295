"""Add-torrent workflow: input normalization, duplicate detection, submission."""

from .models import (
    AddOptions,
    AddOutcome,
    AddRequest,
    AddResult,
    Blobs,
    ExistingMatch,
    InputSource,
    LiveTorrent,
    LocalPaths,
    MagnetOrUrl,
    ManifestEntry,
    NotificationKind,
    Priority,
    SubmissionReport,
    TorrentBlob,
    TorrentDescriptor,
    TrackerMergeRequest,
    UnitResult,
    Unspecified,
    WorkflowState,
)
from .add import AddTorrentWorkflow, limit_names
from .capabilities import Capabilities, build_capabilities, delete_file
from .history import LocationHistory
from .notify import CollectingNotifier, ConsoleNotifier, Notification, SubmissionObserver
from .resolver import find_existing_torrent

__all__ = [
    # Models
    "AddOptions",
    "AddOutcome",
    "AddRequest",
    "AddResult",
    "Blobs",
    "ExistingMatch",
    "InputSource",
    "LiveTorrent",
    "LocalPaths",
    "MagnetOrUrl",
    "ManifestEntry",
    "NotificationKind",
    "Priority",
    "SubmissionReport",
    "TorrentBlob",
    "TorrentDescriptor",
    "TrackerMergeRequest",
    "UnitResult",
    "Unspecified",
    "WorkflowState",
    # Workflow
    "AddTorrentWorkflow",
    "Capabilities",
    "LocationHistory",
    "build_capabilities",
    "delete_file",
    "find_existing_torrent",
    "limit_names",
    # Notifications
    "CollectingNotifier",
    "ConsoleNotifier",
    "Notification",
    "SubmissionObserver",
]
