"""Turn workflow results into user notifications."""

import logging
from dataclasses import dataclass, field

from rich.console import Console

from .capabilities import Notify
from .models import AddOutcome, ExistingMatch, NotificationKind, UnitResult

logger = logging.getLogger(__name__)


@dataclass
class Notification:
    kind: NotificationKind
    title: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"kind": self.kind.value, "title": self.title, "message": self.message}


class ConsoleNotifier:
    """Prints notifications to a rich console."""

    def __init__(self, console: Console | None = None):
        self.console = console or Console()

    def __call__(self, kind: NotificationKind, title: str, message: str) -> None:
        if kind == NotificationKind.ERROR:
            self.console.print(f"[red]✗ {title}[/red]: {message}")
        else:
            self.console.print(f"[green]✓ {title}[/green]: {message}")


@dataclass
class CollectingNotifier:
    """Keeps notifications in memory."""

    notifications: list[Notification] = field(default_factory=list)

    def __call__(self, kind: NotificationKind, title: str, message: str) -> None:
        self.notifications.append(Notification(kind, title, message))


class SubmissionObserver:
    """Reports each settled unit through notify, one call per event."""

    def __init__(self, notify: Notify):
        self.notify = notify

    def read_failed(self, unit: str, error: BaseException) -> None:
        logger.warning(f"Failed to read {unit}: {error}")
        self.notify(NotificationKind.ERROR, "Error reading torrent", f"{unit}: {error}")

    def prompt_failed(self, error: BaseException) -> None:
        logger.error(f"File selection failed: {error}")
        self.notify(NotificationKind.ERROR, "Error reading torrent", str(error))

    def add_settled(self, unit: UnitResult) -> None:
        if unit.error is not None:
            logger.error(f"Failed to add torrent {unit.name}: {unit.error}")
            self.notify(NotificationKind.ERROR, "Error adding torrent", str(unit.error))
            return

        result = unit.result
        if result is None:
            return
        if result.outcome == AddOutcome.DUPLICATE:
            self.notify(NotificationKind.SUCCESS, "Torrent already exists", result.name)
        else:
            self.notify(NotificationKind.SUCCESS, "Torrent added", result.name)

    def merge_settled(self, match: ExistingMatch, error: BaseException | None) -> None:
        if error is not None:
            logger.error(f"Failed to update trackers of {match.torrent.name or match.descriptor.name}: {error}")
            self.notify(NotificationKind.ERROR, "Error updating trackers", str(error))
        else:
            self.notify(NotificationKind.SUCCESS, "Trackers updated", match.torrent.name or match.descriptor.name)
