"""Most recently used download directories."""

import json
import logging
from pathlib import Path

from platformdirs import user_data_dir

logger = logging.getLogger(__name__)

DEFAULT_MAX_ENTRIES = 20


class LocationHistory:
    """
    Persistent list of download directories used per server.

    Directories are stored in a JSON file keyed by server name, most recent
    first.
    """

    def __init__(
        self,
        history_file: Path | None = None,
        server: str = "default",
        max_entries: int = DEFAULT_MAX_ENTRIES,
    ):
        self.history_file = history_file or self._default_path()
        self.server = server
        self.max_entries = max_entries
        self._dirs: dict[str, list[str]] = {}
        self._load()

    @staticmethod
    def _default_path() -> Path:
        """Default path for history storage."""
        return Path(user_data_dir("tradd")) / "locations.json"

    def _load(self) -> None:
        """Load history from disk."""
        if not self.history_file.exists():
            self._dirs = {}
            return

        try:
            with open(self.history_file) as f:
                data = json.load(f)
            self._dirs = {
                server: [d for d in dirs if isinstance(d, str)]
                for server, dirs in data.items()
                if isinstance(dirs, list)
            }
            logger.debug(f"Loaded location history from {self.history_file}")
        except (OSError, ValueError, AttributeError) as e:
            logger.warning(f"Failed to load location history: {e}")
            self._dirs = {}

    def _save(self) -> None:
        """Save history to disk."""
        try:
            self.history_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.history_file, "w") as f:
                json.dump(self._dirs, f, indent=2)
        except OSError as e:
            logger.error(f"Failed to save location history: {e}")

    @property
    def entries(self) -> list[str]:
        return list(self._dirs.get(self.server, []))

    @property
    def last(self) -> str | None:
        entries = self._dirs.get(self.server)
        return entries[0] if entries else None

    def record(self, path: str) -> None:
        """Move or insert a directory at the front of the list."""
        path = path.strip()
        if not path:
            return

        dirs = [d for d in self._dirs.get(self.server, []) if d != path]
        dirs.insert(0, path)
        self._dirs[self.server] = dirs[: self.max_entries]
        self._save()
