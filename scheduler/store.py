"""
File persistence for the notification state and the timetable snapshot.

Both files are JSON. Writes go to a temporary file in the same directory
which then replaces the target, so readers never see a partial file.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Optional, Union

import structlog
from pydantic import ValidationError

from scheduler.models import NotificationItem, PeriodEntry, PersistentState, TimetableSnapshot

logger = structlog.get_logger(__name__)


def atomic_write_text(path: Union[str, Path], text: str) -> None:
    """
    Write text to path via write-then-rename.

    Raises:
        OSError: if the temporary file cannot be written or moved
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, temp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        os.replace(temp_name, path)
    except BaseException:
        try:
            os.unlink(temp_name)
        except FileNotFoundError:
            pass
        raise


class StateStore:
    """Loads and saves PersistentState and the timetable snapshot."""

    def __init__(
        self,
        data_dir: Union[str, Path],
        state_file: str = "state.json",
        snapshot_file: str = "timetable_cache.json"
    ):
        """
        Initialize state store.

        Args:
            data_dir: Directory holding the JSON files
            state_file: File name of the notification state
            snapshot_file: File name of the timetable snapshot
        """
        self.data_dir = Path(data_dir)
        self.state_path = self.data_dir / state_file
        self.snapshot_path = self.data_dir / snapshot_file
        self.logger = logger.bind(component="state_store")

    def ensure_data_dir(self) -> None:
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            self.logger.error("Could not create data directory", path=str(self.data_dir), error=str(e))

    def _read_json(self, path: Path) -> Any:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)

    def load_state(self) -> PersistentState:
        """
        Load the notification state.

        A missing file means a fresh start. Unreadable files and malformed
        fields are repaired to empty defaults.
        """
        try:
            raw = self._read_json(self.state_path)
        except FileNotFoundError:
            self.logger.info("No state file found, starting fresh.", path=str(self.state_path))
            return PersistentState()
        except (OSError, ValueError) as e:
            self.logger.error("Error loading state", path=str(self.state_path), error=str(e))
            return PersistentState()

        if not isinstance(raw, dict):
            self.logger.warning("State file is not an object, resetting", path=str(self.state_path))
            return PersistentState()

        seen = raw.get("seen")
        if not isinstance(seen, list):
            self.logger.warning("Repairing malformed seen list", found=type(seen).__name__)
            seen = []
        seen = [uid for uid in seen if isinstance(uid, str)]

        history_raw = raw.get("history", [])
        if not isinstance(history_raw, list):
            self.logger.warning("Repairing malformed history list", found=type(history_raw).__name__)
            history_raw = []

        history = []
        for item in history_raw:
            try:
                history.append(NotificationItem.model_validate(item))
            except ValidationError as e:
                self.logger.warning("Dropping invalid history item", error=str(e))

        state = PersistentState(seen=seen, history=history)
        self.logger.info("Loaded state", seen=len(state.seen), history=len(state.history))
        return state

    def save_state(self, state: PersistentState) -> bool:
        """Persist state. Returns False (after logging) on failure."""
        try:
            payload = state.model_dump(mode="json")
            atomic_write_text(self.state_path, json.dumps(payload, indent=2, ensure_ascii=False))
            return True
        except (OSError, TypeError, ValueError) as e:
            self.logger.error("Error saving state", path=str(self.state_path), error=str(e))
            return False

    def load_snapshot(self) -> Optional[TimetableSnapshot]:
        """
        Load the previous timetable snapshot.

        Returns:
            The snapshot, or None when no usable snapshot exists
        """
        try:
            raw = self._read_json(self.snapshot_path)
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            self.logger.error("Error loading timetable cache", path=str(self.snapshot_path), error=str(e))
            return None

        if not isinstance(raw, dict):
            self.logger.error("Timetable cache is not an object", path=str(self.snapshot_path))
            return None

        try:
            return {str(key): PeriodEntry.model_validate(value) for key, value in raw.items()}
        except ValidationError as e:
            self.logger.error("Invalid timetable cache entry", error=str(e))
            return None

    def save_snapshot(self, snapshot: TimetableSnapshot) -> bool:
        try:
            payload = {key: entry.to_record() for key, entry in snapshot.items()}
            atomic_write_text(self.snapshot_path, json.dumps(payload, indent=2, ensure_ascii=False))
            return True
        except (OSError, TypeError, ValueError) as e:
            self.logger.error("Error saving timetable cache", path=str(self.snapshot_path), error=str(e))
            return False

    def delete_snapshot(self) -> bool:
        """Remove the snapshot so the next cycle starts as a first run."""
        try:
            self.snapshot_path.unlink()
            return True
        except FileNotFoundError:
            return False
