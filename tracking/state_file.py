"""
Session state file for status bars and widgets.

The controller publishes a small JSON snapshot on every tick and
transition; bars such as waybar or eww poll the file. The file is removed
when the session stops.
"""

import os
import json
import tempfile
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import config

logger = logging.getLogger(__name__)


class StateFilePublisher:
    """Writes session snapshots to a JSON file atomically."""

    def __init__(self, path: Optional[Path] = None):
        """
        Args:
            path: Target file. Defaults to config.STATE_FILE.
        """
        self.path = Path(path) if path is not None else config.STATE_FILE
        self._last_written: Optional[Dict[str, Any]] = None

    def publish(self, snapshot: Dict[str, Any]) -> None:
        """
        Write snapshot to the state file.

        Identical consecutive snapshots are skipped, so the per-second tick
        only touches the disk when the MM:SS value changes.
        """
        if snapshot == self._last_written:
            return

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)

            # Atomic write: readers never see a half-written file
            temp_fd, temp_path = tempfile.mkstemp(
                suffix='.tmp',
                prefix='focusgate_state_',
                dir=self.path.parent
            )

            try:
                with os.fdopen(temp_fd, 'w') as f:
                    json.dump(snapshot, f)
                os.replace(temp_path, self.path)
            except Exception:
                try:
                    os.unlink(temp_path)
                except OSError:
                    pass
                raise

            self._last_written = dict(snapshot)
            logger.debug(f"Wrote state file: {snapshot}")
        except OSError as e:
            logger.error(f"Failed to write state file {self.path}: {e}")

    def clear(self) -> None:
        """Remove the state file if it exists."""
        self._last_written = None
        try:
            self.path.unlink()
            logger.debug(f"Removed state file {self.path}")
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.error(f"Failed to remove state file {self.path}: {e}")

    def read(self) -> Optional[Dict[str, Any]]:
        """Load the current snapshot, or None if there is no (valid) file."""
        try:
            with open(self.path, 'r') as f:
                return json.load(f)
        except FileNotFoundError:
            return None
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(f"Could not read state file {self.path}: {e}")
            return None
