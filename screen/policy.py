"""
Workspace enforcement rules for focus sessions.

Decides whether a workspace switch, a window or an app launch is allowed
while a session is running. The policy never talks to the compositor
itself; the host bridge asks it and acts on the answer.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Iterable, List, Optional, Set

logger = logging.getLogger(__name__)


@dataclass
class WindowInfo:
    """The host's description of a window."""
    window_class: str = ""
    title: str = ""
    is_floating: bool = False
    workspace_id: int = 0
    on_special_workspace: bool = False


class EnforcementPolicy:
    """
    Allow-lists and exemptions consulted by the host bridge.

    Negative workspace ids belong to special workspaces (scratchpads) and
    are always allowed; they are never stored in the allow-list.

    The session-active and break-time flags are plain attributes written by
    the controller from scheduler callbacks. Everything else is guarded by
    the policy's own lock.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._allowed_workspaces: Set[int] = set()
        self._exception_classes: Set[str] = set()
        self._spawn_whitelist: Set[str] = set()
        self._last_valid_workspace: int = 1
        self._floating_exempt: bool = True
        self._enforce_during_break: bool = False
        self._block_spawn: bool = True

        # Session flags (written by the controller, read without the scheduler lock)
        self.session_active: bool = False
        self.break_time: bool = False

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------

    def _enforcing(self) -> bool:
        """True if rules currently apply. Caller holds _lock."""
        if not self.session_active:
            return False
        if self.break_time and not self._enforce_during_break:
            return False
        return True

    def should_block_switch(self, target_workspace: int) -> bool:
        """
        Decide whether switching to target_workspace must be blocked.

        Args:
            target_workspace: Workspace id the user is switching to.

        Returns:
            True if the switch violates the current session.
        """
        with self._lock:
            if not self._enforcing():
                return False
            if target_workspace < 0:
                return False
            return target_workspace not in self._allowed_workspaces

    def is_window_exempt(self, window: Optional[WindowInfo]) -> bool:
        """True if the window itself is exempt from enforcement."""
        if window is None:
            return True
        with self._lock:
            if window.window_class in self._exception_classes:
                return True
            if self._floating_exempt and window.is_floating:
                return True
        return window.on_special_workspace

    def should_block_spawn(self, command: str) -> bool:
        """
        Decide whether launching command should be blocked.

        Whitelist entries match as case-insensitive substrings of the command
        line, so "firefox" allows "/usr/bin/firefox --new-window".

        Args:
            command: Command line the user is trying to run.

        Returns:
            True if the launch must be blocked.
        """
        with self._lock:
            if not self._block_spawn or not self._enforcing():
                return False
            lowered = (command or "").lower()
            for entry in self._spawn_whitelist:
                if entry.lower() in lowered:
                    return False
        logger.info(f"Blocked app launch during focus session: {command}")
        return True

    def on_workspace_changed(self, workspace_id: int) -> bool:
        """
        Record a workspace change reported by the host.

        Args:
            workspace_id: The workspace that is now active.

        Returns:
            True if the change must be reverted to get_last_valid_workspace(),
            False if it was allowed (and is now the last valid workspace).
        """
        if self.should_block_switch(workspace_id):
            logger.info(f"Workspace {workspace_id} is not allowed during focus session")
            return True
        if workspace_id >= 0:
            with self._lock:
                self._last_valid_workspace = workspace_id
        return False

    # ------------------------------------------------------------------
    # Allowed workspaces
    # ------------------------------------------------------------------

    def set_allowed_workspaces(self, workspaces: Iterable[int]) -> None:
        with self._lock:
            self._allowed_workspaces = {ws for ws in workspaces if ws >= 0}

    def add_allowed_workspace(self, workspace_id: int) -> None:
        if workspace_id < 0:
            return  # special workspaces are implicitly allowed
        with self._lock:
            self._allowed_workspaces.add(workspace_id)

    def remove_allowed_workspace(self, workspace_id: int) -> None:
        with self._lock:
            self._allowed_workspaces.discard(workspace_id)

    def clear_allowed_workspaces(self) -> None:
        with self._lock:
            self._allowed_workspaces.clear()

    def get_allowed_workspaces(self) -> List[int]:
        """Allowed workspace ids, sorted."""
        with self._lock:
            return sorted(self._allowed_workspaces)

    def is_workspace_allowed(self, workspace_id: int) -> bool:
        with self._lock:
            return workspace_id < 0 or workspace_id in self._allowed_workspaces

    # ------------------------------------------------------------------
    # Exception classes and spawn whitelist
    # ------------------------------------------------------------------

    def add_exception_class(self, window_class: str) -> None:
        window_class = window_class.strip()
        if not window_class:
            return
        with self._lock:
            self._exception_classes.add(window_class)

    def remove_exception_class(self, window_class: str) -> None:
        with self._lock:
            self._exception_classes.discard(window_class.strip())

    def clear_exception_classes(self) -> None:
        with self._lock:
            self._exception_classes.clear()

    def get_exception_classes(self) -> List[str]:
        with self._lock:
            return sorted(self._exception_classes)

    def add_spawn_whitelist(self, name: str) -> None:
        name = name.strip()
        if not name:
            return
        with self._lock:
            self._spawn_whitelist.add(name)

    def remove_spawn_whitelist(self, name: str) -> None:
        with self._lock:
            self._spawn_whitelist.discard(name.strip())

    def clear_spawn_whitelist(self) -> None:
        with self._lock:
            self._spawn_whitelist.clear()

    def get_spawn_whitelist(self) -> List[str]:
        with self._lock:
            return sorted(self._spawn_whitelist)

    # ------------------------------------------------------------------
    # Flags
    # ------------------------------------------------------------------

    def set_floating_exempt(self, exempt: bool) -> None:
        with self._lock:
            self._floating_exempt = exempt

    def set_enforce_during_break(self, enforce: bool) -> None:
        with self._lock:
            self._enforce_during_break = enforce

    def set_block_spawn(self, block: bool) -> None:
        with self._lock:
            self._block_spawn = block

    def set_last_valid_workspace(self, workspace_id: int) -> None:
        if workspace_id < 0:
            return
        with self._lock:
            self._last_valid_workspace = workspace_id

    def get_last_valid_workspace(self) -> int:
        with self._lock:
            return self._last_valid_workspace

    def set_session_flags(self, active: bool, break_time: bool) -> None:
        """Update the session flags read by every decision."""
        self.session_active = active
        self.break_time = break_time
