"""
Hyprland bridge.

HyprlandHost answers the controller's questions (current workspace, active
window) and performs reverts through hyprctl. HyprlandEventListener follows
the compositor's event socket and forwards workspace changes.

Uses hyprctl's JSON output (-j) and the socket2 event stream:
    workspacev2>>ID,NAME
    workspace>>NAME
"""

import os
import json
import socket
import threading
import subprocess
import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import config
from screen.policy import WindowInfo

logger = logging.getLogger(__name__)

SPECIAL_PREFIX = "special"
RECONNECT_DELAY_SECONDS = 2.0
READ_TIMEOUT_SECONDS = 1.0


def get_instance_signature() -> Optional[str]:
    return os.environ.get("HYPRLAND_INSTANCE_SIGNATURE") or None


def get_event_socket_path(signature: Optional[str] = None) -> Optional[Path]:
    """
    Locate socket2 for the running Hyprland instance.

    Newer releases keep it under $XDG_RUNTIME_DIR/hypr, older ones under /tmp/hypr.

    Returns:
        Path to .socket2.sock, or None outside a Hyprland session.
    """
    signature = signature or get_instance_signature()
    if not signature:
        return None

    candidates = []
    runtime_dir = os.environ.get("XDG_RUNTIME_DIR")
    if runtime_dir:
        candidates.append(Path(runtime_dir) / "hypr" / signature / ".socket2.sock")
    candidates.append(Path("/tmp/hypr") / signature / ".socket2.sock")

    for candidate in candidates:
        if candidate.exists():
            return candidate
    return candidates[0]


def parse_window(data: Dict[str, Any]) -> Optional[WindowInfo]:
    """Build a WindowInfo from `hyprctl -j activewindow` output ({} when nothing is focused)."""
    if not data or not data.get("address"):
        return None

    workspace = data.get("workspace") or {}
    workspace_name = str(workspace.get("name", ""))
    workspace_id = int(workspace.get("id", 0) or 0)

    return WindowInfo(
        window_class=data.get("class", "") or "",
        title=data.get("title", "") or "",
        is_floating=bool(data.get("floating", False)),
        workspace_id=workspace_id,
        on_special_workspace=workspace_id < 0 or workspace_name.startswith(SPECIAL_PREFIX),
    )


def parse_workspace_event(line: str) -> Optional[int]:
    """
    Extract the workspace id from a socket2 line.

    Returns:
        The id for workspacev2 events, or for workspace events with a numeric
        name; None for anything else.
    """
    event, sep, payload = line.strip().partition(">>")
    if not sep:
        return None

    if event == "workspacev2":
        ws_id, _, _ = payload.partition(",")
        try:
            return int(ws_id)
        except ValueError:
            logger.debug(f"Unparseable workspacev2 payload: {payload}")
            return None

    if event == "workspace":
        try:
            return int(payload)
        except ValueError:
            return None  # named or special workspace

    return None


class HyprlandHost:
    """Compositor queries and commands via hyprctl."""

    def __init__(self, hyprctl: str = "hyprctl", timeout: float = config.HOST_COMMAND_TIMEOUT):
        self.hyprctl = hyprctl
        self.timeout = timeout

    def _run(self, args: List[str]) -> Optional[str]:
        """Run hyprctl and return stdout, or None on failure."""
        try:
            result = subprocess.run(
                [self.hyprctl] + args,
                capture_output=True,
                text=True,
                timeout=self.timeout
            )
        except subprocess.TimeoutExpired:
            logger.warning(f"hyprctl {' '.join(args)} timed out")
            return None
        except OSError as e:
            logger.error(f"OS error running hyprctl: {e}")
            return None

        if result.returncode != 0:
            logger.warning(f"hyprctl {' '.join(args)} failed: {result.stderr.strip()}")
            return None
        return result.stdout

    def _query(self, what: str) -> Optional[Dict[str, Any]]:
        output = self._run(["-j", what])
        if output is None:
            return None
        try:
            return json.loads(output)
        except json.JSONDecodeError as e:
            logger.warning(f"Invalid JSON from hyprctl {what}: {e}")
            return None

    def get_current_workspace(self) -> Optional[int]:
        data = self._query("activeworkspace")
        if not data or "id" not in data:
            return None
        return int(data["id"])

    def get_active_window(self) -> Optional[WindowInfo]:
        data = self._query("activewindow")
        if data is None:
            return None
        return parse_window(data)

    def switch_to_workspace(self, workspace_id: int) -> bool:
        output = self._run(["dispatch", "workspace", str(workspace_id)])
        return output is not None


class HyprlandEventListener:
    """
    Follows socket2 on a daemon thread and reports workspace changes.

    Reconnects after errors until stop() is called.
    """

    def __init__(
        self,
        on_workspace_changed: Callable[[int], Any],
        socket_path: Optional[Path] = None,
    ):
        self.on_workspace_changed = on_workspace_changed
        self.socket_path = socket_path
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._seen_v2 = False

    def start(self) -> bool:
        """
        Begin listening.

        Returns:
            False if no Hyprland instance was found.
        """
        if self.socket_path is None:
            self.socket_path = get_event_socket_path()
        if self.socket_path is None:
            logger.warning("HYPRLAND_INSTANCE_SIGNATURE not set; workspace enforcement disabled")
            return False

        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="hyprland-events", daemon=True)
        self._thread.start()
        logger.info(f"Listening for Hyprland events on {self.socket_path}")
        return True

    def stop(self) -> None:
        self._stop_event.set()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=READ_TIMEOUT_SECONDS * 2)
            if self._thread.is_alive():
                logger.warning("Hyprland listener did not stop within timeout")
        self._thread = None

    def handle_line(self, line: str) -> None:
        """Process one event line."""
        # Newer Hyprland sends both events for one switch; only act on one of them
        if line.startswith("workspacev2>>"):
            self._seen_v2 = True
        elif line.startswith("workspace>>") and self._seen_v2:
            return

        workspace_id = parse_workspace_event(line)
        if workspace_id is None:
            return

        try:
            self.on_workspace_changed(workspace_id)
        except Exception as e:
            logger.error(f"Workspace change handler error: {e}")

    def _run(self) -> None:
        while not self._stop_event.is_set():
            try:
                self._listen()
            except OSError as e:
                logger.warning(f"Hyprland event socket error: {e}")
            if not self._stop_event.is_set():
                self._stop_event.wait(RECONNECT_DELAY_SECONDS)
        logger.debug("Hyprland listener exiting")

    def _listen(self) -> None:
        with socket.socket(socket.AF_UNIX, socket.SOCK_STREAM) as sock:
            sock.settimeout(READ_TIMEOUT_SECONDS)
            sock.connect(str(self.socket_path))
            buffer = b""

            while not self._stop_event.is_set():
                try:
                    chunk = sock.recv(4096)
                except socket.timeout:
                    continue
                if not chunk:
                    logger.warning("Hyprland event socket closed")
                    return

                # Decode whole lines only; a chunk may end inside a multi-byte character
                buffer += chunk
                while b"\n" in buffer:
                    line, buffer = buffer.split(b"\n", 1)
                    if line:
                        self.handle_line(line.decode("utf-8", errors="replace"))
