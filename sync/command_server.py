"""
Local command socket for the FocusGate daemon.

Clients (the `focusgate send` CLI, keybindings, status bars) connect to a
Unix socket and exchange one JSON line each way:

    -> {"command": "start", "payload": "1,2@50"}
    <- {"ok": true, "message": "...", "level": "info", "snapshot": {...}}

Requests are handled one at a time on the server thread.
"""

import os
import json
import socket
import logging
import threading
import socketserver
from pathlib import Path
from typing import Any, Dict, Optional

import config

logger = logging.getLogger(__name__)

MAX_REQUEST_BYTES = 64 * 1024


def handle_request_line(controller, line: bytes) -> Dict[str, Any]:
    """
    Decode one request line and run it against the controller.

    Args:
        controller: SessionController (anything with handle_command/status_snapshot).
        line: Raw JSON line from the client.

    Returns:
        Response dict ready to be serialised.
    """
    try:
        request = json.loads(line.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.warning(f"Malformed command request: {e}")
        return {"ok": False, "message": "Malformed request", "level": config.SEVERITY_ERROR}

    if not isinstance(request, dict) or not isinstance(request.get("command"), str):
        return {"ok": False, "message": "Request must contain a command", "level": config.SEVERITY_ERROR}

    payload = request.get("payload", "")
    if not isinstance(payload, str):
        payload = " ".join(str(part) for part in payload) if isinstance(payload, list) else str(payload)

    result = controller.handle_command(request["command"], payload)
    response = result.to_dict()
    response["snapshot"] = controller.status_snapshot()
    return response


class _CommandHandler(socketserver.StreamRequestHandler):
    """Reads a single request line and writes a single response line."""

    timeout = config.SOCKET_TIMEOUT

    def handle(self) -> None:
        try:
            line = self.rfile.readline(MAX_REQUEST_BYTES)
        except socket.timeout:
            logger.debug("Command client timed out")
            return

        if not line.strip():
            return

        response = handle_request_line(self.server.controller, line)
        try:
            self.wfile.write((json.dumps(response) + "\n").encode("utf-8"))
        except OSError as e:
            logger.debug(f"Command client went away: {e}")


class _UnixCommandServer(socketserver.UnixStreamServer):
    allow_reuse_address = True

    def __init__(self, path: str, controller):
        self.controller = controller
        super().__init__(path, _CommandHandler)

    def handle_error(self, request, client_address) -> None:
        logger.exception("Unhandled error while processing command")


class CommandServer:
    """Owns the socket file and the server thread."""

    def __init__(self, controller, socket_path: Optional[Path] = None):
        self.controller = controller
        self.socket_path = Path(socket_path) if socket_path is not None else config.SOCKET_PATH
        self._server: Optional[_UnixCommandServer] = None
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        """
        Bind the socket and start serving in the background.

        A stale socket file left by a crashed daemon is removed first; the
        instance lock guarantees no live daemon owns it.

        Raises:
            OSError: If the socket cannot be bound.
        """
        self.socket_path.parent.mkdir(parents=True, exist_ok=True)
        self._remove_socket_file()

        self._server = _UnixCommandServer(str(self.socket_path), self.controller)
        os.chmod(self.socket_path, 0o600)

        self._thread = threading.Thread(
            target=self._server.serve_forever,
            kwargs={"poll_interval": 0.5},
            name="command-server",
            daemon=True,
        )
        self._thread.start()
        logger.info(f"Command server listening on {self.socket_path}")

    def stop(self) -> None:
        if self._server is None:
            return
        self._server.shutdown()
        self._server.server_close()
        if self._thread is not None:
            self._thread.join(timeout=2.0)
        self._server = None
        self._thread = None
        self._remove_socket_file()
        logger.info("Command server stopped")

    def _remove_socket_file(self) -> None:
        try:
            self.socket_path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Could not remove socket file {self.socket_path}: {e}")
