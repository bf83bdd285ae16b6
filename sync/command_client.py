"""Client side of the daemon's command socket."""

import json
import socket
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import config

logger = logging.getLogger(__name__)


def send_command(
    command: str,
    payload: str = "",
    socket_path: Optional[Path] = None,
    timeout: float = config.SOCKET_TIMEOUT,
) -> Dict[str, Any]:
    """
    Send one command to the running daemon and wait for the reply.

    Args:
        command: Command name, e.g. "start".
        payload: Command argument string.
        socket_path: Daemon socket; defaults to config.SOCKET_PATH.
        timeout: Seconds to wait for connect and reply.

    Returns:
        The daemon's response dict (ok, message, level, snapshot).

    Raises:
        ConnectionError: If the daemon is not running or the reply is unusable.
    """
    path = Path(socket_path) if socket_path is not None else config.SOCKET_PATH
    request = json.dumps({"command": command, "payload": payload}) + "\n"

    try:
        with socket.socket(socket.AF_UNIX, socket.SOCK_STREAM) as sock:
            sock.settimeout(timeout)
            sock.connect(str(path))
            sock.sendall(request.encode("utf-8"))

            with sock.makefile("rb") as reader:
                line = reader.readline()
    except (FileNotFoundError, ConnectionRefusedError) as e:
        raise ConnectionError(f"FocusGate daemon is not running ({path})") from e
    except socket.timeout as e:
        raise ConnectionError("Timed out waiting for the FocusGate daemon") from e
    except OSError as e:
        raise ConnectionError(f"Could not talk to the FocusGate daemon: {e}") from e

    if not line:
        raise ConnectionError("FocusGate daemon closed the connection without replying")

    try:
        response = json.loads(line.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ConnectionError(f"Invalid reply from FocusGate daemon: {e}") from e

    logger.debug(f"Reply to {command}: {response}")
    return response
