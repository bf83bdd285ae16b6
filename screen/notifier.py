"""Desktop notifications through notify-send."""

import shutil
import subprocess
import logging

import config

logger = logging.getLogger(__name__)

_URGENCY = {
    config.SEVERITY_INFO: "normal",
    config.SEVERITY_WARNING: "normal",
    config.SEVERITY_ERROR: "critical",
}


class DesktopNotifier:
    """
    Sends notifications with notify-send (libnotify).

    Failures are logged and otherwise ignored; a missing notification
    daemon must never break a focus session.
    """

    def __init__(self, enabled: bool = True, command: str = "notify-send"):
        self.enabled = enabled
        self.command = command
        self._warned_missing = False

    def is_available(self) -> bool:
        return shutil.which(self.command) is not None

    def notify(self, message: str, severity: str = config.SEVERITY_INFO, duration_ms: int = 0) -> bool:
        """
        Show a notification.

        Args:
            message: Body text. The first line becomes the summary.
            severity: One of config.SEVERITY_*.
            duration_ms: Display time; 0 uses the default for severity.

        Returns:
            True if notify-send was launched.
        """
        if not self.enabled or not message:
            return False

        if not duration_ms:
            duration_ms = config.NOTIFY_DURATIONS_MS.get(severity, 3000)

        summary, _, body = message.partition("\n")
        args = [
            self.command,
            "--app-name", config.NOTIFY_APP_NAME,
            "--urgency", _URGENCY.get(severity, "normal"),
            "--expire-time", str(int(duration_ms)),
            summary,
        ]
        if body:
            args.append(body)

        try:
            # Fire and forget; callers never wait on the notification daemon
            subprocess.Popen(
                args,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True,
            )
        except FileNotFoundError:
            if not self._warned_missing:
                logger.warning(f"{self.command} not found, notifications disabled")
                self._warned_missing = True
            return False
        except OSError as e:
            logger.error(f"OS error sending notification: {e}")
            return False

        return True
