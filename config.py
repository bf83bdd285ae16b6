"""Configuration settings for FocusGate."""

import os
import sys
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Set, Tuple

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


def get_user_data_dir() -> Path:
    """
    Get the directory for user-writable data (lock file, logs).

    For development: BASE_DIR/data
    Otherwise: the platform's per-user data folder.

    Returns:
        Path to the user data directory.
    """
    if os.getenv("FOCUSGATE_DEV", "").lower() in ("true", "1", "yes"):
        return Path(__file__).parent / "data"

    if sys.platform == 'darwin':
        data_dir = Path.home() / "Library" / "Application Support" / "FocusGate"
    else:
        # Linux: honour XDG_DATA_HOME, fall back to ~/.local/share
        xdg_data = os.environ.get('XDG_DATA_HOME')
        base = Path(xdg_data) if xdg_data else Path.home() / ".local" / "share"
        data_dir = base / "FocusGate"

    try:
        data_dir.mkdir(parents=True, exist_ok=True)
    except OSError:
        # Fallback to home directory if creation fails
        data_dir = Path.home() / ".focusgate"
        data_dir.mkdir(parents=True, exist_ok=True)

    return data_dir


def get_runtime_dir() -> Path:
    """Directory for the state file and command socket ($XDG_RUNTIME_DIR or /tmp)."""
    runtime_dir = os.getenv("XDG_RUNTIME_DIR")
    return Path(runtime_dir) if runtime_dir else Path("/tmp")


# Load environment variables from a .env file next to this module
_env_path = Path(__file__).parent / ".env"
load_dotenv(_env_path)

# Base directory (for bundled resources)
BASE_DIR = Path(__file__).parent

# User data directory (instance lock lives here)
USER_DATA_DIR = get_user_data_dir()

# Runtime files
RUNTIME_DIR = get_runtime_dir()
STATE_FILE = Path(os.getenv("FOCUSGATE_STATE_FILE", str(RUNTIME_DIR / "focusgate-state.json")))
SOCKET_PATH = Path(os.getenv("FOCUSGATE_SOCKET", str(RUNTIME_DIR / "focusgate.sock")))

# Timer defaults (minutes)
DEFAULT_TOTAL_MINUTES = 120
DEFAULT_WORK_MINUTES = 25
DEFAULT_BREAK_MINUTES = 5

# Scheduler wake granularity (seconds)
TICK_SECONDS = 1.0

# Exit challenge types (config integers)
CHALLENGE_NONE = 0
CHALLENGE_TYPE_PHRASE = 1
CHALLENGE_MATH = 2
CHALLENGE_COUNTDOWN = 3
DEFAULT_CHALLENGE_PHRASE = "I want to stop focusing"

# Window classes that stay interactive during a session (launchers, widgets)
DEFAULT_EXCEPTION_CLASSES = "eww,rofi,wofi,dmenu,ulauncher"

# Notification severities and how long each stays on screen (ms)
SEVERITY_INFO = "info"
SEVERITY_WARNING = "warning"
SEVERITY_ERROR = "error"
NOTIFY_DURATIONS_MS = {
    SEVERITY_INFO: 3000,
    SEVERITY_WARNING: 4000,
    SEVERITY_ERROR: 5000,
}
NOTIFY_APP_NAME = "FocusGate"

# Timeouts for external commands (seconds)
HOST_COMMAND_TIMEOUT = 2.0
SOCKET_TIMEOUT = 5.0

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")  # Can override in .env: DEBUG, INFO, WARNING, ERROR
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _env_int(name: str, default: int) -> int:
    """Read an integer from the environment, falling back to default on garbage."""
    raw = os.getenv(name, "")
    if not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError:
        logger.warning(f"{name}={raw!r} is not an integer, using {default}")
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name, "")
    if not raw.strip():
        return default
    return raw.strip().lower() in ("true", "1", "yes", "on")


def parse_comma_list(value: str) -> Set[str]:
    """
    Split a comma-separated config string into trimmed entries.

    "NONE" (the placeholder for an unset list) and blank entries are dropped.

    Args:
        value: Raw config string, e.g. "eww, rofi,wofi".

    Returns:
        Set of non-empty entries.
    """
    if not value or value.strip().upper() == "NONE":
        return set()
    return {token.strip() for token in value.split(",") if token.strip()}


@dataclass
class Settings:
    """User-tunable settings, read from the environment (.env) at startup or reload."""

    total_minutes: int = DEFAULT_TOTAL_MINUTES
    work_minutes: int = DEFAULT_WORK_MINUTES
    break_minutes: int = DEFAULT_BREAK_MINUTES
    enforce_during_break: bool = False
    floating_exempt: bool = True
    exception_classes: Set[str] = field(
        default_factory=lambda: parse_comma_list(DEFAULT_EXCEPTION_CLASSES)
    )
    block_spawn: bool = True
    spawn_whitelist: Set[str] = field(default_factory=set)
    exit_challenge_type: int = CHALLENGE_NONE
    exit_challenge_phrase: str = DEFAULT_CHALLENGE_PHRASE
    auto_complete: bool = False
    notifications_enabled: bool = True


def reload_env() -> None:
    """Re-read the .env file, letting it override values loaded at startup."""
    load_dotenv(_env_path, override=True)


def load_settings() -> Settings:
    """
    Build Settings from FOCUSGATE_* environment variables.

    Values are not validated here; call validate_settings() afterwards.

    Returns:
        A Settings instance.
    """
    return Settings(
        total_minutes=_env_int("FOCUSGATE_TOTAL_MINUTES", DEFAULT_TOTAL_MINUTES),
        work_minutes=_env_int("FOCUSGATE_WORK_MINUTES", DEFAULT_WORK_MINUTES),
        break_minutes=_env_int("FOCUSGATE_BREAK_MINUTES", DEFAULT_BREAK_MINUTES),
        enforce_during_break=_env_bool("FOCUSGATE_ENFORCE_DURING_BREAK", False),
        floating_exempt=_env_bool("FOCUSGATE_FLOATING_EXEMPT", True),
        exception_classes=parse_comma_list(
            os.getenv("FOCUSGATE_EXCEPTION_CLASSES", DEFAULT_EXCEPTION_CLASSES)
        ),
        block_spawn=_env_bool("FOCUSGATE_BLOCK_SPAWN", True),
        spawn_whitelist=parse_comma_list(os.getenv("FOCUSGATE_SPAWN_WHITELIST", "NONE")),
        exit_challenge_type=_env_int("FOCUSGATE_EXIT_CHALLENGE_TYPE", CHALLENGE_NONE),
        exit_challenge_phrase=os.getenv("FOCUSGATE_EXIT_CHALLENGE_PHRASE", DEFAULT_CHALLENGE_PHRASE),
        auto_complete=_env_bool("FOCUSGATE_AUTO_COMPLETE", False),
        notifications_enabled=_env_bool("FOCUSGATE_NOTIFICATIONS", True),
    )


def validate_settings(settings: Settings) -> Tuple[Settings, List[str]]:
    """
    Correct out-of-range settings in place.

    Nothing here is fatal: bad values are replaced with safe defaults and
    a warning is recorded for each correction.

    Args:
        settings: Settings to validate (mutated).

    Returns:
        Tuple of (settings, list of warning strings).
    """
    warnings: List[str] = []

    if settings.total_minutes < 1:
        warnings.append("total_duration should be >= 1 minute")
        settings.total_minutes = DEFAULT_TOTAL_MINUTES

    if settings.work_minutes < 1:
        warnings.append("work_interval should be >= 1 minute")
        settings.work_minutes = DEFAULT_WORK_MINUTES

    if settings.break_minutes < 0:
        warnings.append("break_interval should be >= 0")
        settings.break_minutes = DEFAULT_BREAK_MINUTES

    if settings.exit_challenge_type not in (
        CHALLENGE_NONE, CHALLENGE_TYPE_PHRASE, CHALLENGE_MATH, CHALLENGE_COUNTDOWN
    ):
        warnings.append("exit_challenge_type should be 0-3")
        settings.exit_challenge_type = CHALLENGE_NONE

    if not settings.exit_challenge_phrase.strip():
        warnings.append("exit_challenge_phrase should not be empty")
        settings.exit_challenge_phrase = DEFAULT_CHALLENGE_PHRASE

    for warning in warnings:
        logger.warning(f"Config warning: {warning}")

    return settings, warnings
