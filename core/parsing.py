"""
Best-effort parsing of command payloads.

Every parser returns a ParseResult instead of raising, so command
handlers can report bad input to the user without touching state.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class ParseResult:
    """Outcome of parsing a user-supplied token."""
    ok: bool
    value: Any = None
    error: Optional[str] = None

    @classmethod
    def success(cls, value: Any) -> "ParseResult":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: str) -> "ParseResult":
        return cls(ok=False, error=error)


@dataclass
class StartSpec:
    """Parsed payload of the `start` command: "<ids>[@minutes]"."""
    workspaces: List[int] = field(default_factory=list)
    work_minutes: Optional[int] = None
    workspaces_given: bool = False
    skipped: List[str] = field(default_factory=list)


def parse_int(token: str) -> ParseResult:
    """Parse a (possibly signed) decimal integer, ignoring surrounding whitespace."""
    text = (token or "").strip()
    if not text:
        return ParseResult.failure("empty value")
    try:
        return ParseResult.success(int(text, 10))
    except ValueError:
        return ParseResult.failure(f"'{text}' is not a number")


def parse_workspace_id(token: str) -> ParseResult:
    """
    Parse a user-facing workspace id.

    Users may only name regular workspaces (>= 1); special workspaces
    are always reachable and never need to be allowed explicitly.

    Args:
        token: Raw text such as " 3 ".

    Returns:
        ParseResult with the integer id on success.
    """
    result = parse_int(token)
    if not result.ok:
        return result
    if result.value < 1:
        return ParseResult.failure(f"Invalid workspace ID '{token.strip()}': must be >= 1")
    return result


def parse_duration(text: str) -> ParseResult:
    """Parse a duration in whole minutes (must be >= 1)."""
    result = parse_int(text)
    if not result.ok:
        return result
    if result.value < 1:
        return ParseResult.failure(f"Duration must be at least 1 minute, got {result.value}")
    return result


def parse_start_args(args: str) -> StartSpec:
    """
    Split a start payload of the form "workspaces@duration".

    Either part may be missing: "" means "current workspace, default
    duration", "@50" means "current workspace, 50 minutes". A bad
    duration is ignored with a warning and the default is used.

    Args:
        args: Raw payload.

    Returns:
        StartSpec with parsed workspaces and optional work minutes.
    """
    start_spec = StartSpec()
    workspace_text = args or ""

    if "@" in workspace_text:
        workspace_text, duration_text = workspace_text.split("@", 1)
        duration = parse_duration(duration_text)
        if duration.ok:
            start_spec.work_minutes = duration.value
            logger.info(f"Using duration from args: {duration.value} minutes")
        else:
            logger.warning(f"Failed to parse duration '{duration_text}', using default: {duration.error}")
            start_spec.skipped.append(duration_text.strip())

    start_spec.workspaces_given = bool(workspace_text.strip())

    for token in workspace_text.split(","):
        if not token.strip():
            continue
        parsed = parse_workspace_id(token)
        if not parsed.ok:
            logger.warning(f"Skipping workspace token: {parsed.error}")
            start_spec.skipped.append(token.strip())
        elif parsed.value not in start_spec.workspaces:
            start_spec.workspaces.append(parsed.value)

    return start_spec


def format_mm_ss(seconds: int) -> str:
    """Format seconds as MM:SS (minutes are not wrapped at 60)."""
    seconds = max(0, int(seconds))
    return f"{seconds // 60:02d}:{seconds % 60:02d}"
