"""
Core session logic for FocusGate.

Contains the SessionController and the exit challenge. No compositor,
socket or notification dependencies; those are injected.
"""

from core.controller import CommandResult, SessionController

__all__ = ["CommandResult", "SessionController"]
