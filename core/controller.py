"""
SessionController: command surface and orchestration for FocusGate.

Owns one SessionScheduler, one EnforcementPolicy and one ExitChallenge for
the lifetime of the daemon. Transports (the command socket, the Hyprland
event listener) call into the controller; the controller talks back to the
desktop only through the optional host, notifier and persistence
collaborators passed to it.

This module has no compositor or transport dependencies. Collaborators are
duck-typed:
    host.get_current_workspace() -> Optional[int]
    host.switch_to_workspace(workspace_id)
    notifier.notify(message, severity, duration_ms)
    persistence.publish(snapshot)
    persistence.clear()
"""

import logging
import random
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import config
from config import Settings, validate_settings
from core.exit_challenge import ChallengeType, ExitChallenge
from core.parsing import format_mm_ss, parse_start_args, parse_workspace_id
from screen.policy import EnforcementPolicy
from tracking.scheduler import SessionScheduler, TimerState

logger = logging.getLogger(__name__)

_LOG_LEVELS = {
    config.SEVERITY_INFO: logging.INFO,
    config.SEVERITY_WARNING: logging.WARNING,
    config.SEVERITY_ERROR: logging.ERROR,
}

# Break notifications are skipped for the initial work interval
_INITIAL_WORK_GRACE_SECONDS = 5

COMPLETE_NOTIFY_MS = 10000
STATUS_NOTIFY_MS = 5000


@dataclass
class CommandResult:
    """Outcome of a command, relayed back to whoever sent it."""
    ok: bool
    message: str
    level: str = config.SEVERITY_INFO

    def to_dict(self) -> Dict[str, Any]:
        return {"ok": self.ok, "message": self.message, "level": self.level}


class SessionController:
    """
    Focus session orchestration.

    Handles:
    - Session lifecycle (start, stop, pause, resume, toggle)
    - Exit challenge gating of stop requests
    - Allow-list, exception and spawn whitelist commands
    - Workspace-change and spawn decisions reported by the host
    - State snapshots for status bars and notifications
    """

    # ------------------------------------------------------------------
    # Initialisation
    # ------------------------------------------------------------------

    def __init__(
        self,
        host=None,
        notifier=None,
        persistence=None,
        settings: Optional[Settings] = None,
        clock: Callable[[], float] = time.monotonic,
        tick_seconds: float = config.TICK_SECONDS,
        rng: Optional[random.Random] = None,
    ) -> None:
        """
        Initialise the controller and its owned components.

        Args:
            host: Compositor bridge (optional).
            notifier: Desktop notification sink (optional).
            persistence: Snapshot sink such as StateFilePublisher (optional).
            settings: Validated settings; defaults are used when omitted.
            clock: Time source handed to the scheduler.
            tick_seconds: Scheduler wake interval.
            rng: Random source handed to the exit challenge.
        """
        self.host = host
        self.notifier = notifier
        self.persistence = persistence

        self.scheduler = SessionScheduler(clock=clock, tick_seconds=tick_seconds)
        self.policy = EnforcementPolicy()
        self.challenge = ExitChallenge(rng=rng)

        self.settings = Settings()
        self._apply_settings(settings or Settings())

        self.scheduler.on_work_start = self._on_work_start
        self.scheduler.on_break_start = self._on_break_start
        self.scheduler.on_session_complete = self._on_session_complete
        self.scheduler.on_tick = self._on_tick

        self._commands: Dict[str, Callable[[str], CommandResult]] = {
            "start": self.start,
            "stop": lambda payload: self.stop(force="force" in payload.lower()),
            "pause": lambda payload: self.pause(),
            "resume": lambda payload: self.resume(),
            "toggle": self.toggle,
            "allow": self.allow_workspace,
            "disallow": self.disallow_workspace,
            "except": self.add_exception_class,
            "status": lambda payload: self.status(),
            "confirm": self.confirm_stop,
            "allowapp": self.allow_app,
            "disallowapp": self.disallow_app,
            "spawn": self._spawn_command,
            # silent query for status bars; the transport attaches the snapshot
            "snapshot": lambda payload: CommandResult(True, ""),
        }

    @property
    def is_session_active(self) -> bool:
        return self.policy.session_active

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def reload_config(self, settings: Settings) -> CommandResult:
        """
        Apply new settings. Durations take effect on the next start.

        Args:
            settings: Settings to validate and apply.

        Returns:
            CommandResult listing any corrected values.
        """
        settings, warnings = validate_settings(settings)
        self._apply_settings(settings)

        if warnings:
            return self._finish(
                True, "Config reloaded with warnings: " + "; ".join(warnings), config.SEVERITY_WARNING
            )
        logger.info("Config reloaded")
        return CommandResult(True, "Config reloaded.")

    def _apply_settings(self, settings: Settings) -> None:
        self.settings = settings

        self.policy.set_enforce_during_break(settings.enforce_during_break)
        self.policy.set_floating_exempt(settings.floating_exempt)
        self.policy.set_block_spawn(settings.block_spawn)

        self.policy.clear_exception_classes()
        for window_class in settings.exception_classes:
            self.policy.add_exception_class(window_class)

        self.policy.clear_spawn_whitelist()
        for app in settings.spawn_whitelist:
            self.policy.add_spawn_whitelist(app)

        self.challenge.configure(settings.exit_challenge_type, settings.exit_challenge_phrase)
        self.scheduler.auto_complete = settings.auto_complete

        # Seeds the idle scheduler; start() derives its own cycle from the work interval
        if not self.is_session_active:
            self.scheduler.configure(settings.total_minutes, settings.work_minutes, settings.break_minutes)

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    def start(self, payload: str = "") -> CommandResult:
        """
        Start a session from a "<ids>[@minutes]" payload.

        With no ids the current workspace is used; without @minutes the
        configured work interval is used. The break is a fifth of the work
        interval (at least one minute) and the session total is one work
        interval plus one break.
        """
        if self.is_session_active:
            return self._finish(False, "Focus session already running! Stop it first.", config.SEVERITY_WARNING)

        parsed = parse_start_args(payload)
        work_minutes = parsed.work_minutes or self.settings.work_minutes
        break_minutes = max(1, work_minutes // 5)
        total_minutes = work_minutes + break_minutes
        current = self._current_workspace()

        workspaces = list(parsed.workspaces)
        if not parsed.workspaces_given and current is not None and current >= 1:
            workspaces = [current]
            logger.info(f"No workspaces specified, using current: {current}")

        if not workspaces:
            return self._finish(False, "No valid workspaces specified!", config.SEVERITY_ERROR)

        self.scheduler.configure(total_minutes, work_minutes, break_minutes)
        logger.info(f"Pomodoro: {work_minutes} min work, {break_minutes} min break, {total_minutes} min total")

        self.policy.set_allowed_workspaces(workspaces)
        if current is not None:
            self.policy.set_last_valid_workspace(current)

        self.challenge.cancel_challenge()
        self.policy.set_session_flags(True, False)
        if not self.scheduler.start():
            self.policy.set_session_flags(False, False)
            return self._finish(False, "Failed to start focus session!", config.SEVERITY_ERROR)

        self._publish_snapshot()
        allowed = ", ".join(str(ws) for ws in self.policy.get_allowed_workspaces())
        return self._finish(True, f"Focus session started! Allowed workspaces: {allowed}")

    def stop(self, force: bool = False) -> CommandResult:
        """
        Request the session to stop.

        When an exit challenge is configured the first request only shows
        the challenge prompt; the session ends from confirm_stop(). A forced
        stop skips (and cancels) the challenge.
        """
        if not self.is_session_active:
            return self._finish(False, "No focus session is running.", config.SEVERITY_WARNING)

        if force:
            self.challenge.cancel_challenge()
        elif self.challenge.is_enabled():
            if not self.challenge.is_active():
                prompt = self.challenge.initiate_challenge()
                logger.info("Exit challenge initiated")
                return self._finish(True, prompt, config.SEVERITY_WARNING)
            return self._finish(
                False,
                "Complete the challenge first! Use: focusgate send confirm <answer>",
                config.SEVERITY_WARNING,
            )

        return self._halt("Focus session stopped.")

    def confirm_stop(self, answer: str = "") -> CommandResult:
        """Answer the active exit challenge; a pass ends the session."""
        if not self.challenge.is_active():
            return self._finish(
                False, "No active challenge. Use: focusgate send stop first.", config.SEVERITY_WARNING
            )

        if not answer or not answer.strip():
            return self._finish(
                False, "Please provide an answer: focusgate send confirm <answer>", config.SEVERITY_WARNING
            )

        if self.challenge.validate_answer(answer):
            return self._halt("Challenge passed! Session stopped.")

        if self.challenge.get_type() == ChallengeType.COUNTDOWN:
            remaining = self.challenge.get_remaining_confirmations()
            if remaining > 0:
                return self._finish(
                    False, f"Keep going! {remaining} more confirmations needed.", config.SEVERITY_WARNING
                )

        return self._finish(False, f"Wrong answer! {self.challenge.get_hint()}", config.SEVERITY_ERROR)

    def pause(self) -> CommandResult:
        if not self.is_session_active:
            return self._finish(False, "No focus session is running.", config.SEVERITY_WARNING)
        if not self.scheduler.is_running():
            return self._finish(False, "Session is already paused.", config.SEVERITY_WARNING)

        self.scheduler.pause()
        self._publish_snapshot()
        return self._finish(True, "Focus session paused.")

    def resume(self) -> CommandResult:
        if self.scheduler.get_state() is not TimerState.PAUSED:
            return self._finish(False, "Session is not paused.", config.SEVERITY_WARNING)

        self.scheduler.resume()
        self._publish_snapshot()
        return self._finish(True, "Focus session resumed!")

    def toggle(self, payload: str = "") -> CommandResult:
        """Stop the running session (through the challenge) or start a new one."""
        if self.is_session_active:
            return self.stop(force=False)
        return self.start(payload)

    def shutdown(self) -> None:
        """Stop everything without a challenge (daemon exit)."""
        if self.is_session_active:
            self.scheduler.stop()
            self.policy.set_session_flags(False, False)
            self._clear_snapshot()
            logger.info("Session stopped on shutdown")
        self.challenge.cancel_challenge()

    def _halt(self, prefix: str) -> CommandResult:
        """Actually end the session and report the total time."""
        elapsed = self.scheduler.get_elapsed_seconds()
        self.scheduler.stop()
        self.policy.set_session_flags(False, False)
        self._clear_snapshot()
        return self._finish(True, f"{prefix} Total time: {format_mm_ss(elapsed)}")

    # ------------------------------------------------------------------
    # Allow-lists
    # ------------------------------------------------------------------

    def allow_workspace(self, workspace: str = "") -> CommandResult:
        workspace_id = self._parse_workspace_arg(workspace)
        if isinstance(workspace_id, CommandResult):
            return workspace_id

        self.policy.add_allowed_workspace(workspace_id)
        self._publish_snapshot()
        return self._finish(True, f"Workspace {workspace_id} added to allowed list.")

    def disallow_workspace(self, workspace: str = "") -> CommandResult:
        workspace_id = self._parse_workspace_arg(workspace)
        if isinstance(workspace_id, CommandResult):
            return workspace_id

        self.policy.remove_allowed_workspace(workspace_id)
        self._publish_snapshot()
        return self._finish(True, f"Workspace {workspace_id} removed from allowed list.")

    def add_exception_class(self, window_class: str = "") -> CommandResult:
        window_class = (window_class or "").strip()
        if not window_class:
            return self._finish(False, "Please specify a window class.", config.SEVERITY_ERROR)

        self.policy.add_exception_class(window_class)
        return self._finish(True, f"Window class '{window_class}' added to exceptions.")

    def allow_app(self, name: str = "") -> CommandResult:
        name = (name or "").strip()
        if not name:
            return self._finish(False, "Please specify an app name/command.", config.SEVERITY_ERROR)

        self.policy.add_spawn_whitelist(name)
        return self._finish(True, f"App '{name}' added to spawn whitelist.")

    def disallow_app(self, name: str = "") -> CommandResult:
        name = (name or "").strip()
        if not name:
            return self._finish(False, "Please specify an app name/command.", config.SEVERITY_ERROR)

        self.policy.remove_spawn_whitelist(name)
        return self._finish(True, f"App '{name}' removed from spawn whitelist.")

    def _parse_workspace_arg(self, text: str):
        """Return the workspace id, or a CommandResult describing the problem."""
        if not text or not text.strip():
            return self._finish(False, "Please specify a workspace ID.", config.SEVERITY_ERROR)

        parsed = parse_workspace_id(text)
        if not parsed.ok:
            logger.warning(parsed.error)
            return self._finish(False, f"Invalid workspace ID: {text.strip()}", config.SEVERITY_ERROR)
        return parsed.value

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def status(self) -> CommandResult:
        """Human-readable session status. Does not change any state."""
        if not self.is_session_active:
            text = "No active focus session."
        else:
            state = self.scheduler.get_state()
            label = state.name if state in (TimerState.WORKING, TimerState.BREAK, TimerState.PAUSED) else "UNKNOWN"
            workspaces = ", ".join(str(ws) for ws in self.policy.get_allowed_workspaces())
            text = (
                f"Session: {label}"
                f" | Remaining: {format_mm_ss(self.scheduler.get_remaining_seconds())}"
                f" | Elapsed: {format_mm_ss(self.scheduler.get_elapsed_seconds())}"
                f" | Workspaces: {workspaces}"
            )

        return self._finish(True, text, config.SEVERITY_INFO, duration_ms=STATUS_NOTIFY_MS)

    def status_snapshot(self) -> Dict[str, Any]:
        """
        Machine-readable state for status bars.

        Returns:
            dict with keys: active, state, remaining ("MM:SS"), workspaces.
        """
        if not self.is_session_active:
            return {"active": False, "state": "inactive", "remaining": "00:00", "workspaces": []}

        state = self.scheduler.get_state()
        if state in (TimerState.WORKING, TimerState.BREAK, TimerState.PAUSED):
            state_name = state.value
        else:
            state_name = "inactive"

        return {
            "active": True,
            "state": state_name,
            "remaining": format_mm_ss(self.scheduler.get_remaining_seconds()),
            "workspaces": self.policy.get_allowed_workspaces(),
        }

    # ------------------------------------------------------------------
    # Transport entry points
    # ------------------------------------------------------------------

    def handle_command(self, name: str, payload: str = "") -> CommandResult:
        """
        Dispatch a command by name, e.g. ("start", "1,2@50").

        Returns:
            CommandResult; unknown names produce an error result.
        """
        key = (name or "").strip().lower()
        handler = self._commands.get(key)
        if handler is None:
            return self._finish(False, f"Unknown command: {name}", config.SEVERITY_ERROR)

        logger.debug(f"Command '{key}' with payload '{payload}'")
        return handler((payload or "").strip())

    def handle_workspace_changed(self, workspace_id: int) -> bool:
        """
        React to the compositor switching workspace.

        Returns:
            True if the switch was reverted.
        """
        if not self.policy.on_workspace_changed(workspace_id):
            return False

        target = self.policy.get_last_valid_workspace()
        logger.info(f"Blocked switch to workspace {workspace_id}, reverting to {target}")

        if self.host is not None:
            try:
                self.host.switch_to_workspace(target)
            except Exception as e:
                logger.error(f"Failed to revert to workspace {target}: {e}")

        self._notify(f"Focus mode: Workspace {workspace_id} is restricted!", config.SEVERITY_WARNING)
        return True

    def handle_spawn_request(self, command: str) -> bool:
        """
        Decide whether an app launch may proceed.

        Returns:
            True if the launch is allowed.
        """
        if self.policy.should_block_spawn(command):
            self._notify("Focus mode: App launching is blocked!", config.SEVERITY_WARNING)
            return False
        return True

    def _spawn_command(self, command: str) -> CommandResult:
        if not command:
            return self._finish(False, "Please specify a command to launch.", config.SEVERITY_ERROR)
        if self.handle_spawn_request(command):
            return CommandResult(True, f"Launch allowed: {command}")
        return CommandResult(False, "Focus mode: App launching is blocked!", config.SEVERITY_WARNING)

    # ------------------------------------------------------------------
    # Scheduler callbacks (run on the scheduler thread, outside its lock)
    # ------------------------------------------------------------------

    def _on_work_start(self) -> None:
        self.policy.break_time = False
        self._publish_snapshot()
        if self.scheduler.get_elapsed_seconds() > _INITIAL_WORK_GRACE_SECONDS:
            self._notify("Back to work! Stay on task.", config.SEVERITY_INFO)

    def _on_break_start(self) -> None:
        self.policy.break_time = True
        self._publish_snapshot()
        self._notify("Break time! Relax for a moment.", config.SEVERITY_INFO)

    def _on_session_complete(self) -> None:
        self.policy.set_session_flags(False, False)
        self.challenge.cancel_challenge()
        self._clear_snapshot()
        self._notify("Focus session complete! Great work!", config.SEVERITY_INFO, COMPLETE_NOTIFY_MS)

    def _on_tick(self, remaining_minutes: int, state: TimerState) -> None:
        self._publish_snapshot()

    # ------------------------------------------------------------------
    # Collaborator helpers
    # ------------------------------------------------------------------

    def _current_workspace(self) -> Optional[int]:
        if self.host is None:
            return None
        try:
            return self.host.get_current_workspace()
        except Exception as e:
            logger.error(f"Failed to query current workspace: {e}")
            return None

    def _publish_snapshot(self) -> None:
        if self.persistence is None or not self.is_session_active:
            return
        try:
            self.persistence.publish(self.status_snapshot())
        except Exception as e:
            logger.error(f"Failed to publish state snapshot: {e}")

    def _clear_snapshot(self) -> None:
        if self.persistence is None:
            return
        try:
            self.persistence.clear()
        except Exception as e:
            logger.error(f"Failed to clear state snapshot: {e}")

    def _notify(self, message: str, severity: str, duration_ms: Optional[int] = None) -> None:
        """Send a desktop notification, never raising into the caller."""
        if self.notifier is None or not self.settings.notifications_enabled or not message:
            return
        if duration_ms is None:
            duration_ms = config.NOTIFY_DURATIONS_MS.get(severity, config.NOTIFY_DURATIONS_MS[config.SEVERITY_INFO])
        try:
            self.notifier.notify(message, severity, duration_ms)
        except Exception as e:
            logger.error(f"Notifier error: {e}")

    def _finish(
        self, ok: bool, message: str, level: str = config.SEVERITY_INFO, duration_ms: Optional[int] = None
    ) -> CommandResult:
        """Log, notify and wrap a command outcome."""
        logger.log(_LOG_LEVELS.get(level, logging.INFO), message)
        self._notify(message, level, duration_ms)
        return CommandResult(ok, message, level)
