"""
Pomodoro-style interval scheduler for focus sessions.

Runs one background worker per session that alternates work and break
intervals and reports transitions and ticks through callbacks. All
interval state is guarded by a single lock; callbacks always run after
the lock is released so they may query the scheduler freely.

Callbacks:
    on_work_start()
    on_break_start()
    on_session_complete()
    on_tick(remaining_minutes: int, state: TimerState)
"""

import logging
import threading
import time
from enum import Enum
from typing import Callable, Optional

import config

logger = logging.getLogger(__name__)


class TimerState(Enum):
    """Current phase of the scheduler."""
    IDLE = "idle"
    WORKING = "working"
    BREAK = "break"
    PAUSED = "paused"
    COMPLETED = "completed"


class SessionScheduler:
    """
    Interval timing state machine with a cancellable background loop.

    State moves Idle -> Working -> (Break <-> Working)*; Paused can be
    entered from Working or Break and always resumes into the state it
    was paused from.

    The configured total duration only ends a session when auto_complete
    is enabled. Otherwise intervals alternate until stop() is called.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        tick_seconds: float = config.TICK_SECONDS,
        auto_complete: bool = False,
    ) -> None:
        """
        Initialise an idle scheduler.

        Args:
            clock: Monotonic time source in seconds (injectable for tests).
            tick_seconds: Maximum time the worker sleeps between checks.
            auto_complete: End the session once total duration has elapsed.
        """
        self._clock = clock
        self._tick_seconds = tick_seconds
        self.auto_complete = auto_complete

        # Configuration (seconds)
        self._total_seconds: float = config.DEFAULT_TOTAL_MINUTES * 60
        self._work_seconds: float = config.DEFAULT_WORK_MINUTES * 60
        self._break_seconds: float = config.DEFAULT_BREAK_MINUTES * 60

        # State (guarded by _lock)
        self._lock = threading.Lock()
        self._state: TimerState = TimerState.IDLE
        self._session_start: float = 0.0
        self._interval_start: float = 0.0
        self._paused_remaining: float = 0.0
        self._paused_from: Optional[TimerState] = None
        self._paused_at: float = 0.0
        self._completed_work_intervals: int = 0

        # Worker management
        self._wake = threading.Event()
        self._should_stop: bool = False
        self._thread: Optional[threading.Thread] = None

        # ---- Callbacks (set by the controller) ----
        self.on_work_start: Optional[Callable[[], None]] = None
        self.on_break_start: Optional[Callable[[], None]] = None
        self.on_session_complete: Optional[Callable[[], None]] = None
        self.on_tick: Optional[Callable[[int, TimerState], None]] = None

    # ------------------------------------------------------------------
    # Configuration and lifecycle
    # ------------------------------------------------------------------

    def configure(self, total_minutes: int, work_minutes: int, break_minutes: int) -> None:
        """
        Set interval durations, clamping invalid values.

        Must not be called while a session is active; stop it first.

        Args:
            total_minutes: Total session length (>= 1).
            work_minutes: Length of each work interval (>= 1).
            break_minutes: Length of each break interval (>= 0).
        """
        total_minutes = max(1, int(total_minutes))
        work_minutes = max(1, int(work_minutes))
        break_minutes = max(0, int(break_minutes))

        with self._lock:
            self._total_seconds = total_minutes * 60
            self._work_seconds = work_minutes * 60
            self._break_seconds = break_minutes * 60

        logger.info(
            f"Timer configured: {total_minutes}min total, {work_minutes}min work, "
            f"{break_minutes}min break"
        )

    def start(self) -> bool:
        """
        Start a new session in the Working state.

        The work-start callback runs synchronously before this returns.

        Returns:
            True if started, False if a session is already running or paused.
        """
        with self._lock:
            if self._state not in (TimerState.IDLE, TimerState.COMPLETED):
                logger.warning("Cannot start timer: already running or paused")
                return False

            previous = self._thread
            now = self._clock()
            self._should_stop = False
            self._completed_work_intervals = 0
            self._session_start = now
            self._interval_start = now
            self._paused_remaining = 0.0
            self._paused_from = None
            self._paused_at = 0.0
            self._state = TimerState.WORKING
            self._wake.clear()

            thread = threading.Thread(target=self._run, name="focus-scheduler", daemon=True)
            self._thread = thread

        # A worker left over from an auto-completed session has already left its loop
        if previous is not None and previous.is_alive() and previous is not threading.current_thread():
            previous.join()

        thread.start()
        logger.info("Focus session started")
        self._invoke_callback(self.on_work_start, "on_work_start")
        return True

    def stop(self) -> None:
        """
        Stop the session and wait for the worker to exit.

        Safe to call repeatedly. When called from a callback running on the
        worker itself the join is skipped; the worker exits on its next wake.
        """
        with self._lock:
            self._should_stop = True
            thread = self._thread
            self._thread = None
        self._wake.set()

        if thread is not None and thread.is_alive() and thread is not threading.current_thread():
            thread.join()

        with self._lock:
            was_active = self._state is not TimerState.IDLE
            self._state = TimerState.IDLE
            self._paused_from = None

        if was_active:
            logger.info("Focus session stopped")

    def pause(self) -> None:
        """Freeze the current interval, remembering how much of it is left."""
        with self._lock:
            if self._state not in (TimerState.WORKING, TimerState.BREAK):
                return

            now = self._clock()
            interval = self._interval_seconds(self._state)
            elapsed = now - self._interval_start
            self._paused_at = now
            self._paused_remaining = min(interval, max(0.0, interval - elapsed))
            self._paused_from = self._state
            self._state = TimerState.PAUSED
            remaining = self._paused_remaining

        self._wake.set()
        logger.info(f"Timer paused with {int(remaining)} seconds remaining in interval")

    def resume(self) -> None:
        """Continue a paused interval exactly where it left off."""
        with self._lock:
            if self._state is not TimerState.PAUSED:
                return

            now = self._clock()
            resumed = self._paused_from or TimerState.WORKING
            interval = self._interval_seconds(resumed)
            # Back-date the interval start so elapsed time continues seamlessly
            self._interval_start = now - (interval - self._paused_remaining)
            # Paused time does not count toward the session total
            self._session_start += max(0.0, now - self._paused_at)
            self._state = resumed
            self._paused_from = None

        self._wake.set()
        logger.info("Timer resumed")

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_state(self) -> TimerState:
        with self._lock:
            return self._state

    def is_break_time(self) -> bool:
        return self.get_state() is TimerState.BREAK

    def is_running(self) -> bool:
        """True while in a Working or Break interval (not paused)."""
        return self.get_state() in (TimerState.WORKING, TimerState.BREAK)

    def get_completed_work_intervals(self) -> int:
        with self._lock:
            return self._completed_work_intervals

    def get_remaining_seconds(self) -> int:
        """
        Seconds left in the current interval.

        Returns:
            The frozen value while paused, 0 when idle or completed,
            otherwise max(0, interval - elapsed).
        """
        with self._lock:
            return int(self._remaining_locked(self._clock()))

    def get_elapsed_seconds(self) -> int:
        """Active seconds since the session started, excluding pauses (0 when idle)."""
        with self._lock:
            if self._state is TimerState.IDLE:
                return 0
            now = self._paused_at if self._state is TimerState.PAUSED else self._clock()
            return int(max(0.0, now - self._session_start))

    # ------------------------------------------------------------------
    # Background loop
    # ------------------------------------------------------------------

    def _run(self) -> None:
        """Worker loop: wake at least once per tick and advance intervals."""
        logger.debug("Timer thread started")

        while True:
            self._wake.wait(self._tick_seconds)
            self._wake.clear()

            transition: Optional[Callable[[], None]] = None
            transition_name = ""
            completed = False

            with self._lock:
                if self._should_stop:
                    break
                if self._state is TimerState.PAUSED:
                    continue  # stay alive but don't progress time
                if self._state not in (TimerState.WORKING, TimerState.BREAK):
                    break

                now = self._clock()

                # Interval check comes first so a break starts before the session can end
                if now - self._interval_start >= self._interval_seconds(self._state):
                    if self._state is TimerState.WORKING:
                        self._completed_work_intervals += 1
                        self._state = TimerState.BREAK
                        transition, transition_name = self.on_break_start, "on_break_start"
                        logger.info("Break interval started")
                    else:
                        self._state = TimerState.WORKING
                        transition, transition_name = self.on_work_start, "on_work_start"
                        logger.info("Work interval started")
                    self._interval_start = now

                if self.auto_complete and now - self._session_start >= self._total_seconds:
                    self._state = TimerState.COMPLETED
                    completed = True
                    # The session ends here, so no interval starts
                    transition = None
                    logger.info("Focus session complete")

                remaining = int(self._remaining_locked(now))
                state = self._state

            if transition is not None:
                self._invoke_callback(transition, transition_name)

            if completed:
                self._invoke_callback(self.on_session_complete, "on_session_complete")
                break

            if self.on_tick is not None:
                try:
                    self.on_tick(remaining // 60, state)
                except Exception as e:
                    logger.error(f"on_tick callback error: {e}")

        logger.debug("Timer thread exiting")

    # ------------------------------------------------------------------
    # Helpers (caller holds _lock where noted)
    # ------------------------------------------------------------------

    def _interval_seconds(self, state: TimerState) -> float:
        """Configured length of the interval belonging to state."""
        if state is TimerState.BREAK:
            return self._break_seconds
        return self._work_seconds

    def _remaining_locked(self, now: float) -> float:
        """Remaining seconds in the current interval. Caller holds _lock."""
        if self._state is TimerState.PAUSED:
            return self._paused_remaining
        if self._state not in (TimerState.WORKING, TimerState.BREAK):
            return 0.0
        interval = self._interval_seconds(self._state)
        return min(interval, max(0.0, interval - (now - self._interval_start)))

    @staticmethod
    def _invoke_callback(callback: Optional[Callable[[], None]], name: str) -> None:
        """Run a transition callback, logging instead of propagating errors."""
        if callback is None:
            return
        try:
            callback()
        except Exception as e:
            logger.error(f"{name} callback threw exception: {e}")

