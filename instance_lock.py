"""
Instance Lock - Ensures only one FocusGate daemon runs per user.

Uses fcntl.flock() on a lock file holding the daemon's PID. The lock is
released by the kernel when the process dies, so a crashed daemon never
blocks the next one; a PID from a dead process is treated as stale.
"""

import os
import atexit
import fcntl
import logging
from pathlib import Path
from typing import IO, Optional

import config

logger = logging.getLogger(__name__)

LOCK_FILE = config.USER_DATA_DIR / ".focusgate_instance.lock"


def _is_process_running(pid: int) -> bool:
    """Check whether pid belongs to a live process (signal 0 probe)."""
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
        return True
    except ProcessLookupError:
        return False
    except PermissionError:
        return True  # exists, owned by someone else
    except OSError:
        return False


def _read_pid(lock_file: Path) -> Optional[int]:
    try:
        content = lock_file.read_text().strip()
    except OSError:
        return None
    return int(content) if content.isdigit() else None


class InstanceLock:
    """
    Exclusive daemon lock.

    Usage:
        with InstanceLock() as lock:
            if not lock.is_acquired():
                sys.exit(1)
            ...
    """

    def __init__(self, lock_file: Optional[Path] = None):
        """
        Args:
            lock_file: Path to lock file (default: USER_DATA_DIR/.focusgate_instance.lock)
        """
        self.lock_file = lock_file or LOCK_FILE
        self._lock_handle: Optional[IO[str]] = None
        self._acquired = False

    def _try_acquire_lock(self) -> bool:
        """Take the flock and record our PID. Returns False if held elsewhere."""
        try:
            # 'a+' so a failed attempt doesn't wipe the owner's PID
            handle = open(self.lock_file, 'a+')
        except OSError as e:
            logger.debug(f"Failed to open lock file: {e}")
            return False

        try:
            fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        except OSError:
            handle.close()
            return False

        handle.seek(0)
        handle.truncate()
        handle.write(str(os.getpid()))
        handle.flush()
        self._lock_handle = handle
        return True

    def _clean_stale_lock(self) -> bool:
        """
        Remove the lock file if the PID inside it is dead.

        Returns:
            True if a stale lock was removed and acquisition may be retried.
        """
        if not self.lock_file.exists():
            return False

        old_pid = _read_pid(self.lock_file)
        if old_pid is not None and (old_pid == os.getpid() or _is_process_running(old_pid)):
            logger.debug(f"Process {old_pid} is still running")
            return False

        logger.info(f"Removing stale lock (pid {old_pid})")
        try:
            self.lock_file.unlink()
        except OSError as e:
            logger.warning(f"Failed to remove stale lock file: {e}")
            return False
        return True

    def acquire(self) -> bool:
        """
        Try to acquire the instance lock.

        Returns:
            True if no other daemon is running.
        """
        try:
            self.lock_file.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error(f"Cannot create lock directory: {e}")
            return False

        if self._try_acquire_lock() or (self._clean_stale_lock() and self._try_acquire_lock()):
            self._acquired = True
            logger.debug(f"Instance lock acquired (PID: {os.getpid()})")
            return True

        return False

    def release(self) -> None:
        """Release the lock and remove the lock file."""
        if self._lock_handle is None:
            return
        try:
            # Closing the file releases the flock
            self._lock_handle.close()
        except OSError as e:
            logger.warning(f"Error releasing instance lock: {e}")
        self._lock_handle = None
        self._acquired = False

        try:
            self.lock_file.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.debug(f"Could not delete lock file: {e}")
        logger.debug("Instance lock released")

    def is_acquired(self) -> bool:
        return self._acquired

    def __enter__(self):
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()
        return False


_instance_lock: Optional[InstanceLock] = None


def check_single_instance() -> bool:
    """
    Claim the process-wide daemon lock (released automatically at exit).

    Returns:
        True if this is the only daemon, False if another one is running.
    """
    global _instance_lock

    if _instance_lock is not None:
        return _instance_lock.is_acquired()

    _instance_lock = InstanceLock()
    acquired = _instance_lock.acquire()
    if acquired:
        atexit.register(release_instance_lock)
    return acquired


def release_instance_lock() -> None:
    global _instance_lock
    if _instance_lock is not None:
        _instance_lock.release()
        _instance_lock = None


def get_existing_pid() -> Optional[int]:
    """PID of the running daemon according to the lock file, if readable."""
    if not LOCK_FILE.exists():
        return None
    return _read_pid(LOCK_FILE)
