"""
Run exclusivity.

Only one rotation may touch the store at a time. The lock is a pid file
claimed with O_CREAT | O_EXCL, so the existence check and the claim are
a single atomic filesystem operation.
"""

import atexit
import logging
import os
import signal
import threading


logger = logging.getLogger(__name__)

HANDLED_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class LockError(Exception):
    """Raised when the run lock cannot be taken."""
    pass


class LockHeld(LockError):
    """Raised when another process already holds the run lock."""

    def __init__(self, lock_path: str, pid: str):
        self.lock_path = lock_path
        self.pid = pid
        super().__init__(f"Lock {lock_path} is held by process {pid}")


class LockManager:
    """
    Process-wide run lock.

    Usable as a context manager:

        with LockManager('/var/run/rotator.lock'):
            ...

    While held, SIGINT and SIGTERM release the lock before the process
    exits, and an atexit hook covers any other interpreter shutdown.
    """

    def __init__(self, lock_path: str):
        self.lock_path = lock_path
        self.held = False
        self._previous_handlers = {}

    def acquire(self):
        """
        Claim the lock and record our pid in it.

        Raises:
            LockHeld: If another process holds the lock
            LockError: If the lock file cannot be created
        """
        lock_dir = os.path.dirname(self.lock_path)
        if lock_dir:
            try:
                os.makedirs(lock_dir, exist_ok=True)
            except OSError as e:
                raise LockError(f"Failed to create lock directory {lock_dir}: {e}")

        try:
            fd = os.open(self.lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            raise LockHeld(self.lock_path, self._read_holder())
        except OSError as e:
            raise LockError(f"Failed to create lock {self.lock_path}: {e}")

        try:
            os.write(fd, f"{os.getpid()}\n".encode('utf-8'))
        except OSError as e:
            os.close(fd)
            self._remove()
            raise LockError(f"Failed to write lock {self.lock_path}: {e}")
        os.close(fd)

        self.held = True
        self._arm()
        logger.debug(f"Acquired lock {self.lock_path}")

    def release(self):
        """Disarm cleanup handlers and remove the lock. Safe to call twice."""
        if not self.held:
            return

        self._disarm()
        self._remove()
        self.held = False
        logger.debug(f"Released lock {self.lock_path}")

    def _read_holder(self) -> str:
        try:
            with open(self.lock_path, 'r') as f:
                pid = f.read().strip()
        except OSError:
            return 'unknown'
        return pid or 'unknown'

    def _remove(self):
        try:
            os.remove(self.lock_path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.error(f"Failed to remove lock {self.lock_path}: {e}")

    def _arm(self):
        atexit.register(self.release)

        # signal.signal() only works from the main thread
        if threading.current_thread() is not threading.main_thread():
            return

        for signum in HANDLED_SIGNALS:
            self._previous_handlers[signum] = signal.signal(signum, self._on_signal)

    def _disarm(self):
        atexit.unregister(self.release)

        for signum, handler in self._previous_handlers.items():
            signal.signal(signum, handler)
        self._previous_handlers = {}

    def _on_signal(self, signum, frame):
        logger.error(f"Received signal {signal.Signals(signum).name}, aborting")
        self.release()
        raise SystemExit(128 + signum)

    def __enter__(self):
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.release()
        return False
