"""
Unit tests for the run lock (rotator/locking.py).
"""

import os
import signal
from unittest.mock import patch

import pytest

from rotator.locking import LockError, LockHeld, LockManager


class TestLockManager:
    """Test LockManager acquire/release."""

    def test_acquire_writes_pid(self, lock_path):
        lock = LockManager(lock_path)

        lock.acquire()
        try:
            assert lock.held
            with open(lock_path) as f:
                assert f.read().strip() == str(os.getpid())
        finally:
            lock.release()

    def test_release_removes_marker(self, lock_path):
        lock = LockManager(lock_path)
        lock.acquire()

        lock.release()

        assert not os.path.exists(lock_path)
        assert not lock.held

    def test_release_is_idempotent(self, lock_path):
        lock = LockManager(lock_path)
        lock.acquire()

        lock.release()
        lock.release()

        assert not os.path.exists(lock_path)

    def test_second_acquire_fails_with_holder_pid(self, lock_path):
        first = LockManager(lock_path)
        first.acquire()
        try:
            with pytest.raises(LockHeld) as exc_info:
                LockManager(lock_path).acquire()

            assert exc_info.value.pid == str(os.getpid())
            # The failed attempt must not remove the holder's marker
            assert os.path.exists(lock_path)
        finally:
            first.release()

    def test_unreadable_holder_reported_as_unknown(self, lock_path):
        os.makedirs(os.path.dirname(lock_path))
        with open(lock_path, 'w'):
            pass

        with pytest.raises(LockHeld) as exc_info:
            LockManager(lock_path).acquire()

        assert exc_info.value.pid == 'unknown'

    def test_lock_held_is_lock_error(self):
        assert issubclass(LockHeld, LockError)

    def test_uncreatable_lock_raises_lock_error(self, tmp_path):
        blocker = tmp_path / 'not_a_dir'
        blocker.write_text('')

        with pytest.raises(LockError):
            LockManager(str(blocker / 'rotator.lock')).acquire()

    def test_failed_pid_write_leaves_no_lock(self, lock_path):
        lock = LockManager(lock_path)

        with patch('rotator.locking.os.write', side_effect=OSError(28, "No space left on device")):
            with pytest.raises(LockError, match="No space left"):
                lock.acquire()

        assert not lock.held
        assert not os.path.exists(lock_path)

        # A later run can still take the lock
        with LockManager(lock_path):
            assert os.path.exists(lock_path)

    def test_context_manager_releases_on_exception(self, lock_path):
        with pytest.raises(RuntimeError):
            with LockManager(lock_path):
                assert os.path.exists(lock_path)
                raise RuntimeError("boom")

        assert not os.path.exists(lock_path)


class TestLockCleanupHandlers:
    """Test signal and exit cleanup registration."""

    def test_signal_handlers_installed_and_restored(self, lock_path):
        before = signal.getsignal(signal.SIGTERM)
        lock = LockManager(lock_path)

        lock.acquire()
        assert signal.getsignal(signal.SIGTERM) == lock._on_signal

        lock.release()
        assert signal.getsignal(signal.SIGTERM) == before

    def test_signal_releases_lock_and_exits(self, lock_path):
        lock = LockManager(lock_path)
        lock.acquire()

        with pytest.raises(SystemExit) as exc_info:
            lock._on_signal(signal.SIGTERM, None)

        assert exc_info.value.code == 128 + signal.SIGTERM
        assert not os.path.exists(lock_path)
        assert not lock.held

    def test_atexit_registration(self, lock_path):
        with patch('rotator.locking.atexit') as mock_atexit:
            lock = LockManager(lock_path)
            lock.acquire()
            lock.release()

        mock_atexit.register.assert_called_once_with(lock.release)
        mock_atexit.unregister.assert_called_once_with(lock.release)
