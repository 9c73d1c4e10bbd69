"""
Pre- and post-backup hooks.

Hooks are plain executables. The post-backup hook receives the names of
the archives created during the run as its arguments.
"""

import logging
import os
import subprocess
from typing import List, Optional


logger = logging.getLogger(__name__)


class HookError(Exception):
    """Raised when a hook is unusable or fails."""
    pass


def check_hook(path: Optional[str]):
    """
    Make sure a configured hook can be executed.

    Args:
        path: Hook path, or None if no hook is configured

    Raises:
        HookError: If the hook is missing or not executable
    """
    if not path:
        return

    if not os.path.isfile(path):
        raise HookError(f"Hook not found: {path}")

    if not os.access(path, os.X_OK):
        raise HookError(f"Hook is not executable: {path}")


def run_hook(path: Optional[str], args: Optional[List[str]] = None):
    """
    Run a hook and wait for it to finish.

    Args:
        path: Hook path, or None if no hook is configured
        args: Extra command line arguments

    Raises:
        HookError: If the hook cannot be started or exits non-zero
    """
    if not path:
        return

    cmd = [path] + list(args or [])
    logger.info(f"Running hook: {path}")

    try:
        result = subprocess.run(cmd, capture_output=True, text=True)
    except OSError as e:
        raise HookError(f"Failed to run hook {path}: {e}")

    if result.stdout.strip():
        logger.debug(f"Hook {path} output: {result.stdout.strip()}")

    if result.returncode != 0:
        raise HookError(
            f"Hook {path} exited with status {result.returncode}: {result.stderr.strip()}"
        )
