"""
One complete rotation run.

Workflow:
1. Check that configured hooks are executable
2. Acquire the run lock
3. Run the pre-backup hook
4. Create daily archives and cascade monthly/yearly copies
5. Run the post-backup hook with the names of the new daily archives
6. Prune old archives, unless any archive failed in step 4
7. Release the run lock
"""

import logging
from typing import Optional

from rotator.backup.executor import BackupOrchestrator
from rotator.backup.retention import enforce_retention
from rotator.backup.storage import ArchiveStore, create_store
from rotator.hooks import HookError, check_hook, run_hook
from rotator.locking import LockManager


logger = logging.getLogger(__name__)


def run_rotation(config, store: Optional[ArchiveStore] = None) -> int:
    """
    Run backups and retention for a configuration.

    Args:
        config: RotationConfig
        store: Archive store (default: built from config)

    Returns:
        0 if every archive was created, 1 otherwise

    Raises:
        HookError: If a hook is unusable or the pre-backup hook fails
        LockHeld: If another run holds the lock
        StoreUnavailable: If the store cannot be listed
        InternalInvariantError: On an internal orchestration fault
    """
    check_hook(config.pre_backup_hook)
    check_hook(config.post_backup_hook)

    if store is None:
        store = create_store(config)

    exit_code = 0

    with LockManager(config.lock_path):
        run_hook(config.pre_backup_hook)

        orchestrator = BackupOrchestrator(config, store)
        result = orchestrator.run(store.list())

        try:
            run_hook(config.post_backup_hook, result.manifest)
        except HookError as e:
            logger.error(f"Post-backup hook failed: {e}")
            exit_code = 1

        summary = enforce_retention(config, store, result)
        if summary is not None and summary['errors']:
            logger.warning(f"{len(summary['errors'])} archives could not be deleted")

        if not result.ok:
            exit_code = 1

    return exit_code
