"""
Retention policy enforcement for archives.

Implements grandfather-father-son rotation: for every backup target and
every tier, only the newest N archives are kept, where N comes from the
configured RetentionPolicy (0 keeps everything).
"""

import logging
from datetime import datetime, timezone
from typing import List, Dict, Any

from .naming import TIERS, display_path, parse_archive, parse_listing, suffix_of
from .storage import ArchiveStore, StorageError


logger = logging.getLogger(__name__)


class RetentionManager:
    """
    Prunes archives that fall outside the retention policy.

    Only call this after a run in which every archive was created
    successfully; otherwise a broken run could push good archives out
    of the retention window.
    """

    def __init__(self, config, store: ArchiveStore):
        """
        Initialize retention manager.

        Args:
            config: RotationConfig for this run
            store: Archive store to prune
        """
        self.config = config
        self.store = store
        self.logs = []

    def enforce(self, listing: List[str]) -> Dict[str, Any]:
        """
        Enforce retention for every (tier, target) group.

        Deletions run one after another in a fixed order; a failed
        deletion is logged and the next candidate is tried.

        Args:
            listing: Store listing taken after all archives were created

        Returns:
            Dict with summary of cleanup operations:
            {
                'groups_processed': int,
                'deleted': List[str],
                'errors': List[str],
                'logs': List[str]
            }
        """
        self._log("Starting retention policy enforcement")

        # The listing is a snapshot: deletions below do not refresh it
        listing = list(listing)
        archives = parse_listing(listing, self.config.hostname)

        summary = {
            'groups_processed': 0,
            'deleted': [],
            'errors': []
        }

        for target in self.config.backup_targets:
            for tier in TIERS:
                candidates = self.deletion_candidates(archives, tier, target)
                summary['groups_processed'] += 1

                for candidate in candidates:
                    self._delete_prefixed(candidate, listing, summary)

        self._log(
            f"Retention enforcement complete. "
            f"Groups: {summary['groups_processed']}, "
            f"Deleted: {len(summary['deleted'])}, "
            f"Errors: {len(summary['errors'])}"
        )

        summary['logs'] = self.logs
        return summary

    def deletion_candidates(self, archives, tier: str, target: str) -> List[str]:
        """
        Names of the archives of one group that exceed the policy.

        Args:
            archives: Parsed store listing
            tier: Tier of the group
            target: Backup target of the group

        Returns:
            Archive names past the newest N, newest first
        """
        suffix = suffix_of(target)
        group = [
            archive for archive in archives
            if archive.in_group(self.config.hostname, tier, suffix)
        ]
        group.sort(key=lambda archive: archive.timestamp, reverse=True)

        keep = self.config.retention.keep(tier)
        target_label = display_path(target)

        if self.config.retention.is_unlimited(keep):
            self._log(f"{tier} archives of {target_label}: {len(group)} found, keeping all",
                      logging.DEBUG)
            return []

        if len(group) <= keep:
            self._log(f"{tier} archives of {target_label}: {len(group)} found, "
                      f"limit {keep}, nothing to prune", logging.DEBUG)
            return []

        self._log(f"{tier} archives of {target_label}: {len(group)} found, "
                  f"limit {keep}, pruning {len(group) - keep}")
        return [archive.name for archive in group[keep:]]

    def _delete_prefixed(self, candidate: str, listing: List[str], summary: Dict[str, Any]):
        """
        Delete a candidate and every archive sharing its name as a prefix.

        Multi-part archives are stored as several names starting with the
        same logical name; they are removed together. A name that belongs
        to another configured target's group (``-home`` is a prefix of
        ``-homedir``) is left to that group's own policy.
        """
        for name in listing:
            if not name.startswith(candidate) or name in summary['deleted']:
                continue
            if name != candidate and self._belongs_to_other_target(name):
                continue

            try:
                self.store.delete(name)
                summary['deleted'].append(name)
                self._log(f"Deleted archive: {name}")
            except StorageError as e:
                error_msg = f"Failed to delete archive {name}: {e}"
                summary['errors'].append(error_msg)
                self._log(error_msg, logging.ERROR)

    def _belongs_to_other_target(self, name: str) -> bool:
        # Same prefix means same tier and timestamp, so a configured
        # suffix here can only be a different target's
        archive = parse_archive(name, self.config.hostname)
        if archive is None:
            return False
        return archive.suffix in {suffix_of(target) for target in self.config.backup_targets}

    def _log(self, message: str, level: int = logging.INFO):
        """
        Add a log message with timestamp.

        Args:
            message: Log message
            level: logging level for the module logger
        """
        timestamp = datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M:%S UTC')
        self.logs.append(f"[{timestamp}] {message}")
        logger.log(level, message)


def enforce_retention(config, store: ArchiveStore, run_result) -> Dict[str, Any]:
    """
    Prune old archives after a backup run.

    Nothing is deleted unless every archive of the run was created. The
    store is listed again first so archives created by the run count
    towards the policy.

    Args:
        config: RotationConfig for this run
        store: Archive store to prune
        run_result: RunResult of the backup phase

    Returns:
        Summary dict from RetentionManager.enforce(), or None if pruning
        was skipped

    Raises:
        StoreUnavailable: If the store cannot be listed
    """
    if not run_result.ok:
        logger.warning("Not pruning old archives because the backup run had failures")
        return None

    manager = RetentionManager(config, store)
    return manager.enforce(store.list())
