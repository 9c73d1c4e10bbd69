"""
Backup orchestrator - creates the archives of one rotation run.

Workflow, for each backup target in configured order:
1. Create the daily archive from the target path
2. Copy it to a yearly archive unless one exists for the current year
3. Copy it to a monthly archive unless one exists for the current month

A failing step is logged and remembered, and the run moves on. The
outcome is a RunResult whose failure flag decides whether old archives
may be pruned afterwards.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List

from .naming import (
    DAILY,
    MONTHLY,
    YEARLY,
    archive_name,
    display_path,
    format_timestamp,
    parse_archive,
    parse_listing,
    suffix_of
)
from .storage import ArchiveStore, StorageError


logger = logging.getLogger(__name__)


class InternalInvariantError(Exception):
    """Raised when the orchestrator is asked to do something it does not know."""
    pass


@dataclass
class RunResult:
    """Outcome of the archive creation phase."""

    timestamp: str
    manifest: List[str] = field(default_factory=list)
    failed: bool = False

    @property
    def ok(self) -> bool:
        return not self.failed


class BackupOrchestrator:
    """
    Creates daily archives and cascades them into monthly/yearly tiers.

    Monthly and yearly archives are store-side copies of the daily archive
    made in the same run, so the targets are read only once.
    """

    def __init__(self, config, store: ArchiveStore):
        """
        Initialize backup orchestrator.

        Args:
            config: RotationConfig for this run
            store: Archive store to write to
        """
        self.config = config
        self.store = store
        self.result = None
        self.logs = []

    def run(self, existing_names: List[str]) -> RunResult:
        """
        Back up every configured target.

        Args:
            existing_names: Store listing taken before the run

        Returns:
            RunResult with the created archive names and the failure flag

        Raises:
            InternalInvariantError: On an unknown cascade tier
        """
        # One timestamp for the whole run, so a run never straddles two days
        self.result = RunResult(timestamp=format_timestamp(self._now()))
        existing = parse_listing(existing_names, self.config.hostname)

        self._log(f"Starting backup run {self.result.timestamp} "
                  f"for {len(self.config.backup_targets)} targets")

        for target in self.config.backup_targets:
            self._backup_target(target, existing)

        if self.result.failed:
            self._log("Backup run finished with failures", logging.WARNING)
        else:
            self._log(f"Backup run finished, created {len(self.result.manifest)} daily archives")

        return self.result

    def _now(self) -> datetime:
        if self.config.use_local_time:
            return datetime.now()
        return datetime.now(timezone.utc)

    def _backup_target(self, target: str, existing):
        suffix = suffix_of(target)
        daily_name = archive_name(self.config.hostname, DAILY, self.result.timestamp, suffix)

        self._log(f"Backing up {display_path(target)} to {daily_name}")
        try:
            self.store.create(daily_name, target, self.config.store_options)
        except StorageError as e:
            self._fail(f"Failed to create {daily_name} from {display_path(target)}: {e}")
            daily_created = False
        else:
            self.result.manifest.append(daily_name)
            daily_created = True

        for tier in (YEARLY, MONTHLY):
            self._cascade(tier, daily_name, suffix, existing, daily_created)

    def _cascade(self, tier: str, daily_name: str, suffix: str, existing, daily_created: bool):
        """
        Copy the daily archive into a tier unless the tier already has an
        archive for the current period.
        """
        host = self.config.hostname
        current = parse_archive(daily_name, host)
        period = self._period(tier, current)

        for archive in existing:
            if archive.in_group(host, tier, suffix) and self._period(tier, archive) == period:
                self._log(f"Found {tier} archive {archive.name}, no copy needed", logging.DEBUG)
                return

        tier_name = archive_name(host, tier, self.result.timestamp, suffix)

        if not daily_created:
            self._log(f"Skipping {tier_name}: {daily_name} was not created", logging.WARNING)
            return

        self._log(f"Copying {daily_name} to {tier_name}")
        try:
            self.store.copy_from(tier_name, daily_name, self.config.store_options)
        except StorageError as e:
            self._fail(f"Failed to copy {daily_name} to {tier_name}: {e}")

    @staticmethod
    def _period(tier: str, archive) -> str:
        if tier == YEARLY:
            return archive.year
        if tier == MONTHLY:
            return archive.month
        raise InternalInvariantError(f"Cannot cascade into tier: {tier}")

    def _fail(self, message: str):
        self.result.failed = True
        self._log(message, logging.WARNING)

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
