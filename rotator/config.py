"""
Rotation configuration.

Settings are read once from a dotenv-style file (KEY=value per line) and
frozen into a RotationConfig that is handed to every component.
"""

import logging
import os
import shlex
import socket
from dataclasses import dataclass, field
from typing import Optional, Tuple

from dotenv import dotenv_values

from rotator.backup.compression import EXTENSIONS
from rotator.backup.naming import DAILY, MONTHLY, YEARLY, suffix_of, display_path


logger = logging.getLogger(__name__)

STORE_TYPES = ('tarsnap', 'local', 's3')
LOG_LEVELS = ('error', 'warning', 'info', 'debug')

DEFAULT_LOCK_PATH = '/var/run/rotator.lock'
DEFAULT_LOCAL_STORE_PATH = '/var/backups/rotator'

_TRUE_VALUES = ('1', 'true', 'yes', 'on')
_FALSE_VALUES = ('0', 'false', 'no', 'off', '')


class ConfigError(Exception):
    """Raised when configuration is missing or invalid."""
    pass


@dataclass(frozen=True)
class RetentionPolicy:
    """
    Number of archives to keep per (tier, target) group.

    A count of 0 keeps every archive of that tier.
    """

    daily: int = 0
    monthly: int = 0
    yearly: int = 0

    def keep(self, tier: str) -> int:
        if tier == DAILY:
            return self.daily
        if tier == MONTHLY:
            return self.monthly
        if tier == YEARLY:
            return self.yearly
        raise ValueError(f"Unknown tier: {tier}")

    @staticmethod
    def is_unlimited(count: int) -> bool:
        return count == 0


@dataclass(frozen=True)
class RotationConfig:
    """Immutable settings for one rotation run."""

    backup_targets: Tuple[str, ...]
    hostname: str = field(default_factory=socket.gethostname)
    use_local_time: bool = False
    retention: RetentionPolicy = field(default_factory=RetentionPolicy)
    lock_path: str = DEFAULT_LOCK_PATH
    pre_backup_hook: Optional[str] = None
    post_backup_hook: Optional[str] = None
    store_options: str = ''
    store_type: str = 'tarsnap'
    tarsnap_command: str = 'tarsnap'
    local_store_path: str = DEFAULT_LOCAL_STORE_PATH
    compression_format: str = 'tar.gz'
    s3_bucket: Optional[str] = None
    s3_region: str = 'us-east-1'
    s3_prefix: str = ''
    aws_access_key_id: Optional[str] = None
    aws_secret_access_key: Optional[str] = None
    log_level: str = 'info'
    use_syslog: bool = False

    def __post_init__(self):
        validate_config(self)


def default_config_path() -> str:
    """Config file used when none is given on the command line."""
    return os.environ.get('ROTATOR_CONFIG') or '/etc/rotator.conf'


def validate_config(config: RotationConfig):
    """
    Check a configuration for consistency.

    Raises:
        ConfigError: If any setting is invalid
    """
    if not config.backup_targets:
        raise ConfigError("backupTargets must list at least one path")

    if not config.hostname:
        raise ConfigError("hostname must not be empty")

    for tier in (DAILY, MONTHLY, YEARLY):
        count = config.retention.keep(tier)
        if not isinstance(count, int) or count < 0:
            raise ConfigError(f"{tier}Backups must be a non-negative integer, got {count!r}")

    if config.store_type not in STORE_TYPES:
        raise ConfigError(
            f"Invalid storeType: {config.store_type}. "
            f"Valid options: {list(STORE_TYPES)}"
        )

    if config.store_type == 's3' and not config.s3_bucket:
        raise ConfigError("s3Bucket is required when storeType is s3")

    if config.store_type in ('local', 's3') and config.compression_format not in EXTENSIONS:
        raise ConfigError(
            f"Invalid compressionFormat: {config.compression_format}. "
            f"Valid options: {list(EXTENSIONS.keys())}"
        )

    if config.log_level not in LOG_LEVELS:
        raise ConfigError(
            f"Invalid logLevel: {config.log_level}. "
            f"Valid options: {list(LOG_LEVELS)}"
        )

    _check_suffix_collisions(config.backup_targets)


def _check_suffix_collisions(targets):
    """
    Reject distinct targets that would share archive names.

    Repeating the very same path is allowed; the store refuses the second
    create and the run is reported as failed.
    """
    seen = {}
    for target in targets:
        suffix = suffix_of(target)
        other = seen.get(suffix)
        if other is None:
            seen[suffix] = target
        elif other == target:
            logger.warning(f"Backup target listed more than once: {display_path(target)}")
        else:
            raise ConfigError(
                f"Backup targets {display_path(other)} and {display_path(target)} "
                f"map to the same archive suffix '{suffix}'"
            )


def _parse_bool(key: str, value: Optional[str]) -> bool:
    normalized = (value or '').strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise ConfigError(f"{key} must be a boolean, got {value!r}")


def _parse_count(key: str, value: Optional[str]) -> int:
    if value is None or value.strip() == '':
        return 0
    try:
        count = int(value.strip())
    except ValueError:
        raise ConfigError(f"{key} must be a non-negative integer, got {value!r}")
    if count < 0:
        raise ConfigError(f"{key} must be a non-negative integer, got {value!r}")
    return count


def load_config(path: Optional[str] = None) -> RotationConfig:
    """
    Load configuration from a dotenv-style file.

    Keys are matched case-insensitively, so both ``dailyBackups`` and
    ``DAILYBACKUPS`` are accepted.

    Args:
        path: Config file path (default: ROTATOR_CONFIG or /etc/rotator.conf)

    Returns:
        Frozen RotationConfig

    Raises:
        ConfigError: If the file is missing or a setting is invalid
    """
    path = path or default_config_path()

    if not os.path.isfile(path):
        raise ConfigError(f"Configuration file not found: {path}")

    try:
        raw = dotenv_values(path)
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigError(f"Failed to read configuration file {path}: {e}")

    values = {key.lower(): value for key, value in raw.items()}

    def get(key, default=None):
        value = values.get(key.lower())
        if value is None or value == '':
            return default
        return value

    try:
        targets = tuple(shlex.split(get('backupTargets', '')))
    except ValueError as e:
        raise ConfigError(f"Invalid backupTargets: {e}")

    retention = RetentionPolicy(
        daily=_parse_count('dailyBackups', get('dailyBackups')),
        monthly=_parse_count('monthlyBackups', get('monthlyBackups')),
        yearly=_parse_count('yearlyBackups', get('yearlyBackups')),
    )

    return RotationConfig(
        backup_targets=targets,
        hostname=get('hostname') or socket.gethostname(),
        use_local_time=_parse_bool('useLocalTime', get('useLocalTime', 'false')),
        retention=retention,
        lock_path=get('lockPath', DEFAULT_LOCK_PATH),
        pre_backup_hook=get('preBackupHook'),
        post_backup_hook=get('postBackupHook'),
        store_options=get('storeOptions', ''),
        store_type=get('storeType', 'tarsnap').lower(),
        tarsnap_command=get('tarsnapCommand', 'tarsnap'),
        local_store_path=get('localStorePath', DEFAULT_LOCAL_STORE_PATH),
        compression_format=get('compressionFormat', 'tar.gz'),
        s3_bucket=get('s3Bucket'),
        s3_region=get('s3Region', 'us-east-1'),
        s3_prefix=get('s3Prefix', ''),
        aws_access_key_id=get('awsAccessKeyId'),
        aws_secret_access_key=get('awsSecretAccessKey'),
        log_level=get('logLevel', 'info').lower(),
        use_syslog=_parse_bool('useSyslog', get('useSyslog', 'false')),
    )
