"""
Archive naming scheme.

Every archive is identified by a single string:
{host}-{tier}-{timestamp}[-{suffix}]

The timestamp is fixed width, so sorting names inside one
(host, tier, suffix) group lexically is the same as sorting them
chronologically.
"""

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Optional


DAILY = 'daily'
MONTHLY = 'monthly'
YEARLY = 'yearly'

TIERS = (DAILY, MONTHLY, YEARLY)

TIMESTAMP_FORMAT = '%Y-%m-%d_%H-%M-%S'

_TIMESTAMP_RE = re.compile(r'^\d{4}-\d{2}-\d{2}_\d{2}-\d{2}-\d{2}')


@dataclass(frozen=True)
class Archive:
    """A store listing entry parsed into its naming components."""

    name: str
    host: str
    tier: str
    timestamp: str
    suffix: str

    @property
    def year(self) -> str:
        return self.timestamp[:4]

    @property
    def month(self) -> str:
        return self.timestamp[:7]

    def in_group(self, host: str, tier: str, suffix: str) -> bool:
        return self.host == host and self.tier == tier and self.suffix == suffix


def suffix_of(path: str) -> str:
    """
    Derive the archive name suffix for a backup target.

    All path separators are removed. The root directory (and an empty
    or "." path) yields no suffix at all.

    Examples:
        suffix_of('/')        -> ''
        suffix_of('/foo/bar') -> '-foobar'
    """
    stripped = path.replace('/', '')
    if stripped in ('', '.'):
        return ''
    return f"-{stripped}"


def display_path(path: str) -> str:
    """Normalize a target path for messages."""
    if path.startswith('/'):
        return path
    return f"/{path}"


def format_timestamp(moment: datetime) -> str:
    return moment.strftime(TIMESTAMP_FORMAT)


def archive_name(host: str, tier: str, timestamp: str, suffix: str) -> str:
    return f"{host}-{tier}-{timestamp}{suffix}"


def parse_archive(name: str, host: str) -> Optional[Archive]:
    """
    Parse a listed archive name belonging to host.

    Args:
        name: Archive name as returned by the store
        host: Hostname the name must start with

    Returns:
        Archive record, or None if the name was not produced by this
        naming scheme for this host
    """
    prefix = f"{host}-"
    if not name.startswith(prefix):
        return None

    rest = name[len(prefix):]
    tier, sep, rest = rest.partition('-')
    if not sep or tier not in TIERS:
        return None

    match = _TIMESTAMP_RE.match(rest)
    if not match:
        return None

    timestamp = match.group(0)
    suffix = rest[len(timestamp):]
    if suffix and not suffix.startswith('-'):
        return None

    return Archive(name=name, host=host, tier=tier, timestamp=timestamp, suffix=suffix)


def parse_listing(names, host: str) -> list:
    """Parse a store listing, dropping names foreign to this host."""
    archives = []
    for name in names:
        archive = parse_archive(name, host)
        if archive is not None:
            archives.append(archive)
    return archives
