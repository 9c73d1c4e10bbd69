"""
Backup module for rotator.

This module handles the core rotation functionality including:
- Archive naming
- Archive stores (tarsnap, S3 and local)
- Compression for the S3 and local stores
- Backup orchestration
- Retention policy enforcement
"""

from .executor import BackupOrchestrator, RunResult
from .storage import TarsnapStorage, S3Storage, LocalStorage, create_store
from .compression import create_archive
from .retention import RetentionManager, enforce_retention

__all__ = [
    'BackupOrchestrator',
    'RunResult',
    'TarsnapStorage',
    'S3Storage',
    'LocalStorage',
    'create_store',
    'create_archive',
    'RetentionManager',
    'enforce_retention'
]
