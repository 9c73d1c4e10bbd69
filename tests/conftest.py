"""
Shared pytest fixtures for rotator tests.

This module provides fixtures for:
- Rotation configuration
- An in-memory archive store
- Mock fixtures for external services (S3, tarsnap)
- Temporary file fixtures
"""

import os
from unittest.mock import patch

import pytest
import boto3
from moto import mock_aws

from rotator.backup.storage import ArchiveStore, StorageError
from rotator.config import RetentionPolicy, RotationConfig


class MemoryStore(ArchiveStore):
    """
    Archive store keeping names in a list.

    Names listed in fail_create, fail_copy or fail_delete make the
    matching operation raise StorageError. Every call is recorded in
    calls as (operation, name).
    """

    def __init__(self, names=None):
        self.names = list(names or [])
        self.fail_create = set()
        self.fail_copy = set()
        self.fail_delete = set()
        self.calls = []

    def list(self):
        self.calls.append(('list', None))
        return list(self.names)

    def create(self, name, source_path, opts=''):
        self.calls.append(('create', name))
        if name in self.fail_create or name in self.names:
            raise StorageError(f"cannot create {name}")
        self.names.append(name)

    def copy_from(self, name, source_name, opts=''):
        self.calls.append(('copy', name))
        if name in self.fail_copy or source_name not in self.names:
            raise StorageError(f"cannot copy {source_name} to {name}")
        self.names.append(name)

    def delete(self, name):
        self.calls.append(('delete', name))
        if name in self.fail_delete or name not in self.names:
            raise StorageError(f"cannot delete {name}")
        self.names.remove(name)

    @property
    def mutations(self):
        return [call for call in self.calls if call[0] != 'list']


@pytest.fixture
def lock_path(tmp_path):
    """Lock file location inside the test's temp directory."""
    return str(tmp_path / 'run' / 'rotator.lock')


@pytest.fixture
def make_config(lock_path):
    """
    Build a RotationConfig for host 'H' with test defaults.

    Keyword arguments override any field; daily/monthly/yearly set the
    retention policy.
    """
    def _make(targets=('/home',), daily=0, monthly=0, yearly=0, **overrides):
        settings = {
            'backup_targets': tuple(targets),
            'hostname': 'H',
            'retention': RetentionPolicy(daily=daily, monthly=monthly, yearly=yearly),
            'lock_path': lock_path,
            'store_type': 'local',
        }
        settings.update(overrides)
        return RotationConfig(**settings)

    return _make


@pytest.fixture
def memory_store():
    """Empty in-memory archive store."""
    return MemoryStore()


@pytest.fixture
def mock_s3():
    """
    Mock AWS S3 service using moto.

    Creates a test bucket 'test-bucket' in us-east-1 region.
    """
    with mock_aws():
        s3 = boto3.resource('s3', region_name='us-east-1')
        s3.create_bucket(Bucket='test-bucket')
        yield s3


@pytest.fixture
def mock_subprocess_run():
    """Patch subprocess.run as seen by the tarsnap store."""
    with patch('rotator.backup.storage.subprocess.run') as mock_run:
        mock_run.return_value.returncode = 0
        mock_run.return_value.stdout = ''
        mock_run.return_value.stderr = ''
        yield mock_run


@pytest.fixture
def temp_files(tmp_path):
    """
    Create temporary test files and directories.

    Creates:
    - data/test_file1.txt
    - data/test_file2.log
    - data/nested/test_file3.txt
    """
    data_dir = tmp_path / 'data'
    data_dir.mkdir()
    (data_dir / 'test_file1.txt').write_text('Test content 1')
    (data_dir / 'test_file2.log').write_text('Test log content')

    nested_dir = data_dir / 'nested'
    nested_dir.mkdir()
    (nested_dir / 'test_file3.txt').write_text('Nested test content')

    return data_dir


@pytest.fixture
def make_hook(tmp_path):
    """Write a shell script hook and return its path."""
    def _make(body, name='hook.sh', executable=True):
        path = tmp_path / name
        path.write_text(f"#!/bin/sh\n{body}\n")
        if executable:
            os.chmod(path, 0o755)
        else:
            os.chmod(path, 0o644)
        return str(path)

    return _make
