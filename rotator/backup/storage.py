"""
Archive store clients.

Every store exposes the same four primitives used by the orchestrator and
the retention manager:
- list(): names of all archives in the store
- create(name, source_path, opts): archive a filesystem path
- copy_from(name, source_name, opts): store-side copy of an archive
- delete(name): remove an archive

Supports:
- TarsnapStorage: Drive the tarsnap command line client
- S3Storage: Compressed archives in an AWS S3 bucket
- LocalStorage: Compressed archives in a local directory
"""

import logging
import os
import shlex
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import List, Optional

import boto3
from botocore.exceptions import ClientError, BotoCoreError

from .compression import (
    create_archive,
    get_archive_size,
    strip_archive_extension,
    CompressionError
)


logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when storage operation fails."""
    pass


class StoreUnavailable(StorageError):
    """Raised when the store cannot be reached or refuses our credentials."""
    pass


class ArchiveStore:
    """Interface shared by all archive stores."""

    def list(self) -> List[str]:
        raise NotImplementedError

    def create(self, name: str, source_path: str, opts: str = ''):
        raise NotImplementedError

    def copy_from(self, name: str, source_name: str, opts: str = ''):
        raise NotImplementedError

    def delete(self, name: str):
        raise NotImplementedError


class TarsnapStorage(ArchiveStore):
    """
    Handler for the tarsnap backup service.

    Store options are split like a shell would and passed to tarsnap
    unchanged on create and copy.
    """

    def __init__(self, command: str = 'tarsnap'):
        self.command = command

    def _run(self, args: List[str]) -> str:
        cmd = [self.command] + args
        logger.debug(f"Running: {shlex.join(cmd)}")

        try:
            result = subprocess.run(cmd, capture_output=True, text=True)
        except OSError as e:
            raise StorageError(f"Failed to run {self.command}: {e}")

        if result.returncode != 0:
            raise StorageError(
                f"{shlex.join(cmd)} exited with status {result.returncode}: "
                f"{result.stderr.strip()}"
            )

        return result.stdout

    def list(self) -> List[str]:
        try:
            output = self._run(['--list-archives'])
        except StorageError as e:
            raise StoreUnavailable(f"Failed to list archives: {e}")

        return [line.strip() for line in output.splitlines() if line.strip()]

    def create(self, name: str, source_path: str, opts: str = ''):
        self._run(['-c', '-f', name] + shlex.split(opts) + [source_path])

    def copy_from(self, name: str, source_name: str, opts: str = ''):
        # "@@archive" makes tarsnap reuse the stored blocks of an archive
        self._run(['-c', '-f', name] + shlex.split(opts) + [f'@@{source_name}'])

    def delete(self, name: str):
        self._run(['-d', '-f', name])


class S3Storage(ArchiveStore):
    """
    Handler for archives kept in AWS S3.

    Each archive is one object: {prefix}{name}.{ext}
    Copies are done server side with copy_object, so the backed up
    filesystem is not read again.
    """

    def __init__(
        self,
        bucket_name: str,
        region: str = 'us-east-1',
        prefix: str = '',
        access_key: Optional[str] = None,
        secret_key: Optional[str] = None,
        compression_format: str = 'tar.gz'
    ):
        """
        Initialize S3 storage handler.

        Args:
            bucket_name: S3 bucket name
            region: AWS region (default: us-east-1)
            prefix: Key prefix for all archives
            access_key: AWS access key ID (default: boto3 credential chain)
            secret_key: AWS secret access key
            compression_format: Archive format for new archives
        """
        self.bucket_name = bucket_name
        self.region = region
        self.prefix = prefix
        self.compression_format = compression_format

        try:
            self.s3_client = boto3.client(
                's3',
                aws_access_key_id=access_key,
                aws_secret_access_key=secret_key,
                region_name=region
            )
        except Exception as e:
            raise StorageError(f"Failed to initialize S3 client: {e}")

    def _list_keys(self, prefix: str) -> List[str]:
        keys = []
        paginator = self.s3_client.get_paginator('list_objects_v2')

        for page in paginator.paginate(Bucket=self.bucket_name, Prefix=prefix):
            if 'Contents' in page:
                for obj in page['Contents']:
                    keys.append(obj['Key'])

        return keys

    def _name_of(self, key: str) -> str:
        return strip_archive_extension(key[len(self.prefix):])

    def _keys_for(self, name: str) -> List[str]:
        """Keys holding exactly the named archive."""
        try:
            keys = self._list_keys(self.prefix + name)
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"S3 list failed: {e}")
        return [key for key in keys if self._name_of(key) == name]

    def list(self) -> List[str]:
        try:
            keys = self._list_keys(self.prefix)
        except ClientError as e:
            error_code = e.response.get('Error', {}).get('Code', 'Unknown')
            raise StoreUnavailable(f"S3 list failed ({error_code}): {e}")
        except BotoCoreError as e:
            raise StoreUnavailable(f"S3 list failed: {e}")

        return [self._name_of(key) for key in keys]

    def create(self, name: str, source_path: str, opts: str = ''):
        """
        Archive source_path and upload it as a new object.

        Raises:
            StorageError: If the archive exists or the upload fails
        """
        if opts:
            logger.debug(f"S3 store ignores store options: {opts}")

        if self._keys_for(name):
            raise StorageError(f"Archive already exists: {name}")

        temp_dir = tempfile.mkdtemp(prefix='rotator_')
        try:
            archive_path = create_archive(
                source_path,
                os.path.join(temp_dir, name),
                self.compression_format
            )
            s3_key = self.prefix + os.path.basename(archive_path)
            file_size = get_archive_size(archive_path)

            # Use multipart upload for files larger than 100MB
            if file_size > 100 * 1024 * 1024:
                self._multipart_upload(archive_path, s3_key)
            else:
                self._simple_upload(archive_path, s3_key)

        except CompressionError as e:
            raise StorageError(f"Failed to archive {source_path}: {e}")
        except ClientError as e:
            error_code = e.response.get('Error', {}).get('Code', 'Unknown')
            raise StorageError(f"S3 upload failed ({error_code}): {e}")
        except BotoCoreError as e:
            raise StorageError(f"S3 upload failed: {e}")
        finally:
            shutil.rmtree(temp_dir, ignore_errors=True)

    def _simple_upload(self, local_path: str, s3_key: str):
        with open(local_path, 'rb') as f:
            self.s3_client.put_object(
                Bucket=self.bucket_name,
                Key=s3_key,
                Body=f
            )

    def _multipart_upload(self, local_path: str, s3_key: str):
        """
        Upload large file using multipart upload.

        Args:
            local_path: Path to local file
            s3_key: S3 object key
        """
        # 10MB chunks
        chunk_size = 10 * 1024 * 1024

        response = self.s3_client.create_multipart_upload(
            Bucket=self.bucket_name,
            Key=s3_key
        )
        upload_id = response['UploadId']

        parts = []

        try:
            with open(local_path, 'rb') as f:
                part_number = 1

                while True:
                    data = f.read(chunk_size)
                    if not data:
                        break

                    response = self.s3_client.upload_part(
                        Bucket=self.bucket_name,
                        Key=s3_key,
                        PartNumber=part_number,
                        UploadId=upload_id,
                        Body=data
                    )

                    parts.append({
                        'PartNumber': part_number,
                        'ETag': response['ETag']
                    })

                    part_number += 1

            self.s3_client.complete_multipart_upload(
                Bucket=self.bucket_name,
                Key=s3_key,
                UploadId=upload_id,
                MultipartUpload={'Parts': parts}
            )

        except Exception:
            try:
                self.s3_client.abort_multipart_upload(
                    Bucket=self.bucket_name,
                    Key=s3_key,
                    UploadId=upload_id
                )
            except (ClientError, BotoCoreError) as abort_error:
                logger.warning(f"Failed to abort multipart upload of {s3_key}: {abort_error}")
            raise

    def copy_from(self, name: str, source_name: str, opts: str = ''):
        """
        Copy an existing archive to a new name inside the bucket.

        Raises:
            StorageError: If the source is missing, the target exists or the copy fails
        """
        if opts:
            logger.debug(f"S3 store ignores store options: {opts}")

        source_keys = self._keys_for(source_name)
        if not source_keys:
            raise StorageError(f"Source archive not found: {source_name}")

        if self._keys_for(name):
            raise StorageError(f"Archive already exists: {name}")

        for source_key in source_keys:
            extension = source_key[len(self.prefix + source_name):]
            try:
                self.s3_client.copy_object(
                    Bucket=self.bucket_name,
                    Key=self.prefix + name + extension,
                    CopySource={'Bucket': self.bucket_name, 'Key': source_key}
                )
            except ClientError as e:
                error_code = e.response.get('Error', {}).get('Code', 'Unknown')
                raise StorageError(f"S3 copy failed ({error_code}): {e}")
            except BotoCoreError as e:
                raise StorageError(f"S3 copy failed: {e}")

    def delete(self, name: str):
        """
        Delete an archive from S3.

        Raises:
            StorageError: If the archive is missing or deletion fails
        """
        keys = self._keys_for(name)
        if not keys:
            raise StorageError(f"Archive not found: {name}")

        for s3_key in keys:
            try:
                self.s3_client.delete_object(
                    Bucket=self.bucket_name,
                    Key=s3_key
                )
            except ClientError as e:
                error_code = e.response.get('Error', {}).get('Code', 'Unknown')
                raise StorageError(f"S3 delete failed ({error_code}): {e}")
            except BotoCoreError as e:
                raise StorageError(f"S3 delete failed: {e}")


class LocalStorage(ArchiveStore):
    """
    Handler for archives kept in a local directory.

    Each archive is one file: {base_path}/{name}.{ext}
    """

    def __init__(self, base_path: str, compression_format: str = 'tar.gz'):
        """
        Initialize local storage handler.

        Args:
            base_path: Directory holding the archives
            compression_format: Archive format for new archives
        """
        self.base_path = Path(base_path)
        self.compression_format = compression_format

        try:
            self.base_path.mkdir(parents=True, exist_ok=True)
        except Exception as e:
            raise StorageError(f"Failed to create local storage directory: {e}")

    def _files_for(self, name: str) -> List[Path]:
        return [
            path for path in self.base_path.iterdir()
            if path.is_file() and strip_archive_extension(path.name) == name
        ]

    def list(self) -> List[str]:
        try:
            return [
                strip_archive_extension(path.name)
                for path in self.base_path.iterdir()
                if path.is_file() and not path.name.startswith('.')
            ]
        except OSError as e:
            raise StoreUnavailable(f"Failed to list local archives: {e}")

    def create(self, name: str, source_path: str, opts: str = ''):
        """
        Archive source_path into the store.

        The archive is built in a hidden scratch directory and moved into
        place once complete, so an interrupted run never leaves a file
        that looks like a finished archive.

        Raises:
            StorageError: If the archive exists or cannot be written
        """
        if opts:
            logger.debug(f"Local store ignores store options: {opts}")

        if self._files_for(name):
            raise StorageError(f"Archive already exists: {name}")

        try:
            scratch_dir = tempfile.mkdtemp(prefix='.rotator_', dir=self.base_path)
        except OSError as e:
            raise StorageError(f"Failed to create scratch directory: {e}")

        try:
            archive_path = create_archive(
                source_path,
                os.path.join(scratch_dir, name),
                self.compression_format
            )
            os.replace(archive_path, self.base_path / os.path.basename(archive_path))
        except CompressionError as e:
            raise StorageError(f"Failed to archive {source_path}: {e}")
        except PermissionError as e:
            raise StorageError(f"Permission denied writing archive {name}: {e}")
        except OSError as e:
            raise StorageError(f"Failed to store archive {name}: {e}")
        finally:
            shutil.rmtree(scratch_dir, ignore_errors=True)

    def copy_from(self, name: str, source_name: str, opts: str = ''):
        if opts:
            logger.debug(f"Local store ignores store options: {opts}")

        source_files = self._files_for(source_name)
        if not source_files:
            raise StorageError(f"Source archive not found: {source_name}")

        if self._files_for(name):
            raise StorageError(f"Archive already exists: {name}")

        for source_file in source_files:
            extension = source_file.name[len(source_name):]
            try:
                shutil.copy2(source_file, self.base_path / f"{name}{extension}")
            except OSError as e:
                raise StorageError(f"Failed to copy {source_name} to {name}: {e}")

    def delete(self, name: str):
        """
        Delete an archive from local storage.

        Raises:
            StorageError: If the archive is missing or deletion fails
        """
        files = self._files_for(name)
        if not files:
            raise StorageError(f"Archive not found: {name}")

        for full_path in files:
            try:
                full_path.unlink()
            except PermissionError as e:
                raise StorageError(f"Permission denied deleting {full_path}: {e}")
            except OSError as e:
                raise StorageError(f"Failed to delete local archive: {e}")


def create_store(config) -> ArchiveStore:
    """
    Factory function to create the configured archive store.

    Args:
        config: RotationConfig

    Returns:
        TarsnapStorage, S3Storage or LocalStorage instance

    Raises:
        ValueError: If store_type is invalid
    """
    if config.store_type == 'tarsnap':
        return TarsnapStorage(config.tarsnap_command)
    elif config.store_type == 's3':
        return S3Storage(
            bucket_name=config.s3_bucket,
            region=config.s3_region,
            prefix=config.s3_prefix,
            access_key=config.aws_access_key_id,
            secret_key=config.aws_secret_access_key,
            compression_format=config.compression_format
        )
    elif config.store_type == 'local':
        return LocalStorage(config.local_store_path, config.compression_format)
    else:
        raise ValueError(f"Invalid store type: {config.store_type}")
