"""
Compression handlers for archives built by the local and S3 stores.

Supports multiple formats:
- zip: Standard zip compression
- tar.gz: Gzip compressed tar
- tar.bz2: Bzip2 compressed tar
- tar.xz: LZMA compressed tar
- none: No compression (tar only)
"""

import os
import tarfile
import zipfile
from pathlib import Path


class CompressionError(Exception):
    """Raised when archive creation fails."""
    pass


EXTENSIONS = {
    'zip': 'zip',
    'tar.gz': 'tar.gz',
    'tar.bz2': 'tar.bz2',
    'tar.xz': 'tar.xz',
    'none': 'tar'
}


def archive_extension(compression_format: str) -> str:
    """
    Get the file extension for a compression format.

    Raises:
        ValueError: If compression_format is invalid
    """
    if compression_format not in EXTENSIONS:
        raise ValueError(
            f"Invalid compression format: {compression_format}. "
            f"Valid options: {list(EXTENSIONS.keys())}"
        )
    return EXTENSIONS[compression_format]


def create_archive(
    source_path: str,
    output_path: str,
    compression_format: str = 'tar.gz'
) -> str:
    """
    Create a compressed archive of a single file or directory.

    Args:
        source_path: File or directory to include in the archive
        output_path: Path where archive should be created (without extension)
        compression_format: Format to use ('zip', 'tar.gz', 'tar.bz2', 'tar.xz', 'none')

    Returns:
        Full path to the created archive file

    Raises:
        CompressionError: If archive creation fails
        ValueError: If compression_format is invalid
    """
    extension = archive_extension(compression_format)
    archive_path = f"{output_path}.{extension}"

    if not os.path.exists(source_path):
        raise CompressionError(f"Path does not exist: {source_path}")

    handler = _create_zip if compression_format == 'zip' else _create_tar

    try:
        handler(Path(source_path), archive_path, compression_format)
        return archive_path
    except Exception as e:
        # Clean up partial archive on failure
        if os.path.exists(archive_path):
            try:
                os.remove(archive_path)
            except OSError:
                pass
        raise CompressionError(f"Failed to create archive: {e}")


def _create_zip(source: Path, archive_path: str, compression_format: str):
    """
    Create a ZIP archive.

    Args:
        source: Path to include
        archive_path: Output archive path
        compression_format: Not used for zip, kept for interface consistency
    """
    with zipfile.ZipFile(archive_path, 'w', zipfile.ZIP_DEFLATED) as zipf:
        if source.is_file():
            zipf.write(source, source.name)
            return

        for item in source.rglob('*'):
            if item.is_file():
                zipf.write(item, item.relative_to(source.parent))


def _create_tar(source: Path, archive_path: str, compression_format: str):
    """
    Create a TAR archive with optional compression.

    Args:
        source: Path to include
        archive_path: Output archive path
        compression_format: Compression format ('tar.gz', 'tar.bz2', 'tar.xz', 'none')
    """
    mode_map = {
        'tar.gz': 'w:gz',
        'tar.bz2': 'w:bz2',
        'tar.xz': 'w:xz',
        'none': 'w'
    }

    mode = mode_map.get(compression_format, 'w:gz')

    with tarfile.open(archive_path, mode) as tar:
        # The filesystem root has no basename
        arcname = source.name or '.'
        tar.add(source, arcname=arcname, recursive=True)


def strip_archive_extension(filename: str) -> str:
    """
    Strip archive extension from filename.

    Handles multi-part extensions like .tar.gz, .tar.bz2, .tar.xz

    Args:
        filename: Archive filename with extension

    Returns:
        Filename without extension
    """
    if filename.endswith('.tar.gz'):
        return filename[:-7]
    elif filename.endswith('.tar.bz2'):
        return filename[:-8]
    elif filename.endswith('.tar.xz'):
        return filename[:-7]
    elif filename.endswith('.zip'):
        return filename[:-4]
    elif filename.endswith('.tar'):
        return filename[:-4]
    else:
        return filename


def get_archive_size(archive_path: str) -> int:
    """
    Get the size of an archive file in bytes.

    Raises:
        CompressionError: If file doesn't exist or cannot be accessed
    """
    try:
        return os.path.getsize(archive_path)
    except FileNotFoundError:
        raise CompressionError(f"Archive not found: {archive_path}")
    except Exception as e:
        raise CompressionError(f"Failed to get archive size: {e}")
