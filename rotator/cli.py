"""
Command line interface.

    rotator [-c CONFIG]

Exit status is 0 when every archive was created and 1 on any failure.
"""

import argparse
import logging
from typing import List, Optional

from rotator import __version__, configure_logging
from rotator.backup.executor import InternalInvariantError
from rotator.backup.storage import StorageError
from rotator.config import ConfigError, default_config_path, load_config
from rotator.hooks import HookError
from rotator.locking import LockError
from rotator.rotation import run_rotation


logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='rotator',
        description="Create daily backups and rotate daily, monthly and yearly archives"
    )
    parser.add_argument(
        '-c', '--config',
        default=None,
        help=f"Path to configuration file (default: {default_config_path()})",
    )
    parser.add_argument(
        '--version',
        action='version',
        version=f"%(prog)s {__version__}",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    configure_logging()

    try:
        config = load_config(args.config)
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        return 1

    configure_logging(config.log_level, config.use_syslog)

    try:
        return run_rotation(config)
    except LockError as e:
        logger.error(f"Another rotation is running: {e}")
    except HookError as e:
        logger.error(f"Hook error: {e}")
    except StorageError as e:
        logger.error(f"Archive store error: {e}")
    except InternalInvariantError as e:
        logger.error(f"Internal error: {e}")

    return 1


if __name__ == '__main__':
    raise SystemExit(main())
