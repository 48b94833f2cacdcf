#!/usr/bin/env python3
"""Run one Notion -> Google Calendar sync pass and exit.

Exit code is 0 whenever the pass completed, even if single tasks failed;
1 on configuration or setup failure.
"""

import argparse
import logging
import sys

from calsync.config import load_settings
from calsync.errors import ConfigError, SetupError
from calsync.runner import run_once, setup_logging

logger = logging.getLogger('sync')


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Sync Notion tasks into Google Calendar")
    parser.add_argument('--env-file', help='Path to a .env file (default: ./.env)')
    parser.add_argument('--log-level', help='Override LOG_LEVEL')
    args = parser.parse_args(argv)

    try:
        settings = load_settings(args.env_file)
    except ConfigError as e:
        setup_logging()
        logger.error(f"Invalid configuration: {e}")
        return 1

    setup_logging(args.log_level or settings.log_level, settings.log_path, settings.log_filename)
    try:
        report = run_once(settings)
    except SetupError as e:
        logger.error(f"Sync aborted: {e}")
        return 1

    if report.failed:
        logger.warning(f"{report.failed} task(s) failed and will be retried next run")
    return 0


if __name__ == "__main__":
    sys.exit(main())
