"""Command line interface for the MySQL to S3 backup tool."""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Iterable, List, Optional

from mysql_backup.config import CONFIG_FILENAME, ConfigError, Settings, load_config
from mysql_backup.process import CommandError
from mysql_backup.storage import StorageError
from mysql_backup.tool import BackupError, BackupNotFoundError, BackupRestoreTool, UsageError

PROG = "mysql_tools.py"


def usage(prog: str = PROG, config_path: str = CONFIG_FILENAME) -> str:
    return f"""
    {prog}
      - Uses config file {config_path}

    USAGE:
    {prog} backup [database]
      - does a mysqldump on localhost, gzips it and stores to S3 in the configured bucket/folder

    {prog} restore [database] [filename]
      - Must be run from the machine you wish to restore to.
      - gets the latest mysql backup data from S3 and imports it into mysql
      - takes an optional filename argument for a specific backup file from S3 in the configured bucket/folder
    """


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=PROG,
        description="Back up a MySQL database to S3 and restore it from there.",
    )
    parser.add_argument("--config", default=CONFIG_FILENAME, help="Path to the YAML settings file.")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="Increase logging verbosity.")
    parser.add_argument(
        "arguments",
        nargs="*",
        metavar="ARG",
        help="Action (backup or restore), database name and an optional backup filename.",
    )
    return parser


def configure_logging(level: int) -> None:
    if level >= 2:
        log_level = logging.DEBUG
    elif level == 1:
        log_level = logging.INFO
    else:
        log_level = logging.WARNING
    logging.basicConfig(level=log_level, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")


def die(message: str, exit_code: int = 1) -> None:
    print(message, file=sys.stderr)
    sys.exit(exit_code)


def load_application_config(path: Path) -> Settings:
    try:
        return load_config(path)
    except ConfigError as exc:
        die(f"Configuration error: {exc}")


def create_tool(settings: Settings) -> BackupRestoreTool:
    try:
        return BackupRestoreTool.from_settings(settings)
    except StorageError as exc:
        die(f"Storage error: {exc}")


def handle_action(tool: BackupRestoreTool, action: str, database: str, extra: List[str], config_path: str) -> None:
    try:
        outcome = tool.run(action, database, *extra)
    except UsageError:
        die(usage(config_path=config_path))
    except BackupNotFoundError as exc:
        die(str(exc))
    except (BackupError, CommandError, StorageError, OSError) as exc:
        die(f"Error: {exc}")

    if action == "backup":
        print(f"Done: {outcome.result}")
        if not outcome.success:
            sys.exit(1)
    else:
        print("done.")


def main(argv: Optional[Iterable[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    positional = list(args.arguments)
    if len(positional) < 2 or len(positional) > 3:
        print(usage(config_path=args.config))
        return

    action, database, extra = positional[0], positional[1], positional[2:]
    settings = load_application_config(Path(args.config))
    configure_logging(max(args.verbose, settings.verbose))
    tool = create_tool(settings)
    handle_action(tool, action, database, extra, args.config)


if __name__ == "__main__":
    main()
