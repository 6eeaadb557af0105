"""Backup and restore of a MySQL database through S3."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional

from .config import Settings
from .mail import FAILURE, SUCCESS, MailNotifier
from .process import CommandError, CommandResult, ProcessRunner
from .storage import S3Storage, StorageError
from .utils import backup_key, base_filename, join_key, select_latest_key, temp_dump_path

LOGGER = logging.getLogger(__name__)


class BackupError(Exception):
    """Raised when a backup or restore operation fails."""


class BackupNotFoundError(BackupError):
    """Raised when the requested backup (or any backup at all) is missing."""


class UsageError(Exception):
    """Raised for an action the tool does not know."""


@dataclass
class BackupResult:
    database: str
    key: str
    result: str

    @property
    def success(self) -> bool:
        return self.result == SUCCESS


@dataclass
class BackupRestoreTool:
    settings: Settings
    storage: S3Storage
    runner: ProcessRunner
    notifier: MailNotifier
    clock: Callable[[], datetime] = datetime.now
    logger: logging.Logger = LOGGER

    @classmethod
    def from_settings(cls, settings: Settings, storage: Optional[S3Storage] = None) -> "BackupRestoreTool":
        return cls(
            settings=settings,
            storage=storage or S3Storage.connect(settings),
            runner=ProcessRunner(secrets=list(settings.secrets.values())),
            notifier=MailNotifier.from_settings(settings),
        )

    def run(self, action: str, database: str, *args: Optional[str]):
        if action == "backup":
            return self.backup(database)
        if action == "restore":
            filename = args[0] if args else None
            return self.restore(database, filename)
        raise UsageError(f"Unknown action '{action}'.")

    # ------------------------------------------------------------------
    def backup(self, database: str) -> BackupResult:
        """Dump *database*, gzip it, upload it and verify the upload.

        A failed dump, compression or upload is reported by mail like a failed
        verification, then re-raised as :class:`BackupError`.
        """

        tmp_dir = Path(self.settings.tmp_dir)
        tmp_dir.mkdir(parents=True, exist_ok=True)
        dump_path = temp_dump_path(tmp_dir, self.clock())
        log_path = dump_path.with_name(dump_path.name + ".result")
        compressed_path = dump_path.with_name(dump_path.name + ".gz")
        self.logger.debug("dump_path: %s", dump_path)

        key: Optional[str] = None
        try:
            self.logger.info("Exporting '%s'...", database)
            self._dump(database, dump_path, log_path)

            self.logger.info("Compressing...")
            self.runner.run(["gzip", "-f", str(dump_path)])

            self.logger.info("Storing...")
            key = backup_key(self.settings.folder, database, self.clock())
            self.storage.store(key, compressed_path)
            result = SUCCESS if self.storage.exists(key) else FAILURE
        except (CommandError, StorageError) as exc:
            key = key or backup_key(self.settings.folder, database, self.clock())
            self.logger.error("Backup of '%s' failed: %s", database, exc)
            self.notifier.notify("backup", FAILURE, key)
            raise BackupError(f"Backup of '{database}' failed: {exc}") from exc
        finally:
            for path in (dump_path, log_path, compressed_path):
                _remove_quietly(path, self.logger)

        self.notifier.notify("backup", result, key)
        self.logger.info("Backup of '%s' finished: %s (%s).", database, result, key)
        return BackupResult(database=database, key=key, result=result)

    # ------------------------------------------------------------------
    def restore(self, database: Optional[str] = None, filename: Optional[str] = None) -> str:
        """Download a backup and import it into MySQL.

        Without *filename* the most recent backup in the folder is used.
        Returns the object key that was restored.
        """

        if filename is None:
            filename = self.find_recent_backup()

        # the latest key carries the folder prefix
        filename = base_filename(filename)
        key = join_key(self.settings.folder, filename)

        self.logger.info("Retrieving [%s]...", filename)
        if not self.storage.exists(key):
            raise BackupNotFoundError(f"File [{filename}] not found.")

        tmp_dir = Path(self.settings.tmp_dir)
        tmp_dir.mkdir(parents=True, exist_ok=True)
        local_path = tmp_dir / filename
        sql_path = local_path
        try:
            with local_path.open("wb") as fh:
                for chunk in self.storage.stream(key, self.settings.chunk_size):
                    fh.write(chunk)

            if local_path.suffix == ".gz":
                self.logger.info("Extracting...")
                self.runner.run(["gunzip", "-f", str(local_path)])
                sql_path = local_path.with_suffix("")

            self.logger.info("Importing into %s...", database or "mysql")
            self.runner.run(self._import_command(database), stdin=sql_path, env=self._mysql_env())
        finally:
            for path in {local_path, sql_path}:
                _remove_quietly(path, self.logger)

        self.logger.info("Restored '%s'.", key)
        return key

    def find_recent_backup(self) -> str:
        """Return the key of the newest backup stored under the folder."""

        prefix = join_key(self.settings.folder) + "/" if self.settings.folder else ""
        keys = self.storage.list_keys(prefix)
        if not keys:
            raise BackupNotFoundError("Could not find any backups.")
        latest = select_latest_key(keys, self.settings.lookback_days, now=self.clock())
        if latest is None:
            raise BackupNotFoundError("Could not find a recent backup.")
        self.logger.debug("Most recent backup: %s", latest)
        return latest

    # ------------------------------------------------------------------
    def _dump(self, database: str, dump_path: Path, log_path: Path) -> CommandResult:
        result = self.runner.run(
            self._dump_command(database),
            stdout=dump_path,
            stderr=log_path,
            env=self._mysql_env(),
            check=False,
        )
        dump_log = log_path.read_text(encoding="utf-8", errors="replace") if log_path.exists() else ""
        self.logger.debug("dump_result: %s", dump_log)
        if not result.ok:
            lines = dump_log.strip().splitlines()
            detail = f": {lines[-1]}" if lines else ""
            raise CommandError(result, f"mysqldump exited with code {result.returncode}{detail}")
        return result

    def _dump_command(self, database: str) -> List[str]:
        return [
            "mysqldump",
            "-v",
            "--quick",
            "--single-transaction",
            "-u",
            self.settings.mysql_user,
            database,
        ]

    def _import_command(self, database: Optional[str]) -> List[str]:
        command = ["mysql", "-u", self.settings.mysql_user]
        if database:
            command.append(database)
        return command

    def _mysql_env(self) -> Optional[Dict[str, str]]:
        if not self.settings.mysql_password:
            return None
        return {"MYSQL_PWD": self.settings.mysql_password}


# ---------------------------------------------------------------------------
def _remove_quietly(path: Path, logger: logging.Logger) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as exc:  # pragma: no cover - filesystem dependent
        logger.warning("Could not remove temporary file '%s': %s", path, exc)


__all__ = [
    "BackupError",
    "BackupNotFoundError",
    "BackupRestoreTool",
    "BackupResult",
    "UsageError",
]
