"""Shared fixtures for the mysql-tools test suite."""

from datetime import datetime
from unittest.mock import MagicMock

import pytest

from mysql_backup.config import Settings
from mysql_backup.mail import MailNotifier
from mysql_backup.process import ProcessRunner
from mysql_backup.storage import S3Storage
from mysql_backup.tool import BackupRestoreTool

FIXED_NOW = datetime(2024, 3, 1, 14, 5, 30)


@pytest.fixture
def settings_data(tmp_path) -> dict:
    """The example configuration, pointed at a throwaway temp directory."""
    return {
        "bucket": "b",
        "folder": "backups",
        "mysql_user": "root",
        "email": "a@x.com",
        "smtp_server": "mail",
        "hostname": "h1",
        "AWS_ACCESS_KEY_ID": "k",
        "AWS_SECRET_ACCESS_KEY": "s",
        "tmp_dir": str(tmp_path / "work"),
    }


@pytest.fixture
def settings(settings_data) -> Settings:
    return Settings.from_dict(settings_data)


@pytest.fixture
def storage() -> MagicMock:
    mock = MagicMock(spec=S3Storage)
    mock.exists.return_value = True
    mock.list_keys.return_value = []
    return mock


@pytest.fixture
def runner() -> MagicMock:
    return MagicMock(spec=ProcessRunner)


@pytest.fixture
def notifier() -> MagicMock:
    return MagicMock(spec=MailNotifier)


@pytest.fixture
def tool(settings, storage, runner, notifier) -> BackupRestoreTool:
    return BackupRestoreTool(
        settings=settings,
        storage=storage,
        runner=runner,
        notifier=notifier,
        clock=lambda: FIXED_NOW,
    )
