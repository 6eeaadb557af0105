"""Tests for the mysql_tools command line entry point."""

from unittest.mock import MagicMock, patch

import pytest
import yaml

import mysql_tools
from mysql_backup.mail import FAILURE, SUCCESS
from mysql_backup.tool import BackupError, BackupNotFoundError, BackupRestoreTool, BackupResult


@pytest.fixture
def config_file(tmp_path, settings_data):
    path = tmp_path / "settings.yml"
    path.write_text(yaml.safe_dump(settings_data), encoding="utf-8")
    return path


@pytest.fixture
def fake_tool():
    tool = MagicMock(spec=BackupRestoreTool)
    with patch.object(mysql_tools.BackupRestoreTool, "from_settings", return_value=tool):
        yield tool


@pytest.mark.parametrize("argv", [[], ["backup"], ["backup", "db", "file", "extra"]])
def test_wrong_argument_count_prints_usage(argv, capsys):
    with patch.object(mysql_tools, "load_config") as load_config, patch.object(
        mysql_tools.BackupRestoreTool, "from_settings"
    ) as from_settings:
        mysql_tools.main(argv)

    assert "USAGE:" in capsys.readouterr().out
    load_config.assert_not_called()
    from_settings.assert_not_called()


def test_missing_required_key_fails_before_connecting(tmp_path, settings_data, capsys):
    del settings_data["AWS_SECRET_ACCESS_KEY"]
    path = tmp_path / "settings.yml"
    path.write_text(yaml.safe_dump(settings_data), encoding="utf-8")

    with patch("mysql_backup.storage.S3Storage.connect") as connect, patch(
        "mysql_backup.process.subprocess.run"
    ) as run:
        with pytest.raises(SystemExit) as excinfo:
            mysql_tools.main(["--config", str(path), "backup", "mydb"])

    assert excinfo.value.code == 1
    assert "'AWS_SECRET_ACCESS_KEY' is required" in capsys.readouterr().err
    connect.assert_not_called()
    run.assert_not_called()


def test_backup_success(config_file, fake_tool, capsys):
    fake_tool.run.return_value = BackupResult("mydb", "backups/2024-03-01/mydb_14-05.sql.gz", SUCCESS)

    mysql_tools.main(["--config", str(config_file), "backup", "mydb"])

    fake_tool.run.assert_called_once_with("backup", "mydb")
    assert "Done: success" in capsys.readouterr().out


def test_backup_failure_exits_non_zero(config_file, fake_tool, capsys):
    fake_tool.run.return_value = BackupResult("mydb", "backups/x", FAILURE)

    with pytest.raises(SystemExit) as excinfo:
        mysql_tools.main(["--config", str(config_file), "backup", "mydb"])

    assert excinfo.value.code == 1
    assert "Done: failure" in capsys.readouterr().out


def test_restore_with_filename(config_file, fake_tool, capsys):
    fake_tool.run.return_value = "backups/mydb_14-05.sql.gz"

    mysql_tools.main(["--config", str(config_file), "restore", "mydb", "mydb_14-05.sql.gz"])

    fake_tool.run.assert_called_once_with("restore", "mydb", "mydb_14-05.sql.gz")
    assert "done." in capsys.readouterr().out


def test_not_found_is_fatal(config_file, fake_tool, capsys):
    fake_tool.run.side_effect = BackupNotFoundError("File [x.sql.gz] not found.")

    with pytest.raises(SystemExit) as excinfo:
        mysql_tools.main(["--config", str(config_file), "restore", "mydb", "x.sql.gz"])

    assert excinfo.value.code == 1
    assert "File [x.sql.gz] not found." in capsys.readouterr().err


def test_backup_error_is_fatal(config_file, fake_tool, capsys):
    fake_tool.run.side_effect = BackupError("Backup of 'mydb' failed: boom")

    with pytest.raises(SystemExit) as excinfo:
        mysql_tools.main(["--config", str(config_file), "backup", "mydb"])

    assert excinfo.value.code == 1
    assert "boom" in capsys.readouterr().err


def test_unknown_action_prints_usage_and_fails(config_file, capsys):
    storage = MagicMock()
    with patch("mysql_backup.tool.S3Storage.connect", return_value=storage):
        with pytest.raises(SystemExit) as excinfo:
            mysql_tools.main(["--config", str(config_file), "drop", "mydb"])

    assert excinfo.value.code == 1
    assert "USAGE:" in capsys.readouterr().err
    storage.exists.assert_not_called()


def test_verbosity_from_flag_and_settings(config_file, fake_tool):
    fake_tool.run.return_value = "key"

    with patch.object(mysql_tools, "configure_logging") as configure_logging:
        mysql_tools.main(["--config", str(config_file), "-vv", "restore", "mydb"])

    configure_logging.assert_called_once_with(2)


def test_local_file_errors_are_fatal(config_file, fake_tool, capsys):
    fake_tool.run.side_effect = IsADirectoryError(21, "Is a directory", "/tmp/..")

    with pytest.raises(SystemExit) as excinfo:
        mysql_tools.main(["--config", str(config_file), "restore", "mydb", ".."])

    assert excinfo.value.code == 1
    assert "Error: [Errno 21] Is a directory" in capsys.readouterr().err


def test_unwritable_tmp_dir_is_fatal(tmp_path, settings_data, capsys):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("", encoding="utf-8")
    settings_data["tmp_dir"] = str(blocker / "work")
    path = tmp_path / "settings.yml"
    path.write_text(yaml.safe_dump(settings_data), encoding="utf-8")

    with patch("mysql_backup.tool.S3Storage.connect", return_value=MagicMock()):
        with pytest.raises(SystemExit) as excinfo:
            mysql_tools.main(["--config", str(path), "backup", "mydb"])

    assert excinfo.value.code == 1
    assert capsys.readouterr().err.startswith("Error: ")
