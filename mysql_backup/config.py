"""Configuration model and loader for the MySQL backup tool."""
from __future__ import annotations

import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional

import yaml

CONFIG_FILENAME = "config/settings.yml"

REQUIRED_SETTINGS = (
    "bucket",
    "folder",
    "email",
    "smtp_server",
    "AWS_ACCESS_KEY_ID",
    "AWS_SECRET_ACCESS_KEY",
    "hostname",
    "mysql_user",
)

DEFAULT_CHUNK_SIZE = 1024 * 1024


class ConfigError(Exception):
    """Raised when configuration loading or validation fails."""


@dataclass
class Settings:
    bucket: str
    folder: str
    email: str
    smtp_server: str
    aws_access_key_id: str
    aws_secret_access_key: str
    hostname: str
    mysql_user: str
    mysql_password: Optional[str] = None
    verbose: int = 0
    tmp_dir: str = field(default_factory=tempfile.gettempdir)
    smtp_port: int = 25
    mail_from: str = "root@localhost"
    aws_region: Optional[str] = None
    s3_endpoint_url: Optional[str] = None
    lookback_days: Optional[int] = None
    chunk_size: int = DEFAULT_CHUNK_SIZE

    def validate(self) -> None:
        if self.smtp_port <= 0:
            raise ConfigError(f"'smtp_port' must be a positive integer, got {self.smtp_port}.")
        if self.chunk_size <= 0:
            raise ConfigError(f"'chunk_size' must be a positive integer, got {self.chunk_size}.")
        if self.lookback_days is not None and self.lookback_days <= 0:
            raise ConfigError(f"'lookback_days' must be positive, got {self.lookback_days}.")
        if self.verbose < 0:
            raise ConfigError("'verbose' cannot be negative.")

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> "Settings":
        data = data or {}
        for setting in REQUIRED_SETTINGS:
            if _is_blank(data.get(setting)):
                raise ConfigError(f"'{setting}' is required and missing from the config")

        verbose = _safe_int(data.get("verbose"), default=0, name="verbose")
        # legacy boolean flag from older settings files
        if data.get("debug") is True:
            verbose = max(verbose, 2)

        password = data.get("mysql_password")
        settings = cls(
            bucket=str(data["bucket"]),
            folder=str(data["folder"]).strip("/"),
            email=str(data["email"]),
            smtp_server=str(data["smtp_server"]),
            aws_access_key_id=str(data["AWS_ACCESS_KEY_ID"]),
            aws_secret_access_key=str(data["AWS_SECRET_ACCESS_KEY"]),
            hostname=str(data["hostname"]),
            mysql_user=str(data["mysql_user"]),
            mysql_password=str(password) if password not in (None, "") else None,
            verbose=verbose,
            tmp_dir=str(data.get("tmp_dir") or tempfile.gettempdir()),
            smtp_port=_safe_int(data.get("smtp_port"), default=25, name="smtp_port"),
            mail_from=str(data.get("mail_from") or "root@localhost"),
            aws_region=data.get("aws_region"),
            s3_endpoint_url=data.get("s3_endpoint_url"),
            lookback_days=_safe_int(data.get("lookback_days"), name="lookback_days"),
            chunk_size=_safe_int(data.get("chunk_size"), default=DEFAULT_CHUNK_SIZE, name="chunk_size"),
        )
        settings.validate()
        return settings

    @property
    def secrets(self) -> Dict[str, str]:
        """Values that must never appear in logs."""

        values = {"AWS_SECRET_ACCESS_KEY": self.aws_secret_access_key}
        if self.mysql_password:
            values["mysql_password"] = self.mysql_password
        return values


# ---------------------------------------------------------------------------
def _is_blank(value) -> bool:
    # YAML turns no/off/false into False, which is never a usable setting
    if value is None or isinstance(value, (bool, dict, list)):
        return True
    return str(value).strip() == ""


# ---------------------------------------------------------------------------
def _safe_int(value, default: Optional[int] = None, name: str = "value") -> Optional[int]:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return int(value)
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"'{name}' must be an integer, got '{value}'.")


# ---------------------------------------------------------------------------
def load_config(path: Path = Path(CONFIG_FILENAME)) -> Settings:
    path = Path(path)
    if not path.exists():
        raise ConfigError(f"Config file '{path}' not found.")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ConfigError(f"Config file '{path}' is not valid YAML: {exc}") from exc
    if data is not None and not isinstance(data, dict):
        raise ConfigError(f"Config file '{path}' must contain a mapping of settings.")
    return Settings.from_dict(data)


__all__ = [
    "CONFIG_FILENAME",
    "ConfigError",
    "REQUIRED_SETTINGS",
    "Settings",
    "load_config",
]
