"""Helper utilities for the MySQL backup tool."""
from __future__ import annotations

import posixpath
import re
import uuid
from datetime import datetime, timedelta
from pathlib import Path
from typing import Iterable, Optional

DATE_FORMAT = "%Y-%m-%d"
TIME_FORMAT = "%H-%M"

_DATE_IN_KEY = re.compile(r"(\d{4}-\d{2}-\d{2})")


def backup_key(folder: str, database: str, when: Optional[datetime] = None) -> str:
    """Return the object key for a dump of *database* taken at *when*.

    Keys look like ``{folder}/{YYYY-MM-DD}/{database}_{HH-MM}.sql.gz``. Both
    parts are zero padded so lexical order follows chronological order.
    """

    when = when or datetime.now()
    return join_key(folder, when.strftime(DATE_FORMAT), f"{database}_{when.strftime(TIME_FORMAT)}.sql.gz")


def join_key(*parts: str) -> str:
    cleaned = [part.strip("/") for part in parts if part and part.strip("/")]
    return "/".join(cleaned)


def base_filename(name: str) -> str:
    """Strip any folder component from an object key or local path."""

    return posixpath.basename(name.replace("\\", "/").rstrip("/"))


def temp_dump_path(directory: Path, now: Optional[datetime] = None) -> Path:
    now = now or datetime.now()
    return Path(directory) / f"db_backup_{int(now.timestamp())}_{uuid.uuid4().hex}.sql"


def key_date(key: str) -> Optional[datetime]:
    """Return the last ``YYYY-MM-DD`` date embedded in *key*, if any.

    The folder part of a key may carry its own date; the backup's date
    always comes after it.
    """

    matches = _DATE_IN_KEY.findall(key)
    if not matches:
        return None
    try:
        return datetime.strptime(matches[-1], DATE_FORMAT)
    except ValueError:
        return None


def select_latest_key(
    keys: Iterable[str],
    lookback_days: Optional[int] = None,
    now: Optional[datetime] = None,
) -> Optional[str]:
    """Pick the lexically greatest key, optionally inside a lookback window.

    Keys without a recognisable date are never excluded by the window.
    """

    candidates = sorted(keys, reverse=True)
    if lookback_days:
        now = now or datetime.now()
        cutoff = (now - timedelta(days=lookback_days)).replace(hour=0, minute=0, second=0, microsecond=0)
        candidates = [key for key in candidates if (key_date(key) or cutoff) >= cutoff]
    return candidates[0] if candidates else None


def mask_sensitive(value: str, secrets: Iterable[str]) -> str:
    """Replace occurrences of secret values in *value* with '***'."""

    masked = value
    for secret in secrets:
        if secret:
            masked = masked.replace(secret, "***")
    return masked


__all__ = [
    "backup_key",
    "base_filename",
    "join_key",
    "key_date",
    "mask_sensitive",
    "select_latest_key",
    "temp_dump_path",
]
