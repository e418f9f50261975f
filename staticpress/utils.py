from __future__ import annotations

import datetime as dt
import shutil
from pathlib import Path

from .errors import ConfigError


def parse_bool(value: object) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "y", "on"}
    return False


def parse_int(value: object, default: int) -> int:
    if value is None:
        return default
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError:
        return default


def join_url(base: str, path: str) -> str:
    base = base.rstrip("/")
    path = path.lstrip("/")
    if not path:
        return f"{base}/"
    return f"{base}/{path}"


def iso_date(value: dt.datetime) -> str:
    value = value.replace(tzinfo=dt.timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%SZ")


def to_naive_utc(value: dt.datetime) -> dt.datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(dt.timezone.utc).replace(tzinfo=None)


def clean_output_dir(output_dir: Path, source_dir: Path) -> None:
    if not output_dir.exists():
        return
    output_resolved = output_dir.resolve()
    source_resolved = source_dir.resolve()
    if output_resolved == source_resolved:
        raise ConfigError("Refusing to clean the source directory.")
    if not output_resolved.is_relative_to(source_resolved):
        raise ConfigError(f"Refusing to clean {output_dir}: it is outside the source directory.")
    shutil.rmtree(output_dir)
