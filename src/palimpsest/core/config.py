from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class AppPaths:
    project_root: Path
    palimpsest_dir: Path
    db_path: Path
    blob_dir: Path


@dataclass(frozen=True)
class ExpirySettings:
    retention_seconds: float = 24 * 60 * 60
    interval_seconds: float = 60 * 60
    enabled: bool = True


DEFAULT_PALIMPSEST_DIRNAME = ".palimpsest"
DEFAULT_OCR_LANG = "eng"
DEFAULT_SOFFICE_BIN = "soffice"


def load_paths(project_root: Path | None = None) -> AppPaths:
    root = (project_root or Path.cwd()).expanduser().resolve()

    home_raw = os.getenv("PALIMPSEST_HOME")
    if home_raw:
        palimpsest_dir = Path(home_raw).expanduser().resolve()
    else:
        palimpsest_dir = root / DEFAULT_PALIMPSEST_DIRNAME

    return AppPaths(
        project_root=root,
        palimpsest_dir=palimpsest_dir,
        db_path=palimpsest_dir / "palimpsest.db",
        blob_dir=palimpsest_dir / "blobs",
    )


def read_float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return value if value > 0 else default


def read_int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value > 0 else default


def read_bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    value = str(raw).strip().lower()
    if value in {"1", "true", "yes", "on"}:
        return True
    if value in {"0", "false", "no", "off"}:
        return False
    return default


def load_expiry_settings() -> ExpirySettings:
    defaults = ExpirySettings()
    return ExpirySettings(
        retention_seconds=read_float_env("PALIMPSEST_RETENTION_SECONDS", defaults.retention_seconds),
        interval_seconds=read_float_env("PALIMPSEST_SWEEP_INTERVAL_SECONDS", defaults.interval_seconds),
        enabled=read_bool_env("PALIMPSEST_SWEEPER_ENABLED", defaults.enabled),
    )


def ocr_language() -> str:
    return os.getenv("PALIMPSEST_OCR_LANG") or DEFAULT_OCR_LANG


def soffice_binary() -> str:
    return os.getenv("PALIMPSEST_SOFFICE_BIN") or DEFAULT_SOFFICE_BIN
