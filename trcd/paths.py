from __future__ import annotations

import os
from pathlib import Path


def default_trcd_dir() -> Path:
    override = os.environ.get("TRCD_HOME")
    if override:
        return Path(override)
    return Path.home() / ".trcd"


def default_config_path() -> Path:
    return default_trcd_dir() / "trcd.toml"


def default_ban_store_path() -> Path:
    return default_trcd_dir() / "bans.toml"


def ensure_private_dir(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)
    try:
        # Best-effort tightening; may fail on some filesystems.
        os.chmod(path, 0o700)
    except Exception:
        pass
