from __future__ import annotations

from dataclasses import dataclass

from .constants import (
    BAN_DURATION_S,
    DEFAULT_HOST,
    DEFAULT_PORT,
    MESSAGE_INTERVAL_S,
    NAME_MAX_CHARS,
    READ_CHUNK_BYTES,
    STRIKE_LIMIT,
    WRITE_TIMEOUT_S,
)


@dataclass(frozen=True)
class RelayRuntimeConfig:
    config_path: str | None = None
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    message_interval_s: float = MESSAGE_INTERVAL_S
    ban_duration_s: float = BAN_DURATION_S
    strike_limit: int = STRIKE_LIMIT
    ask_name: bool = True
    prefix_names: bool = True
    name_max_chars: int = NAME_MAX_CHARS
    read_chunk_bytes: int = READ_CHUNK_BYTES
    write_timeout_s: float = WRITE_TIMEOUT_S
    safe_mode: bool = False
    ban_store_path: str | None = None
    log_level: str = "INFO"
    log_console: bool = True
    log_file: str | None = None
    log_format: str = "%(asctime)s %(levelname)s %(name)s[%(threadName)s]: %(message)s"
    log_datefmt: str | None = None
