from __future__ import annotations

import os

from .constants import NAME_MAX_CHARS, REDACTED


def expand_path(p: str) -> str:
    return os.path.expanduser(os.path.expandvars(p))


def normalize_name(value, max_chars: int = NAME_MAX_CHARS) -> str | None:
    if isinstance(value, (bytes, bytearray)):
        try:
            value = bytes(value).decode("utf-8", "strict")
        except UnicodeDecodeError:
            return None

    if not isinstance(value, str):
        return None

    s = value.strip()
    if not s:
        return None

    if max_chars > 0 and len(s) > int(max_chars):
        s = s[: int(max_chars)].rstrip()

    # Keep this conservative: avoid embedded newlines or NUL, which frequently
    # cause UI/log formatting issues.
    if "\n" in s or "\r" in s or "\x00" in s:
        return None

    try:
        s.encode("utf-8", "strict")
    except UnicodeError:
        return None

    return s


def sensitive(value, safe_mode: bool) -> str:
    if safe_mode:
        return REDACTED
    return str(value)


def fmt_addr(address, safe_mode: bool = False) -> str:
    if safe_mode:
        return REDACTED
    if isinstance(address, tuple) and len(address) >= 2:
        host, port = address[0], address[1]
        if ":" in str(host):
            return f"[{host}]:{port}"
        return f"{host}:{port}"
    if address is None:
        return "-"
    return str(address)
