from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Union

if TYPE_CHECKING:
    from .connection import Connection


@dataclass(frozen=True, eq=False)
class Connected:
    connection: Connection
    # Raw name as read from the handshake; sanitized by the hub.
    display_name: bytes | str | None = None


@dataclass(frozen=True, eq=False)
class Disconnected:
    connection: Connection


@dataclass(frozen=True, eq=False)
class Inbound:
    connection: Connection
    data: bytes


Event = Union[Connected, Disconnected, Inbound]
