from __future__ import annotations

from dataclasses import dataclass
from datetime import date


@dataclass(frozen=True)
class ServerStatus:
    app_server: str
    db_server: str
    auth_server: str

    @property
    def healthy(self) -> bool:
        return all(s.upper() == "OK" for s in (self.app_server, self.db_server, self.auth_server))


@dataclass(frozen=True)
class SalesPoint:
    number: int
    emission_type: str
    blocked: bool
    removed_on: date | None = None

    @property
    def active(self) -> bool:
        return not self.blocked and self.removed_on is None


@dataclass(frozen=True)
class ParameterItem:
    """Row of a WSFE parameter table (voucher types, receiver VAT conditions, ...)."""

    id: int
    description: str
