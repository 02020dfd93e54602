from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class AccessTicket:
    """Credentials issued by WSAA for one service (token + sign).

    Replaced as a whole on renewal, never mutated.
    """

    service: str
    token: str
    sign: str
    expiration_time: datetime
    generation_time: datetime | None = None

    def __post_init__(self) -> None:
        if self.expiration_time.tzinfo is None:
            raise ValueError("expiration_time must be timezone-aware")

    def __repr__(self) -> str:
        return f"AccessTicket(service={self.service!r}, expiration_time={self.expiration_time.isoformat()})"
