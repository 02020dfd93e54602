from __future__ import annotations

from typing import Protocol

from afip_invoicing.domain.entities.access_ticket import AccessTicket


class AuthClientPort(Protocol):
    """Obtains a fresh access ticket from WSAA for one service."""

    def login(self, service: str) -> AccessTicket:
        """Raises AuthError, SigningError, NetworkError, ParseError or TicketAlreadyValid."""
        ...
