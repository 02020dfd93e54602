from __future__ import annotations

from typing import Protocol

from afip_invoicing.domain.entities.access_ticket import AccessTicket


class TicketRepositoryPort(Protocol):
    """Persistence for access tickets, one row per service."""

    def load(self, service: str) -> AccessTicket | None:
        """Returns the stored ticket for the service, or None when absent."""
        ...

    def save(self, ticket: AccessTicket) -> None:
        """Replaces the stored ticket for ticket.service."""
        ...

    def clear(self, service: str | None = None) -> None:
        """Removes one service's ticket, or every ticket when service is None."""
        ...
