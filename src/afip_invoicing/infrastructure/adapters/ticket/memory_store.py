from __future__ import annotations

import threading

from afip_invoicing.application.ports.ticket_repository_port import TicketRepositoryPort
from afip_invoicing.domain.entities.access_ticket import AccessTicket


class InMemoryTicketRepository(TicketRepositoryPort):
    """Simple in-memory store for tests and development. Not persistent."""

    def __init__(self) -> None:
        self._tickets: dict[str, AccessTicket] = {}
        self._lock = threading.Lock()

    def load(self, service: str) -> AccessTicket | None:
        with self._lock:
            return self._tickets.get(service)

    def save(self, ticket: AccessTicket) -> None:
        with self._lock:
            self._tickets[ticket.service] = ticket

    def clear(self, service: str | None = None) -> None:
        with self._lock:
            if service is None:
                self._tickets.clear()
            else:
                self._tickets.pop(service, None)
