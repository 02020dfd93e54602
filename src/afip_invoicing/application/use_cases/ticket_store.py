from __future__ import annotations

import logging
import threading
from concurrent.futures import Future
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Protocol

from afip_invoicing.application.ports.auth_client_port import AuthClientPort
from afip_invoicing.application.ports.ticket_repository_port import TicketRepositoryPort
from afip_invoicing.domain.entities.access_ticket import AccessTicket
from afip_invoicing.domain.errors import AuthError, TicketAlreadyValid

logger = logging.getLogger(__name__)

DEFAULT_MARGIN = timedelta(minutes=10)


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    def now(self) -> datetime:
        return datetime.now(UTC)


class TicketState(Enum):
    ABSENT = "ABSENT"
    VALID = "VALID"
    EXPIRING = "EXPIRING"
    EXPIRED = "EXPIRED"


class TicketStore:
    """Hands out valid access tickets, logging in lazily when needed.

    State per service is derived from the clock only: VALID until
    expiration - margin, EXPIRING until expiration, EXPIRED afterwards.
    Renewal is single-flight per service: concurrent callers that find the
    ticket unusable share the outcome of one login instead of each issuing
    their own.
    """

    def __init__(
        self,
        repository: TicketRepositoryPort,
        auth_client: AuthClientPort,
        *,
        margin: timedelta = DEFAULT_MARGIN,
        clock: Clock | None = None,
    ) -> None:
        self.repository = repository
        self.auth_client = auth_client
        self.margin = margin
        self.clock = clock or SystemClock()
        self._lock = threading.Lock()
        self._in_flight: dict[str, Future[AccessTicket]] = {}

    def state_of(self, ticket: AccessTicket | None) -> TicketState:
        if ticket is None:
            return TicketState.ABSENT
        now = self.clock.now()
        if now >= ticket.expiration_time:
            return TicketState.EXPIRED
        if now >= ticket.expiration_time - self.margin:
            return TicketState.EXPIRING
        return TicketState.VALID

    def get_valid_ticket(self, service: str) -> AccessTicket:
        ticket = self.repository.load(service)
        if self.state_of(ticket) is TicketState.VALID:
            return ticket  # type: ignore[return-value]

        with self._lock:
            future = self._in_flight.get(service)
            leader = future is None
            if future is None:
                future = Future()
                self._in_flight[service] = future

        if not leader:
            logger.debug("waiting for in-flight login of %s", service)
            return future.result()

        try:
            ticket = self._renew(service)
        except BaseException as exc:
            future.set_exception(exc)
            raise
        else:
            future.set_result(ticket)
            return ticket
        finally:
            with self._lock:
                self._in_flight.pop(service, None)

    def invalidate(self, service: str | None = None) -> None:
        """Drops stored tickets so the next call logs in again."""
        logger.info("clearing stored tickets for %s", service or "all services")
        self.repository.clear(service)

    def _renew(self, service: str) -> AccessTicket:
        # Another leader may have finished between our read and taking the slot.
        current = self.repository.load(service)
        state = self.state_of(current)
        if state is TicketState.VALID:
            return current  # type: ignore[return-value]

        logger.info("ticket for %s is %s, logging in", service, state.value)
        try:
            ticket = self.auth_client.login(service)
        except TicketAlreadyValid as signal:
            if current is not None and state is not TicketState.EXPIRED:
                logger.info("WSAA still holds a ticket for %s, reusing the stored one", service)
                return current
            raise AuthError(
                f"WSAA reports an active ticket for {service} but no usable one is stored; "
                "wait for it to expire or check for another process using the same certificate"
            ) from signal
        self.repository.save(ticket)
        return ticket
