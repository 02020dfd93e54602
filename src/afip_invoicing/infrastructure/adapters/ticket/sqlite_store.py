from __future__ import annotations

import logging
import sqlite3
import threading
from datetime import UTC, datetime
from pathlib import Path

from afip_invoicing.application.ports.ticket_repository_port import TicketRepositoryPort
from afip_invoicing.domain.entities.access_ticket import AccessTicket

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS access_ticket (
  service TEXT PRIMARY KEY,
  token TEXT NOT NULL,
  sign TEXT NOT NULL,
  expiration_time TEXT NOT NULL,
  generation_time TEXT
);
"""


def _to_iso(value: datetime | None) -> str | None:
    return value.astimezone(UTC).isoformat() if value else None


def _from_iso(value: str | None) -> datetime | None:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


class SQLiteTicketRepository(TicketRepositoryPort):
    """SQLite-backed ticket store. Lets a restarted process reuse unexpired tickets.

    File path configurable; creates schema on first use. One connection shared
    across threads, serialized by a lock.
    """

    def __init__(self, db_path: str = ".afip_tickets.sqlite") -> None:
        self._path = Path(db_path)
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(self._path, check_same_thread=False)
        self._conn.execute("PRAGMA journal_mode=WAL;")
        self._conn.executescript(SCHEMA)
        self._conn.commit()

    def load(self, service: str) -> AccessTicket | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT token, sign, expiration_time, generation_time FROM access_ticket WHERE service=?",
                (service,),
            ).fetchone()
        if not row:
            return None
        token, sign, expires_iso, generated_iso = row
        try:
            expiration = _from_iso(expires_iso)
            generation = _from_iso(generated_iso)
        except ValueError:
            logger.warning("discarding unreadable stored ticket for %s", service)
            return None
        return AccessTicket(service, token, sign, expiration, generation)  # type: ignore[arg-type]

    def save(self, ticket: AccessTicket) -> None:
        with self._lock:
            self._conn.execute(
                "INSERT OR REPLACE INTO access_ticket (service, token, sign, expiration_time, generation_time) "
                "VALUES (?, ?, ?, ?, ?)",
                (
                    ticket.service,
                    ticket.token,
                    ticket.sign,
                    _to_iso(ticket.expiration_time),
                    _to_iso(ticket.generation_time),
                ),
            )
            self._conn.commit()

    def clear(self, service: str | None = None) -> None:
        with self._lock:
            if service is None:
                self._conn.execute("DELETE FROM access_ticket")
            else:
                self._conn.execute("DELETE FROM access_ticket WHERE service=?", (service,))
            self._conn.commit()

    def close(self) -> None:
        with self._lock:
            self._conn.close()
