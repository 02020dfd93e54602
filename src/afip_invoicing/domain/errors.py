from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from afip_invoicing.domain.entities.invoice import AuthorizationResult


class AfipError(Exception):
    """Base class for every failure surfaced by the integration layer."""

    retryable: bool = False


class NetworkError(AfipError):
    """Transport failure, timeout or remote infrastructure outage."""

    retryable = True


class AuthError(AfipError):
    """The authentication service refused to issue or accept a ticket."""


class SigningError(AuthError):
    """Certificate or key could not be loaded, or the CMS signature failed."""


class SequenceError(AfipError):
    """Voucher numbering conflict persisted after the local retry."""


class SequenceLookupError(AfipError):
    """Last authorized voucher number could not be read."""


class ValidationError(AfipError):
    def __init__(self, problems: str | Sequence[str]) -> None:
        if isinstance(problems, str):
            problems = [problems]
        self.problems = list(problems)
        super().__init__("; ".join(self.problems))


class ParseError(AfipError):
    """Response could not be understood. Keeps the raw payload for diagnostics."""

    def __init__(self, message: str, raw: bytes | str | None = None) -> None:
        super().__init__(message)
        self.raw = raw


class NotFoundError(AfipError):
    pass


class RemoteServiceError(AfipError):
    """Remote service answered with error codes on a read operation."""

    def __init__(self, message: str, errors: Sequence[tuple[int, str]] = ()) -> None:
        super().__init__(message)
        self.errors = list(errors)


class BusinessRejection(AfipError):
    def __init__(self, result: "AuthorizationResult") -> None:
        details = "; ".join(f"{m.code}: {m.message}" for m in (*result.errors, *result.observations))
        super().__init__(f"voucher {result.voucher_type}-{result.sales_point} {result.outcome.value}: {details}")
        self.result = result


class TicketAlreadyValid(Exception):
    """WSAA reports that a ticket for the service is still valid.

    Not an AfipError: the ticket store handles it by re-reading persisted state.
    """
