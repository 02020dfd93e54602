from __future__ import annotations

import logging
from collections.abc import Callable, Iterable

from afip_invoicing.application.ports.invoice_client_port import InvoiceClientPort
from afip_invoicing.application.ports.registry_client_port import RegistryClientPort
from afip_invoicing.application.use_cases.ticket_store import TicketStore
from afip_invoicing.domain.entities.access_ticket import AccessTicket
from afip_invoicing.domain.entities.invoice import (
    AuthorizationResult,
    InvoiceRequest,
    SequenceState,
    VoucherStatus,
)
from afip_invoicing.domain.entities.service_info import ParameterItem, SalesPoint, ServerStatus
from afip_invoicing.domain.entities.taxpayer import TaxpayerRecord
from afip_invoicing.domain.errors import ValidationError
from afip_invoicing.domain.value_objects.codes import TaxCondition, barcode_for, voucher_letter_for

logger = logging.getLogger(__name__)


class InvoicingFacade:
    """Single entry point for the surrounding application.

    The clients resolve their own tickets through the shared TicketStore; the
    facade only routes calls and keeps the collaborators together.
    """

    def __init__(
        self,
        tickets: TicketStore,
        invoices: InvoiceClientPort,
        registry: RegistryClientPort,
        *,
        issuer_cuit: str | None = None,
        closers: Iterable[Callable[[], None]] = (),
    ) -> None:
        self.tickets = tickets
        self.invoices = invoices
        self.registry = registry
        self.issuer_cuit = issuer_cuit
        self._closers = list(closers)

    def authorize_invoice(self, request: InvoiceRequest) -> AuthorizationResult:
        """Numbers and submits one voucher. Rejections come back as results, not exceptions."""
        problems = request.validate()
        if problems:
            raise ValidationError(problems)
        result = self.invoices.authorize_voucher(request)
        if not result.approved:
            logger.info(
                "voucher %s-%d-%d %s: %s",
                result.voucher_type,
                result.sales_point,
                result.assigned_voucher_number,
                result.outcome.value,
                [f"{m.code}: {m.message}" for m in (*result.errors, *result.observations)],
            )
        return result

    def check_authorization_status(self, sales_point: int, voucher_type: int, voucher_number: int) -> VoucherStatus:
        return self.invoices.get_voucher(sales_point, voucher_type, voucher_number)

    def lookup_taxpayer(self, tax_id: str) -> TaxpayerRecord:
        return self.registry.lookup(tax_id)

    def last_voucher(self, sales_point: int, voucher_type: int) -> SequenceState:
        return self.invoices.get_last_voucher(sales_point, voucher_type)

    def server_status(self) -> ServerStatus:
        return self.invoices.get_server_status()

    def sales_points(self) -> list[SalesPoint]:
        return self.invoices.get_sales_points()

    def voucher_types(self) -> list[ParameterItem]:
        return self.invoices.get_voucher_types()

    def receiver_tax_conditions(self) -> list[ParameterItem]:
        return self.invoices.get_receiver_tax_conditions()

    def ticket_for(self, service: str) -> AccessTicket:
        return self.tickets.get_valid_ticket(service)

    def clear_tickets(self, service: str | None = None) -> None:
        self.tickets.invalidate(service)

    def suggest_voucher_letter(self, tax_id: str, issuer_condition: TaxCondition) -> str:
        """Letter (A/B/C) the issuer must use for this receiver, per its registry record."""
        receiver = self.registry.lookup(tax_id)
        letter = voucher_letter_for(issuer_condition, receiver.tax_condition)
        logger.debug("receiver %s is %s, voucher letter %s", receiver.tax_id, receiver.tax_condition.name, letter)
        return letter

    def barcode(self, result: AuthorizationResult) -> str | None:
        """Printable barcode for an approved voucher; None without CAE or issuer CUIT."""
        if not (result.approved and result.authorization_code and result.authorization_expiry and self.issuer_cuit):
            return None
        return barcode_for(
            self.issuer_cuit,
            result.voucher_type,
            result.sales_point,
            result.authorization_code,
            result.authorization_expiry,
        )

    def close(self) -> None:
        for close in self._closers:
            close()
        self._closers.clear()
