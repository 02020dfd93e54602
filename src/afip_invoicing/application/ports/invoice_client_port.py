from __future__ import annotations

from typing import Protocol

from afip_invoicing.domain.entities.invoice import (
    AuthorizationResult,
    InvoiceRequest,
    SequenceState,
    VoucherStatus,
)
from afip_invoicing.domain.entities.service_info import ParameterItem, SalesPoint, ServerStatus


class InvoiceClientPort(Protocol):
    def get_server_status(self) -> ServerStatus: ...
    def get_last_voucher(self, sales_point: int, voucher_type: int) -> SequenceState: ...
    def authorize_voucher(self, request: InvoiceRequest) -> AuthorizationResult: ...
    def get_voucher(self, sales_point: int, voucher_type: int, voucher_number: int) -> VoucherStatus: ...
    def get_sales_points(self) -> list[SalesPoint]: ...
    def get_voucher_types(self) -> list[ParameterItem]: ...
    def get_receiver_tax_conditions(self) -> list[ParameterItem]: ...
