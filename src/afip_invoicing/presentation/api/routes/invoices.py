from __future__ import annotations

from dataclasses import asdict
from datetime import date
from decimal import Decimal

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from afip_invoicing.application.dtos.authorization_result_dto import AuthorizationResultDTO, VoucherStatusDTO
from afip_invoicing.application.dtos.invoice_request_dto import (
    InvoiceRequestDTO,
    LinkedVoucherDTO,
    OtherTaxDTO,
    VatLineDTO,
)
from afip_invoicing.application.use_cases.invoicing_facade import InvoicingFacade
from afip_invoicing.presentation.api.dependencies import get_facade
from afip_invoicing.presentation.api.metrics import AUTHORIZATIONS

router = APIRouter(prefix="/v1/invoices", tags=["invoices"])


class VatLineIn(BaseModel):
    rate: Decimal
    base: Decimal
    amount: Decimal | None = None


class OtherTaxIn(BaseModel):
    tax_id: int
    description: str
    base: Decimal
    rate: Decimal
    amount: Decimal


class LinkedVoucherIn(BaseModel):
    voucher_code: str
    sales_point: int
    number: int
    issuer_tax_id: str | None = None
    issue_date: date | None = None


class InvoiceIn(BaseModel):
    voucher_code: str = Field(examples=["B"])
    sales_point: int
    concept: str = "products"
    receiver_doc_type: str = "DNI"
    receiver_tax_id: str
    receiver_tax_condition: str = "CONSUMIDOR_FINAL"
    net_amount: Decimal
    total_amount: Decimal
    issue_date: date
    vat: list[VatLineIn] = []
    untaxed_amount: Decimal = Decimal("0")
    exempt_amount: Decimal = Decimal("0")
    other_taxes: list[OtherTaxIn] = []
    linked_vouchers: list[LinkedVoucherIn] = []
    service_from: date | None = None
    service_to: date | None = None
    payment_due: date | None = None
    currency: str = "PES"
    currency_rate: Decimal = Decimal("1")

    def to_dto(self) -> InvoiceRequestDTO:
        data = self.model_dump(exclude={"vat", "other_taxes", "linked_vouchers"})
        return InvoiceRequestDTO(
            **data,
            vat=[VatLineDTO(**v.model_dump()) for v in self.vat],
            other_taxes=[OtherTaxDTO(**t.model_dump()) for t in self.other_taxes],
            linked_vouchers=[LinkedVoucherDTO(**lv.model_dump()) for lv in self.linked_vouchers],
        )


@router.post("")
def authorize_invoice(body: InvoiceIn, facade: InvoicingFacade = Depends(get_facade)) -> dict[str, object]:
    """Requests a CAE. Rejections are returned with HTTP 200 and outcome=REJECTED."""
    result = facade.authorize_invoice(body.to_dto().to_domain())
    AUTHORIZATIONS.labels(outcome=result.outcome.value).inc()
    return asdict(AuthorizationResultDTO.from_domain(result, barcode=facade.barcode(result)))


@router.get("/last")
def last_voucher(sales_point: int, voucher_type: int, facade: InvoicingFacade = Depends(get_facade)) -> dict[str, int]:
    state = facade.last_voucher(sales_point, voucher_type)
    return {
        "sales_point": state.sales_point,
        "voucher_type": state.voucher_type,
        "last_voucher_number": state.last_voucher_number,
    }


@router.get("/sales-points")
def sales_points(facade: InvoicingFacade = Depends(get_facade)) -> dict[str, object]:
    items = [
        {
            "number": p.number,
            "emission_type": p.emission_type,
            "blocked": p.blocked,
            "removed_on": p.removed_on.isoformat() if p.removed_on else None,
        }
        for p in facade.sales_points()
    ]
    return {"items": items, "count": len(items)}


@router.get("/parameters/voucher-types")
def voucher_types(facade: InvoicingFacade = Depends(get_facade)) -> dict[str, object]:
    items = [asdict(i) for i in facade.voucher_types()]
    return {"items": items, "count": len(items)}


@router.get("/parameters/receiver-tax-conditions")
def receiver_tax_conditions(facade: InvoicingFacade = Depends(get_facade)) -> dict[str, object]:
    items = [asdict(i) for i in facade.receiver_tax_conditions()]
    return {"items": items, "count": len(items)}


@router.get("/{sales_point}/{voucher_type}/{voucher_number}")
def authorization_status(
    sales_point: int, voucher_type: int, voucher_number: int, facade: InvoicingFacade = Depends(get_facade)
) -> dict[str, object]:
    status = facade.check_authorization_status(sales_point, voucher_type, voucher_number)
    return asdict(VoucherStatusDTO.from_domain(status))
