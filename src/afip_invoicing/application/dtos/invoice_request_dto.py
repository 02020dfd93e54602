from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from afip_invoicing.domain.entities.invoice import InvoiceRequest, LinkedVoucher, OtherTax, TaxAmount
from afip_invoicing.domain.value_objects.codes import (
    Concept,
    DocumentType,
    TaxCondition,
    VoucherType,
    vat_amount,
    vat_rate_id,
)


@dataclass(frozen=True)
class VatLineDTO:
    rate: Decimal  # porcentaje: 0, 2.5, 5, 10.5, 21, 27
    base: Decimal
    amount: Decimal | None = None  # None: computed from base and rate

    def to_domain(self) -> TaxAmount:
        amount = self.amount if self.amount is not None else vat_amount(self.base, self.rate)
        return TaxAmount(vat_rate_id(self.rate), self.base, amount)


@dataclass(frozen=True)
class OtherTaxDTO:
    tax_id: int
    description: str
    base: Decimal
    rate: Decimal
    amount: Decimal


@dataclass(frozen=True)
class LinkedVoucherDTO:
    voucher_code: str  # "A", "B_NC", ...
    sales_point: int
    number: int
    issuer_tax_id: str | None = None
    issue_date: date | None = None


@dataclass(frozen=True)
class InvoiceRequestDTO:
    """Invoice request in the application's vocabulary.

    Codes are the ones the surrounding application stores ("A", "B_NC",
    "services", "DNI", "MONOTRIBUTISTA", VAT as a percentage) rather than
    AFIP numeric ids.
    """

    voucher_code: str
    sales_point: int
    concept: str
    receiver_doc_type: str
    receiver_tax_id: str
    receiver_tax_condition: str
    net_amount: Decimal
    total_amount: Decimal
    issue_date: date
    vat: list[VatLineDTO] = field(default_factory=list)
    untaxed_amount: Decimal = Decimal("0")
    exempt_amount: Decimal = Decimal("0")
    other_taxes: list[OtherTaxDTO] = field(default_factory=list)
    linked_vouchers: list[LinkedVoucherDTO] = field(default_factory=list)
    service_from: date | None = None
    service_to: date | None = None
    payment_due: date | None = None
    currency: str = "PES"
    currency_rate: Decimal = Decimal("1")

    def to_domain(self) -> InvoiceRequest:
        return InvoiceRequest(
            voucher_type=VoucherType.from_code(self.voucher_code),
            sales_point=self.sales_point,
            concept=Concept.from_name(self.concept),
            receiver_doc_type=DocumentType.from_name(self.receiver_doc_type),
            receiver_tax_id="".join(ch for ch in self.receiver_tax_id if ch.isdigit()),
            receiver_tax_condition=TaxCondition.parse(self.receiver_tax_condition),
            net_amounts=(self.net_amount,),
            tax_amounts=tuple(v.to_domain() for v in self.vat),
            total_amount=self.total_amount,
            issue_date=self.issue_date,
            linked_vouchers=tuple(
                LinkedVoucher(
                    voucher_type=int(VoucherType.from_code(lv.voucher_code)),
                    sales_point=lv.sales_point,
                    number=lv.number,
                    issuer_tax_id=lv.issuer_tax_id,
                    issue_date=lv.issue_date,
                )
                for lv in self.linked_vouchers
            ),
            untaxed_amount=self.untaxed_amount,
            exempt_amount=self.exempt_amount,
            other_taxes=tuple(
                OtherTax(t.tax_id, t.description, t.base, t.rate, t.amount) for t in self.other_taxes
            ),
            service_from=self.service_from,
            service_to=self.service_to,
            payment_due=self.payment_due,
            currency=self.currency,
            currency_rate=self.currency_rate,
        )
