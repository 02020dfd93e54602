from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from afip_invoicing.domain.errors import BusinessRejection
from afip_invoicing.domain.value_objects.codes import (
    VAT_RATES_BY_ID,
    Concept,
    DocumentType,
    TaxCondition,
    VoucherType,
)

TOTAL_TOLERANCE = Decimal("0.01")
ZERO = Decimal("0")


def _dec(value: Decimal | float | int | str) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


@dataclass(frozen=True)
class TaxAmount:
    """One VAT line (AlicIva): rate id, taxable base and tax amount."""

    rate_id: int
    base: Decimal
    amount: Decimal

    def __post_init__(self) -> None:
        object.__setattr__(self, "base", _dec(self.base))
        object.__setattr__(self, "amount", _dec(self.amount))

    @property
    def is_zero(self) -> bool:
        return self.base == ZERO and self.amount == ZERO


@dataclass(frozen=True)
class OtherTax:
    """Non-VAT tax line (Tributo)."""

    tax_id: int
    description: str
    base: Decimal
    rate: Decimal
    amount: Decimal

    def __post_init__(self) -> None:
        for name in ("base", "rate", "amount"):
            object.__setattr__(self, name, _dec(getattr(self, name)))


@dataclass(frozen=True)
class LinkedVoucher:
    voucher_type: int
    sales_point: int
    number: int
    issuer_tax_id: str | None = None
    issue_date: date | None = None


@dataclass(frozen=True)
class InvoiceRequest:
    voucher_type: VoucherType
    sales_point: int
    concept: Concept
    receiver_doc_type: DocumentType
    receiver_tax_id: str
    receiver_tax_condition: TaxCondition
    net_amounts: tuple[Decimal, ...]
    tax_amounts: tuple[TaxAmount, ...]
    total_amount: Decimal
    issue_date: date
    linked_vouchers: tuple[LinkedVoucher, ...] = ()
    untaxed_amount: Decimal = ZERO
    exempt_amount: Decimal = ZERO
    other_taxes: tuple[OtherTax, ...] = ()
    service_from: date | None = None
    service_to: date | None = None
    payment_due: date | None = None
    currency: str = "PES"
    currency_rate: Decimal = Decimal("1")

    def __post_init__(self) -> None:
        object.__setattr__(self, "voucher_type", VoucherType(self.voucher_type))
        object.__setattr__(self, "concept", Concept(self.concept))
        object.__setattr__(self, "receiver_doc_type", DocumentType(self.receiver_doc_type))
        object.__setattr__(self, "receiver_tax_condition", TaxCondition(self.receiver_tax_condition))
        object.__setattr__(self, "net_amounts", tuple(_dec(v) for v in self.net_amounts))
        object.__setattr__(self, "tax_amounts", tuple(self.tax_amounts))
        object.__setattr__(self, "other_taxes", tuple(self.other_taxes))
        object.__setattr__(self, "linked_vouchers", tuple(self.linked_vouchers))
        for name in ("total_amount", "untaxed_amount", "exempt_amount", "currency_rate"):
            object.__setattr__(self, name, _dec(getattr(self, name)))

    @property
    def net_total(self) -> Decimal:
        return sum(self.net_amounts, ZERO)

    @property
    def vat_total(self) -> Decimal:
        return sum((t.amount for t in self.tax_amounts), ZERO)

    @property
    def other_taxes_total(self) -> Decimal:
        return sum((t.amount for t in self.other_taxes), ZERO)

    @property
    def computed_total(self) -> Decimal:
        return self.net_total + self.vat_total + self.untaxed_amount + self.exempt_amount + self.other_taxes_total

    @property
    def vat_lines(self) -> tuple[TaxAmount, ...]:
        """VAT lines to submit. Class C vouchers never carry them."""
        if self.voucher_type.is_class_c:
            return ()
        return self.tax_amounts

    def validate(self) -> list[str]:
        """Returns every problem found; an empty list means the request can be submitted."""
        problems: list[str] = []
        if not 1 <= self.sales_point <= 99999:
            problems.append("Punto de venta inválido (debe ser entre 1 y 99999)")
        if not self.receiver_tax_id or not str(self.receiver_tax_id).isdigit():
            problems.append("Número de documento del receptor requerido (solo dígitos)")
        if self.total_amount <= ZERO:
            problems.append("Importe total debe ser mayor a 0")
        if any(v < ZERO for v in self.net_amounts):
            problems.append("Importes netos no pueden ser negativos")
        if self.currency_rate <= ZERO:
            problems.append("Cotización de moneda debe ser mayor a 0")

        for line in self.tax_amounts:
            if line.rate_id not in VAT_RATES_BY_ID:
                problems.append(f"Id de alícuota IVA desconocido: {line.rate_id}")
        if self.voucher_type.is_class_c:
            if any(not line.is_zero for line in self.tax_amounts):
                problems.append("Comprobantes clase C no discriminan IVA")
        elif self.voucher_type.letter == "A" and not self.tax_amounts:
            problems.append("Factura tipo A requiere detalle de IVA")

        if self.concept.requires_service_dates:
            if not self.service_from or not self.service_to or not self.payment_due:
                problems.append("Servicios requieren fechas de servicio y vencimiento de pago")
            elif self.service_from > self.service_to:
                problems.append("Fecha de servicio desde posterior a fecha hasta")

        if abs(self.total_amount - self.computed_total) > TOTAL_TOLERANCE:
            problems.append(
                f"Importe total {self.total_amount} no coincide con la suma de componentes {self.computed_total}"
            )
        return problems


class AuthorizationOutcome(str, Enum):
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    PARTIALLY_APPROVED = "PARTIALLY_APPROVED"

    @classmethod
    def from_code(cls, code: str | None) -> "AuthorizationOutcome":
        return {"A": cls.APPROVED, "R": cls.REJECTED, "P": cls.PARTIALLY_APPROVED}.get(
            (code or "").strip().upper(), cls.REJECTED
        )


@dataclass(frozen=True)
class RemoteMessage:
    """Observation, error or event as reported by the remote service."""

    code: int
    message: str


@dataclass(frozen=True)
class AuthorizationResult:
    sales_point: int
    voucher_type: int
    assigned_voucher_number: int
    authorization_code: str | None
    authorization_expiry: str | None
    outcome: AuthorizationOutcome
    observations: tuple[RemoteMessage, ...] = ()
    errors: tuple[RemoteMessage, ...] = ()
    events: tuple[RemoteMessage, ...] = ()
    raw_response: bytes | None = field(default=None, repr=False, compare=False)

    @property
    def approved(self) -> bool:
        return self.outcome is AuthorizationOutcome.APPROVED

    @property
    def authorization_expiry_date(self) -> date | None:
        if not self.authorization_expiry:
            return None
        return datetime.strptime(self.authorization_expiry, "%Y%m%d").date()

    def raise_for_outcome(self) -> "AuthorizationResult":
        if self.outcome is AuthorizationOutcome.REJECTED:
            raise BusinessRejection(self)
        return self


@dataclass(frozen=True)
class SequenceState:
    sales_point: int
    voucher_type: int
    last_voucher_number: int

    @property
    def next_voucher_number(self) -> int:
        return self.last_voucher_number + 1


@dataclass(frozen=True)
class VoucherStatus:
    """Authorization status of an already issued voucher (FECompConsultar)."""

    sales_point: int
    voucher_type: int
    voucher_number: int
    authorization_code: str | None
    authorization_expiry: str | None
    outcome: AuthorizationOutcome
    issue_date: str | None
    total_amount: Decimal | None
    receiver_doc_type: int | None
    receiver_tax_id: str | None
    observations: tuple[RemoteMessage, ...] = ()
