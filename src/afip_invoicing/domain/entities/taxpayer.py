from __future__ import annotations

from dataclasses import dataclass

from afip_invoicing.domain.value_objects.codes import TaxCondition


@dataclass(frozen=True)
class Address:
    street: str
    locality: str | None = None
    province: str | None = None
    postal_code: str | None = None

    def __str__(self) -> str:
        parts = [self.street, self.locality, self.province]
        text = ", ".join(p for p in parts if p)
        return f"{text} ({self.postal_code})" if self.postal_code else text


@dataclass(frozen=True)
class TaxpayerRecord:
    """Registry data for one taxpayer as returned by Padrón A4. Never cached."""

    tax_id: str
    legal_name: str
    address: Address | None
    tax_condition: TaxCondition
    person_type: str | None = None
    status: str | None = None

    @property
    def tax_condition_description(self) -> str:
        return self.tax_condition.description
