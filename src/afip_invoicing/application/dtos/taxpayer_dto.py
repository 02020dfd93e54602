from dataclasses import dataclass

from afip_invoicing.domain.entities.taxpayer import TaxpayerRecord


@dataclass(frozen=True)
class TaxpayerDTO:
    tax_id: str
    legal_name: str
    address: str | None
    tax_condition: int
    tax_condition_description: str
    person_type: str | None
    status: str | None

    @classmethod
    def from_domain(cls, rec: TaxpayerRecord) -> "TaxpayerDTO":
        return cls(
            tax_id=rec.tax_id,
            legal_name=rec.legal_name,
            address=str(rec.address) if rec.address else None,
            tax_condition=int(rec.tax_condition),
            tax_condition_description=rec.tax_condition_description,
            person_type=rec.person_type,
            status=rec.status,
        )
