from dataclasses import asdict

from fastapi import APIRouter, Depends

from afip_invoicing.application.dtos.taxpayer_dto import TaxpayerDTO
from afip_invoicing.application.use_cases.invoicing_facade import InvoicingFacade
from afip_invoicing.domain.value_objects.codes import TaxCondition
from afip_invoicing.presentation.api.dependencies import get_facade

router = APIRouter(prefix="/v1/taxpayers", tags=["taxpayers"])


@router.get("/{tax_id}")
def lookup_taxpayer(tax_id: str, facade: InvoicingFacade = Depends(get_facade)) -> dict[str, object]:
    return asdict(TaxpayerDTO.from_domain(facade.lookup_taxpayer(tax_id)))


@router.get("/{tax_id}/voucher-letter")
def voucher_letter(
    tax_id: str,
    issuer_condition: str = "RESPONSABLE_INSCRIPTO",
    facade: InvoicingFacade = Depends(get_facade),
) -> dict[str, str]:
    """Letter the issuer must use when invoicing this taxpayer."""
    letter = facade.suggest_voucher_letter(tax_id, TaxCondition.parse(issuer_condition))
    return {"tax_id": tax_id, "voucher_letter": letter}
