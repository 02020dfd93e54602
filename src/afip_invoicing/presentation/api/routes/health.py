from dataclasses import asdict

from fastapi import APIRouter, Depends

from afip_invoicing.application.use_cases.invoicing_facade import InvoicingFacade
from afip_invoicing.presentation.api.dependencies import get_facade

router = APIRouter(tags=["health"])


@router.get("/health")
def health() -> dict[str, str]:  # type: ignore[misc]
    return {"status": "ok"}


@router.get("/v1/afip/status")
def afip_status(facade: InvoicingFacade = Depends(get_facade)) -> dict[str, object]:
    status = facade.server_status()
    return {**asdict(status), "healthy": status.healthy}
