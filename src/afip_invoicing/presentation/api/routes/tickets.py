from enum import Enum

from fastapi import APIRouter, Depends

from afip_invoicing.application.use_cases.invoicing_facade import InvoicingFacade
from afip_invoicing.infrastructure.adapters.afip.padron_client import PADRON_SERVICE
from afip_invoicing.infrastructure.adapters.afip.wsfe_client import WSFE_SERVICE
from afip_invoicing.presentation.api.dependencies import get_facade

router = APIRouter(prefix="/v1/tickets", tags=["tickets"])


class Service(str, Enum):
    wsfe = WSFE_SERVICE
    padron = PADRON_SERVICE


@router.post("/{service}")
def ensure_ticket(service: Service, facade: InvoicingFacade = Depends(get_facade)) -> dict[str, str | None]:
    """Makes sure a valid ticket exists for the service. Token and sign are never exposed."""
    ticket = facade.ticket_for(service.value)
    return {
        "service": ticket.service,
        "expiration_time": ticket.expiration_time.isoformat(),
        "generation_time": ticket.generation_time.isoformat() if ticket.generation_time else None,
    }


@router.delete("")
def clear_tickets(service: Service | None = None, facade: InvoicingFacade = Depends(get_facade)) -> dict[str, str]:
    facade.clear_tickets(service.value if service else None)
    return {"cleared": service.value if service else "all"}
