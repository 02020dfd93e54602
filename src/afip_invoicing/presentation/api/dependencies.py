from __future__ import annotations

from functools import lru_cache

from afip_invoicing.application.use_cases.invoicing_facade import InvoicingFacade
from afip_invoicing.bootstrap import build_facade


@lru_cache(maxsize=1)
def get_facade() -> InvoicingFacade:
    # Una sola fachada por proceso: comparte TicketStore y pool HTTP entre requests
    return build_facade()
