from __future__ import annotations

from datetime import timedelta

from afip_invoicing.application.use_cases.invoicing_facade import InvoicingFacade
from afip_invoicing.application.use_cases.ticket_store import TicketStore
from afip_invoicing.config import Settings, settings as default_settings
from afip_invoicing.infrastructure.adapters.afip.login_signer import LoginSigner
from afip_invoicing.infrastructure.adapters.afip.padron_client import PadronRegistryClient
from afip_invoicing.infrastructure.adapters.afip.wsaa_client import WsaaAuthClient
from afip_invoicing.infrastructure.adapters.afip.wsfe_client import WsfeInvoiceClient
from afip_invoicing.infrastructure.adapters.crypto.cms_signer import CmsSigner
from afip_invoicing.infrastructure.adapters.http.httpx_client import HttpxClient
from afip_invoicing.infrastructure.adapters.ticket.sqlite_store import SQLiteTicketRepository


def build_facade(cfg: Settings | None = None) -> InvoicingFacade:
    """Wires the production adapters: one shared HTTP client and one ticket store."""
    cfg = cfg or default_settings
    signer = CmsSigner.from_files(cfg.cert_path, cfg.key_path, passphrase=cfg.key_passphrase)
    http = HttpxClient(timeout=cfg.http_timeout)
    auth = WsaaAuthClient(
        http,
        LoginSigner(signer, window=timedelta(minutes=cfg.login_ticket_ttl_minutes)),
        production=cfg.production,
    )
    repository = SQLiteTicketRepository(db_path=cfg.ticket_db_path)
    tickets = TicketStore(
        repository,
        auth,
        margin=timedelta(minutes=cfg.ticket_margin_minutes),
    )
    invoices = WsfeInvoiceClient(tickets, http, cuit=cfg.afip_cuit, production=cfg.production)
    registry = PadronRegistryClient(tickets, http, cuit=cfg.afip_cuit, production=cfg.production)
    return InvoicingFacade(
        tickets,
        invoices,
        registry,
        issuer_cuit=cfg.afip_cuit or None,
        closers=(http.close, repository.close),
    )
