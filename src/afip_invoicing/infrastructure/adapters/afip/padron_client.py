from __future__ import annotations

import logging

from lxml import etree

from afip_invoicing.application.ports.http_client_port import HttpClientPort
from afip_invoicing.application.ports.registry_client_port import RegistryClientPort
from afip_invoicing.application.use_cases.ticket_store import TicketStore
from afip_invoicing.domain.entities.taxpayer import Address, TaxpayerRecord
from afip_invoicing.domain.errors import (
    AuthError,
    NetworkError,
    NotFoundError,
    ParseError,
    RemoteServiceError,
)
from afip_invoicing.domain.value_objects.codes import TaxCondition
from afip_invoicing.domain.value_objects.cuit import CUIT
from afip_invoicing.infrastructure.adapters.soap.envelope import (
    SoapFault,
    SoapRequest,
    child,
    child_text,
    find,
    find_all,
    find_text,
    parse_response,
)

logger = logging.getLogger(__name__)

PADRON_URLS = {
    True: "https://aws.afip.gov.ar/sr-padron/webservices/personaServiceA4",
    False: "https://awshomo.afip.gov.ar/sr-padron/webservices/personaServiceA4",
}
PADRON_NS = "http://a4.soap.ws.server.puc.sr/"
PADRON_SERVICE = "ws_sr_padron_a4"

IVA_TAX_ID = 30
IVA_EXEMPT_TAX_ID = 32
MONOTRIBUTO_TAX_ID = 20

_AUTH_FAULT_MARKERS = ("token", "sign", "autoriza", "expirad")


def tax_condition_from_taxes(tax_ids: set[int], *, monotributo: bool = False) -> TaxCondition:
    if IVA_TAX_ID in tax_ids:
        return TaxCondition.RESPONSABLE_INSCRIPTO
    if IVA_EXEMPT_TAX_ID in tax_ids:
        return TaxCondition.EXENTO
    if MONOTRIBUTO_TAX_ID in tax_ids or monotributo:
        return TaxCondition.RESPONSABLE_MONOTRIBUTO
    return TaxCondition.CONSUMIDOR_FINAL


def _active_tax_ids(node: etree._Element) -> set[int]:
    ids = set()
    for tax in find_all(node, "impuesto"):
        tax_id = child_text(tax, "idImpuesto")
        status = (child_text(tax, "estado") or "ACTIVO").upper()
        if tax_id and tax_id.isdigit() and status in ("ACTIVO", "AC"):
            ids.add(int(tax_id))
    return ids


def _address(node: etree._Element) -> Address | None:
    domiciles = find_all(node, "domicilio")
    fiscal = [d for d in domiciles if (child_text(d, "tipoDomicilio") or "").upper() == "FISCAL"]
    chosen = fiscal[0] if fiscal else (domiciles[0] if domiciles else find(node, "domicilioFiscal"))
    if chosen is None:
        return None
    return Address(
        street=child_text(chosen, "direccion") or "",
        locality=child_text(chosen, "localidad"),
        province=child_text(chosen, "descripcionProvincia"),
        postal_code=child_text(chosen, "codPostal"),
    )


def parse_persona(tax_id: str, result: etree._Element, raw: bytes) -> TaxpayerRecord:
    """Maps a getPersona personaReturn into a TaxpayerRecord."""
    error = find(result, "errorConstancia")
    if error is not None:
        raise NotFoundError(f"CUIT {tax_id} not found: {find_text(error, 'error') or 'sin detalle'}")
    persona = find(result, "persona")
    if persona is None:
        persona = find(result, "datosGenerales")
    if persona is None:
        raise ParseError("getPersona response without persona data", raw=raw)

    legal_name = child_text(persona, "razonSocial")
    if not legal_name:
        parts = [child_text(persona, "apellido"), child_text(persona, "nombre")]
        legal_name = " ".join(p for p in parts if p)
    return TaxpayerRecord(
        tax_id=tax_id,
        legal_name=legal_name or "",
        address=_address(persona),
        tax_condition=tax_condition_from_taxes(
            _active_tax_ids(result), monotributo=find(result, "datosMonotributo") is not None
        ),
        person_type=child_text(persona, "tipoPersona"),
        status=child_text(persona, "estadoClave") or child_text(persona, "estadoCuit"),
    )


class PadronRegistryClient(RegistryClientPort):
    """getPersona client for the Padrón A4 taxpayer registry. Results are never cached."""

    def __init__(
        self,
        tickets: TicketStore,
        http: HttpClientPort,
        *,
        cuit: str,
        production: bool = False,
        url: str | None = None,
    ) -> None:
        self.tickets = tickets
        self.http = http
        self.cuit = cuit
        self.url = url or PADRON_URLS[production]

    def lookup(self, tax_id: str) -> TaxpayerRecord:
        cuit = CUIT(tax_id)
        ticket = self.tickets.get_valid_ticket(PADRON_SERVICE)

        request = SoapRequest(PADRON_NS, "getPersona", prefix="a4", qualified=False)
        request.add_fields(
            request.operation,
            {"token": ticket.token, "sign": ticket.sign, "cuitRepresentada": self.cuit, "idPersona": str(cuit)},
        )
        logger.info("Padron lookup for %s", cuit)
        response = self.http.post(
            self.url,
            content=request.to_bytes(),
            headers={"Content-Type": "text/xml; charset=utf-8", "SOAPAction": ""},
        )
        try:
            body = parse_response(response.content)
        except SoapFault as fault:
            raise self._classify(cuit, fault) from fault
        except ParseError as exc:
            if response.is_server_error:
                raise NetworkError(f"Padron answered HTTP {response.status_code}") from exc
            raise
        result = child(body, "personaReturn")
        if result is None:
            raise ParseError("getPersona response without personaReturn", raw=response.content)
        return parse_persona(str(cuit), result, response.content)

    def _classify(self, cuit: str, fault: SoapFault) -> Exception:
        message = fault.message.lower()
        if "no existe" in message:
            return NotFoundError(f"CUIT {cuit} not found in the registry")
        if any(marker in message for marker in _AUTH_FAULT_MARKERS):
            return AuthError(f"Padron refused the credentials: {fault.message}")
        logger.warning("Padron fault for %s: %s", cuit, fault)
        return RemoteServiceError(f"Padron fault {fault.local_code}: {fault.message}")
