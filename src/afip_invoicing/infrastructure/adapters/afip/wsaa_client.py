from __future__ import annotations

import logging
from datetime import datetime

from afip_invoicing.application.ports.auth_client_port import AuthClientPort
from afip_invoicing.application.ports.http_client_port import HttpClientPort, HttpResponse
from afip_invoicing.domain.entities.access_ticket import AccessTicket
from afip_invoicing.domain.errors import AuthError, NetworkError, ParseError, TicketAlreadyValid
from afip_invoicing.infrastructure.adapters.afip.login_signer import ARGENTINA_TZ, LoginSigner
from afip_invoicing.infrastructure.adapters.soap.envelope import (
    SoapFault,
    SoapRequest,
    find,
    find_text,
    parse_response,
    parse_xml,
)

logger = logging.getLogger(__name__)

WSAA_URLS = {
    True: "https://wsaa.afip.gov.ar/ws/services/LoginCms",
    False: "https://wsaahomo.afip.gov.ar/ws/services/LoginCms",
}
WSAA_NS = "http://wsaa.view.sua.dvadac.desein.afip.gov"

_UNAVAILABLE_FAULTS = {"wsaa.unavailable", "wsn.unavailable", "wsaa.internalError", "Server"}


def _parse_timestamp(value: str | None, raw: str) -> datetime:
    if not value:
        raise ParseError("loginTicketResponse without expirationTime", raw=raw)
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError as exc:
        raise ParseError(f"invalid timestamp {value!r} in loginTicketResponse", raw=raw) from exc
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=ARGENTINA_TZ)


def parse_login_ticket_response(service: str, document: str) -> AccessTicket:
    """Reads token, sign and validity window out of a loginTicketResponse."""
    root = parse_xml(document)
    header = find(root, "header")
    token = find_text(root, "token")
    sign = find_text(root, "sign")
    if header is None or not token or not sign:
        raise ParseError("loginTicketResponse without header or credentials", raw=document)
    generation = find_text(header, "generationTime")
    return AccessTicket(
        service=service,
        token=token,
        sign=sign,
        expiration_time=_parse_timestamp(find_text(header, "expirationTime"), document),
        generation_time=_parse_timestamp(generation, document) if generation else None,
    )


def classify_fault(fault: SoapFault) -> Exception:
    code = fault.local_code
    if code == "coe.alreadyAuthenticated":
        return TicketAlreadyValid(fault.message)
    if code in _UNAVAILABLE_FAULTS:
        return NetworkError(f"WSAA unavailable ({code}): {fault.message}")
    return AuthError(f"WSAA rejected the login ({code}): {fault.message}")


class WsaaAuthClient(AuthClientPort):
    """loginCms client for the WSAA authentication service.

    Never touches ticket storage: a failed login leaves whatever is cached untouched.
    """

    def __init__(
        self,
        http: HttpClientPort,
        login_signer: LoginSigner,
        *,
        production: bool = False,
        url: str | None = None,
    ) -> None:
        self.http = http
        self.login_signer = login_signer
        self.url = url or WSAA_URLS[production]

    def login(self, service: str) -> AccessTicket:
        cms = self.login_signer.signed_request(service)
        request = SoapRequest(WSAA_NS, "loginCms", prefix="wsaa")
        request.add(request.operation, "in0", cms)
        logger.info("WSAA login for service %s at %s", service, self.url)
        response = self.http.post(
            self.url,
            content=request.to_bytes(),
            headers={"Content-Type": "text/xml; charset=utf-8", "SOAPAction": "urn:LoginCms"},
        )
        ticket = self._read_ticket(service, response)
        logger.info("WSAA issued ticket for %s valid until %s", service, ticket.expiration_time.isoformat())
        return ticket

    def _read_ticket(self, service: str, response: HttpResponse) -> AccessTicket:
        try:
            result = parse_response(response.content)
        except SoapFault as fault:
            logger.warning("WSAA fault for %s: %s", service, fault)
            raise classify_fault(fault) from fault
        except ParseError as exc:
            if response.is_server_error:
                raise NetworkError(f"WSAA answered HTTP {response.status_code} without a SOAP fault") from exc
            raise
        document = find_text(result, "loginCmsReturn")
        if not document:
            raise ParseError("loginCmsResponse without loginCmsReturn", raw=response.content)
        return parse_login_ticket_response(service, document)
