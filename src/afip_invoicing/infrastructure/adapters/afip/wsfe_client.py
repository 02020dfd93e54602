from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Callable

from lxml import etree
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt

from afip_invoicing.application.ports.http_client_port import HttpClientPort
from afip_invoicing.application.ports.invoice_client_port import InvoiceClientPort
from afip_invoicing.application.use_cases.ticket_store import TicketStore
from afip_invoicing.domain.entities.invoice import (
    AuthorizationOutcome,
    AuthorizationResult,
    InvoiceRequest,
    RemoteMessage,
    SequenceState,
    VoucherStatus,
)
from afip_invoicing.domain.entities.service_info import ParameterItem, SalesPoint, ServerStatus
from afip_invoicing.domain.errors import (
    AuthError,
    NetworkError,
    NotFoundError,
    ParseError,
    RemoteServiceError,
    SequenceError,
    SequenceLookupError,
    ValidationError,
)
from afip_invoicing.infrastructure.adapters.soap.envelope import (
    SoapFault,
    SoapRequest,
    child,
    child_text,
    find_all,
    parse_response,
)

logger = logging.getLogger(__name__)

WSFE_URLS = {
    True: "https://servicios1.afip.gov.ar/wsfev1/service.asmx",
    False: "https://wswhomo.afip.gov.ar/wsfev1/service.asmx",
}
WSFE_NS = "http://ar.gov.afip.dif.FEV1/"
WSFE_SERVICE = "wsfe"

NO_RESULTS = 602
NUMBERING_CONFLICT = 10016
AUTH_ERROR_CODES = frozenset({600, 601})
INTERNAL_ERROR_CODES = frozenset({500, 501, 502})

Builder = Callable[[SoapRequest], Any]


class _NumberingConflict(Exception):
    def __init__(self, result: AuthorizationResult) -> None:
        super().__init__(f"voucher number {result.assigned_voucher_number} already used")
        self.result = result


def _messages(node: etree._Element | None, container: str, item: str) -> tuple[RemoteMessage, ...]:
    box = child(node, container) if node is not None else None
    if box is None:
        return ()
    out = []
    for element in find_all(box, item):
        code = child_text(element, "Code") or "0"
        out.append(RemoteMessage(int(code) if code.isdigit() else 0, child_text(element, "Msg") or ""))
    return tuple(out)


def _int(node: etree._Element, name: str, raw: bytes) -> int:
    value = child_text(node, name)
    if value is None or not value.lstrip("-").isdigit():
        raise ParseError(f"expected integer {name}, got {value!r}", raw=raw)
    return int(value)


def _decimal(value: str | None) -> Decimal | None:
    if value is None:
        return None
    try:
        return Decimal(value)
    except InvalidOperation:
        return None


def _blank_to_none(value: str | None) -> str | None:
    if value is None or value.strip() in ("", "NULL"):
        return None
    return value


def resolve_outcome(codes: list[str]) -> AuthorizationOutcome:
    """Any rejected detail rejects; all approved approves; anything else is partial."""
    normalized = [c.strip().upper() for c in codes if c]
    if not normalized or "R" in normalized:
        return AuthorizationOutcome.REJECTED
    if all(c == "A" for c in normalized):
        return AuthorizationOutcome.APPROVED
    return AuthorizationOutcome.PARTIALLY_APPROVED


class WsfeInvoiceClient(InvoiceClientPort):
    """WSFEv1 client: voucher numbering, CAE authorization and parameter tables.

    Every authenticated call asks the ticket store for a valid 'wsfe' ticket
    first, so login happens lazily and at most once per validity window.
    """

    def __init__(
        self,
        tickets: TicketStore,
        http: HttpClientPort,
        *,
        cuit: str,
        production: bool = False,
        url: str | None = None,
        conflict_attempts: int = 2,
    ) -> None:
        self.tickets = tickets
        self.http = http
        self.cuit = cuit
        self.url = url or WSFE_URLS[production]
        self.conflict_attempts = conflict_attempts

    # ---------- transport ----------
    def _call(self, operation: str, build: Builder | None = None, *, authenticated: bool = True) -> tuple[etree._Element, bytes]:
        request = SoapRequest(WSFE_NS, operation, prefix="ar")
        if authenticated:
            ticket = self.tickets.get_valid_ticket(WSFE_SERVICE)
            auth = request.add(request.operation, "Auth")
            request.add_fields(auth, {"Token": ticket.token, "Sign": ticket.sign, "Cuit": self.cuit})
        if build is not None:
            build(request)

        logger.debug("WSFE %s", operation)
        response = self.http.post(
            self.url,
            content=request.to_bytes(),
            headers={"Content-Type": "text/xml; charset=utf-8", "SOAPAction": f"{WSFE_NS}{operation}"},
        )
        try:
            body = parse_response(response.content)
        except SoapFault as fault:
            logger.warning("WSFE %s fault: %s", operation, fault)
            raise RemoteServiceError(f"WSFE {operation} fault {fault.local_code}: {fault.message}") from fault
        except ParseError as exc:
            if response.is_server_error:
                raise NetworkError(f"WSFE {operation} answered HTTP {response.status_code}") from exc
            raise
        result = child(body, f"{operation}Result")
        if result is None:
            raise ParseError(f"{operation} response without {operation}Result", raw=response.content)
        return result, response.content

    def _raise_for_infrastructure(self, operation: str, errors: tuple[RemoteMessage, ...]) -> None:
        codes = {e.code for e in errors}
        detail = "; ".join(f"{e.code}: {e.message}" for e in errors)
        if codes & AUTH_ERROR_CODES:
            raise AuthError(f"WSFE {operation} refused the credentials: {detail}")
        if codes & INTERNAL_ERROR_CODES:
            raise NetworkError(f"WSFE {operation} internal error: {detail}")

    def _raise_for_errors(self, operation: str, errors: tuple[RemoteMessage, ...]) -> None:
        if not errors:
            return
        self._raise_for_infrastructure(operation, errors)
        raise RemoteServiceError(
            f"WSFE {operation} errors: " + "; ".join(f"{e.code}: {e.message}" for e in errors),
            errors=[(e.code, e.message) for e in errors],
        )

    # ---------- operations ----------
    def get_server_status(self) -> ServerStatus:
        result, _ = self._call("FEDummy", authenticated=False)
        return ServerStatus(
            app_server=child_text(result, "AppServer") or "",
            db_server=child_text(result, "DbServer") or "",
            auth_server=child_text(result, "AuthServer") or "",
        )

    def _lookup_last_voucher(self, sales_point: int, voucher_type: int) -> int:
        result, raw = self._call(
            "FECompUltimoAutorizado",
            lambda r: r.add_fields(r.operation, {"PtoVta": sales_point, "CbteTipo": int(voucher_type)}),
        )
        errors = _messages(result, "Errors", "Err")
        if any(e.code == NO_RESULTS for e in errors):
            raise SequenceLookupError("no prior vouchers")
        self._raise_for_errors("FECompUltimoAutorizado", errors)
        return _int(result, "CbteNro", raw)

    def get_last_voucher(self, sales_point: int, voucher_type: int) -> SequenceState:
        try:
            last = self._lookup_last_voucher(sales_point, voucher_type)
        except SequenceLookupError:
            last = 0
        return SequenceState(sales_point, int(voucher_type), last)

    def authorize_voucher(self, request: InvoiceRequest) -> AuthorizationResult:
        problems = request.validate()
        if problems:
            raise ValidationError(problems)
        retrying = Retrying(
            stop=stop_after_attempt(self.conflict_attempts),
            retry=retry_if_exception_type(_NumberingConflict),
            reraise=True,
        )
        try:
            return retrying(self._authorize_once, request)
        except _NumberingConflict as conflict:
            raise SequenceError(
                f"voucher numbering conflict on {request.sales_point}/{int(request.voucher_type)} "
                f"persisted after {self.conflict_attempts} attempts"
            ) from conflict

    def _authorize_once(self, request: InvoiceRequest) -> AuthorizationResult:
        number = self.get_last_voucher(request.sales_point, request.voucher_type).next_voucher_number
        logger.info(
            "requesting CAE for voucher %s-%05d-%08d",
            int(request.voucher_type),
            request.sales_point,
            number,
        )
        result_el, raw = self._call("FECAESolicitar", lambda r: self._build_cae_request(r, request, number))
        result = self._read_authorization(result_el, raw, request, number)
        if result.outcome is AuthorizationOutcome.REJECTED and any(
            m.code == NUMBERING_CONFLICT for m in (*result.errors, *result.observations)
        ):
            logger.warning("voucher number %d was taken concurrently, refreshing sequence", number)
            raise _NumberingConflict(result)
        logger.info("voucher %d outcome %s", number, result.outcome.value)
        return result

    def _build_cae_request(self, r: SoapRequest, req: InvoiceRequest, number: int) -> None:
        fe = r.add(r.operation, "FeCAEReq")
        r.add_fields(
            r.add(fe, "FeCabReq"),
            {"CantReg": 1, "PtoVta": req.sales_point, "CbteTipo": int(req.voucher_type)},
        )
        detail = r.add(r.add(fe, "FeDetReq"), "FECAEDetRequest")
        services = req.concept.requires_service_dates
        r.add_fields(
            detail,
            {
                "Concepto": int(req.concept),
                "DocTipo": int(req.receiver_doc_type),
                "DocNro": req.receiver_tax_id,
                "CbteDesde": number,
                "CbteHasta": number,
                "CbteFch": req.issue_date,
                "ImpTotal": req.total_amount,
                "ImpTotConc": req.untaxed_amount,
                "ImpNeto": req.net_total,
                "ImpOpEx": req.exempt_amount,
                "ImpTrib": req.other_taxes_total,
                "ImpIVA": Decimal("0") if req.voucher_type.is_class_c else req.vat_total,
                "FchServDesde": req.service_from if services else None,
                "FchServHasta": req.service_to if services else None,
                "FchVtoPago": req.payment_due if services else None,
                "MonId": req.currency,
                "MonCotiz": format(req.currency_rate, "f"),
                "CondicionIVAReceptorId": int(req.receiver_tax_condition),
            },
        )
        if req.linked_vouchers:
            box = r.add(detail, "CbtesAsoc")
            for linked in req.linked_vouchers:
                r.add_fields(
                    r.add(box, "CbteAsoc"),
                    {
                        "Tipo": linked.voucher_type,
                        "PtoVta": linked.sales_point,
                        "Nro": linked.number,
                        "Cuit": linked.issuer_tax_id,
                        "CbteFch": linked.issue_date,
                    },
                )
        if req.other_taxes:
            box = r.add(detail, "Tributos")
            for tax in req.other_taxes:
                r.add_fields(
                    r.add(box, "Tributo"),
                    {"Id": tax.tax_id, "Desc": tax.description, "BaseImp": tax.base, "Alic": tax.rate, "Importe": tax.amount},
                )
        vat_lines = [line for line in req.vat_lines if not line.is_zero]
        if vat_lines:
            box = r.add(detail, "Iva")
            for line in vat_lines:
                r.add_fields(
                    r.add(box, "AlicIva"),
                    {"Id": line.rate_id, "BaseImp": line.base, "Importe": line.amount},
                )

    def _read_authorization(
        self, result_el: etree._Element, raw: bytes, req: InvoiceRequest, number: int
    ) -> AuthorizationResult:
        errors = _messages(result_el, "Errors", "Err")
        self._raise_for_infrastructure("FECAESolicitar", errors)
        events = _messages(result_el, "Events", "Evt")

        header = child(result_el, "FeCabResp")
        det_box = child(result_el, "FeDetResp")
        details = find_all(det_box, "FECAEDetResponse") if det_box is not None else []
        if header is None and not details and not errors:
            raise ParseError("FECAESolicitar response without header, detail or errors", raw=raw)

        codes = [child_text(d, "Resultado") or "" for d in details]
        if not codes and header is not None:
            codes = [child_text(header, "Resultado") or ""]
        outcome = resolve_outcome(codes)

        detail = details[0] if details else None
        observations = _messages(detail, "Observaciones", "Obs")
        assigned = child_text(detail, "CbteDesde") if detail is not None else None
        code = _blank_to_none(child_text(detail, "CAE")) if detail is not None else None
        expiry = _blank_to_none(child_text(detail, "CAEFchVto")) if detail is not None else None
        if outcome is AuthorizationOutcome.REJECTED:
            code = expiry = None
        return AuthorizationResult(
            sales_point=req.sales_point,
            voucher_type=int(req.voucher_type),
            assigned_voucher_number=int(assigned) if assigned and assigned.isdigit() else number,
            authorization_code=code,
            authorization_expiry=expiry,
            outcome=outcome,
            observations=observations,
            errors=errors,
            events=events,
            raw_response=raw,
        )

    def get_voucher(self, sales_point: int, voucher_type: int, voucher_number: int) -> VoucherStatus:
        result, raw = self._call(
            "FECompConsultar",
            lambda r: r.add_fields(
                r.add(r.operation, "FeCompConsReq"),
                {"CbteTipo": int(voucher_type), "CbteNro": voucher_number, "PtoVta": sales_point},
            ),
        )
        errors = _messages(result, "Errors", "Err")
        if any(e.code == NO_RESULTS for e in errors):
            raise NotFoundError(f"voucher {int(voucher_type)}-{sales_point:05d}-{voucher_number:08d} not found")
        self._raise_for_errors("FECompConsultar", errors)
        got = child(result, "ResultGet")
        if got is None:
            raise ParseError("FECompConsultar response without ResultGet", raw=raw)
        doc_type = child_text(got, "DocTipo")
        return VoucherStatus(
            sales_point=sales_point,
            voucher_type=int(voucher_type),
            voucher_number=voucher_number,
            authorization_code=_blank_to_none(child_text(got, "CodAutorizacion")),
            authorization_expiry=_blank_to_none(child_text(got, "FchVto")),
            outcome=AuthorizationOutcome.from_code(child_text(got, "Resultado")),
            issue_date=_blank_to_none(child_text(got, "CbteFch")),
            total_amount=_decimal(child_text(got, "ImpTotal")),
            receiver_doc_type=int(doc_type) if doc_type and doc_type.isdigit() else None,
            receiver_tax_id=_blank_to_none(child_text(got, "DocNro")),
            observations=_messages(got, "Observaciones", "Obs"),
        )

    def get_sales_points(self) -> list[SalesPoint]:
        result, raw = self._call("FEParamGetPtosVenta")
        errors = _messages(result, "Errors", "Err")
        if any(e.code == NO_RESULTS for e in errors):
            return []
        self._raise_for_errors("FEParamGetPtosVenta", errors)
        points = []
        for item in find_all(result, "PtoVenta"):
            removed = _blank_to_none(child_text(item, "FchBaja"))
            points.append(
                SalesPoint(
                    number=_int(item, "Nro", raw),
                    emission_type=child_text(item, "EmisionTipo") or "",
                    blocked=(child_text(item, "Bloqueado") or "N").upper() == "S",
                    removed_on=datetime.strptime(removed, "%Y%m%d").date() if removed else None,
                )
            )
        return points

    def _parameter_table(self, operation: str, item: str, build: Builder | None = None) -> list[ParameterItem]:
        result, raw = self._call(operation, build)
        errors = _messages(result, "Errors", "Err")
        if any(e.code == NO_RESULTS for e in errors):
            return []
        self._raise_for_errors(operation, errors)
        return [
            ParameterItem(id=_int(row, "Id", raw), description=child_text(row, "Desc") or "")
            for row in find_all(result, item)
        ]

    def get_voucher_types(self) -> list[ParameterItem]:
        return self._parameter_table("FEParamGetTiposCbte", "CbteTipo")

    def get_receiver_tax_conditions(self, voucher_class: str | None = None) -> list[ParameterItem]:
        build = (lambda r: r.add(r.operation, "ClaseCmp", voucher_class)) if voucher_class else None
        return self._parameter_table("FEParamGetCondicionIvaReceptor", "CondicionIvaReceptor", build)
