from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest
from lxml import etree

from afip_invoicing.domain.entities.invoice import AuthorizationOutcome, InvoiceRequest, OtherTax, TaxAmount
from afip_invoicing.domain.errors import (
    AuthError,
    BusinessRejection,
    NetworkError,
    NotFoundError,
    RemoteServiceError,
    SequenceError,
    TicketAlreadyValid,
    ValidationError,
)
from afip_invoicing.domain.value_objects.codes import Concept, DocumentType, TaxCondition, VoucherType
from afip_invoicing.infrastructure.adapters.afip.wsfe_client import WsfeInvoiceClient, resolve_outcome
from tests.unit._fakes import FakeHttpClient, soap_fault, ticket_store, wsfe, wsfe_errors

NS = "http://ar.gov.afip.dif.FEV1/"
LAST = NS + "FECompUltimoAutorizado"
CAE = NS + "FECAESolicitar"


def invoice(**overrides) -> InvoiceRequest:
    fields = dict(
        voucher_type=VoucherType.FACTURA_B,
        sales_point=1,
        concept=Concept.PRODUCTS,
        receiver_doc_type=DocumentType.DNI,
        receiver_tax_id="30123456",
        receiver_tax_condition=TaxCondition.CONSUMIDOR_FINAL,
        net_amounts=[Decimal("100.00")],
        tax_amounts=[TaxAmount(5, Decimal("100.00"), Decimal("21.00"))],
        total_amount=Decimal("121.00"),
        issue_date=date(2025, 1, 15),
    )
    fields.update(overrides)
    return InvoiceRequest(**fields)


def last_response(number: int) -> str:
    return wsfe("FECompUltimoAutorizado", f"<PtoVta>1</PtoVta><CbteTipo>6</CbteTipo><CbteNro>{number}</CbteNro>")


def cae_response(number: int, result: str = "A", cae: str = "12345678901234", expiry: str = "20251231", obs=()) -> str:
    obs_xml = ""
    if obs:
        obs_xml = "<Observaciones>" + "".join(
            f"<Obs><Code>{c}</Code><Msg>{m}</Msg></Obs>" for c, m in obs
        ) + "</Observaciones>"
    return wsfe(
        "FECAESolicitar",
        "<FeCabResp><Cuit>20123456786</Cuit><PtoVta>1</PtoVta><CbteTipo>6</CbteTipo>"
        f"<FchProceso>20250115</FchProceso><CantReg>1</CantReg><Resultado>{result}</Resultado>"
        "<Reproceso>N</Reproceso></FeCabResp>"
        "<FeDetResp><FECAEDetResponse><Concepto>1</Concepto><DocTipo>96</DocTipo><DocNro>30123456</DocNro>"
        f"<CbteDesde>{number}</CbteDesde><CbteHasta>{number}</CbteHasta><CbteFch>20250115</CbteFch>"
        f"<Resultado>{result}</Resultado>{obs_xml}<CAE>{cae}</CAE><CAEFchVto>{expiry}</CAEFchVto>"
        "</FECAEDetResponse></FeDetResp>",
    )


def conflict_response(number: int) -> str:
    return cae_response(
        number,
        result="R",
        cae="",
        expiry="",
        obs=[(10016, "El numero o fecha del comprobante no se corresponde con el proximo a autorizar.")],
    )


@pytest.fixture
def env():
    store, auth = ticket_store()
    http = FakeHttpClient()
    client = WsfeInvoiceClient(store, http, cuit="20123456786")
    return client, http, auth


def _sent(http: FakeHttpClient, action: str, index: int = 0) -> etree._Element:
    calls = [c for c in http.calls if c["action"] == action]
    return etree.fromstring(calls[index]["content"])


def _text(root: etree._Element, name: str) -> str | None:
    found = root.xpath(f"//*[local-name()='{name}']")
    return found[0].text if found else None


def test_last_voucher(env):
    client, http, _ = env
    http.add(LAST, last_response(10))
    state = client.get_last_voucher(1, 6)
    assert state.last_voucher_number == 10
    assert state.next_voucher_number == 11
    sent = _sent(http, LAST)
    assert _text(sent, "Token") == "token-1"
    assert _text(sent, "Cuit") == "20123456786"
    assert _text(sent, "PtoVta") == "1"
    assert _text(sent, "CbteTipo") == "6"


def test_last_voucher_without_prior_vouchers_is_zero(env):
    client, http, _ = env
    http.add(LAST, wsfe("FECompUltimoAutorizado", wsfe_errors((602, "Sin Resultados"))))
    assert client.get_last_voucher(1, 6).last_voucher_number == 0


def test_authorize_assigns_next_number_and_returns_cae(env):
    client, http, auth = env
    http.add(LAST, last_response(10))
    http.add(CAE, cae_response(11))

    result = client.authorize_voucher(invoice())

    assert result.outcome is AuthorizationOutcome.APPROVED
    assert result.assigned_voucher_number == 11
    assert result.authorization_code == "12345678901234"
    assert result.authorization_expiry == "20251231"
    assert result.authorization_expiry_date == date(2025, 12, 31)
    assert auth.called == 1

    sent = _sent(http, CAE)
    assert _text(sent, "CantReg") == "1"
    assert _text(sent, "CbteDesde") == "11"
    assert _text(sent, "CbteHasta") == "11"
    assert _text(sent, "CbteFch") == "20250115"
    assert _text(sent, "ImpTotal") == "121.00"
    assert _text(sent, "ImpNeto") == "100.00"
    assert _text(sent, "ImpIVA") == "21.00"
    assert _text(sent, "CondicionIVAReceptorId") == "5"
    assert _text(sent, "DocTipo") == "96"
    assert sent.xpath("count(//*[local-name()='AlicIva'])") == 1
    assert _text(sent, "FchServDesde") is None


def test_first_voucher_gets_number_one(env):
    client, http, _ = env
    http.add(LAST, wsfe("FECompUltimoAutorizado", wsfe_errors((602, "Sin Resultados"))))
    http.add(CAE, cae_response(1))
    assert client.authorize_voucher(invoice()).assigned_voucher_number == 1
    assert _text(_sent(http, CAE), "CbteDesde") == "1"


def test_invalid_request_makes_no_network_call(env):
    client, http, auth = env
    with pytest.raises(ValidationError) as err:
        client.authorize_voucher(invoice(total_amount=Decimal("150.00")))
    assert "no coincide" in str(err.value)
    assert http.calls == []
    assert auth.called == 0


def test_numbering_conflict_is_retried_once(env):
    client, http, _ = env
    http.add(LAST, last_response(10))
    http.add(LAST, last_response(11))
    http.add(CAE, conflict_response(11))
    http.add(CAE, cae_response(12))

    result = client.authorize_voucher(invoice())

    assert result.outcome is AuthorizationOutcome.APPROVED
    assert result.assigned_voucher_number == 12
    assert http.actions() == [LAST, CAE, LAST, CAE]


def test_second_numbering_conflict_raises_sequence_error(env):
    client, http, _ = env
    http.add(LAST, last_response(10))
    http.add(LAST, last_response(11))
    http.add(CAE, conflict_response(11))
    http.add(CAE, conflict_response(12))

    with pytest.raises(SequenceError):
        client.authorize_voucher(invoice())
    assert http.actions().count(CAE) == 2


def test_class_c_omits_vat_array(env):
    client, http, _ = env
    http.add(LAST, last_response(3))
    http.add(CAE, cae_response(4))
    request = invoice(
        voucher_type=VoucherType.FACTURA_C,
        tax_amounts=[TaxAmount(3, Decimal("0"), Decimal("0"))],
        total_amount=Decimal("100.00"),
    )

    client.authorize_voucher(request)

    sent = _sent(http, CAE)
    assert sent.xpath("count(//*[local-name()='Iva'])") == 0
    assert _text(sent, "ImpIVA") == "0.00"
    assert _text(sent, "CbteTipo") == "11"


def test_class_c_with_vat_amount_is_invalid(env):
    client, http, _ = env
    with pytest.raises(ValidationError):
        client.authorize_voucher(invoice(voucher_type=VoucherType.FACTURA_C))
    assert http.calls == []


def test_services_send_service_dates(env):
    client, http, _ = env
    http.add(LAST, last_response(0))
    http.add(CAE, cae_response(1))
    request = invoice(
        concept=Concept.SERVICES,
        service_from=date(2025, 1, 1),
        service_to=date(2025, 1, 31),
        payment_due=date(2025, 2, 10),
        other_taxes=[OtherTax(99, "Percepción IIBB", Decimal("100"), Decimal("3"), Decimal("3.00"))],
        total_amount=Decimal("124.00"),
    )
    client.authorize_voucher(request)
    sent = _sent(http, CAE)
    assert _text(sent, "FchServDesde") == "20250101"
    assert _text(sent, "FchServHasta") == "20250131"
    assert _text(sent, "FchVtoPago") == "20250210"
    assert _text(sent, "ImpTrib") == "3.00"
    assert _text(sent, "Desc") == "Percepción IIBB"


def test_business_rejection_is_returned_not_raised(env):
    client, http, _ = env
    http.add(LAST, last_response(10))
    http.add(CAE, cae_response(11, result="R", cae="", expiry="", obs=[(10015, "DocNro invalido")]))

    result = client.authorize_voucher(invoice())

    assert result.outcome is AuthorizationOutcome.REJECTED
    assert result.authorization_code is None
    assert [o.code for o in result.observations] == [10015]
    with pytest.raises(BusinessRejection) as err:
        result.raise_for_outcome()
    assert err.value.result is result


def test_approved_with_observations_keeps_them(env):
    client, http, _ = env
    http.add(LAST, last_response(10))
    http.add(CAE, cae_response(11, obs=[(10217, "Observación informativa")]))
    result = client.authorize_voucher(invoice())
    assert result.approved
    assert result.observations[0].message == "Observación informativa"
    assert result.raise_for_outcome() is result


def test_outcome_precedence():
    assert resolve_outcome(["A", "A"]) is AuthorizationOutcome.APPROVED
    assert resolve_outcome(["A", "R"]) is AuthorizationOutcome.REJECTED
    assert resolve_outcome(["A", "P"]) is AuthorizationOutcome.PARTIALLY_APPROVED
    assert resolve_outcome([]) is AuthorizationOutcome.REJECTED


def test_token_error_is_auth_error_and_keeps_stored_ticket(env):
    client, http, auth = env
    http.add(LAST, wsfe("FECompUltimoAutorizado", wsfe_errors((600, "ValidacionDeToken: token expirado"))))
    http.add(LAST, wsfe("FECompUltimoAutorizado", "<PtoVta>1</PtoVta><CbteTipo>6</CbteTipo><CbteNro>10</CbteNro>"))
    with pytest.raises(AuthError):
        client.get_last_voucher(1, 6)
    assert client.tickets.repository.load("wsfe").token == "token-1"

    # WSAA keeps answering alreadyAuthenticated until its own ticket expires
    auth.error = TicketAlreadyValid("coe.alreadyAuthenticated")
    for _ in range(3):
        assert client.get_last_voucher(1, 6).last_voucher_number == 10
    assert auth.called == 1
    assert _text(_sent(http, LAST, -1), "Token") == "token-1"


def test_internal_error_is_network_error(env):
    client, http, _ = env
    http.add(LAST, wsfe("FECompUltimoAutorizado", wsfe_errors((501, "Error interno de base de datos"))))
    with pytest.raises(NetworkError):
        client.get_last_voucher(1, 6)


def test_soap_fault_is_remote_service_error(env):
    client, http, _ = env
    http.add(LAST, soap_fault("soap:Client", "Server was unable to read request"), 500)
    with pytest.raises(RemoteServiceError):
        client.get_last_voucher(1, 6)


def test_server_status_does_not_need_a_ticket(env):
    client, http, auth = env
    http.add(
        NS + "FEDummy",
        wsfe("FEDummy", "<AppServer>OK</AppServer><DbServer>OK</DbServer><AuthServer>OK</AuthServer>"),
    )
    status = client.get_server_status()
    assert status.healthy
    assert auth.called == 0
    assert _sent(http, NS + "FEDummy").xpath("count(//*[local-name()='Auth'])") == 0


def test_get_voucher(env):
    client, http, _ = env
    http.add(
        NS + "FECompConsultar",
        wsfe(
            "FECompConsultar",
            "<ResultGet><Concepto>1</Concepto><DocTipo>96</DocTipo><DocNro>30123456</DocNro>"
            "<CbteDesde>11</CbteDesde><CbteHasta>11</CbteHasta><CbteFch>20250115</CbteFch>"
            "<ImpTotal>121</ImpTotal><Resultado>A</Resultado><CodAutorizacion>12345678901234</CodAutorizacion>"
            "<EmisionTipo>CAE</EmisionTipo><FchVto>20251231</FchVto><PtoVta>1</PtoVta><CbteTipo>6</CbteTipo>"
            "</ResultGet>",
        ),
    )
    status = client.get_voucher(1, 6, 11)
    assert status.outcome is AuthorizationOutcome.APPROVED
    assert status.authorization_code == "12345678901234"
    assert status.total_amount == Decimal("121")
    assert status.receiver_tax_id == "30123456"
    assert _text(_sent(http, NS + "FECompConsultar"), "CbteNro") == "11"


def test_get_voucher_not_found(env):
    client, http, _ = env
    http.add(NS + "FECompConsultar", wsfe("FECompConsultar", wsfe_errors((602, "Sin Resultados"))))
    with pytest.raises(NotFoundError):
        client.get_voucher(1, 6, 999)


def test_sales_points(env):
    client, http, _ = env
    http.add(
        NS + "FEParamGetPtosVenta",
        wsfe(
            "FEParamGetPtosVenta",
            "<ResultGet>"
            "<PtoVenta><Nro>1</Nro><EmisionTipo>CAE - Factura en linea</EmisionTipo><Bloqueado>N</Bloqueado><FchBaja>NULL</FchBaja></PtoVenta>"
            "<PtoVenta><Nro>2</Nro><EmisionTipo>CAE</EmisionTipo><Bloqueado>S</Bloqueado><FchBaja>20240301</FchBaja></PtoVenta>"
            "</ResultGet>",
        ),
    )
    points = client.get_sales_points()
    assert [p.number for p in points] == [1, 2]
    assert points[0].active
    assert points[1].blocked and points[1].removed_on == date(2024, 3, 1)


def test_sales_points_empty(env):
    client, http, _ = env
    http.add(NS + "FEParamGetPtosVenta", wsfe("FEParamGetPtosVenta", wsfe_errors((602, "Sin Resultados"))))
    assert client.get_sales_points() == []


def test_parameter_tables(env):
    client, http, _ = env
    http.add(
        NS + "FEParamGetTiposCbte",
        wsfe(
            "FEParamGetTiposCbte",
            "<ResultGet><CbteTipo><Id>1</Id><Desc>Factura A</Desc><FchDesde>20100917</FchDesde><FchHasta>NULL</FchHasta></CbteTipo>"
            "<CbteTipo><Id>6</Id><Desc>Factura B</Desc><FchDesde>20100917</FchDesde><FchHasta>NULL</FchHasta></CbteTipo></ResultGet>",
        ),
    )
    http.add(
        NS + "FEParamGetCondicionIvaReceptor",
        wsfe(
            "FEParamGetCondicionIvaReceptor",
            "<ResultGet><CondicionIvaReceptor><Id>5</Id><Desc>Consumidor Final</Desc><Cmp_Clase>B</Cmp_Clase>"
            "</CondicionIvaReceptor></ResultGet>",
        ),
    )
    assert [(t.id, t.description) for t in client.get_voucher_types()] == [(1, "Factura A"), (6, "Factura B")]
    assert client.get_receiver_tax_conditions("B")[0].id == 5
    assert _text(_sent(http, NS + "FEParamGetCondicionIvaReceptor"), "ClaseCmp") == "B"
