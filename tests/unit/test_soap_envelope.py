from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest
from lxml import etree

from afip_invoicing.domain.errors import ParseError
from afip_invoicing.infrastructure.adapters.soap.envelope import (
    SoapFault,
    SoapRequest,
    format_value,
    parse_response,
)
from tests.unit._fakes import soap, soap_fault


def test_format_value():
    assert format_value(Decimal("121")) == "121.00"
    assert format_value(Decimal("0.005")) == "0.01"
    assert format_value(10.5) == "10.50"
    assert format_value(date(2025, 1, 15)) == "20250115"
    assert format_value(7) == "7"
    assert format_value(True) == "true"


def test_values_are_escaped_by_the_serializer():
    req = SoapRequest("urn:test", "Op")
    req.add(req.operation, "Desc", "Percepción <IIBB> & otros")
    root = etree.fromstring(req.to_bytes())
    assert root.xpath("string(//*[local-name()='Desc'])") == "Percepción <IIBB> & otros"


def test_unqualified_children():
    req = SoapRequest("urn:test", "Op", qualified=False)
    req.add_fields(req.operation, {"token": "t", "skipped": None})
    root = etree.fromstring(req.to_bytes())
    op = root.xpath("//*[local-name()='Op']")[0]
    assert etree.QName(op).namespace == "urn:test"
    assert [c.tag for c in op] == ["token"]


def test_parse_response_returns_first_body_element():
    result = parse_response(soap("<OpResponse><x>1</x></OpResponse>").encode())
    assert etree.QName(result).localname == "OpResponse"


def test_parse_response_raises_fault():
    with pytest.raises(SoapFault) as err:
        parse_response(soap_fault("ns1:cms.bad", "firma invalida").encode())
    assert err.value.local_code == "cms.bad"
    assert err.value.message == "firma invalida"


@pytest.mark.parametrize("payload", [b"<<<", b"<root/>", soap("").encode()])
def test_parse_response_rejects_unexpected_shapes(payload):
    with pytest.raises(ParseError) as err:
        parse_response(payload)
    assert err.value.raw == payload
