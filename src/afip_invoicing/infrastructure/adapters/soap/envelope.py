"""SOAP 1.1 envelope building and parsing on top of lxml.

Requests are assembled as element trees (never string templates) so every
value is escaped by the serializer. Responses are read by local name, which
keeps the parsing independent of the prefixes each AFIP service picks.
"""
from __future__ import annotations

from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from lxml import etree

from afip_invoicing.domain.errors import ParseError

SOAP_ENV_NS = "http://schemas.xmlsoap.org/soap/envelope/"
_CENTS = Decimal("0.01")

_PARSER = etree.XMLParser(resolve_entities=False, no_network=True, huge_tree=False)


class SoapFault(Exception):
    """soap:Fault returned by the remote service. Callers map it to a domain error."""

    def __init__(self, code: str, message: str, raw: bytes | None = None) -> None:
        super().__init__(f"{code}: {message}")
        self.code = code
        self.message = message
        self.raw = raw

    @property
    def local_code(self) -> str:
        """Fault code without its namespace prefix, e.g. 'coe.alreadyAuthenticated'."""
        return self.code.rsplit(":", 1)[-1]


def format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Decimal):
        return str(value.quantize(_CENTS, rounding=ROUND_HALF_UP))
    if isinstance(value, float):
        return str(Decimal(str(value)).quantize(_CENTS, rounding=ROUND_HALF_UP))
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, date):
        return value.strftime("%Y%m%d")
    return str(value)


class SoapRequest:
    """Envelope with a single operation element inside the Body.

    Args:
        namespace: target namespace of the operation.
        operation: operation element name (e.g. 'FECAESolicitar').
        prefix: prefix bound to the namespace in the serialized document.
        qualified: whether child elements belong to the namespace. Services
            generated with elementFormDefault="unqualified" expect bare names.
    """

    def __init__(self, namespace: str, operation: str, *, prefix: str = "ns", qualified: bool = True) -> None:
        self.namespace = namespace
        self.qualified = qualified
        self.envelope = etree.Element(
            f"{{{SOAP_ENV_NS}}}Envelope", nsmap={"soapenv": SOAP_ENV_NS, prefix: namespace}
        )
        etree.SubElement(self.envelope, f"{{{SOAP_ENV_NS}}}Header")
        body = etree.SubElement(self.envelope, f"{{{SOAP_ENV_NS}}}Body")
        self.operation = etree.SubElement(body, f"{{{namespace}}}{operation}")

    def add(self, parent: etree._Element, name: str, value: Any = None) -> etree._Element:
        tag = f"{{{self.namespace}}}{name}" if self.qualified else name
        element = etree.SubElement(parent, tag)
        if value is not None:
            element.text = format_value(value)
        return element

    def add_fields(self, parent: etree._Element, fields: dict[str, Any]) -> etree._Element:
        """Adds one child per entry, skipping None values."""
        for name, value in fields.items():
            if value is not None:
                self.add(parent, name, value)
        return parent

    def to_bytes(self) -> bytes:
        return etree.tostring(self.envelope, xml_declaration=True, encoding="UTF-8")


def parse_xml(content: bytes | str) -> etree._Element:
    if isinstance(content, str):
        content = content.encode("utf-8")
    try:
        return etree.fromstring(content, parser=_PARSER)
    except (etree.XMLSyntaxError, ValueError) as exc:
        raise ParseError(f"response is not well-formed XML: {exc}", raw=content) from exc


def parse_response(content: bytes) -> etree._Element:
    """Returns the first element inside soap:Body.

    Raises:
        SoapFault: the Body carries a soap:Fault.
        ParseError: the payload is not a SOAP envelope.
    """
    root = parse_xml(content)
    body = find(root, "Body")
    if body is None:
        raise ParseError("response has no SOAP Body", raw=content)
    fault = find(body, "Fault")
    if fault is not None:
        raise SoapFault(
            find_text(fault, "faultcode") or "Server",
            find_text(fault, "faultstring") or "",
            raw=content,
        )
    children = [c for c in body if isinstance(c.tag, str)]
    if not children:
        raise ParseError("SOAP Body is empty", raw=content)
    return children[0]


def find(node: etree._Element, name: str) -> etree._Element | None:
    """First descendant with the given local name, at any depth."""
    found = node.xpath(".//*[local-name()=$name]", name=name)
    return found[0] if found else None


def find_all(node: etree._Element, name: str) -> list[etree._Element]:
    return list(node.xpath(".//*[local-name()=$name]", name=name))


def child(node: etree._Element, name: str) -> etree._Element | None:
    """Direct child with the given local name."""
    found = node.xpath("./*[local-name()=$name]", name=name)
    return found[0] if found else None


def find_text(node: etree._Element | None, name: str, default: str | None = None) -> str | None:
    if node is None:
        return default
    element = find(node, name)
    if element is None or element.text is None:
        return default
    return element.text.strip()


def child_text(node: etree._Element | None, name: str, default: str | None = None) -> str | None:
    if node is None:
        return default
    element = child(node, name)
    if element is None or element.text is None:
        return default
    return element.text.strip()
