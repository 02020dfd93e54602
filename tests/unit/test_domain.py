from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from afip_invoicing.domain.entities.access_ticket import AccessTicket
from afip_invoicing.domain.entities.invoice import AuthorizationOutcome, InvoiceRequest, TaxAmount
from afip_invoicing.domain.errors import ValidationError
from afip_invoicing.domain.value_objects.codes import (
    Concept,
    DocumentType,
    TaxCondition,
    VoucherType,
    barcode_check_digit,
    barcode_for,
    vat_amount,
    vat_rate_id,
    voucher_letter_for,
)
from afip_invoicing.domain.value_objects.cuit import CUIT


def request(**overrides) -> InvoiceRequest:
    fields = dict(
        voucher_type=VoucherType.FACTURA_A,
        sales_point=1,
        concept=Concept.PRODUCTS,
        receiver_doc_type=DocumentType.CUIT,
        receiver_tax_id="30712345671",
        receiver_tax_condition=TaxCondition.RESPONSABLE_INSCRIPTO,
        net_amounts=["100.00"],
        tax_amounts=[TaxAmount(5, "100.00", "21.00")],
        total_amount="121.00",
        issue_date=date(2025, 1, 15),
    )
    fields.update(overrides)
    return InvoiceRequest(**fields)


def test_cuit_accepts_dashes_and_validates_check_digit():
    assert CUIT("20-12345678-6") == "20123456786"
    assert CUIT("33693450239").formatted == "33-69345023-9"
    with pytest.raises(ValidationError):
        CUIT("123")
    with pytest.raises(ValidationError):
        CUIT("20123456787")


def test_voucher_codes():
    assert VoucherType.from_code("a") is VoucherType.FACTURA_A
    assert VoucherType.from_code("B_NC") is VoucherType.NOTA_CREDITO_B
    assert VoucherType.from_code("C_ND") == 12
    assert VoucherType.NOTA_CREDITO_C.is_class_c and VoucherType.NOTA_CREDITO_C.is_note
    with pytest.raises(ValidationError):
        VoucherType.from_code("E")


def test_tax_condition_parsing():
    assert TaxCondition.parse("5") is TaxCondition.CONSUMIDOR_FINAL
    assert TaxCondition.parse("Responsable Inscripto") is TaxCondition.RESPONSABLE_INSCRIPTO
    assert TaxCondition.parse("monotributista") is TaxCondition.RESPONSABLE_MONOTRIBUTO
    assert TaxCondition.parse("PEQUEÑO_CONTRIBUYENTE_EVENTUAL") is TaxCondition.PEQUENO_CONTRIBUYENTE_EVENTUAL
    with pytest.raises(ValidationError):
        TaxCondition.parse("99")
    with pytest.raises(ValidationError):
        TaxCondition.parse("jubilado")


def test_document_and_concept_names():
    assert DocumentType.from_name("dni") is DocumentType.DNI
    assert DocumentType.from_name("CI") is DocumentType.CI_EXTRANJERA
    assert Concept.from_name("servicios") is Concept.SERVICES
    assert Concept.PRODUCTS_AND_SERVICES.requires_service_dates


def test_vat_rates():
    assert vat_rate_id(21) == 5
    assert vat_rate_id("10.5") == 4
    assert vat_rate_id(Decimal("0.00")) == 3
    assert vat_amount("33.33", "10.5") == Decimal("3.50")
    with pytest.raises(ValidationError):
        vat_rate_id(19)


@pytest.mark.parametrize(
    "issuer, receiver, letter",
    [
        (TaxCondition.RESPONSABLE_INSCRIPTO, TaxCondition.RESPONSABLE_INSCRIPTO, "A"),
        (TaxCondition.RESPONSABLE_INSCRIPTO, TaxCondition.CONSUMIDOR_FINAL, "B"),
        (TaxCondition.RESPONSABLE_INSCRIPTO, TaxCondition.RESPONSABLE_MONOTRIBUTO, "B"),
        (TaxCondition.RESPONSABLE_MONOTRIBUTO, TaxCondition.RESPONSABLE_INSCRIPTO, "C"),
        (TaxCondition.EXENTO, TaxCondition.CONSUMIDOR_FINAL, "C"),
    ],
)
def test_voucher_letter(issuer, receiver, letter):
    assert voucher_letter_for(issuer, receiver) == letter


def test_barcode():
    assert barcode_check_digit("12") == 0
    assert barcode_check_digit("1") == 9
    assert barcode_check_digit("6") == 1
    code = barcode_for("20-12345678-6", VoucherType.FACTURA_B, 1, "12345678901234", "20251231")
    assert code.startswith("20123456786" + "006" + "00001" + "12345678901234" + "20251231")
    assert len(code) == 42
    assert int(code[-1]) == barcode_check_digit(code[:-1])


def test_valid_request_has_no_problems():
    req = request()
    assert req.validate() == []
    assert req.total_amount == Decimal("121.00")
    assert req.computed_total == Decimal("121.00")


def test_total_tolerance_is_one_cent():
    assert request(total_amount="121.01").validate() == []
    assert request(total_amount="121.02").validate()


def test_invalid_request_reports_every_problem():
    problems = request(
        sales_point=0,
        tax_amounts=[],
        total_amount="0",
        net_amounts=["0"],
        concept=Concept.SERVICES,
    ).validate()
    text = " | ".join(problems)
    assert "Punto de venta" in text
    assert "mayor a 0" in text
    assert "tipo A requiere detalle de IVA" in text
    assert "Servicios requieren" in text


def test_unknown_vat_rate_id():
    assert any("alícuota" in p for p in request(tax_amounts=[TaxAmount(42, "100", "21")]).validate())


def test_service_dates_order():
    problems = request(
        concept=Concept.SERVICES,
        service_from=date(2025, 2, 1),
        service_to=date(2025, 1, 1),
        payment_due=date(2025, 2, 10),
    ).validate()
    assert problems == ["Fecha de servicio desde posterior a fecha hasta"]


def test_outcome_codes():
    assert AuthorizationOutcome.from_code("A") is AuthorizationOutcome.APPROVED
    assert AuthorizationOutcome.from_code("p") is AuthorizationOutcome.PARTIALLY_APPROVED
    assert AuthorizationOutcome.from_code(None) is AuthorizationOutcome.REJECTED


def test_access_ticket_requires_aware_expiration_and_hides_credentials():
    with pytest.raises(ValueError):
        AccessTicket("wsfe", "t", "s", datetime(2025, 1, 1))
    ticket = AccessTicket("wsfe", "secret-token", "secret-sign", datetime(2025, 1, 1, tzinfo=timezone.utc))
    assert "secret" not in repr(ticket)
