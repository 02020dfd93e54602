"""AFIP code tables used by WSFEv1 and the taxpayer registry."""
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from enum import IntEnum

from afip_invoicing.domain.errors import ValidationError


class VoucherType(IntEnum):
    FACTURA_A = 1
    NOTA_DEBITO_A = 2
    NOTA_CREDITO_A = 3
    FACTURA_B = 6
    NOTA_DEBITO_B = 7
    NOTA_CREDITO_B = 8
    FACTURA_C = 11
    NOTA_DEBITO_C = 12
    NOTA_CREDITO_C = 13

    @property
    def letter(self) -> str:
        return self.name[-1]

    @property
    def is_class_c(self) -> bool:
        return self.letter == "C"

    @property
    def is_note(self) -> bool:
        return self.name.startswith("NOTA_")

    @classmethod
    def from_code(cls, code: str) -> "VoucherType":
        """Maps application codes ("A", "B_ND", "C_NC") to the AFIP type."""
        normalized = code.strip().upper()
        letter, _, kind = normalized.partition("_")
        prefix = {"": "FACTURA", "ND": "NOTA_DEBITO", "NC": "NOTA_CREDITO"}.get(kind)
        if prefix is None or letter not in ("A", "B", "C"):
            raise ValidationError(f"Tipo de comprobante no reconocido: {code}")
        return cls[f"{prefix}_{letter}"]


class Concept(IntEnum):
    PRODUCTS = 1
    SERVICES = 2
    PRODUCTS_AND_SERVICES = 3

    @property
    def requires_service_dates(self) -> bool:
        return self is not Concept.PRODUCTS

    @classmethod
    def from_name(cls, name: str) -> "Concept":
        aliases = {
            "productos": cls.PRODUCTS,
            "products": cls.PRODUCTS,
            "servicios": cls.SERVICES,
            "services": cls.SERVICES,
            "productos_servicios": cls.PRODUCTS_AND_SERVICES,
            "products_and_services": cls.PRODUCTS_AND_SERVICES,
        }
        try:
            return aliases[name.strip().lower()]
        except KeyError:
            raise ValidationError(f"Concepto no reconocido: {name}") from None


class DocumentType(IntEnum):
    CERTIFICADO_MIGRACION = 30
    CUIT = 80
    CUIL = 86
    CDI = 87
    LE = 89
    LC = 90
    CI_EXTRANJERA = 91
    EN_TRAMITE = 92
    ACTA_NACIMIENTO = 93
    PASAPORTE = 94
    CI_BS_AS = 95
    DNI = 96
    SIN_IDENTIFICAR = 99

    @classmethod
    def from_name(cls, name: str) -> "DocumentType":
        normalized = name.strip().upper()
        if normalized == "CI":
            return cls.CI_EXTRANJERA
        try:
            return cls[normalized]
        except KeyError:
            raise ValidationError(f"Tipo de documento no reconocido: {name}") from None


class TaxCondition(IntEnum):
    """Receiver VAT condition (RG 5616)."""

    RESPONSABLE_INSCRIPTO = 1
    RESPONSABLE_NO_INSCRIPTO = 2
    EXENTO = 3
    NO_RESPONSABLE = 4
    CONSUMIDOR_FINAL = 5
    RESPONSABLE_MONOTRIBUTO = 6
    NO_CATEGORIZADO = 7
    PROVEEDOR_EXTERIOR = 8
    CLIENTE_EXTERIOR = 9
    IVA_LIBERADO = 10
    AGENTE_PERCEPCION = 11
    PEQUENO_CONTRIBUYENTE_EVENTUAL = 12
    MONOTRIBUTISTA_SOCIAL = 13
    PEQUENO_CONTRIBUYENTE_EVENTUAL_SOCIAL = 14

    @property
    def description(self) -> str:
        return _CONDITION_DESCRIPTIONS[self]

    @classmethod
    def parse(cls, value: str | int) -> "TaxCondition":
        """Accepts a numeric code or a textual description."""
        text = str(value).strip()
        if text.isdigit():
            try:
                return cls(int(text))
            except ValueError:
                raise ValidationError(f"Condición IVA no reconocida: {value}") from None
        normalized = text.upper().replace(" ", "_").replace("Ñ", "N").replace("INSCRITO", "INSCRIPTO")
        normalized = _CONDITION_ALIASES.get(normalized, normalized)
        try:
            return cls[normalized]
        except KeyError:
            raise ValidationError(f"Condición IVA no reconocida: {value}") from None


_CONDITION_DESCRIPTIONS = {
    TaxCondition.RESPONSABLE_INSCRIPTO: "IVA Responsable Inscripto",
    TaxCondition.RESPONSABLE_NO_INSCRIPTO: "IVA Responsable no Inscripto",
    TaxCondition.EXENTO: "IVA Sujeto Exento",
    TaxCondition.NO_RESPONSABLE: "IVA no Responsable",
    TaxCondition.CONSUMIDOR_FINAL: "Consumidor Final",
    TaxCondition.RESPONSABLE_MONOTRIBUTO: "Responsable Monotributo",
    TaxCondition.NO_CATEGORIZADO: "Sujeto no Categorizado",
    TaxCondition.PROVEEDOR_EXTERIOR: "Proveedor del Exterior",
    TaxCondition.CLIENTE_EXTERIOR: "Cliente del Exterior",
    TaxCondition.IVA_LIBERADO: "IVA Liberado - Ley Nº 19.640",
    TaxCondition.AGENTE_PERCEPCION: "IVA Responsable Inscripto - Agente de Percepción",
    TaxCondition.PEQUENO_CONTRIBUYENTE_EVENTUAL: "Pequeño Contribuyente Eventual",
    TaxCondition.MONOTRIBUTISTA_SOCIAL: "Monotributista Social",
    TaxCondition.PEQUENO_CONTRIBUYENTE_EVENTUAL_SOCIAL: "Pequeño Contribuyente Eventual Social",
}

_CONDITION_ALIASES = {
    "MONOTRIBUTO": "RESPONSABLE_MONOTRIBUTO",
    "MONOTRIBUTISTA": "RESPONSABLE_MONOTRIBUTO",
    "MONO_TRIBUTO": "RESPONSABLE_MONOTRIBUTO",
    "MONO_TRIBUTISTA_SOCIAL": "MONOTRIBUTISTA_SOCIAL",
    "LIBERADO": "IVA_LIBERADO",
    "AGENTE_DE_PERCEPCION": "AGENTE_PERCEPCION",
}

# Alícuota (%) -> Id AFIP
VAT_RATE_IDS: dict[Decimal, int] = {
    Decimal("0"): 3,
    Decimal("2.5"): 9,
    Decimal("5"): 8,
    Decimal("10.5"): 4,
    Decimal("21"): 5,
    Decimal("27"): 6,
}

VAT_RATES_BY_ID: dict[int, Decimal] = {v: k for k, v in VAT_RATE_IDS.items()}


def vat_rate_id(rate: Decimal | float | str) -> int:
    try:
        return VAT_RATE_IDS[Decimal(str(rate)).normalize()]
    except KeyError:
        raise ValidationError(f"Alícuota de IVA no reconocida: {rate}") from None


def vat_amount(net: Decimal | float | str, rate: Decimal | float | str) -> Decimal:
    value = Decimal(str(net)) * Decimal(str(rate)) / 100
    return value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def voucher_letter_for(issuer: TaxCondition, receiver: TaxCondition) -> str:
    """Letter an issuer must use for a receiver.

    Non registered issuers (monotributo, exento) always issue C. Registered
    issuers issue A to registered receivers and B to everyone else.
    """
    if issuer is not TaxCondition.RESPONSABLE_INSCRIPTO:
        return "C"
    if receiver is TaxCondition.RESPONSABLE_INSCRIPTO:
        return "A"
    return "B"


def barcode_check_digit(code: str) -> int:
    total = 0
    weight = 2
    for digit in reversed(code):
        total += int(digit) * weight
        weight = 7 if weight == 2 else 2
    dv = 11 - total % 11
    if dv == 11:
        return 0
    if dv == 10:
        return 1
    return dv


def barcode_for(
    issuer_cuit: str,
    voucher_type: VoucherType | int,
    sales_point: int,
    authorization_code: str,
    authorization_expiry: str,
) -> str:
    """Printable barcode: CUIT + type(3) + sales point(5) + CAE + expiry(YYYYMMDD) + check digit."""
    body = (
        "".join(ch for ch in issuer_cuit if ch.isdigit())
        + f"{int(voucher_type):03d}"
        + f"{sales_point:05d}"
        + "".join(ch for ch in authorization_code if ch.isdigit())
        + authorization_expiry.replace("-", "")
    )
    return body + str(barcode_check_digit(body))
