from __future__ import annotations

from afip_invoicing.domain.errors import ValidationError

_WEIGHTS = (5, 4, 3, 2, 7, 6, 5, 4, 3, 2)


def check_digit(first_ten: str) -> int:
    total = sum(int(d) * w for d, w in zip(first_ten, _WEIGHTS))
    dv = 11 - total % 11
    if dv == 11:
        return 0
    if dv == 10:
        return 9
    return dv


class CUIT(str):
    """Value Object para CUIT/CUIL (11 dígitos con dígito verificador).

    Accepts the dashed form ("20-12345678-6") and normalizes to digits only.
    """

    def __new__(cls, value: str | int) -> "CUIT":
        digits = str(value).strip().replace("-", "")
        if not (digits.isdigit() and len(digits) == 11):
            raise ValidationError(f"CUIT inválido: {value!r} (se esperan 11 dígitos)")
        if check_digit(digits[:10]) != int(digits[10]):
            raise ValidationError(f"CUIT inválido: {value!r} (dígito verificador)")
        return str.__new__(cls, digits)

    @property
    def formatted(self) -> str:
        return f"{self[:2]}-{self[2:10]}-{self[10]}"
