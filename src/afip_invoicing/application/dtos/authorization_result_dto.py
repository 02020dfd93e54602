from dataclasses import dataclass

from afip_invoicing.domain.entities.invoice import AuthorizationResult, VoucherStatus


@dataclass(frozen=True)
class AuthorizationResultDTO:
    sales_point: int
    voucher_type: int
    voucher_number: int
    outcome: str
    authorization_code: str | None
    authorization_expiry: str | None
    observations: list[dict[str, object]]
    errors: list[dict[str, object]]
    events: list[dict[str, object]]
    barcode: str | None = None

    @classmethod
    def from_domain(cls, res: AuthorizationResult, barcode: str | None = None) -> "AuthorizationResultDTO":
        return cls(
            sales_point=res.sales_point,
            voucher_type=res.voucher_type,
            voucher_number=res.assigned_voucher_number,
            outcome=res.outcome.value,
            authorization_code=res.authorization_code,
            authorization_expiry=res.authorization_expiry,
            observations=[{"code": m.code, "message": m.message} for m in res.observations],
            errors=[{"code": m.code, "message": m.message} for m in res.errors],
            events=[{"code": m.code, "message": m.message} for m in res.events],
            barcode=barcode,
        )


@dataclass(frozen=True)
class VoucherStatusDTO:
    sales_point: int
    voucher_type: int
    voucher_number: int
    outcome: str
    authorization_code: str | None
    authorization_expiry: str | None
    issue_date: str | None
    total_amount: str | None
    receiver_tax_id: str | None

    @classmethod
    def from_domain(cls, st: VoucherStatus) -> "VoucherStatusDTO":
        return cls(
            sales_point=st.sales_point,
            voucher_type=st.voucher_type,
            voucher_number=st.voucher_number,
            outcome=st.outcome.value,
            authorization_code=st.authorization_code,
            authorization_expiry=st.authorization_expiry,
            issue_date=st.issue_date,
            total_amount=str(st.total_amount) if st.total_amount is not None else None,
            receiver_tax_id=st.receiver_tax_id,
        )
