from prometheus_client import CollectorRegistry, Counter

registry = CollectorRegistry()

AUTHORIZATIONS = Counter(
    "afip_voucher_authorizations_total",
    "Voucher authorization requests by outcome",
    ["outcome"],
    registry=registry,
)
ERRORS = Counter(
    "afip_errors_total",
    "Integration errors surfaced to API callers, by kind",
    ["kind"],
    registry=registry,
)
