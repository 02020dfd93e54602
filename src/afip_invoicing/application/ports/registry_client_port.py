from __future__ import annotations

from typing import Protocol

from afip_invoicing.domain.entities.taxpayer import TaxpayerRecord


class RegistryClientPort(Protocol):
    def lookup(self, tax_id: str) -> TaxpayerRecord:
        """Raises ValidationError for malformed ids and NotFoundError for unknown ones."""
        ...
