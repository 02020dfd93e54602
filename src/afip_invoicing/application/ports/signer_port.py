from __future__ import annotations

from typing import Protocol


class SignerPort(Protocol):
    def sign(self, document: bytes) -> bytes:
        """Returns a DER encoded CMS SignedData embedding the document. Raises SigningError."""
        ...
