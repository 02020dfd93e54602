from __future__ import annotations

import logging
from pathlib import Path

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.hazmat.primitives.serialization import pkcs7

from afip_invoicing.application.ports.signer_port import SignerPort
from afip_invoicing.domain.errors import SigningError

logger = logging.getLogger(__name__)


def _public_der(key) -> bytes:
    return key.public_bytes(
        serialization.Encoding.DER, serialization.PublicFormat.SubjectPublicKeyInfo
    )


class CmsSigner(SignerPort):
    """PKCS#7/CMS SignedData signer (SHA-256, content embedded, DER output).

    Loads the X.509 certificate and private key once, on construction, and
    checks that they belong together.
    """

    def __init__(self, cert_pem: bytes, key_pem: bytes, *, passphrase: str | None = None) -> None:
        try:
            self._cert = x509.load_pem_x509_certificate(cert_pem)
        except ValueError as exc:
            raise SigningError(f"certificate could not be loaded: {exc}") from exc
        try:
            self._key = serialization.load_pem_private_key(
                key_pem, password=passphrase.encode() if passphrase else None
            )
        except (ValueError, TypeError) as exc:
            raise SigningError(f"private key could not be loaded: {exc}") from exc
        if not isinstance(self._key, (rsa.RSAPrivateKey, ec.EllipticCurvePrivateKey)):
            raise SigningError(f"unsupported private key type: {type(self._key).__name__}")
        if _public_der(self._key.public_key()) != _public_der(self._cert.public_key()):
            raise SigningError("private key does not match the certificate")

    @classmethod
    def from_files(cls, cert_path: str | Path, key_path: str | Path, *, passphrase: str | None = None) -> "CmsSigner":
        try:
            cert_pem = Path(cert_path).read_bytes()
            key_pem = Path(key_path).read_bytes()
        except OSError as exc:
            raise SigningError(f"could not read certificate or key: {exc}") from exc
        return cls(cert_pem, key_pem, passphrase=passphrase)

    @property
    def certificate_subject(self) -> str:
        return self._cert.subject.rfc4514_string()

    def sign(self, document: bytes) -> bytes:
        try:
            signed = (
                pkcs7.PKCS7SignatureBuilder()
                .set_data(document)
                .add_signer(self._cert, self._key, hashes.SHA256())
                .sign(serialization.Encoding.DER, [pkcs7.PKCS7Options.Binary])
            )
        except (ValueError, TypeError) as exc:
            raise SigningError(f"CMS signing failed: {exc}") from exc
        logger.debug("signed %d bytes with %s", len(document), self.certificate_subject)
        return signed
