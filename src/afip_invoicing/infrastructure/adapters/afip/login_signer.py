from __future__ import annotations

import base64
import logging
from datetime import datetime, timedelta, timezone

from lxml import etree

from afip_invoicing.application.ports.signer_port import SignerPort

logger = logging.getLogger(__name__)

ARGENTINA_TZ = timezone(timedelta(hours=-3))
DEFAULT_WINDOW = timedelta(minutes=10)


def build_login_ticket_request(service: str, now: datetime, window: timedelta = DEFAULT_WINDOW) -> bytes:
    """Builds the loginTicketRequest (TRA) document for a WSAA login.

    uniqueId is derived from the current epoch second. The validity window is
    now +- window: generationTime is backdated so a local clock slightly ahead
    of WSAA does not produce a request from the future. Both timestamps carry
    the Argentina offset, which is what WSAA compares against.
    """
    if now.tzinfo is None:
        raise ValueError("now must be timezone-aware")
    local_now = now.astimezone(ARGENTINA_TZ).replace(microsecond=0)
    generation = local_now - window
    expiration = local_now + window

    root = etree.Element("loginTicketRequest", version="1.0")
    header = etree.SubElement(root, "header")
    etree.SubElement(header, "uniqueId").text = str(int(now.timestamp()))
    etree.SubElement(header, "generationTime").text = generation.isoformat()
    etree.SubElement(header, "expirationTime").text = expiration.isoformat()
    etree.SubElement(root, "service").text = service
    return etree.tostring(root, xml_declaration=True, encoding="UTF-8")


class LoginSigner:
    """Produces the base64 CMS that WSAA's loginCms expects as in0."""

    def __init__(self, signer: SignerPort, *, window: timedelta = DEFAULT_WINDOW) -> None:
        self.signer = signer
        self.window = window

    def signed_request(self, service: str, now: datetime | None = None) -> str:
        now = now or datetime.now(timezone.utc)
        tra = build_login_ticket_request(service, now, self.window)
        cms = self.signer.sign(tra)
        logger.debug("signed login ticket request for %s (%d bytes CMS)", service, len(cms))
        return base64.b64encode(cms).decode("ascii")
