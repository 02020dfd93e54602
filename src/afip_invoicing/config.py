from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from dotenv import load_dotenv

# Load .env if present
load_dotenv()


def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    afip_cuit: str = os.getenv("AFIP_CUIT", "")
    cert_path: str = os.getenv("AFIP_CERT_PATH", "certs/afip.crt")
    key_path: str = os.getenv("AFIP_KEY_PATH", "certs/afip.key")
    key_passphrase: str | None = os.getenv("AFIP_KEY_PASSPHRASE") or None
    production: bool = _flag("AFIP_PRODUCTION")
    http_timeout: float = float(os.getenv("HTTP_TIMEOUT", "30"))
    ticket_db_path: str = os.getenv("TICKET_DB_PATH", ".afip_tickets.sqlite")
    ticket_margin_minutes: int = int(os.getenv("TICKET_MARGIN_MINUTES", "10"))
    login_ticket_ttl_minutes: int = int(os.getenv("LOGIN_TICKET_TTL_MINUTES", "10"))
    default_sales_point: int = int(os.getenv("AFIP_SALES_POINT", "1"))
    log_level: str = os.getenv("LOG_LEVEL", "INFO")


settings = Settings()


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
