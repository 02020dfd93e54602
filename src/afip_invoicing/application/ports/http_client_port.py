from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol


class HttpResponse:
    def __init__(
        self,
        status_code: int,
        content: bytes,
        url: str,
        headers: Mapping[str, str],
        *,
        raw: Any | None = None,
    ) -> None:
        self.status_code = status_code
        self.content = content
        self.url = url
        self.headers = dict(headers)
        self._raw = raw

    @property
    def is_server_error(self) -> bool:
        return self.status_code >= 500


class HttpClientPort(Protocol):
    """Minimal synchronous HTTP transport used to exchange SOAP envelopes.

    Implementations raise NetworkError on timeouts and connection failures and
    return 4xx/5xx responses as-is (SOAP faults travel with status 500).
    """

    def post(self, url: str, *, content: bytes, headers: Mapping[str, str] | None = None) -> HttpResponse: ...
