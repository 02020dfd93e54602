from __future__ import annotations

import logging
from typing import Mapping

import httpx

from afip_invoicing.application.ports.http_client_port import HttpClientPort, HttpResponse
from afip_invoicing.domain.errors import NetworkError

logger = logging.getLogger(__name__)


class HttpxClient(HttpClientPort):
    def __init__(self, timeout: float = 30.0, *, verify: bool = True) -> None:
        """HTTP transport backed by a persistent httpx.Client.

        - One connection pool shared by every SOAP client
        - Fixed timeout on every request; no retries at this level
        - Error statuses are returned, not raised, since SOAP faults come back as 500

        Args:
            timeout (float, optional): Timeout for requests in seconds. Defaults to 30.0.
            verify (bool, optional): Verify TLS certificates. Defaults to True.
        """
        self._timeout = timeout
        self._client = httpx.Client(
            timeout=timeout,
            verify=verify,
            headers={"User-Agent": "afip-invoicing/0.1 httpx"},
        )

    def post(self, url: str, *, content: bytes, headers: Mapping[str, str] | None = None) -> HttpResponse:
        """Posts a raw body to the given URL.

        Args:
            url (str): URL to post to.
            content (bytes): Request body.
            headers (Mapping[str, str] | None, optional): Headers to include. Defaults to None.

        Returns:
            HttpResponse: Response from the server, whatever its status.

        Raises:
            NetworkError: On timeout or connection failure.
        """
        try:
            resp = self._client.post(url, content=content, headers=headers)
        except httpx.TimeoutException as e:
            logger.warning("POST %s timed out after %ss", url, self._timeout)
            raise NetworkError(f"POST {url} timed out after {self._timeout}s") from e
        except httpx.HTTPError as e:
            logger.warning("POST %s failed: %s", url, e)
            raise NetworkError(f"POST {url} failed: {e}") from e
        logger.debug("POST %s -> %s", url, resp.status_code)
        return HttpResponse(resp.status_code, resp.content, str(resp.url), resp.headers, raw=resp)

    def close(self) -> None:
        self._client.close()
