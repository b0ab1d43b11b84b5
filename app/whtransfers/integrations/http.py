from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urljoin

import requests
from requests.adapters import HTTPAdapter

from app.whtransfers.core.config import settings
from app.whtransfers.integrations.exceptions import IntegrationError, TransportError

logger = logging.getLogger(__name__)


@dataclass
class HttpTransport:
    """JSON over HTTP with bounded retries.

    GET/HEAD requests are retried on transport errors and 5xx answers. Other
    methods are retried only when the caller marks them replay-safe, for
    example a mutation that carries an idempotency key.
    """

    base_url: str
    headers: dict[str, str] = field(default_factory=dict)
    error_cls: type[IntegrationError] = IntegrationError
    connect_timeout_seconds: float = settings.HTTP_CONNECT_TIMEOUT_SECONDS
    read_timeout_seconds: float = settings.HTTP_READ_TIMEOUT_SECONDS
    retries: int = settings.HTTP_RETRIES
    retry_backoff_seconds: float = settings.HTTP_RETRY_BACKOFF_SECONDS
    session: requests.Session | None = None

    def __post_init__(self) -> None:
        if self.session is None:
            self.session = requests.Session()
            adapter = HTTPAdapter(pool_connections=4, pool_maxsize=8)
            self.session.mount("http://", adapter)
            self.session.mount("https://", adapter)

    def _build_url(self, path: str) -> str:
        base = self.base_url.rstrip("/") + "/"
        return urljoin(base, path.lstrip("/"))

    def request(
        self,
        method: str,
        path: str,
        *,
        json_body: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        retry_mutation: bool = False,
    ) -> Any:
        normalized_method = method.upper()
        url = self._build_url(path)
        request_headers = {"Accept": "application/json", **self.headers}
        can_retry = normalized_method in {"GET", "HEAD"} or retry_mutation
        attempts = self.retries + 1 if can_retry else 1

        response: requests.Response | None = None
        for attempt in range(attempts):
            try:
                response = self.session.request(
                    method=normalized_method,
                    url=url,
                    headers=request_headers,
                    json=json_body,
                    params=params,
                    timeout=(self.connect_timeout_seconds, self.read_timeout_seconds),
                )
            except requests.RequestException as exc:
                if attempt >= attempts - 1:
                    raise TransportError(
                        code="TRANSPORT_ERROR",
                        message=str(exc),
                        status_code=0,
                        raw_payload={"type": type(exc).__name__, "url": url},
                    ) from exc
                logger.warning("http retry %s %s after %s", normalized_method, url, type(exc).__name__)
            else:
                if response.status_code < 500 or attempt >= attempts - 1:
                    break
                logger.warning("http retry %s %s after status %s", normalized_method, url, response.status_code)
            time.sleep(self.retry_backoff_seconds * (2**attempt))

        if response.ok:
            if not response.content:
                return None
            try:
                return response.json()
            except json.JSONDecodeError as exc:
                raise self.error_cls(
                    code="INVALID_JSON",
                    message="response body is not JSON",
                    status_code=response.status_code,
                    raw_payload=response.text[:800],
                ) from exc

        try:
            payload = response.json()
        except json.JSONDecodeError:
            payload = {"message": response.text[:800]}
        raise self.error_cls(
            code=f"HTTP_{response.status_code}",
            message=f"{normalized_method} {url} failed with status {response.status_code}",
            status_code=response.status_code,
            raw_payload=payload,
        )
