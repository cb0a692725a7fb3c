"""
Shared HTTP utilities for store adapters.

The helper is a thin asynchronous HTTPX wrapper. Each call opens a client
bound to the base URL, sends exactly one logical request and maps every
failure onto the :class:`APIError` taxonomy:

* :class:`RequestBuildError`: the request could not be built, no I/O happened.
* :class:`TransportError`: connection, timeout or protocol failure.
* :class:`RemoteStatusError`: the server answered with a non-2xx status.
* :class:`ResponseDecodeError`: the body is not the JSON we expected.
* :class:`QueryCancelledError`: the caller's deadline expired.

Retries are opt-in per call and only cover transport failures.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from logging import LoggerAdapter
from typing import Any, Mapping, MutableMapping, Optional

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from ...core.logging import get_logger
from ..base import AdapterError

DEFAULT_TIMEOUT = 30.0


class APIError(AdapterError):
    """Raised when an HTTP API call fails."""


class RequestBuildError(APIError):
    """Raised when a request cannot be constructed (bad URL, unserialisable body)."""


class TransportError(APIError):
    """Raised when the request could not be delivered or the connection failed."""


class RemoteStatusError(APIError):
    """Raised when the remote store answers with a non-2xx status."""

    def __init__(self, message: str, *, status_code: int, body: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class ResponseDecodeError(APIError):
    """Raised when a response body cannot be decoded into the expected shape."""


class QueryCancelledError(APIError):
    """Raised when a batch exceeds the deadline of its query context."""


@dataclass(slots=True)
class BaseAPIClient:
    """
    Base asynchronous HTTP client.

    Parameters
    ----------
    base_url:
        Root URL for the upstream service. Request paths are appended to it.
    timeout:
        Request timeout in seconds.
    default_headers:
        Headers automatically attached to every request.
    auth:
        Optional HTTPX auth, e.g. :class:`httpx.BasicAuth`.
    transport:
        Optional transport override, used by tests to simulate the store.
    """

    base_url: str
    timeout: float = DEFAULT_TIMEOUT
    default_headers: MutableMapping[str, str] = field(default_factory=dict)
    auth: Optional[httpx.Auth] = field(default=None, repr=False)
    transport: Optional[httpx.AsyncBaseTransport] = field(default=None, repr=False)
    logger: LoggerAdapter = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.logger = get_logger(
            f"{self.__class__.__module__}.{self.__class__.__name__}",
            extra={"base_url": self.base_url},
        )

    def _build_client(self) -> httpx.AsyncClient:
        try:
            return httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers=dict(self.default_headers),
                auth=self.auth,
                transport=self.transport,
                follow_redirects=True,
            )
        except (httpx.InvalidURL, TypeError, ValueError) as exc:
            raise RequestBuildError(f"Failed to create HTTP client for base URL '{self.base_url}': {exc}") from exc

    @staticmethod
    def _build_request(client: httpx.AsyncClient, method: str, url: str, **kwargs: Any) -> httpx.Request:
        try:
            return client.build_request(method, url, **kwargs)
        except (httpx.InvalidURL, TypeError, ValueError) as exc:
            raise RequestBuildError(f"Failed to create request {method} {url}: {exc}") from exc

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise RemoteStatusError(
                f"Request failed with HTTP {exc.response.status_code} for {exc.request.method} {exc.request.url}: {exc.response.text}",
                status_code=exc.response.status_code,
                body=exc.response.text,
            ) from exc

    async def _request(self, method: str, url: str, *, attempts: int = 1, **kwargs: Any) -> httpx.Response:
        self.logger.debug(
            "HTTP request",
            extra={"method": method, "url": url, "params": kwargs.get("params")},
        )

        @retry(
            retry=retry_if_exception_type(httpx.TransportError),
            wait=wait_exponential(multiplier=1, min=1, max=8),
            stop=stop_after_attempt(max(1, attempts)),
            reraise=True,
        )
        async def _send() -> httpx.Response:
            async with self._build_client() as client:
                request = self._build_request(client, method, url, **kwargs)
                return await client.send(request)

        try:
            response = await _send()
        except httpx.HTTPError as exc:
            self.logger.error(
                "HTTP error during request",
                extra={"method": method, "url": url, "error": str(exc)},
            )
            raise TransportError(f"HTTP error while calling {method} {url}: {exc}") from exc

        self.logger.debug(
            "HTTP response",
            extra={"status_code": response.status_code, "url": str(response.url)},
        )
        if not response.is_success:
            self.logger.error(
                "Request failed",
                extra={"method": method, "url": str(response.url), "status_code": response.status_code, "body": response.text[:500]},
            )
        self._raise_for_status(response)
        return response

    @staticmethod
    def _decode_json(response: httpx.Response, *, allow_empty: bool = False) -> Any:
        if allow_empty and (response.status_code == httpx.codes.NO_CONTENT or not response.content.strip()):
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise ResponseDecodeError(f"Failed to decode JSON from {response.url}: {exc}") from exc

    async def _get_json(self, url: str, *, params: Optional[Mapping[str, Any]] = None, attempts: int = 1) -> Any:
        response = await self._request("GET", url, params=params, attempts=attempts)
        return self._decode_json(response)

    async def _post_json(
        self,
        url: str,
        *,
        json_body: Any,
        headers: Optional[Mapping[str, str]] = None,
        allow_empty: bool = False,
    ) -> Any:
        try:
            content = json.dumps(json_body, allow_nan=False)
        except (TypeError, ValueError) as exc:
            raise RequestBuildError(f"Failed to serialise request body for POST {url}: {exc}") from exc
        merged_headers: MutableMapping[str, str] = {"Content-Type": "application/json"}
        if headers:
            merged_headers.update(headers)
        response = await self._request("POST", url, content=content, headers=merged_headers)
        return self._decode_json(response, allow_empty=allow_empty)
