"""Authenticated, timed, non-throwing HTTP executor for the Kapable API.

Every remote call a check makes goes through :class:`HttpExecutor`.  The
executor never raises: transport failures (timeouts, refused connections,
invalid URLs) are encoded in the returned :class:`RequestResult` so that
checks can turn them into ``fail`` steps without try/except noise.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from enum import Enum
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field

from canary_engine.config import CanarySettings

logger = logging.getLogger(__name__)

_ACCEPT_JSON = "application/json"
_PRIVILEGED_HEADER = "x-api-key"


class AuthMode(str, Enum):
    """Which credential, if any, is attached to a request."""

    NONE = "none"
    BEARER = "bearer"
    PRIVILEGED = "privileged"


class RequestResult(BaseModel):
    """Uniform envelope for one HTTP attempt."""

    model_config = ConfigDict(frozen=True)

    status: int = Field(default=0, description="HTTP status, 0 if no response was received.")
    body: Any = Field(default=None, description="Parsed JSON body, or None if parsing failed.")
    raw_text: str = Field(default="", description="Unparsed response payload.")
    duration_ms: int = Field(default=0, description="Dispatch-to-resolution time, body read included.")
    error: str | None = Field(default=None, description="Transport failure message; None on any response.")

    @property
    def ok(self) -> bool:
        """``True`` when a response was received (any status)."""
        return self.error is None

    def succeeded(self, *expected: int) -> bool:
        """Return ``True`` if the transport worked and the status is expected."""
        return self.error is None and self.status in expected


class HttpExecutor:
    """Async executor issuing authenticated requests against one base URL.

    Parameters
    ----------
    base_url:
        Root URL of the remote platform.  Trailing slashes are stripped.
    api_key:
        Credential sent as ``Authorization: Bearer`` in :attr:`AuthMode.BEARER`.
    admin_key:
        Credential sent as ``x-api-key`` in :attr:`AuthMode.PRIVILEGED`.
    timeout_ms:
        Default per-request timeout, covering connect, send and body read.
    transport:
        Optional httpx transport (tests inject ``httpx.MockTransport``).
    """

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        admin_key: str = "",
        timeout_ms: int = 10_000,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._admin_key = admin_key
        self._timeout_ms = timeout_ms
        self._client = httpx.AsyncClient(transport=transport, follow_redirects=False)

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def timeout_ms(self) -> int:
        return self._timeout_ms

    # -- Core ----------------------------------------------------------------

    async def execute(
        self,
        method: str,
        path: str,
        *,
        body: Any = None,
        auth: AuthMode = AuthMode.NONE,
        headers: dict[str, str] | None = None,
        timeout_ms: int | None = None,
    ) -> RequestResult:
        """Issue one request relative to the base URL and never raise.

        Parameters
        ----------
        method:
            HTTP verb.
        path:
            Path relative to the base URL; must start with ``/``.
        body:
            Optional JSON-serializable payload.  ``Content-Type`` is only
            set when a body is present.
        auth:
            Credential selection, see :class:`AuthMode`.
        headers:
            Extra headers; applied before the credential header.
        timeout_ms:
            Per-call override of the default timeout.
        """
        request_headers: dict[str, str] = {"Accept": _ACCEPT_JSON}
        if headers:
            request_headers.update(headers)
        if body is not None:
            request_headers["Content-Type"] = _ACCEPT_JSON

        if auth == AuthMode.BEARER:
            request_headers["Authorization"] = f"Bearer {self._api_key}"
        elif auth == AuthMode.PRIVILEGED:
            request_headers[_PRIVILEGED_HEADER] = self._admin_key

        return await self._send(
            method.upper(),
            f"{self._base_url}{path}",
            headers=request_headers,
            content=json.dumps(body) if body is not None else None,
            timeout_ms=timeout_ms if timeout_ms is not None else self._timeout_ms,
        )

    async def fetch_url(self, url: str, *, timeout_ms: int | None = None) -> RequestResult:
        """Unauthenticated GET against an absolute URL (e.g. a public subdomain)."""
        return await self._send(
            "GET",
            url,
            headers={"Accept": _ACCEPT_JSON},
            content=None,
            timeout_ms=timeout_ms if timeout_ms is not None else self._timeout_ms,
        )

    # -- Shorthands ----------------------------------------------------------

    async def get(self, path: str, auth: AuthMode = AuthMode.NONE, **kwargs: Any) -> RequestResult:
        return await self.execute("GET", path, auth=auth, **kwargs)

    async def post(self, path: str, body: Any = None, auth: AuthMode = AuthMode.BEARER, **kwargs: Any) -> RequestResult:
        return await self.execute("POST", path, body=body, auth=auth, **kwargs)

    async def put(self, path: str, body: Any = None, auth: AuthMode = AuthMode.BEARER, **kwargs: Any) -> RequestResult:
        return await self.execute("PUT", path, body=body, auth=auth, **kwargs)

    async def patch(
        self, path: str, body: Any = None, auth: AuthMode = AuthMode.BEARER, **kwargs: Any
    ) -> RequestResult:
        return await self.execute("PATCH", path, body=body, auth=auth, **kwargs)

    async def delete(self, path: str, auth: AuthMode = AuthMode.BEARER, **kwargs: Any) -> RequestResult:
        return await self.execute("DELETE", path, auth=auth, **kwargs)

    # -- Lifecycle -----------------------------------------------------------

    async def aclose(self) -> None:
        """Close the underlying HTTP connection pool."""
        await self._client.aclose()

    async def __aenter__(self) -> HttpExecutor:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    # -- Internal helpers ----------------------------------------------------

    async def _send(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str],
        content: str | None,
        timeout_ms: int,
    ) -> RequestResult:
        timeout_s = timeout_ms / 1000
        start = time.perf_counter()

        async def _attempt() -> tuple[int, str]:
            response = await self._client.request(
                method,
                url,
                headers=headers,
                content=content,
                timeout=httpx.Timeout(timeout_s),
            )
            return response.status_code, response.text

        status = 0
        raw_text = ""
        error: str | None = None
        try:
            status, raw_text = await asyncio.wait_for(_attempt(), timeout=timeout_s)
        except (TimeoutError, httpx.TimeoutException):
            error = f"Request timed out after {timeout_ms}ms"
        except Exception as exc:
            error = str(exc) or exc.__class__.__name__

        duration_ms = int(round((time.perf_counter() - start) * 1000))

        if error is not None:
            logger.warning("%s %s failed after %dms: %s", method, url, duration_ms, error)
            return RequestResult(status=0, raw_text="", duration_ms=duration_ms, error=error)

        logger.debug("%s %s -> %d (%dms)", method, url, status, duration_ms)
        return RequestResult(
            status=status,
            body=_parse_json(raw_text),
            raw_text=raw_text,
            duration_ms=duration_ms,
        )


def _parse_json(text: str) -> Any:
    """Return the decoded JSON value of *text*, or ``None`` if it is not JSON."""
    if not text:
        return None
    try:
        return json.loads(text)
    except ValueError:
        return None


def create_executor(
    settings: CanarySettings,
    transport: httpx.AsyncBaseTransport | None = None,
) -> HttpExecutor:
    """Build an executor from :class:`~canary_engine.config.CanarySettings`."""
    return HttpExecutor(
        base_url=settings.api_url,
        api_key=settings.api_key.get_secret_value(),
        admin_key=settings.admin_key.get_secret_value(),
        timeout_ms=settings.request_timeout_ms,
        transport=transport,
    )
