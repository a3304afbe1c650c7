"""Timed HTTP request execution on a shared aiohttp session."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import aiohttp

from stageload._internal.errors import SetupError
from stageload._internal.logging import get_logger

if TYPE_CHECKING:
    from stageload._internal.types import Headers, Query

logger = get_logger("engine.executor")

# Failures that mean "no HTTP response arrived". TimeoutError covers aiohttp's timeouts.
_NETWORK_ERRORS = (aiohttp.ClientError, TimeoutError, OSError)


@dataclass(frozen=True)
class RequestSpec:
    """What a single iteration sends.

    Attributes:
        url: Absolute URL of the endpoint under test.
        method: HTTP method.
        query: Query string or key/value pairs appended to the URL.
        headers: Extra request headers.
    """

    url: str
    method: str = "GET"
    query: Query | None = None
    headers: Headers = field(default_factory=dict)


@dataclass
class RequestResult:
    """Outcome of one request.

    A network failure (refused connection, DNS failure, timeout) has
    ``error`` set and ``status`` None. An HTTP error status such as 500 is a
    normal result with ``error`` None.

    Attributes:
        status: HTTP status code, or None if no response arrived.
        duration_ms: Wall-clock time from send to full body received, or to failure.
        body: Response body bytes.
        error: ``"<ExceptionType>: <message>"`` for network failures.
    """

    status: int | None
    duration_ms: float
    body: bytes = b""
    error: str | None = None

    @property
    def ok(self) -> bool:
        """True if an HTTP response was received, whatever its status."""
        return self.error is None

    @classmethod
    def from_exception(cls, exc: BaseException, duration_ms: float) -> RequestResult:
        message = str(exc)
        error = f"{type(exc).__name__}: {message}" if message else type(exc).__name__
        return cls(status=None, duration_ms=duration_ms, error=error)


class RequestExecutor:
    """Issues requests through one pooled ``aiohttp.ClientSession``.

    The session and its connector are shared by every virtual user;
    aiohttp's connector handles connection reuse without extra locking.

    Attributes:
        timeout: Total per-request timeout in seconds.
        pool_size: Maximum simultaneous connections.
    """

    def __init__(
        self,
        *,
        timeout: float = 30.0,
        pool_size: int = 100,
        headers: Headers | None = None,
    ) -> None:
        self.timeout = timeout
        self.pool_size = pool_size
        self._headers: Headers = dict(headers or {})
        self._session: aiohttp.ClientSession | None = None

    async def __aenter__(self) -> RequestExecutor:
        self._session = aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=self.timeout),
            connector=aiohttp.TCPConnector(limit=self.pool_size),
            headers=self._headers,
        )
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object | None,
    ) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def execute(self, spec: RequestSpec) -> RequestResult:
        """Send one request and time it.

        Args:
            spec: Request to send.

        Returns:
            RequestResult. Network failures are returned, not raised.

        Raises:
            RuntimeError: If used outside the ``async with`` block.
        """
        if self._session is None:
            msg = "RequestExecutor must be used as an async context manager"
            raise RuntimeError(msg)

        start = time.monotonic()
        try:
            async with self._session.request(
                spec.method,
                spec.url,
                params=spec.query,
                headers=spec.headers or None,
            ) as resp:
                body = await resp.read()
                status = resp.status
        except _NETWORK_ERRORS as exc:
            duration_ms = (time.monotonic() - start) * 1000
            logger.debug("%s %s failed: %r", spec.method, spec.url, exc)
            return RequestResult.from_exception(exc, duration_ms)

        duration_ms = (time.monotonic() - start) * 1000
        return RequestResult(status=status, duration_ms=duration_ms, body=body)

    async def probe(self, spec: RequestSpec) -> RequestResult:
        """Check that the target answers before any load is generated.

        Any HTTP status counts as reachable.

        Raises:
            SetupError: If the request fails at the network level.
        """
        result = await self.execute(spec)
        if not result.ok:
            msg = f"target {spec.url} is unreachable: {result.error}"
            raise SetupError(msg)
        logger.info(
            "Target reachable: %s answered %d in %.1fms",
            spec.url,
            result.status,
            result.duration_ms,
        )
        return result
