"""
HTTP client for the location recorder API.

Builds request URLs against the configured recorder base URL and issues
GET requests. Transport failures, non-2xx responses and cancelled requests
are collapsed into an absent response (``None``) so that callers only ever
see "no data" instead of an exception.
"""
import asyncio
import logging
from types import TracebackType
from typing import Any

import httpx

logger = logging.getLogger(__name__)

API_PREFIX = "/api/0"
LIVE_PATH = "/ws/last"


class RequestCancelled(Exception):
    """Raised internally when a request's cancel event fires first."""


class RecorderClient:
    """
    Async client for a recorder instance.

    Use as an async context manager so that concurrent requests share one
    connection pool:

        async with RecorderClient("http://localhost:8083") as client:
            response = await client.fetch_resource("/api/0/list")

    Args:
        base_url: Recorder root URL, e.g. ``http://localhost:8083``
        fetch_options: Process-wide request options merged into every call.
            They win over options supplied per call.
        transport: Optional httpx transport (tests pass a MockTransport)
    """

    def __init__(
        self,
        base_url: str,
        fetch_options: dict[str, Any] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.fetch_options: dict[str, Any] = dict(fetch_options or {})
        self._transport = transport
        self._http: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "RecorderClient":
        self._http = httpx.AsyncClient(transport=self._transport)
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if self._http is not None:
            await self._http.aclose()
            self._http = None

    def get_api_url(self, path: str) -> httpx.URL:
        """Return the absolute URL of ``path`` on the recorder."""
        return httpx.URL(f"{self.base_url}{path}")

    def get_live_url(self) -> str:
        """
        Return the live-update endpoint URL.

        Same host as the HTTP API with the scheme upgraded from
        http/https to ws/wss.
        """
        url = self.get_api_url(LIVE_PATH)
        scheme = "wss" if url.scheme == "https" else "ws"
        return str(url.copy_with(scheme=scheme))

    async def fetch_resource(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        request_options: dict[str, Any] | None = None,
    ) -> httpx.Response | None:
        """
        Fetch an API resource.

        Args:
            path: API resource path
            params: Query parameters, each set on the URL (last write wins)
            request_options: httpx request options plus an optional
                ``cancel_event`` (asyncio.Event) that aborts the request

        Returns:
            The response, or None if the request failed or was cancelled
        """
        if self._http is None:
            raise RuntimeError("RecorderClient must be used as an async context manager")

        url = self.get_api_url(path)
        for key, value in (params or {}).items():
            url = url.copy_set_param(key, value)

        options = {**(request_options or {}), **self.fetch_options}
        cancel_event: asyncio.Event | None = options.pop("cancel_event", None)

        logger.debug("GET %s", url)
        try:
            if cancel_event is None:
                response = await self._http.get(url, **options)
            else:
                response = await self._get_cancellable(url, options, cancel_event)
            response.raise_for_status()
        except RequestCancelled:
            logger.warning("GET %s - Request was cancelled", url)
            return None
        except httpx.HTTPError as e:
            logger.error("GET %s - %s", url, e)
            return None
        return response

    async def _get_cancellable(
        self,
        url: httpx.URL,
        options: dict[str, Any],
        cancel_event: asyncio.Event,
    ) -> httpx.Response:
        """Run a GET that is abandoned as soon as ``cancel_event`` is set."""
        if self._http is None:
            raise RuntimeError("RecorderClient must be used as an async context manager")
        if cancel_event.is_set():
            raise RequestCancelled()

        request = asyncio.ensure_future(self._http.get(url, **options))
        cancelled = asyncio.ensure_future(cancel_event.wait())
        try:
            await asyncio.wait({request, cancelled}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            request.cancel()
            raise
        finally:
            cancelled.cancel()

        if not request.done():
            request.cancel()
            try:
                await request
            except asyncio.CancelledError:
                pass
            raise RequestCancelled()
        return request.result()
