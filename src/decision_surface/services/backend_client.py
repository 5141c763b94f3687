"""Backend HTTP client.

This module implements the opaque request/response boundary over HTTP
with aiohttp. Every failure is normalized to the fetch error taxonomy:

- connection failures       -> NetworkUnavailableError
- timeouts                  -> FetchTimeoutError
- HTTP status >= 400        -> ServerError(status)
- undecodable or non-object -> DecodeError
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable

import aiohttp
import orjson

from decision_surface.config.models.api_settings import APISettings
from decision_surface.shared.constants import APIEndpoints, NetworkConfig
from decision_surface.shared.errors import (
    DecodeError,
    ErrorContext,
    FetchTimeoutError,
    NetworkUnavailableError,
    ServerError,
)
from decision_surface.shared.logging import log_api_call
from decision_surface.shared.models.source import DateRange

logger = logging.getLogger(__name__)

TokenProvider = Callable[[], "str | None"]


class BackendClient:
    """aiohttp client for the decision surface backend.

    The session is created lazily on first use and reused afterwards.
    Token management is external; ``token_provider`` is only asked for
    the current bearer token on each request.

    Example:
        >>> async with BackendClient(settings.api) as client:
        ...     overview = await client.fetch_overview()
    """

    def __init__(
        self,
        settings: APISettings,
        *,
        token_provider: TokenProvider | None = None,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self.settings = settings
        self._token_provider = token_provider
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> BackendClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(
                total=self.settings.timeout,
                connect=self.settings.connect_timeout,
            )
            self._session = aiohttp.ClientSession(
                timeout=timeout,
                headers={
                    "Accept": NetworkConfig.ACCEPT_JSON,
                    "User-Agent": NetworkConfig.USER_AGENT,
                },
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    def _headers(self) -> dict[str, str]:
        token = self._token_provider() if self._token_provider else None
        if token is None and self.settings.access_token is not None:
            token = self.settings.access_token.get_secret_value()
        if not token:
            return {}
        return {NetworkConfig.AUTH_HEADER: f"{NetworkConfig.BEARER_PREFIX}{token}"}

    def _params(self, date_range: DateRange | None) -> dict[str, str]:
        params = {APIEndpoints.PARAM_TIMEZONE: self.settings.timezone}
        if date_range is not None:
            params[APIEndpoints.PARAM_START] = date_range.start.isoformat()
            params[APIEndpoints.PARAM_END] = date_range.end.isoformat()
        return params

    async def _get_json(
        self,
        endpoint: str,
        date_range: DateRange | None = None,
    ) -> dict[str, Any]:
        url = f"{self.settings.base_url.rstrip('/')}{endpoint}"
        context = ErrorContext(
            operation="backend_get",
            additional_data={"endpoint": endpoint},
        )
        session = self._get_session()
        started = time.perf_counter()

        try:
            async with session.get(
                url,
                params=self._params(date_range),
                headers=self._headers(),
            ) as response:
                log_api_call(
                    logger,
                    endpoint,
                    status_code=response.status,
                    duration_ms=(time.perf_counter() - started) * 1000,
                )
                if response.status >= 400:
                    raise ServerError(response.status, context=context)
                try:
                    data = await response.json(loads=orjson.loads, content_type=None)
                except (orjson.JSONDecodeError, aiohttp.ContentTypeError, ValueError) as e:
                    raise DecodeError(
                        f"Invalid JSON from {endpoint}",
                        context,
                        original_error=e,
                    ) from e
        except asyncio.TimeoutError as e:
            raise FetchTimeoutError(
                f"Request to {endpoint} timed out",
                context,
                original_error=e,
            ) from e
        except aiohttp.ClientPayloadError as e:
            raise DecodeError(
                f"Truncated payload from {endpoint}",
                context,
                original_error=e,
            ) from e
        except aiohttp.ClientError as e:
            raise NetworkUnavailableError(
                f"Backend unreachable for {endpoint}: {e}",
                context,
                original_error=e,
            ) from e

        if not isinstance(data, dict):
            raise DecodeError(
                f"Expected a JSON object from {endpoint}, got {type(data).__name__}",
                context,
            )
        return data

    async def fetch_briefing(self, date_range: DateRange) -> dict[str, Any]:
        return await self._get_json(APIEndpoints.BRIEFING, date_range)

    async def fetch_overview(self) -> dict[str, Any]:
        return await self._get_json(APIEndpoints.OVERVIEW)

    async def fetch_health_insights(self, date_range: DateRange) -> dict[str, Any]:
        return await self._get_json(APIEndpoints.HEALTH_INSIGHTS, date_range)

    async def fetch_week_drift_status(self) -> dict[str, Any]:
        return await self._get_json(APIEndpoints.WEEK_DRIFT)

    async def fetch_clashes(self) -> dict[str, Any]:
        return await self._get_json(APIEndpoints.CLASHES)

    async def fetch_life_wheel(self, date_range: DateRange) -> dict[str, Any]:
        return await self._get_json(APIEndpoints.LIFE_WHEEL, date_range)
