"""ROOK API client: authenticated requests, JSON decoding, timing.

Non-2xx responses are returned, not raised. Only a transport failure
(no response at all) becomes an UpstreamError.
"""

from typing import Any

import httpx
import structlog

from health.adapters.http_client import fetch_with_retry
from health.adapters.protocol import UpstreamResponse
from shared.config import settings
from shared.exceptions import UpstreamError
from shared.metrics import upstream_duration_seconds, upstream_requests_total

logger = structlog.get_logger()


def create_http_client() -> httpx.AsyncClient:
    """Shared connection pool, opened in the app lifespan."""
    return httpx.AsyncClient(
        base_url=settings.rook_base_url,
        auth=httpx.BasicAuth(settings.rook_client_uuid, settings.rook_client_secret),
        headers={"Content-Type": "application/json"},
        timeout=settings.upstream_timeout_seconds,
    )


def _decode_body(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


class RookClient:
    """UpstreamClient implementation backed by httpx."""

    def __init__(self, http: httpx.AsyncClient) -> None:
        self._http = http

    async def request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> UpstreamResponse:
        method = method.upper()
        if params:
            params = {k: v for k, v in params.items() if v is not None}

        try:
            with upstream_duration_seconds.labels(method=method).time():
                resp = await fetch_with_retry(
                    self._http, method, path, params=params or None, json=json
                )
        except httpx.TransportError as exc:
            upstream_requests_total.labels(method=method, status="transport_error").inc()
            logger.warning("upstream_transport_failed", method=method, path=path, error=str(exc))
            raise UpstreamError(f"ROOK API unreachable: {exc}") from exc

        upstream_requests_total.labels(method=method, status=str(resp.status_code)).inc()
        logger.info("upstream_response", method=method, path=path, status=resp.status_code)
        return UpstreamResponse(status=resp.status_code, body=_decode_body(resp))
