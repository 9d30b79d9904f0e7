"""Uncached forwarding for data-source and client-level ROOK endpoints."""

from typing import Any

import structlog

from health.adapters.protocol import UpstreamClient
from health.classifier import Outcome, classify_exception, classify_response
from shared.exceptions import ProblemDetailError

logger = structlog.get_logger()


async def forward(
    upstream: UpstreamClient,
    method: str,
    path: str,
    params: dict[str, Any] | None = None,
    json: Any = None,
) -> Outcome:
    try:
        response = await upstream.request(method, path, params=params, json=json)
    except ProblemDetailError as exc:
        logger.warning("passthrough_failed", method=method, path=path, detail=exc.detail)
        return classify_exception(exc)
    return classify_response(response)
