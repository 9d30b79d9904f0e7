"""HTTP request helper with tenacity retry for ROOK API calls.

Retry policy:
- Retry only transport failures (timeouts, connection errors)
- Never retry on an HTTP status; every response goes back to the classifier
- Exponential backoff with jitter
- Attempts bounded by settings.upstream_retry_attempts (1 = no retry)
"""

import httpx
import structlog
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from shared.config import settings

logger = structlog.get_logger()

TRANSPORT_ERRORS = (httpx.TimeoutException, httpx.NetworkError)


@retry(
    retry=retry_if_exception_type(TRANSPORT_ERRORS),
    wait=wait_exponential_jitter(initial=1, max=settings.upstream_retry_max_wait_seconds, jitter=2),
    stop=stop_after_attempt(settings.upstream_retry_attempts),
    before_sleep=before_sleep_log(logger, "WARNING"),
    reraise=True,
)
async def fetch_with_retry(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    **kwargs,
) -> httpx.Response:
    """Make an HTTP request, retrying only when no response arrived."""
    return await client.request(method, url, **kwargs)
