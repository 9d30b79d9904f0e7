"""Health-snapshot cache-aside: the read path for every health-data category.

One generic operation serves physical/sleep/body summaries and their
event types. A stored snapshot is served until the cache policy says
otherwise; the default policy never expires anything because ROOK data
for a given date is treated as immutable once observed.

Known trade-off: a snapshot cached for "today" mid-day is served for
that date from then on.
"""

from datetime import UTC, datetime
from typing import Any, Protocol

import structlog

from health.adapters.protocol import UpstreamClient
from health.classifier import Outcome, classify_exception, classify_response
from health.domain.models import HealthCategory, SnapshotQuery
from health.domain.orm import HealthSnapshotModel
from health.domain.validation import parse_input
from health.repository import HealthSnapshotRepository
from shared.exceptions import ProblemDetailError
from shared.metrics import snapshot_cache_lookups_total

logger = structlog.get_logger()


class CachePolicy(Protocol):
    def is_fresh(self, snapshot: HealthSnapshotModel, now: datetime) -> bool:
        """True if the stored snapshot may be served without asking ROOK."""
        ...


class PermanentCachePolicy:
    def is_fresh(self, snapshot: HealthSnapshotModel, now: datetime) -> bool:
        return True


def is_empty(body: Any) -> bool:
    """Nothing worth caching: absent body, empty string, empty object or list."""
    if body is None:
        return True
    if isinstance(body, (str, dict, list)):
        return len(body) == 0
    return False


class SnapshotCache:
    def __init__(
        self,
        snapshots: HealthSnapshotRepository,
        upstream: UpstreamClient,
        policy: CachePolicy | None = None,
    ):
        self._snapshots = snapshots
        self._upstream = upstream
        self._policy = policy or PermanentCachePolicy()

    async def get_snapshot(
        self,
        user_id: str,
        category: HealthCategory | str,
        subtype: str | None,
        date: str,
    ) -> Outcome:
        """Serve (user_id, <category>_<subtype or summary>, date) from the store or ROOK.

        Steps:
        1. Stored and fresh -> return its data, no upstream call
        2. Otherwise GET the category/subtype resource from ROOK
        3. Non-empty success -> store it, return it
        4. Empty success or no-content signal -> return it, store nothing
        """
        try:
            query = parse_input(
                SnapshotQuery,
                {"user_id": user_id, "category": category, "subtype": subtype, "date": date},
            )
            label = query.category.value

            cached = await self._snapshots.find_first(query.user_id, query.data_type, query.date)
            if cached is not None and self._policy.is_fresh(cached, datetime.now(UTC)):
                snapshot_cache_lookups_total.labels(category=label, result="hit").inc()
                logger.info(
                    "snapshot_cache_hit",
                    user_id=query.user_id,
                    data_type=query.data_type,
                    date=query.date,
                )
                return Outcome.ok(cached.data)

            snapshot_cache_lookups_total.labels(category=label, result="miss").inc()
            response = await self._upstream.request(
                "GET",
                query.resource_path,
                params={"user_id": query.user_id, "date": query.date},
            )
            outcome = classify_response(response)
            if not outcome.is_ok:
                return outcome

            if is_empty(response.body):
                logger.info(
                    "snapshot_empty_not_cached",
                    user_id=query.user_id,
                    data_type=query.data_type,
                    date=query.date,
                )
                return outcome

            await self._snapshots.create(
                query.user_id,
                query.data_type,
                query.date,
                response.body,
                fetched_at=datetime.now(UTC),
                replace=cached is not None,
            )
            return outcome
        except ProblemDetailError as exc:
            logger.warning(
                "snapshot_lookup_failed",
                user_id=user_id,
                category=str(category),
                subtype=subtype,
                date=date,
                error_type=type(exc).__name__,
                status=exc.status,
                detail=exc.detail,
            )
            return classify_exception(exc)
