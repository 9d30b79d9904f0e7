"""Profile merge-upsert: reconcile partial profile updates with ROOK and the store.

Every write goes upstream first. The store is touched only after ROOK
accepts, and then only for the fields the caller actually supplied.
"""

from dataclasses import dataclass
from typing import Any

import structlog

from health.adapters.protocol import UpstreamClient
from health.classifier import Outcome, classify_exception, classify_response
from health.domain.models import (
    ProfileQuery,
    ProfileUpdate,
    TimeZoneUpdate,
    is_calendar_date,
)
from health.domain.validation import parse_input
from health.repository import UserProfileRepository
from shared.exceptions import ProblemDetailError
from shared.metrics import profile_writes_total

logger = structlog.get_logger()

USER_INFORMATION_PATH = "/api/v2/user-information"
USER_INFO_PATH = "/v2/processed_data/user/info"


@dataclass(frozen=True)
class CachedProfile:
    """Stored profile, served without an upstream call."""

    profile: dict[str, Any]

    def to_response(self) -> dict[str, Any]:
        return {"data_structure": "user_info", "user_information": self.profile}


@dataclass(frozen=True)
class FreshUpstreamPayload:
    """Raw ROOK user-info payload."""

    payload: Any

    def to_response(self) -> Any:
        return self.payload


ProfileView = CachedProfile | FreshUpstreamPayload


def extract_date_of_birth(payload: Any) -> str | None:
    """Pull user_information.user_demographics.date_of_birth_string, if well-formed."""
    if not isinstance(payload, dict):
        return None
    info = payload.get("user_information")
    if not isinstance(info, dict):
        return None
    demographics = info.get("user_demographics")
    if not isinstance(demographics, dict):
        return None
    dob = demographics.get("date_of_birth_string")
    if isinstance(dob, str) and is_calendar_date(dob):
        return dob
    return None


class ProfileService:
    def __init__(self, profiles: UserProfileRepository, upstream: UpstreamClient):
        self._profiles = profiles
        self._upstream = upstream

    async def submit_profile(self, fields: dict[str, Any]) -> Outcome:
        """Forward a partial profile to ROOK, then merge it into the stored row."""
        try:
            update = parse_input(ProfileUpdate, fields)
            response = await self._upstream.request(
                "POST", USER_INFORMATION_PATH, json=update.upstream_payload()
            )
            if response.is_success:
                await self._merge(update.user_id, update.to_profile_fields(), "submit_profile")
            return classify_response(response)
        except ProblemDetailError as exc:
            return self._failed("submit_profile", exc)

    async def set_time_zone(
        self, user_id: str, time_zone: str | None, offset: str | None = None
    ) -> Outcome:
        try:
            update = parse_input(
                TimeZoneUpdate,
                {"user_id": user_id, "time_zone": time_zone, "offset": offset},
            )
            response = await self._upstream.request(
                "POST",
                f"/api/v1/user_id/{update.user_id}/time_zone",
                json={"time_zone": update.time_zone, "offset": update.offset},
            )
            if response.is_success:
                await self._merge(update.user_id, update.to_profile_fields(), "set_time_zone")
            return classify_response(response)
        except ProblemDetailError as exc:
            return self._failed("set_time_zone", exc)

    async def get_profile(self, user_id: str, date: str | None = None) -> Outcome:
        """Return a CachedProfile or a FreshUpstreamPayload inside an ok Outcome.

        Without a date the stored row is authoritative. With a date (or when
        nothing is stored) ROOK is asked, and a date of birth found in its
        answer is merged back.
        """
        try:
            query = parse_input(ProfileQuery, {"user_id": user_id, "date": date})
            if query.date is None:
                stored = await self._profiles.find(query.user_id)
                if stored is not None:
                    logger.info("profile_cache_hit", user_id=query.user_id)
                    return Outcome.ok(CachedProfile(stored.to_dict()))

            response = await self._upstream.request(
                "GET", USER_INFO_PATH, params={"user_id": query.user_id, "date": query.date}
            )
            outcome = classify_response(response)
            if not outcome.is_ok:
                return outcome

            dob = extract_date_of_birth(response.body)
            if dob is not None:
                await self._merge(query.user_id, {"date_of_birth": dob}, "get_profile")
            return Outcome.ok(FreshUpstreamPayload(response.body), response.status)
        except ProblemDetailError as exc:
            return self._failed("get_profile", exc)

    async def _merge(self, user_id: str, fields: dict[str, Any], operation: str) -> None:
        await self._profiles.upsert(user_id, fields)
        profile_writes_total.labels(operation=operation).inc()

    @staticmethod
    def _failed(operation: str, exc: ProblemDetailError) -> Outcome:
        logger.warning(
            "profile_operation_failed",
            operation=operation,
            error_type=type(exc).__name__,
            status=exc.status,
            detail=exc.detail,
        )
        return classify_exception(exc)
