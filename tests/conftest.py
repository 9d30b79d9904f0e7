"""Shared test fixtures: in-memory repositories and a mocked ROOK client."""

import sys
from datetime import UTC, datetime
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from health.adapters.protocol import UpstreamResponse  # noqa: E402
from health.domain.orm import PROFILE_FIELDS, HealthSnapshotModel, UserProfileModel  # noqa: E402
from shared.exceptions import StoreError  # noqa: E402

USER_ID = "a1b2c3d4-user"
DAY = "2024-06-01"


class InMemoryProfileRepository:
    """Field-wise merge semantics of UserProfileRepository, without Postgres."""

    def __init__(self) -> None:
        self.rows: dict[str, UserProfileModel] = {}
        self.upserts: list[tuple[str, dict[str, Any]]] = []

    async def find(self, user_id: str) -> UserProfileModel | None:
        return self.rows.get(user_id)

    async def upsert(self, user_id: str, fields: dict[str, Any]) -> UserProfileModel:
        unknown = set(fields) - set(PROFILE_FIELDS)
        if unknown:
            raise ValueError(f"Not profile fields: {sorted(unknown)}")
        self.upserts.append((user_id, dict(fields)))
        row = self.rows.get(user_id)
        if row is None:
            row = UserProfileModel(user_id=user_id, **{name: None for name in PROFILE_FIELDS})
            self.rows[user_id] = row
        for name, value in fields.items():
            if value is not None:
                setattr(row, name, value)
        return row

    def seed(self, user_id: str, **fields: Any) -> UserProfileModel:
        row = UserProfileModel(
            user_id=user_id, **{name: fields.get(name) for name in PROFILE_FIELDS}
        )
        self.rows[user_id] = row
        return row


class InMemorySnapshotRepository:
    """Unique (user_id, data_type, date) key, append-only unless replace=True."""

    def __init__(self) -> None:
        self.rows: dict[tuple[str, str, str], HealthSnapshotModel] = {}
        self.creates = 0

    async def find_first(self, user_id: str, data_type: str, date: str):
        return self.rows.get((user_id, data_type, date))

    async def create(
        self,
        user_id: str,
        data_type: str,
        date: str,
        data: Any,
        fetched_at: datetime | None = None,
        replace: bool = False,
    ) -> None:
        self.creates += 1
        key = (user_id, data_type, date)
        if key in self.rows and not replace:
            return
        self.rows[key] = HealthSnapshotModel(
            id=len(self.rows) + 1,
            user_id=user_id,
            data_type=data_type,
            date=date,
            data=data,
            fetched_at=fetched_at or datetime.now(UTC),
        )


class FailingSnapshotRepository(InMemorySnapshotRepository):
    async def create(self, *args, **kwargs) -> None:
        raise StoreError("health_snapshot.create", "connection reset")


class FailingProfileRepository(InMemoryProfileRepository):
    async def upsert(self, user_id: str, fields: dict[str, Any]) -> UserProfileModel:
        raise StoreError("user_profile.upsert", "connection reset")


def make_upstream(status: int = 200, body: Any = None) -> AsyncMock:
    upstream = AsyncMock()
    upstream.request = AsyncMock(return_value=UpstreamResponse(status=status, body=body))
    return upstream


@pytest.fixture
def profiles():
    return InMemoryProfileRepository()


@pytest.fixture
def snapshots():
    return InMemorySnapshotRepository()


@pytest.fixture
def valid_profile_payload():
    return {
        "datetime": "2024-06-01T08:00:00+00:00",
        "user_id": USER_ID,
        "date_of_birth_string": "1990-04-12",
        "height_cm_int": 180,
        "weight_kg_float": 75.5,
        "bmi_float": 23.3,
        "sex_string": "male",
    }
