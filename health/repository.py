"""Repositories: all DB access for user profiles and health snapshots.

Encapsulates the field-wise profile merge-upsert and the snapshot
cache lookups/inserts. Every SQLAlchemy failure is rolled back and
re-raised as StoreError; nothing is retried here.
"""

from datetime import UTC, datetime
from typing import Any

import structlog
from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from health.domain.orm import PROFILE_FIELDS, HealthSnapshotModel, UserProfileModel
from shared.exceptions import StoreError

logger = structlog.get_logger()


class UserProfileRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def find(self, user_id: str) -> UserProfileModel | None:
        try:
            result = await self.session.execute(
                select(UserProfileModel).where(UserProfileModel.user_id == user_id)
            )
            return result.scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise StoreError("user_profile.find", str(exc)) from exc

    async def upsert(self, user_id: str, fields: dict[str, Any]) -> UserProfileModel:
        """Insert or merge a profile. Only keys present in `fields` are written.

        Keys with a None value are dropped first, so an update can never
        null out a stored value.
        """
        unknown = set(fields) - set(PROFILE_FIELDS)
        if unknown:
            raise ValueError(f"Not profile fields: {sorted(unknown)}")
        values = {k: v for k, v in fields.items() if v is not None}

        stmt = pg_insert(UserProfileModel).values(user_id=user_id, **values)
        if values:
            stmt = stmt.on_conflict_do_update(
                index_elements=["user_id"],
                set_={
                    **{name: getattr(stmt.excluded, name) for name in values},
                    "updated_at": func.now(),
                },
            )
        else:
            stmt = stmt.on_conflict_do_nothing(index_elements=["user_id"])
        stmt = stmt.returning(UserProfileModel).execution_options(populate_existing=True)

        try:
            result = await self.session.execute(stmt)
            row = result.scalar_one_or_none()
            await self.session.commit()
        except SQLAlchemyError as exc:
            await self.session.rollback()
            raise StoreError("user_profile.upsert", str(exc)) from exc

        if row is None:
            # DO NOTHING hit an existing row; nothing changed
            row = await self.find(user_id)
        logger.info("profile_upserted", user_id=user_id, fields=sorted(values))
        return row


class HealthSnapshotRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def find_first(
        self, user_id: str, data_type: str, date: str
    ) -> HealthSnapshotModel | None:
        """Return the cached snapshot for the key, if any.

        The (user_id, data_type, date) key is unique, so "first" is the only match.
        """
        try:
            result = await self.session.execute(
                select(HealthSnapshotModel).where(
                    HealthSnapshotModel.user_id == user_id,
                    HealthSnapshotModel.data_type == data_type,
                    HealthSnapshotModel.date == date,
                )
            )
            return result.scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise StoreError("health_snapshot.find_first", str(exc)) from exc

    async def create(
        self,
        user_id: str,
        data_type: str,
        date: str,
        data: Any,
        fetched_at: datetime | None = None,
        replace: bool = False,
    ) -> None:
        """Store a snapshot. Append-only unless `replace` is set.

        A concurrent insert for the same key is a no-op. `replace` overwrites
        an existing row in place and is only used for rows the cache policy
        has declared stale.
        """
        record = {
            "user_id": user_id,
            "data_type": data_type,
            "date": date,
            "data": data,
            "fetched_at": fetched_at or datetime.now(UTC),
        }
        stmt = pg_insert(HealthSnapshotModel).values(record)
        if replace:
            stmt = stmt.on_conflict_do_update(
                constraint="uq_health_snapshots_key",
                set_={"data": stmt.excluded.data, "fetched_at": stmt.excluded.fetched_at},
            )
        else:
            stmt = stmt.on_conflict_do_nothing(constraint="uq_health_snapshots_key")

        try:
            await self.session.execute(stmt)
            await self.session.commit()
        except SQLAlchemyError as exc:
            await self.session.rollback()
            raise StoreError("health_snapshot.create", str(exc)) from exc

        logger.info("snapshot_stored", user_id=user_id, data_type=data_type, date=date)
