"""SQLAlchemy ORM models for both tables.

Tables:
- user_profiles: one row per upstream user, merged field by field
- health_snapshots: cached upstream payloads keyed by (user_id, data_type, date)
"""

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import (
    DateTime,
    Float,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# Columns a merge-upsert may touch; user_id is the key and never rewritten
PROFILE_FIELDS = (
    "date_of_birth",
    "sex",
    "height_cm",
    "weight_kg",
    "bmi",
    "time_zone",
    "offset",
)


class Base(DeclarativeBase):
    pass


class UserProfileModel(Base):
    __tablename__ = "user_profiles"

    user_id: Mapped[str] = mapped_column(String(50), primary_key=True)

    # Demographics
    date_of_birth: Mapped[str | None] = mapped_column(String(10), nullable=True)
    sex: Mapped[str | None] = mapped_column(String(16), nullable=True)
    height_cm: Mapped[int | None] = mapped_column(Integer, nullable=True)
    weight_kg: Mapped[float | None] = mapped_column(Float, nullable=True)
    bmi: Mapped[float | None] = mapped_column(Float, nullable=True)

    # Set independently of demographics
    time_zone: Mapped[str | None] = mapped_column(Text, nullable=True)
    offset: Mapped[str | None] = mapped_column(String(16), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=text("now()")
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("now()"),
        onupdate=lambda: datetime.now(UTC),
    )

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            **{name: getattr(self, name) for name in PROFILE_FIELDS},
        }


class HealthSnapshotModel(Base):
    __tablename__ = "health_snapshots"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # No foreign key: a snapshot may be cached before the profile row exists
    user_id: Mapped[str] = mapped_column(String(50), nullable=False)
    data_type: Mapped[str] = mapped_column(String(64), nullable=False)
    date: Mapped[str] = mapped_column(String(10), nullable=False)
    data: Mapped[Any] = mapped_column(JSONB, nullable=False)
    fetched_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=text("now()")
    )

    __table_args__ = (
        UniqueConstraint("user_id", "data_type", "date", name="uq_health_snapshots_key"),
        Index("idx_health_snapshots_fetched_at", fetched_at.desc()),
    )
