"""Initial schema: user_profiles, health_snapshots

Revision ID: 001
Revises: None
Create Date: 2025-10-01
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- user_profiles (merge-upserted, one row per ROOK user) ---
    op.create_table(
        "user_profiles",
        sa.Column("user_id", sa.String(50), primary_key=True),
        sa.Column("date_of_birth", sa.String(10), nullable=True),
        sa.Column("sex", sa.String(16), nullable=True),
        sa.Column("height_cm", sa.Integer, nullable=True),
        sa.Column("weight_kg", sa.Float, nullable=True),
        sa.Column("bmi", sa.Float, nullable=True),
        sa.Column("time_zone", sa.Text, nullable=True),
        sa.Column("offset", sa.String(16), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    )

    # updated_at trigger
    op.execute("""
        CREATE OR REPLACE FUNCTION update_updated_at_column()
        RETURNS TRIGGER AS $$
        BEGIN
            NEW.updated_at = now();
            RETURN NEW;
        END;
        $$ LANGUAGE plpgsql;
    """)
    op.execute("""
        CREATE TRIGGER trg_user_profiles_updated_at
            BEFORE UPDATE ON user_profiles
            FOR EACH ROW
            EXECUTE FUNCTION update_updated_at_column();
    """)

    # --- health_snapshots (append-only cache) ---
    op.create_table(
        "health_snapshots",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(50), nullable=False),
        sa.Column("data_type", sa.String(64), nullable=False),
        sa.Column("date", sa.String(10), nullable=False),
        sa.Column("data", postgresql.JSONB, nullable=False),
        sa.Column(
            "fetched_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.UniqueConstraint("user_id", "data_type", "date", name="uq_health_snapshots_key"),
    )
    op.create_index(
        "idx_health_snapshots_fetched_at", "health_snapshots", [sa.text("fetched_at DESC")]
    )


def downgrade() -> None:
    op.execute("DROP TRIGGER IF EXISTS trg_user_profiles_updated_at ON user_profiles")
    op.execute("DROP FUNCTION IF EXISTS update_updated_at_column")
    op.drop_table("health_snapshots")
    op.drop_table("user_profiles")
