"""Add daily snapshots, artist metrics history and verification tokens

Revision ID: 002_snapshots_and_tokens
Revises: 001_initial
Create Date: 2026-10-08

"""

from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "002_snapshots_and_tokens"
down_revision: Union[str, None] = "001_initial"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Fan snapshots: one row per fan per day
    op.create_table(
        "fan_snapshots",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("fan_id", sa.UUID(), nullable=False),
        sa.Column("snapshot_date", sa.Date(), nullable=False),
        sa.Column("stan_score", sa.Integer(), nullable=False),
        sa.Column("tier", sa.String(20), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["fan_id"], ["fans.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("fan_id", "snapshot_date", name="uq_fan_snapshot_day"),
    )
    op.create_index("idx_fan_snapshots_date", "fan_snapshots", ["snapshot_date"])

    # Artist metrics history: one row per artist per day
    op.create_table(
        "artist_metrics_history",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("artist_id", sa.UUID(), nullable=False),
        sa.Column("snapshot_date", sa.Date(), nullable=False),
        sa.Column("total_fans", sa.Integer(), server_default="0"),
        sa.Column("casual_count", sa.Integer(), server_default="0"),
        sa.Column("engaged_count", sa.Integer(), server_default="0"),
        sa.Column("dedicated_count", sa.Integer(), server_default="0"),
        sa.Column("superfan_count", sa.Integer(), server_default="0"),
        sa.Column("hold_rate_90d", sa.Float(), nullable=True),
        sa.Column("hold_rate_30d", sa.Float(), nullable=True),
        sa.Column("depth_velocity", sa.Float(), nullable=True),
        sa.Column("platform_independence", sa.Float(), nullable=True),
        sa.Column("churn_rate", sa.Float(), nullable=True),
        sa.Column("scr", sa.Float(), nullable=True),
        sa.Column("avg_stan_score", sa.Float(), server_default="0"),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["artist_id"], ["artists.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("artist_id", "snapshot_date", name="uq_artist_metrics_day"),
    )
    op.create_index(
        "idx_artist_metrics_artist_date",
        "artist_metrics_history",
        ["artist_id", "snapshot_date"],
    )

    # Verification token registry
    op.create_table(
        "verification_tokens",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("token", sa.Text(), nullable=False),
        sa.Column("token_id", sa.String(32), nullable=False),
        sa.Column("fan_id", sa.UUID(), nullable=False),
        sa.Column("artist_id", sa.UUID(), nullable=False),
        sa.Column("tier", sa.String(20), nullable=False),
        sa.Column("stan_score", sa.Integer(), nullable=False),
        sa.Column("relationship_months", sa.Integer(), nullable=False),
        sa.Column("issued_at", sa.DateTime(), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("revoked_at", sa.DateTime(), nullable=True),
        sa.Column("usage_count", sa.Integer(), server_default="0"),
        sa.Column("last_used_at", sa.DateTime(), nullable=True),
        sa.Column("issued_for", sa.String(255), nullable=True),
        sa.ForeignKeyConstraint(["fan_id"], ["fans.id"]),
        sa.ForeignKeyConstraint(["artist_id"], ["artists.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("token"),
    )
    op.create_index("idx_verification_tokens_fan", "verification_tokens", ["fan_id"])
    op.create_index("idx_verification_tokens_artist", "verification_tokens", ["artist_id"])
    op.create_index("idx_verification_tokens_expires", "verification_tokens", ["expires_at"])


def downgrade() -> None:
    op.drop_index("idx_verification_tokens_expires", "verification_tokens")
    op.drop_index("idx_verification_tokens_artist", "verification_tokens")
    op.drop_index("idx_verification_tokens_fan", "verification_tokens")
    op.drop_table("verification_tokens")

    op.drop_index("idx_artist_metrics_artist_date", "artist_metrics_history")
    op.drop_table("artist_metrics_history")

    op.drop_index("idx_fan_snapshots_date", "fan_snapshots")
    op.drop_table("fan_snapshots")
