"""Initial schema: artists, fans, platform links and fan events.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-01 00:00:00.000000
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Artists table
    op.create_table(
        "artists",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("slug", sa.String(100), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("slug"),
    )
    op.create_index("idx_artists_slug", "artists", ["slug"])

    # Fans table
    op.create_table(
        "fans",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("artist_id", sa.UUID(), nullable=False),
        sa.Column("display_name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("first_seen_at", sa.DateTime(), nullable=False),
        sa.Column("last_active_at", sa.DateTime(), nullable=False),
        sa.Column("tier", sa.String(20), nullable=False, server_default="CASUAL"),
        sa.Column("stan_score", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("platform_score", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("engagement_score", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("longevity_score", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("recency_score", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["artist_id"], ["artists.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_fans_artist", "fans", ["artist_id"])
    op.create_index("idx_fans_artist_tier", "fans", ["artist_id", "tier"])
    op.create_index("idx_fans_first_seen", "fans", ["first_seen_at"])
    op.create_index("idx_fans_last_active", "fans", ["last_active_at"])

    # Fan platform links table
    op.create_table(
        "fan_platform_links",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("fan_id", sa.UUID(), nullable=False),
        sa.Column("platform", sa.String(20), nullable=False),
        sa.Column("platform_fan_id", sa.String(255), nullable=True),
        sa.Column("streams", sa.Integer(), server_default="0"),
        sa.Column("playlist_adds", sa.Integer(), server_default="0"),
        sa.Column("saves", sa.Integer(), server_default="0"),
        sa.Column("follows", sa.Boolean(), server_default=sa.false()),
        sa.Column("likes", sa.Integer(), server_default="0"),
        sa.Column("comments", sa.Integer(), server_default="0"),
        sa.Column("shares", sa.Integer(), server_default="0"),
        sa.Column("subscribed", sa.Boolean(), server_default=sa.false()),
        sa.Column("video_views", sa.Integer(), server_default="0"),
        sa.Column("watch_time", sa.Float(), server_default="0"),
        sa.Column("email_opens", sa.Integer(), server_default="0"),
        sa.Column("email_clicks", sa.Integer(), server_default="0"),
        sa.Column("first_seen_at", sa.DateTime(), nullable=False),
        sa.Column("last_active_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["fan_id"], ["fans.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("fan_id", "platform", name="uq_fan_platform"),
    )
    op.create_index("idx_platform_links_fan", "fan_platform_links", ["fan_id"])
    op.create_index("idx_platform_links_platform", "fan_platform_links", ["platform"])

    # Fan events table (append-only)
    op.create_table(
        "fan_events",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("fan_id", sa.UUID(), nullable=False),
        sa.Column("event_type", sa.String(30), nullable=False),
        sa.Column("platform", sa.String(20), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("occurred_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["fan_id"], ["fans.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_fan_events_fan_time", "fan_events", ["fan_id", "occurred_at"])
    op.create_index("idx_fan_events_type_time", "fan_events", ["event_type", "occurred_at"])


def downgrade() -> None:
    op.drop_table("fan_events")
    op.drop_table("fan_platform_links")
    op.drop_table("fans")
    op.drop_table("artists")
