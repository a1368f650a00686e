"""Verification token registry model."""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class VerificationToken(Base):
    """
    Registry row for an issued capability token.

    The signed token string is the lookup key. Tier, score and relationship
    age are frozen copies of what was signed at issuance. Only usage_count,
    last_used_at and revoked_at change after creation.
    """

    __tablename__ = "verification_tokens"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    token: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    token_id: Mapped[str] = mapped_column(String(32), nullable=False)

    fan_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("fans.id"), nullable=False
    )
    artist_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("artists.id"), nullable=False
    )

    # Frozen at issuance
    tier: Mapped[str] = mapped_column(String(20), nullable=False)
    stan_score: Mapped[int] = mapped_column(Integer, nullable=False)
    relationship_months: Mapped[int] = mapped_column(Integer, nullable=False)

    issued_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    revoked_at: Mapped[datetime | None] = mapped_column(DateTime)

    usage_count: Mapped[int] = mapped_column(Integer, default=0)
    last_used_at: Mapped[datetime | None] = mapped_column(DateTime)

    # Purpose / recipient, e.g. "ticket presale"
    issued_for: Mapped[str | None] = mapped_column(String(255))

    __table_args__ = (
        Index("idx_verification_tokens_fan", "fan_id"),
        Index("idx_verification_tokens_artist", "artist_id"),
        Index("idx_verification_tokens_expires", "expires_at"),
    )

    def __repr__(self) -> str:
        return f"<VerificationToken {self.token_id} ({self.tier})>"
