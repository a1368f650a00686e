"""Registry of issued verification tokens (revocation + usage tracking)."""

import uuid
from datetime import datetime
from typing import Protocol

from sqlalchemy import delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import VerificationToken


class TokenRegistry(Protocol):
    async def add(self, record: VerificationToken) -> None:
        ...

    async def get(self, token: str) -> VerificationToken | None:
        ...

    async def record_usage(self, token: str, used_at: datetime) -> None:
        """Monotonic usage_count increment; lost updates are tolerated."""
        ...

    async def mark_revoked(self, token: str, revoked_at: datetime) -> None:
        ...

    async def list_active(
        self, fan_id: uuid.UUID, now: datetime, artist_id: uuid.UUID | None = None
    ) -> list[VerificationToken]:
        ...

    async def delete_expired(self, now: datetime) -> int:
        """Housekeeping: drop expired or revoked rows."""
        ...


class SqlTokenRegistry:
    """Registry backed by the verification_tokens table."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def add(self, record: VerificationToken) -> None:
        self.db.add(record)
        await self.db.flush()

    async def get(self, token: str) -> VerificationToken | None:
        result = await self.db.execute(
            select(VerificationToken).where(VerificationToken.token == token)
        )
        return result.scalar_one_or_none()

    async def record_usage(self, token: str, used_at: datetime) -> None:
        await self.db.execute(
            update(VerificationToken)
            .where(VerificationToken.token == token)
            .values(
                usage_count=VerificationToken.usage_count + 1,
                last_used_at=used_at,
            )
        )

    async def mark_revoked(self, token: str, revoked_at: datetime) -> None:
        # Only the first revocation timestamp sticks
        await self.db.execute(
            update(VerificationToken)
            .where(
                VerificationToken.token == token,
                VerificationToken.revoked_at.is_(None),
            )
            .values(revoked_at=revoked_at)
        )

    async def list_active(
        self, fan_id: uuid.UUID, now: datetime, artist_id: uuid.UUID | None = None
    ) -> list[VerificationToken]:
        query = select(VerificationToken).where(
            VerificationToken.fan_id == fan_id,
            VerificationToken.revoked_at.is_(None),
            VerificationToken.expires_at > now,
        )
        if artist_id is not None:
            query = query.where(VerificationToken.artist_id == artist_id)

        result = await self.db.execute(query.order_by(VerificationToken.issued_at.desc()))
        return list(result.scalars().all())

    async def delete_expired(self, now: datetime) -> int:
        result = await self.db.execute(
            delete(VerificationToken).where(
                or_(
                    VerificationToken.expires_at < now,
                    VerificationToken.revoked_at.isnot(None),
                )
            )
        )
        return result.rowcount or 0


class InMemoryTokenRegistry:
    """Dict-backed registry keyed by token string. Used by tests and scripts."""

    def __init__(self):
        self.tokens: dict[str, VerificationToken] = {}

    async def add(self, record: VerificationToken) -> None:
        self.tokens[record.token] = record

    async def get(self, token: str) -> VerificationToken | None:
        return self.tokens.get(token)

    async def record_usage(self, token: str, used_at: datetime) -> None:
        record = self.tokens.get(token)
        if record is None:
            return
        record.usage_count = (record.usage_count or 0) + 1
        record.last_used_at = used_at

    async def mark_revoked(self, token: str, revoked_at: datetime) -> None:
        record = self.tokens.get(token)
        if record is not None and record.revoked_at is None:
            record.revoked_at = revoked_at

    async def list_active(
        self, fan_id: uuid.UUID, now: datetime, artist_id: uuid.UUID | None = None
    ) -> list[VerificationToken]:
        rows = [
            r
            for r in self.tokens.values()
            if r.fan_id == fan_id
            and r.revoked_at is None
            and r.expires_at > now
            and (artist_id is None or r.artist_id == artist_id)
        ]
        return sorted(rows, key=lambda r: r.issued_at, reverse=True)

    async def delete_expired(self, now: datetime) -> int:
        stale = [
            token
            for token, r in self.tokens.items()
            if r.expires_at < now or r.revoked_at is not None
        ]
        for token in stale:
            del self.tokens[token]
        return len(stale)
