"""Fan verification tokens.

Issues signed capability tokens asserting a fan's tier, score and
relationship age with an artist, verifies them (locally, from the payload
and the shared secret), and handles revocation.

Verification outcomes are values, not exceptions: forged, expired and
revoked tokens are the normal steady state for a public endpoint.
"""

import calendar
import secrets
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

import structlog

from app.models import FanTier, VerificationToken
from app.services.eligibility import (
    EligibilityPolicy,
    EligibilityResult,
    EventAccess,
    check_eligibility,
    event_access,
)
from app.services.signing import (
    SigningKey,
    TokenFormatError,
    TokenPayload,
    TokenSignatureError,
    decode_token,
    encode_token,
    from_epoch_ms,
    to_epoch_ms,
)
from app.services.token_registry import TokenRegistry

logger = structlog.get_logger()


class EngineError(Exception):
    """Base class for hard rejections raised by the engine."""


class TokenOwnershipError(EngineError):
    """Requester does not own the fan or token it is acting on."""


class VerificationStatus(str, Enum):
    VALID = "VALID"
    INVALID_FORMAT = "INVALID_FORMAT"
    INVALID_SIGNATURE = "INVALID_SIGNATURE"
    EXPIRED = "EXPIRED"
    ARTIST_MISMATCH = "ARTIST_MISMATCH"
    REVOKED = "REVOKED"


STATUS_MESSAGES = {
    VerificationStatus.VALID: "Token is valid",
    VerificationStatus.INVALID_FORMAT: "Invalid token format",
    VerificationStatus.INVALID_SIGNATURE: "Invalid signature",
    VerificationStatus.EXPIRED: "Token expired",
    VerificationStatus.ARTIST_MISMATCH: "Token not valid for this artist",
    VerificationStatus.REVOKED: "Token revoked or not found",
}


class RevokeStatus(str, Enum):
    REVOKED = "REVOKED"
    ALREADY_REVOKED = "ALREADY_REVOKED"
    NOT_FOUND = "NOT_FOUND"


@dataclass(frozen=True)
class IssuedToken:
    token: str
    expires_at: datetime
    payload: TokenPayload


@dataclass(frozen=True)
class VerificationResult:
    status: VerificationStatus
    payload: TokenPayload | None = None

    @property
    def valid(self) -> bool:
        return self.status == VerificationStatus.VALID

    @property
    def message(self) -> str:
        return STATUS_MESSAGES[self.status]


@dataclass(frozen=True)
class TicketVerification:
    """Verification + eligibility + ticket privileges for one request."""

    verification: VerificationResult
    eligibility: EligibilityResult | None = None
    access: EventAccess | None = None

    def to_dict(self) -> dict[str, Any]:
        if not self.verification.valid:
            return {
                "valid": False,
                "eligible": False,
                "reason": self.verification.status.value,
                "message": self.verification.message,
            }

        payload = self.verification.payload
        return {
            "valid": True,
            "eligible": self.eligibility.eligible,
            "reason": self.eligibility.reason,
            "failures": [f.to_dict() for f in self.eligibility.failures],
            "fan": {
                "tier": payload.tier,
                "score": payload.stan_score,
                "relationshipMonths": payload.relationship_months,
                "verified": True,
            },
            "eventAccess": self.access.to_dict(),
        }


def months_between(earlier: datetime, later: datetime) -> int:
    """Whole calendar months from `earlier` to `later` (0 if reversed)."""
    if later <= earlier:
        return 0

    months = (later.year - earlier.year) * 12 + (later.month - earlier.month)

    later_is_month_end = later.day == calendar.monthrange(later.year, later.month)[1]
    if (later.day, later.time()) < (earlier.day, earlier.time()):
        # Jan 31 -> Feb 28 still counts as a full month
        if not (later_is_month_end and earlier.day > later.day):
            months -= 1
    return max(0, months)


def same_uuid(left: uuid.UUID | str, right: uuid.UUID | str) -> bool:
    """UUID equality across spellings (case, braces, urn); unparseable is unequal."""
    try:
        return uuid.UUID(str(left)) == uuid.UUID(str(right))
    except ValueError:
        return False


class VerificationTokenService:
    """
    Issue, verify and revoke fan capability tokens.

    The signing key is injected; nothing here reads a global secret.
    """

    DEFAULT_EXPIRY_DAYS = 30
    MAX_EXPIRY_DAYS = 90

    def __init__(
        self,
        signing_key: SigningKey,
        registry: TokenRegistry,
        default_expiry_days: int = DEFAULT_EXPIRY_DAYS,
        max_expiry_days: int = MAX_EXPIRY_DAYS,
    ):
        self.signing_key = signing_key
        self.registry = registry
        self.default_expiry_days = default_expiry_days
        self.max_expiry_days = min(max_expiry_days, self.MAX_EXPIRY_DAYS)

    async def issue(
        self,
        fan: Any,
        artist_id: uuid.UUID,
        expiry_days: int | None = None,
        purpose: str | None = None,
        now: datetime | None = None,
    ) -> IssuedToken:
        """
        Mint a token for a fan of `artist_id`.

        Args:
            fan: Fan row (id, artist_id, tier, stan_score, first_seen_at)
            artist_id: Artist the relationship is asserted for
            expiry_days: Lifetime, clamped to [1, 90]
            purpose: Optional recipient/purpose label
            now: Issuance time

        Raises:
            TokenOwnershipError: The fan does not belong to the artist
        """
        now = now or datetime.utcnow()

        if str(fan.artist_id) != str(artist_id):
            raise TokenOwnershipError("Fan does not belong to this artist")

        days = self.default_expiry_days if expiry_days is None else expiry_days
        days = max(1, min(days, self.max_expiry_days))

        payload = TokenPayload(
            token_id=secrets.token_hex(16),
            fan_id=str(fan.id),
            artist_id=str(artist_id),
            tier=FanTier(fan.tier).value,
            stan_score=int(fan.stan_score or 0),
            # Frozen at issuance; later changes to first_seen_at don't apply
            relationship_months=months_between(fan.first_seen_at, now),
            issued_at=to_epoch_ms(now),
            expires_at=to_epoch_ms(now + timedelta(days=days)),
        )
        token = encode_token(self.signing_key, payload)
        expires_at = from_epoch_ms(payload.expires_at)

        await self.registry.add(
            VerificationToken(
                token=token,
                token_id=payload.token_id,
                fan_id=fan.id,
                artist_id=artist_id,
                tier=payload.tier,
                stan_score=payload.stan_score,
                relationship_months=payload.relationship_months,
                issued_at=from_epoch_ms(payload.issued_at),
                expires_at=expires_at,
                usage_count=0,
                issued_for=purpose,
            )
        )

        logger.info(
            "verification_token_issued",
            token_id=payload.token_id,
            fan_id=payload.fan_id,
            artist_id=payload.artist_id,
            tier=payload.tier,
            expiry_days=days,
        )
        return IssuedToken(token=token, expires_at=expires_at, payload=payload)

    def verify_signature(self, token: str, now: datetime | None = None) -> VerificationResult:
        """
        Stateless part of verification: format, signature, expiry.

        This is all a third party holding the shared secret can check.
        """
        now = now or datetime.utcnow()

        try:
            payload = decode_token(self.signing_key, token)
        except TokenSignatureError:
            return VerificationResult(VerificationStatus.INVALID_SIGNATURE)
        except TokenFormatError:
            return VerificationResult(VerificationStatus.INVALID_FORMAT)

        if payload.is_expired(now):
            return VerificationResult(VerificationStatus.EXPIRED, payload)

        return VerificationResult(VerificationStatus.VALID, payload)

    async def verify(
        self,
        token: str,
        artist_id: uuid.UUID | str | None = None,
        now: datetime | None = None,
    ) -> VerificationResult:
        """
        Full verification. On VALID, bumps the registry usage counter.

        Order: INVALID_FORMAT, INVALID_SIGNATURE, EXPIRED, ARTIST_MISMATCH
        (only with a target artist), REVOKED (revoked or unknown to the registry).
        """
        now = now or datetime.utcnow()

        result = self.verify_signature(token, now)
        if not result.valid:
            self._log_rejection(result)
            return result

        payload = result.payload
        if artist_id is not None and not same_uuid(payload.artist_id, artist_id):
            result = VerificationResult(VerificationStatus.ARTIST_MISMATCH, payload)
            self._log_rejection(result)
            return result

        record = await self.registry.get(token)
        if record is None or record.revoked_at is not None:
            result = VerificationResult(VerificationStatus.REVOKED, payload)
            self._log_rejection(result)
            return result

        await self.registry.record_usage(token, now)
        return result

    async def verify_for_ticket(
        self,
        token: str,
        artist_id: uuid.UUID | str,
        policy: EligibilityPolicy,
        now: datetime | None = None,
    ) -> TicketVerification:
        verification = await self.verify(token, artist_id=artist_id, now=now)
        if not verification.valid:
            return TicketVerification(verification=verification)

        eligibility = check_eligibility(verification.payload, policy)
        access = event_access(verification.payload.tier, eligibility.eligible)
        return TicketVerification(
            verification=verification, eligibility=eligibility, access=access
        )

    async def revoke(
        self,
        token: str,
        requesting_fan_id: uuid.UUID | str,
        now: datetime | None = None,
    ) -> RevokeStatus:
        """
        Revoke a token owned by the requesting fan. Safe to call repeatedly.

        Raises:
            TokenOwnershipError: The token belongs to another fan
        """
        now = now or datetime.utcnow()

        record = await self.registry.get(token)
        if record is None:
            return RevokeStatus.NOT_FOUND

        if str(record.fan_id) != str(requesting_fan_id):
            logger.warning(
                "verification_token_revoke_forbidden",
                token_id=record.token_id,
                requesting_fan_id=str(requesting_fan_id),
            )
            raise TokenOwnershipError("Token does not belong to this fan")

        if record.revoked_at is not None:
            return RevokeStatus.ALREADY_REVOKED

        await self.registry.mark_revoked(token, now)
        logger.info("verification_token_revoked", token_id=record.token_id)
        return RevokeStatus.REVOKED

    async def list_active_tokens(
        self,
        fan_id: uuid.UUID,
        artist_id: uuid.UUID | None = None,
        now: datetime | None = None,
    ) -> list[VerificationToken]:
        return await self.registry.list_active(fan_id, now or datetime.utcnow(), artist_id)

    async def cleanup_expired(self, now: datetime | None = None) -> int:
        """Housekeeping: remove expired and revoked registry rows."""
        removed = await self.registry.delete_expired(now or datetime.utcnow())
        logger.info("verification_tokens_cleaned", removed=removed)
        return removed

    def _log_rejection(self, result: VerificationResult) -> None:
        logger.info(
            "verification_token_rejected",
            status=result.status.value,
            token_id=result.payload.token_id if result.payload else None,
        )
