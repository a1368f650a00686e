"""Verification token API endpoints.

Fans issue, list, export and revoke tokens; third parties (ticketing,
merch, partner apps) verify them without needing access to fan data.
"""

import uuid
from datetime import datetime
from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_db
from app.models import Fan, FanTier
from app.services.credentials import CredentialExporter, ExportFormat
from app.services.eligibility import EligibilityPolicy
from app.services.signing import SigningKey, TokenFormatError, TokenSignatureError
from app.services.token_registry import SqlTokenRegistry, TokenRegistry
from app.services.verification import (
    RevokeStatus,
    TokenOwnershipError,
    VerificationTokenService,
)

router = APIRouter(prefix="/api/v1", tags=["verification"])


# ============ Dependencies ============


def get_signing_key() -> SigningKey:
    return SigningKey(settings.verification_token_secret)


def get_token_registry(db: AsyncSession = Depends(get_db)) -> TokenRegistry:
    return SqlTokenRegistry(db)


def get_token_service(
    signing_key: SigningKey = Depends(get_signing_key),
    registry: TokenRegistry = Depends(get_token_registry),
) -> VerificationTokenService:
    return VerificationTokenService(
        signing_key,
        registry,
        default_expiry_days=settings.token_default_expiry_days,
        max_expiry_days=settings.token_max_expiry_days,
    )


def get_credential_exporter(
    signing_key: SigningKey = Depends(get_signing_key),
) -> CredentialExporter:
    return CredentialExporter(signing_key)


# ============ Schemas ============


class TokenIssueRequest(BaseModel):
    """Request to mint a token for a fan."""

    fan_id: str
    artist_id: str
    expiry_days: int | None = Field(default=None, ge=1)
    purpose: str | None = None


class TokenIssueResponse(BaseModel):
    token: str
    token_id: str
    expires_at: str
    tier: str
    stan_score: int
    relationship_months: int


class TokenSummary(BaseModel):
    token_id: str
    artist_id: str
    tier: str
    stan_score: int
    relationship_months: int
    issued_at: str
    expires_at: str
    usage_count: int
    last_used_at: str | None
    issued_for: str | None


class RevokeRequest(BaseModel):
    token: str
    fan_id: str


class VerifyRequest(BaseModel):
    token: str
    artist_id: str | None = None


class TicketVerifyRequest(BaseModel):
    """Ticketing partner request: token plus the event's requirements."""

    token: str
    artist_id: str
    min_tier: FanTier | None = None
    min_score: int | None = None
    min_months: int | None = None


def _parse_uuid(value: str, field: str) -> uuid.UUID:
    try:
        return uuid.UUID(value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid {field} format")


# ============ Fan-facing endpoints ============


@router.post("/tokens", response_model=TokenIssueResponse)
async def issue_token(
    request: TokenIssueRequest,
    db: AsyncSession = Depends(get_db),
    service: VerificationTokenService = Depends(get_token_service),
) -> TokenIssueResponse:
    """
    Issue a verification token for a fan of an artist.

    The token snapshots tier, score and relationship length at issuance.
    """
    fan_uuid = _parse_uuid(request.fan_id, "fan_id")
    artist_uuid = _parse_uuid(request.artist_id, "artist_id")

    fan = await db.get(Fan, fan_uuid)
    if not fan:
        raise HTTPException(status_code=404, detail="Fan not found")

    try:
        issued = await service.issue(
            fan, artist_uuid, expiry_days=request.expiry_days, purpose=request.purpose
        )
    except TokenOwnershipError as e:
        raise HTTPException(status_code=403, detail=str(e))

    return TokenIssueResponse(
        token=issued.token,
        token_id=issued.payload.token_id,
        expires_at=issued.expires_at.isoformat(),
        tier=issued.payload.tier,
        stan_score=issued.payload.stan_score,
        relationship_months=issued.payload.relationship_months,
    )


@router.get("/tokens", response_model=list[TokenSummary])
async def list_tokens(
    fan_id: Annotated[str, Query(description="Fan whose active tokens to list")],
    artist_id: Annotated[str | None, Query()] = None,
    service: VerificationTokenService = Depends(get_token_service),
) -> list[TokenSummary]:
    """Active (unexpired, unrevoked) tokens for a fan, newest first."""
    fan_uuid = _parse_uuid(fan_id, "fan_id")
    artist_uuid = _parse_uuid(artist_id, "artist_id") if artist_id else None

    tokens = await service.list_active_tokens(fan_uuid, artist_uuid)

    return [
        TokenSummary(
            token_id=t.token_id,
            artist_id=str(t.artist_id),
            tier=t.tier,
            stan_score=t.stan_score,
            relationship_months=t.relationship_months,
            issued_at=t.issued_at.isoformat(),
            expires_at=t.expires_at.isoformat(),
            usage_count=t.usage_count,
            last_used_at=t.last_used_at.isoformat() if t.last_used_at else None,
            issued_for=t.issued_for,
        )
        for t in tokens
    ]


@router.post("/tokens/revoke")
async def revoke_token(
    request: RevokeRequest,
    service: VerificationTokenService = Depends(get_token_service),
) -> dict:
    """Revoke one of the fan's own tokens. Revoking twice is not an error."""
    fan_uuid = _parse_uuid(request.fan_id, "fan_id")

    try:
        status = await service.revoke(request.token, fan_uuid)
    except TokenOwnershipError as e:
        raise HTTPException(status_code=403, detail=str(e))

    if status == RevokeStatus.NOT_FOUND:
        raise HTTPException(status_code=404, detail="Token not found")

    return {"status": status.value}


@router.get("/tokens/{fan_id}/export")
async def export_token(
    fan_id: str,
    format: Annotated[ExportFormat, Query(description="json, compact or vc")] = ExportFormat.JSON,
    artist_id: Annotated[str | None, Query()] = None,
    service: VerificationTokenService = Depends(get_token_service),
    exporter: CredentialExporter = Depends(get_credential_exporter),
) -> dict:
    """Export the fan's most recent active token in a portable format."""
    fan_uuid = _parse_uuid(fan_id, "fan_id")
    artist_uuid = _parse_uuid(artist_id, "artist_id") if artist_id else None

    tokens = await service.list_active_tokens(fan_uuid, artist_uuid)
    if not tokens:
        raise HTTPException(status_code=404, detail="No active token for this fan")

    result = service.verify_signature(tokens[0].token)
    if not result.valid:
        raise HTTPException(status_code=409, detail=result.message)

    return exporter.export(result.payload, format)


# ============ Public verification endpoints ============


@router.post("/verify")
async def verify_token(
    request: VerifyRequest,
    service: VerificationTokenService = Depends(get_token_service),
) -> dict:
    """
    Verify a token. Public: the token is the credential.

    Failures come back as 200 with `valid: false` and a machine-readable reason.
    """
    result = await service.verify(request.token, artist_id=request.artist_id)

    if not result.valid:
        return {"valid": False, "reason": result.status.value, "message": result.message}

    payload = result.payload
    return {
        "valid": True,
        "fan": {
            "fanId": payload.fan_id,
            "artistId": payload.artist_id,
            "tier": payload.tier,
            "stanScore": payload.stan_score,
            "relationshipMonths": payload.relationship_months,
            "expiresAt": payload.expires_at_datetime.isoformat(),
        },
    }


@router.post("/verify/ticket")
async def verify_ticket(
    request: TicketVerifyRequest,
    service: VerificationTokenService = Depends(get_token_service),
) -> dict:
    """Verify a token against an event's tier, score and tenure requirements."""
    policy = EligibilityPolicy(
        min_tier=request.min_tier,
        min_score=request.min_score,
        min_months=request.min_months,
    )
    result = await service.verify_for_ticket(request.token, request.artist_id, policy)
    return result.to_dict()


@router.post("/verify/export")
async def verify_export(
    document: Annotated[dict[str, Any], Body()],
    exporter: CredentialExporter = Depends(get_credential_exporter),
) -> dict:
    """
    Check the signature and expiry of an exported credential document.

    Revocation is only visible through /verify with the compact token.
    """
    try:
        payload = exporter.verify(document)
    except TokenSignatureError:
        return {"valid": False, "reason": "INVALID_SIGNATURE"}
    except TokenFormatError:
        return {"valid": False, "reason": "INVALID_FORMAT"}

    if payload.is_expired(datetime.utcnow()):
        return {"valid": False, "reason": "EXPIRED"}

    return {"valid": True, "relationship": payload.to_dict()}
