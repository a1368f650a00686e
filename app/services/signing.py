"""HMAC-SHA256 signing for fan capability tokens.

Wire format::

    segment = base64url(canonical JSON payload)
    segment + "." + base64url(HMAC-SHA256(segment))

The HMAC is taken over the ASCII payload segment exactly as transmitted,
so any edit to the segment breaks the signature. Canonical JSON is key-sorted
with compact separators. Detached signatures (sign_payload) cover the
canonical JSON bytes instead.
"""

import base64
import binascii
import calendar
import hashlib
import hmac
import json
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any


class TokenFormatError(ValueError):
    """Token is not two base64url segments around a JSON payload."""


class TokenSignatureError(ValueError):
    """Signature does not match the payload."""


def b64url_encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def b64url_decode(segment: str) -> bytes:
    padded = segment + "=" * (-len(segment) % 4)
    try:
        return base64.urlsafe_b64decode(padded.encode("ascii"))
    except (binascii.Error, UnicodeEncodeError, ValueError) as e:
        raise TokenFormatError("Segment is not valid base64url") from e


def canonical_json(payload: dict[str, Any]) -> bytes:
    return json.dumps(payload, sort_keys=True, separators=(",", ":")).encode("utf-8")


def to_epoch_ms(moment: datetime) -> int:
    """Naive-UTC datetime to epoch milliseconds."""
    return calendar.timegm(moment.utctimetuple()) * 1000 + moment.microsecond // 1000


def from_epoch_ms(value: int) -> datetime:
    return datetime(1970, 1, 1) + timedelta(milliseconds=value)


class SigningKey:
    """Shared HMAC secret. Inject one per service; never keep a module global."""

    def __init__(self, secret: str | bytes):
        if isinstance(secret, str):
            secret = secret.encode("utf-8")
        if not secret:
            raise ValueError("Signing secret must not be empty")
        self._secret = secret

    def sign(self, message: bytes) -> str:
        return b64url_encode(hmac.new(self._secret, message, hashlib.sha256).digest())

    def verify(self, message: bytes, signature: str) -> bool:
        return hmac.compare_digest(
            self.sign(message).encode("ascii"), signature.encode("utf-8")
        )

    def __repr__(self) -> str:
        return "<SigningKey ***>"


@dataclass(frozen=True)
class TokenPayload:
    """The signed claims of a capability token."""

    token_id: str
    fan_id: str
    artist_id: str
    tier: str
    stan_score: int
    relationship_months: int
    issued_at: int  # epoch ms
    expires_at: int  # epoch ms

    def to_dict(self) -> dict[str, Any]:
        return {
            "tokenId": self.token_id,
            "fanId": self.fan_id,
            "artistId": self.artist_id,
            "tier": self.tier,
            "stanScore": self.stan_score,
            "relationshipMonths": self.relationship_months,
            "issuedAt": self.issued_at,
            "expiresAt": self.expires_at,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "TokenPayload":
        if not isinstance(data, dict):
            raise TokenFormatError("Payload is not a JSON object")
        try:
            return cls(
                token_id=str(data["tokenId"]),
                fan_id=str(data["fanId"]),
                artist_id=str(data["artistId"]),
                tier=str(data["tier"]),
                stan_score=int(data["stanScore"]),
                relationship_months=int(data["relationshipMonths"]),
                issued_at=int(data["issuedAt"]),
                expires_at=int(data["expiresAt"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise TokenFormatError(f"Payload is missing or has a bad field: {e}") from e

    @property
    def issued_at_datetime(self) -> datetime:
        return from_epoch_ms(self.issued_at)

    @property
    def expires_at_datetime(self) -> datetime:
        return from_epoch_ms(self.expires_at)

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at < to_epoch_ms(now)


def sign_payload(key: SigningKey, payload: dict[str, Any]) -> str:
    """Detached signature over the canonical JSON of `payload`."""
    return key.sign(canonical_json(payload))


def encode_token(key: SigningKey, payload: TokenPayload) -> str:
    segment = b64url_encode(canonical_json(payload.to_dict()))
    signature = key.sign(segment.encode("ascii"))
    return f"{segment}.{signature}"


def decode_token(key: SigningKey, token: str) -> TokenPayload:
    """
    Check format and signature; return the payload.

    Raises:
        TokenFormatError: Missing separator, bad base64 or bad JSON
        TokenSignatureError: HMAC mismatch
    """
    if not isinstance(token, str) or token.count(".") != 1:
        raise TokenFormatError("Token must contain exactly one '.' separator")

    payload_segment, signature = token.split(".")
    if not payload_segment or not signature:
        raise TokenFormatError("Token has an empty segment")

    body = b64url_decode(payload_segment)

    # HMAC covers the segment text; decoding ignores trailing bits
    if not key.verify(payload_segment.encode("ascii"), signature):
        raise TokenSignatureError("Signature does not match payload")

    try:
        data = json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise TokenFormatError("Payload is not valid JSON") from e

    return TokenPayload.from_dict(data)
