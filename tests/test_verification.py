"""Tests for app.services.verification - issue, verify, revoke."""

import string
import uuid
from datetime import datetime, timedelta

import pytest

from app.models import FanTier
from app.services.eligibility import EligibilityPolicy
from app.services.signing import (
    SigningKey,
    b64url_decode,
    b64url_encode,
    canonical_json,
    decode_token,
)
from app.services.verification import (
    RevokeStatus,
    TokenOwnershipError,
    VerificationStatus,
    VerificationTokenService,
    months_between,
)
from tests.conftest import NOW


B64URL_ALPHABET = string.ascii_letters + string.digits + "-_"


def signed_token(key: SigningKey, body: bytes) -> str:
    segment = b64url_encode(body)
    signature = key.sign(segment.encode("ascii"))
    return f"{segment}.{signature}"


def flip_char(token: str, index: int) -> str:
    chars = list(token)
    chars[index] = "A" if chars[index] != "A" else "B"
    return "".join(chars)


# ── issue ────────────────────────────────────────────────────────────────────

class TestIssue:
    async def test_round_trip(self, token_service, make_fan, artist_id):
        fan = make_fan(first_seen_at=NOW - timedelta(days=200))

        issued = await token_service.issue(fan, artist_id, expiry_days=30, now=NOW)
        result = await token_service.verify(issued.token, now=NOW + timedelta(days=1))

        assert result.status == VerificationStatus.VALID
        assert result.payload.fan_id == str(fan.id)
        assert result.payload.artist_id == str(artist_id)
        assert result.payload.tier == "DEDICATED"
        assert result.payload.stan_score == 62
        assert result.payload.relationship_months == 6
        assert issued.expires_at == NOW + timedelta(days=30)

    async def test_registry_row_created_unused(self, token_service, registry, make_fan, artist_id):
        issued = await token_service.issue(make_fan(), artist_id, purpose="presale", now=NOW)

        record = registry.tokens[issued.token]
        assert record.usage_count == 0
        assert record.revoked_at is None
        assert record.issued_for == "presale"
        assert record.token_id == issued.payload.token_id

    async def test_relationship_months_frozen_at_issuance(
        self, token_service, make_fan, artist_id
    ):
        fan = make_fan(first_seen_at=NOW - timedelta(days=100))
        issued = await token_service.issue(fan, artist_id, now=NOW)

        fan.first_seen_at = NOW - timedelta(days=1000)
        result = await token_service.verify(issued.token, now=NOW + timedelta(days=20))

        assert result.payload.relationship_months == issued.payload.relationship_months == 3

    @pytest.mark.parametrize("requested,expected", [(None, 30), (0, 1), (7, 7), (365, 90)])
    async def test_expiry_days_clamped(
        self, token_service, make_fan, artist_id, requested, expected
    ):
        issued = await token_service.issue(make_fan(), artist_id, expiry_days=requested, now=NOW)
        assert issued.expires_at == NOW + timedelta(days=expected)

    async def test_fan_of_another_artist_is_rejected(self, token_service, make_fan):
        with pytest.raises(TokenOwnershipError):
            await token_service.issue(make_fan(), uuid.uuid4(), now=NOW)

    async def test_token_ids_are_unique(self, token_service, make_fan, artist_id):
        fan = make_fan()
        first = await token_service.issue(fan, artist_id, now=NOW)
        second = await token_service.issue(fan, artist_id, now=NOW)

        assert first.payload.token_id != second.payload.token_id
        assert first.token != second.token


# ── verify ───────────────────────────────────────────────────────────────────

class TestVerify:
    async def test_usage_is_counted_only_when_valid(
        self, token_service, registry, make_fan, artist_id
    ):
        issued = await token_service.issue(make_fan(), artist_id, now=NOW)

        await token_service.verify(issued.token, now=NOW)
        await token_service.verify(issued.token, now=NOW + timedelta(hours=1))
        await token_service.verify(issued.token, artist_id=uuid.uuid4(), now=NOW)

        record = registry.tokens[issued.token]
        assert record.usage_count == 2
        assert record.last_used_at == NOW + timedelta(hours=1)

    async def test_tampered_payload(self, token_service, make_fan, artist_id):
        issued = await token_service.issue(make_fan(), artist_id, now=NOW)

        result = await token_service.verify(flip_char(issued.token, 5), now=NOW)

        assert result.status == VerificationStatus.INVALID_SIGNATURE

    async def test_any_single_character_edit_of_the_payload_is_rejected(
        self, token_service, make_fan, artist_id
    ):
        issued = await token_service.issue(make_fan(), artist_id, now=NOW)
        segment, signature = issued.token.split(".")

        accepted = []
        for index, original in enumerate(segment):
            for replacement in B64URL_ALPHABET:
                if replacement == original:
                    continue
                edited = segment[:index] + replacement + segment[index + 1 :]
                result = token_service.verify_signature(f"{edited}.{signature}", now=NOW)
                if result.status != VerificationStatus.INVALID_SIGNATURE:
                    accepted.append((index, original, replacement, result.status))

        assert accepted == []

    async def test_tampered_signature(self, token_service, make_fan, artist_id):
        issued = await token_service.issue(make_fan(), artist_id, now=NOW)

        result = await token_service.verify(flip_char(issued.token, len(issued.token) - 3), now=NOW)

        assert result.status == VerificationStatus.INVALID_SIGNATURE

    @pytest.mark.parametrize("token", ["", "no-separator", "a.b.c", ".sig", "payload.", "a.sig"])
    async def test_malformed(self, token_service, token):
        result = await token_service.verify(token, now=NOW)
        assert result.status == VerificationStatus.INVALID_FORMAT

    async def test_signed_with_another_secret(self, registry, make_fan, artist_id):
        issuer = VerificationTokenService(SigningKey("other-secret"), registry)
        verifier = VerificationTokenService(SigningKey("test-secret"), registry)

        issued = await issuer.issue(make_fan(), artist_id, now=NOW)

        result = await verifier.verify(issued.token, now=NOW)
        assert result.status == VerificationStatus.INVALID_SIGNATURE

    async def test_expired_one_millisecond_past(self, token_service, make_fan, artist_id):
        issued = await token_service.issue(make_fan(), artist_id, expiry_days=1, now=NOW)

        at_expiry = await token_service.verify(issued.token, now=issued.expires_at)
        past_expiry = await token_service.verify(
            issued.token, now=issued.expires_at + timedelta(milliseconds=1)
        )

        assert at_expiry.status == VerificationStatus.VALID
        assert past_expiry.status == VerificationStatus.EXPIRED

    async def test_artist_mismatch(self, token_service, make_fan, artist_id):
        issued = await token_service.issue(make_fan(), artist_id, now=NOW)

        result = await token_service.verify(issued.token, artist_id=uuid.uuid4(), now=NOW)

        assert result.status == VerificationStatus.ARTIST_MISMATCH

    @pytest.mark.parametrize(
        "spelling",
        [
            lambda a: str(a).upper(),
            lambda a: "{" + str(a) + "}",
            lambda a: a.hex,
            lambda a: a,
        ],
    )
    async def test_artist_id_spellings_match(
        self, token_service, make_fan, artist_id, spelling
    ):
        issued = await token_service.issue(make_fan(), artist_id, now=NOW)

        result = await token_service.verify(issued.token, artist_id=spelling(artist_id), now=NOW)

        assert result.status == VerificationStatus.VALID

    async def test_unparseable_artist_id_is_a_mismatch(self, token_service, make_fan, artist_id):
        issued = await token_service.issue(make_fan(), artist_id, now=NOW)

        result = await token_service.verify(issued.token, artist_id="not-a-uuid", now=NOW)

        assert result.status == VerificationStatus.ARTIST_MISMATCH

    async def test_unknown_to_registry_is_revoked(self, token_service, registry, make_fan, artist_id):
        issued = await token_service.issue(make_fan(), artist_id, now=NOW)
        registry.tokens.clear()

        result = await token_service.verify(issued.token, now=NOW)

        assert result.status == VerificationStatus.REVOKED

    async def test_stateless_check_needs_only_the_secret(self, token_service, make_fan, artist_id):
        issued = await token_service.issue(make_fan(), artist_id, now=NOW)

        payload = decode_token(SigningKey("test-secret"), issued.token)

        assert payload == issued.payload
        assert b64url_decode(issued.token.split(".")[0]).startswith(b'{"artistId"')


# ── revoke ───────────────────────────────────────────────────────────────────

class TestRevoke:
    async def test_revoke_then_verify(self, token_service, make_fan, artist_id):
        fan = make_fan()
        issued = await token_service.issue(fan, artist_id, now=NOW)

        status = await token_service.revoke(issued.token, fan.id, now=NOW)
        result = await token_service.verify(issued.token, now=NOW)

        assert status == RevokeStatus.REVOKED
        assert result.status == VerificationStatus.REVOKED

    async def test_revoke_twice_is_a_no_op(self, token_service, registry, make_fan, artist_id):
        fan = make_fan()
        issued = await token_service.issue(fan, artist_id, now=NOW)

        await token_service.revoke(issued.token, fan.id, now=NOW)
        second = await token_service.revoke(issued.token, fan.id, now=NOW + timedelta(days=1))

        assert second == RevokeStatus.ALREADY_REVOKED
        assert registry.tokens[issued.token].revoked_at == NOW

    async def test_only_owner_can_revoke(self, token_service, make_fan, artist_id):
        issued = await token_service.issue(make_fan(), artist_id, now=NOW)

        with pytest.raises(TokenOwnershipError):
            await token_service.revoke(issued.token, uuid.uuid4(), now=NOW)

    async def test_unknown_token(self, token_service):
        assert await token_service.revoke("nope.nope", uuid.uuid4(), now=NOW) == RevokeStatus.NOT_FOUND

    async def test_revoked_tokens_leave_the_active_list(self, token_service, make_fan, artist_id):
        fan = make_fan()
        kept = await token_service.issue(fan, artist_id, now=NOW)
        dropped = await token_service.issue(fan, artist_id, now=NOW + timedelta(minutes=1))

        await token_service.revoke(dropped.token, fan.id, now=NOW)
        active = await token_service.list_active_tokens(fan.id, now=NOW + timedelta(hours=1))

        assert [t.token for t in active] == [kept.token]

    async def test_cleanup_removes_expired_and_revoked(
        self, token_service, registry, make_fan, artist_id
    ):
        fan = make_fan()
        short = await token_service.issue(fan, artist_id, expiry_days=1, now=NOW)
        revoked = await token_service.issue(fan, artist_id, now=NOW)
        live = await token_service.issue(fan, artist_id, now=NOW)
        await token_service.revoke(revoked.token, fan.id, now=NOW)

        removed = await token_service.cleanup_expired(now=NOW + timedelta(days=2))

        assert removed == 2
        assert list(registry.tokens) == [live.token]
        assert await token_service.revoke(short.token, fan.id) == RevokeStatus.NOT_FOUND


# ── ticket verification ──────────────────────────────────────────────────────

class TestVerifyForTicket:
    async def test_ineligible_response_shape(self, token_service, make_fan, artist_id):
        fan = make_fan(tier="ENGAGED", stan_score=70)
        issued = await token_service.issue(fan, artist_id, now=NOW)

        result = await token_service.verify_for_ticket(
            issued.token,
            artist_id,
            EligibilityPolicy(min_tier=FanTier.DEDICATED, min_score=60),
            now=NOW,
        )
        body = result.to_dict()

        assert body["valid"] is True
        assert body["eligible"] is False
        assert "DEDICATED" in body["reason"]
        assert body["fan"] == {
            "tier": "ENGAGED",
            "score": 70,
            "relationshipMonths": 6,
            "verified": True,
        }
        assert body["eventAccess"] == {
            "presaleEligible": False,
            "priorityLevel": 2,
            "maxTickets": 4,
        }

    async def test_invalid_token_carries_status(self, token_service, artist_id):
        result = await token_service.verify_for_ticket(
            "garbage", artist_id, EligibilityPolicy(), now=NOW
        )

        assert result.to_dict() == {
            "valid": False,
            "eligible": False,
            "reason": "INVALID_FORMAT",
            "message": "Invalid token format",
        }


class TestMonthsBetween:
    @pytest.mark.parametrize(
        "earlier,later,expected",
        [
            (datetime(2026, 1, 15), datetime(2026, 3, 14), 1),
            (datetime(2026, 1, 15), datetime(2026, 3, 15), 2),
            (datetime(2026, 1, 31), datetime(2026, 2, 28), 1),
            (datetime(2025, 3, 15), datetime(2026, 3, 15), 12),
            (datetime(2026, 3, 15), datetime(2026, 1, 1), 0),
        ],
    )
    def test_calendar_months(self, earlier, later, expected):
        assert months_between(earlier, later) == expected


class TestDecodeToken:
    def test_signed_non_json_payload_is_a_format_error(self, token_service, signing_key):
        body = b"not json at all"
        token = signed_token(signing_key, body)

        result = token_service.verify_signature(token, now=NOW)

        assert result.status == VerificationStatus.INVALID_FORMAT

    def test_signed_payload_missing_fields_is_a_format_error(self, token_service, signing_key):
        body = canonical_json({"tokenId": "x"})
        token = signed_token(signing_key, body)

        assert token_service.verify_signature(token, now=NOW).status == (
            VerificationStatus.INVALID_FORMAT
        )
