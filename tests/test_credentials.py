"""Tests for app.services.credentials - export formats share one signature."""

import copy

import pytest

from app.services.credentials import CredentialExporter, ExportFormat
from app.services.signing import (
    SigningKey,
    TokenFormatError,
    TokenPayload,
    TokenSignatureError,
    to_epoch_ms,
)
from tests.conftest import NOW


@pytest.fixture
def exporter(signing_key):
    return CredentialExporter(signing_key)


@pytest.fixture
def payload():
    return TokenPayload(
        token_id="f" * 32,
        fan_id="fan-1",
        artist_id="artist-1",
        tier="SUPERFAN",
        stan_score=88,
        relationship_months=14,
        issued_at=to_epoch_ms(NOW),
        expires_at=to_epoch_ms(NOW) + 86_400_000,
    )


@pytest.mark.parametrize("fmt", list(ExportFormat))
def test_every_format_verifies(exporter, payload, fmt):
    document = exporter.export(payload, fmt)

    assert document["format"] == fmt.value
    assert exporter.verify(document) == payload


def test_json_and_vc_carry_the_same_signature(exporter, payload):
    as_json = exporter.export(payload, "json")
    as_vc = exporter.export(payload, "vc")

    assert as_vc["credential"]["proof"]["proofValue"] == as_json["signature"]


def test_compact_is_the_token(exporter, payload):
    token = exporter.export(payload, ExportFormat.COMPACT)["token"]
    assert token.count(".") == 1


def test_vc_shape(exporter, payload):
    credential = exporter.export(payload, ExportFormat.VC)["credential"]

    assert credential["id"] == f"urn:stanvault:token:{payload.token_id}"
    assert "VerifiableCredential" in credential["type"]
    assert credential["credentialSubject"]["relationship"] == payload.to_dict()
    assert credential["issuanceDate"] == "2026-03-15T12:00:00Z"
    assert credential["expirationDate"] == "2026-03-16T12:00:00Z"


def test_edited_vc_claims_fail(exporter, payload):
    document = exporter.export(payload, ExportFormat.VC)
    forged = copy.deepcopy(document)
    forged["credential"]["credentialSubject"]["relationship"]["tier"] = "SUPERFAN"
    forged["credential"]["credentialSubject"]["relationship"]["stanScore"] = 100

    with pytest.raises(TokenSignatureError):
        exporter.verify(forged)


def test_other_key_rejects_json_export(exporter, payload):
    document = exporter.export(payload, ExportFormat.JSON)

    with pytest.raises(TokenSignatureError):
        CredentialExporter(SigningKey("someone-else")).verify(document)


@pytest.mark.parametrize(
    "document",
    [
        {},
        {"format": "xml"},
        {"format": "json", "data": "nope", "signature": "x"},
        {"format": "vc", "credential": {}},
    ],
)
def test_malformed_documents(exporter, document):
    with pytest.raises(TokenFormatError):
        exporter.verify(document)
