"""Alternative serializations of a signed fan relationship.

All three formats carry the same token payload and are signed with the
same HMAC key, so one key verifies any of them. json and vc share one
detached signature over the canonical JSON; compact signs its segment:

- json:    {"data": payload, "signature": detached signature}
- compact: the verification token string itself
- vc:      W3C-style verifiable credential whose proof value is the signature
"""

from enum import Enum
from typing import Any

from app.services.signing import (
    SigningKey,
    TokenFormatError,
    TokenPayload,
    TokenSignatureError,
    canonical_json,
    decode_token,
    encode_token,
    from_epoch_ms,
    sign_payload,
)

VC_CONTEXT = [
    "https://www.w3.org/2018/credentials/v1",
    "https://stanvault.io/credentials/fan-relationship/v1",
]
VC_ISSUER = {"id": "did:web:stanvault.io", "name": "Stanvault"}
VC_PROOF_TYPE = "HmacSha256Signature2024"


class ExportFormat(str, Enum):
    JSON = "json"
    COMPACT = "compact"
    VC = "vc"


class CredentialExporter:
    """Wraps a token payload in each export format and checks them back."""

    def __init__(self, signing_key: SigningKey):
        self.signing_key = signing_key

    def export(self, payload: TokenPayload, fmt: ExportFormat | str) -> dict[str, Any]:
        fmt = ExportFormat(fmt)
        if fmt == ExportFormat.COMPACT:
            return {"format": fmt.value, "token": encode_token(self.signing_key, payload)}
        if fmt == ExportFormat.VC:
            return {"format": fmt.value, "credential": self.to_verifiable_credential(payload)}
        return {
            "format": fmt.value,
            "data": payload.to_dict(),
            "signature": sign_payload(self.signing_key, payload.to_dict()),
        }

    def to_verifiable_credential(self, payload: TokenPayload) -> dict[str, Any]:
        issued = from_epoch_ms(payload.issued_at).isoformat() + "Z"
        expires = from_epoch_ms(payload.expires_at).isoformat() + "Z"

        return {
            "@context": VC_CONTEXT,
            "id": f"urn:stanvault:token:{payload.token_id}",
            "type": ["VerifiableCredential", "FanRelationshipCredential"],
            "issuer": VC_ISSUER,
            "issuanceDate": issued,
            "expirationDate": expires,
            "credentialSubject": {
                "id": f"did:stanvault:fan:{payload.fan_id}",
                "relationship": payload.to_dict(),
            },
            "proof": {
                "type": VC_PROOF_TYPE,
                "created": issued,
                "verificationMethod": f"{VC_ISSUER['id']}#key-1",
                "proofPurpose": "assertionMethod",
                "proofValue": sign_payload(self.signing_key, payload.to_dict()),
            },
        }

    def verify(self, document: dict[str, Any]) -> TokenPayload:
        """
        Check an exported document's signature and return its payload.

        Expiry and revocation are not checked here; a compact export can be
        passed to VerificationTokenService.verify for that.

        Raises:
            TokenFormatError: Unknown format or missing fields
            TokenSignatureError: Signature mismatch
        """
        try:
            fmt = ExportFormat(document.get("format"))
        except ValueError as e:
            raise TokenFormatError("Unknown export format") from e

        if fmt == ExportFormat.COMPACT:
            return decode_token(self.signing_key, document.get("token", ""))

        if fmt == ExportFormat.VC:
            credential = document.get("credential") or {}
            data = (credential.get("credentialSubject") or {}).get("relationship")
            signature = (credential.get("proof") or {}).get("proofValue")
        else:
            data = document.get("data")
            signature = document.get("signature")

        payload = TokenPayload.from_dict(data)
        if not isinstance(signature, str) or not self.signing_key.verify(
            canonical_json(data), signature
        ):
            raise TokenSignatureError("Signature does not match payload")
        return payload
