"""Tests for VC/VP to JWT transformation."""

import base64
import copy
import json
from unittest.mock import patch

import pytest
from cryptography.hazmat.primitives.asymmetric.ec import ECDSA
from cryptography.hazmat.primitives.asymmetric.utils import encode_dss_signature
from cryptography.hazmat.primitives.hashes import SHA256
from vcdoc.errors import EncodingError, SigningError, UnknownDocumentKindError
from vcdoc.jwt_transformer import (
    HEADER_KEY_ORDER,
    KeyHandle,
    build_header,
    format_trace,
    order_header,
    to_jwt,
)
from vcdoc.document import parse_document
from vcdoc.keys import generate_ed25519_keypair

NONCE = "n-0S6_WzA2Mj"
AUDIENCE = "https://verifier.example"
IAT = 1704110400


# ---------------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------------


class TestCredentialJwt:
    def test_header_typ_and_iss(self, minimal_vc, key_handle):
        artifact = to_jwt(minimal_vc, "did:example:123#key-1", key_handle)
        assert artifact.header["typ"] == "vc+ld+jwt"
        assert artifact.header["iss"] == "did:example:123"
        assert artifact.header["alg"] == "ES256"

    def test_embedded_issuer_object(self, sample_vc, key_handle):
        artifact = to_jwt(sample_vc, "", key_handle)
        assert artifact.header["iss"] == sample_vc["issuer"]["id"]

    def test_no_nonce_or_aud(self, minimal_vc, key_handle):
        artifact = to_jwt(minimal_vc, "did:example:123#key-1", key_handle)
        assert "nonce" not in artifact.header
        assert "aud" not in artifact.header

    def test_kid_is_verification_method(self, sample_vc, key_handle, p256_did_key_vm):
        artifact = to_jwt(sample_vc, p256_did_key_vm, key_handle)
        assert artifact.header["kid"] == p256_did_key_vm
        assert _decode_segment(artifact.compact_token, 0)["kid"] == p256_did_key_vm

    def test_empty_kid_is_omitted(self, sample_vc, key_handle):
        artifact = to_jwt(sample_vc, "", key_handle)
        assert "kid" not in artifact.header
        assert "kid" not in _decode_segment(artifact.compact_token, 0)

    def test_iat_is_whole_seconds(self, minimal_vc, key_handle):
        with patch("vcdoc.jwt_transformer.time.time", return_value=1704110400.75):
            artifact = to_jwt(minimal_vc, "did:example:123#key-1", key_handle)
        assert artifact.header["iat"] == 1704110400

    def test_explicit_issued_at(self, minimal_vc, key_handle):
        artifact = to_jwt(minimal_vc, "", key_handle, issued_at=IAT)
        assert artifact.header["iat"] == IAT


# ---------------------------------------------------------------------------
# Presentations
# ---------------------------------------------------------------------------


class TestPresentationJwt:
    def test_header_typ_iss_nonce_aud(self, minimal_vp, key_handle):
        artifact = to_jwt(
            minimal_vp, "did:example:789#key-1", key_handle, nonce=NONCE, audience=AUDIENCE
        )
        assert artifact.header["typ"] == "vp+ld+jwt"
        assert artifact.header["iss"] == "did:example:789"
        assert artifact.header["nonce"] == NONCE
        assert artifact.header["aud"] == AUDIENCE

    def test_nonce_and_audience_are_per_call(self, minimal_vp, key_handle):
        first = to_jwt(minimal_vp, "", key_handle, nonce="a", audience="did:web:one")
        second = to_jwt(minimal_vp, "", key_handle, nonce="b", audience="did:web:two")
        assert (first.header["nonce"], first.header["aud"]) == ("a", "did:web:one")
        assert (second.header["nonce"], second.header["aud"]) == ("b", "did:web:two")

    def test_nonce_and_audience_required(self, minimal_vp, key_handle):
        with pytest.raises(ValueError):
            to_jwt(minimal_vp, "", key_handle)
        with pytest.raises(ValueError):
            to_jwt(minimal_vp, "", key_handle, nonce=NONCE)

    def test_string_holder(self, sample_vp, key_handle):
        artifact = to_jwt(sample_vp, "", key_handle, nonce=NONCE, audience=AUDIENCE)
        assert artifact.header["iss"] == sample_vp["holder"]

    def test_claims_are_not_augmented(self, sample_vp, key_handle):
        artifact = to_jwt(sample_vp, "", key_handle, nonce=NONCE, audience=AUDIENCE)
        payload = _decode_segment(artifact.compact_token, 1)
        assert payload == sample_vp
        assert "nonce" not in payload
        assert "aud" not in payload


# ---------------------------------------------------------------------------
# Claims and determinism
# ---------------------------------------------------------------------------


class TestClaimsAndHeaderBytes:
    def test_claims_equal_input(self, sample_vc, key_handle):
        artifact = to_jwt(sample_vc, "", key_handle)
        assert artifact.claims == sample_vc
        assert _decode_segment(artifact.compact_token, 1) == sample_vc

    def test_standard_claims_not_rekeyed(self, key_handle):
        document = {"issuer": "did:example:1", "sub": "did:example:2", "exp": 1}
        artifact = to_jwt(document, "", key_handle)
        assert _decode_segment(artifact.compact_token, 1) == document

    def test_does_not_mutate_input(self, sample_vp, key_handle):
        original = copy.deepcopy(sample_vp)
        to_jwt(sample_vp, "did:example:1#k", key_handle, nonce=NONCE, audience=AUDIENCE)
        assert sample_vp == original

    def test_claims_do_not_alias_input(self, minimal_vc, key_handle):
        artifact = to_jwt(minimal_vc, "", key_handle)
        artifact.claims["added"] = 1
        artifact.claims["credentialSubject"]["id"] = "did:example:changed"
        assert "added" not in minimal_vc
        assert minimal_vc["credentialSubject"]["id"] == "did:example:456"

    def test_header_bytes_are_deterministic(self, sample_vp, key_handle):
        first = to_jwt(
            sample_vp, "did:example:1#k", key_handle,
            nonce=NONCE, audience=AUDIENCE, issued_at=IAT,
        )
        second = to_jwt(
            sample_vp, "did:example:1#k", key_handle,
            nonce=NONCE, audience=AUDIENCE, issued_at=IAT,
        )
        assert first.compact_token.split(".")[0] == second.compact_token.split(".")[0]
        assert first.header == second.header

    def test_header_key_order(self, minimal_vp, key_handle):
        artifact = to_jwt(
            minimal_vp, "did:example:789#key-1", key_handle,
            nonce=NONCE, audience=AUDIENCE, issued_at=IAT,
        )
        assert list(artifact.header) == list(HEADER_KEY_ORDER)
        encoded = artifact.compact_token.split(".")[0]
        assert _b64url_decode(encoded) == json.dumps(
            artifact.header, separators=(",", ":")
        ).encode()

    def test_order_header_is_total(self):
        shuffled = {"aud": "a", "kid": "k", "alg": "ES256", "iat": 1, "typ": "t"}
        assert list(order_header(shuffled)) == ["alg", "typ", "iat", "kid", "aud"]
        with pytest.raises(ValueError):
            order_header({"alg": "ES256", "x5c": []})

    def test_build_header_for_credential(self, minimal_vc):
        header = build_header(parse_document(minimal_vc), "ES256", "did:ex:1#k", IAT)
        assert header == {
            "alg": "ES256",
            "typ": "vc+ld+jwt",
            "iss": "did:example:123",
            "iat": IAT,
            "kid": "did:ex:1#k",
        }


# ---------------------------------------------------------------------------
# Signing
# ---------------------------------------------------------------------------


class TestSigning:
    def test_three_non_empty_segments(self, sample_vc, key_handle):
        token = to_jwt(sample_vc, "", key_handle).compact_token
        parts = token.split(".")
        assert len(parts) == 3
        assert all(parts)

    def test_signature_verifies(self, sample_vc, key_handle, p256_private_key):
        token = to_jwt(sample_vc, "", key_handle).compact_token
        header_b64, payload_b64, signature_b64 = token.split(".")
        signature = _b64url_decode(signature_b64)
        der = encode_dss_signature(
            int.from_bytes(signature[:32], "big"), int.from_bytes(signature[32:], "big")
        )
        p256_private_key.public_key().verify(
            der, f"{header_b64}.{payload_b64}".encode(), ECDSA(SHA256())
        )

    def test_missing_private_key(self, minimal_vc):
        with pytest.raises(SigningError):
            to_jwt(minimal_vc, "", KeyHandle(None))

    def test_wrong_key_type(self, minimal_vc):
        ed_key, _ = generate_ed25519_keypair()
        with pytest.raises(SigningError):
            to_jwt(minimal_vc, "", KeyHandle(ed_key))

    def test_unsupported_algorithm(self, p256_private_key):
        with pytest.raises(ValueError):
            KeyHandle(p256_private_key, alg="ES384")

    def test_generated_handle_signs(self, minimal_vc):
        artifact = to_jwt(minimal_vc, "", KeyHandle.generate())
        assert len(artifact.compact_token.split(".")) == 3


# ---------------------------------------------------------------------------
# Unsigned mode
# ---------------------------------------------------------------------------


class TestUnsigned:
    def test_empty_signature_segment(self, minimal_vc):
        artifact = to_jwt(minimal_vc, "did:example:123#key-1", KeyHandle.unsigned())
        parts = artifact.compact_token.split(".")
        assert len(parts) == 3
        assert parts[2] == ""

    def test_header_is_stripped(self, minimal_vp):
        artifact = to_jwt(
            minimal_vp, "did:example:789#key-1", KeyHandle.unsigned(),
            nonce=NONCE, audience=AUDIENCE,
        )
        for key in ("kid", "iat", "nonce", "aud"):
            assert key not in artifact.header
        assert artifact.header == {
            "alg": "none",
            "typ": "vp+ld+jwt",
            "iss": "did:example:789",
        }

    def test_typ_forced_to_presentation(self, minimal_vc):
        artifact = to_jwt(minimal_vc, "", KeyHandle.unsigned())
        assert artifact.header["typ"] == "vp+ld+jwt"
        assert _decode_segment(artifact.compact_token, 0) == artifact.header

    def test_presentation_needs_no_challenge(self, minimal_vp):
        artifact = to_jwt(minimal_vp, "", KeyHandle.unsigned())
        assert artifact.compact_token.endswith(".")

    def test_default_handle_is_signed(self, p256_private_key):
        assert KeyHandle(p256_private_key).alg == "ES256"
        assert not KeyHandle(p256_private_key).is_unsigned


# ---------------------------------------------------------------------------
# Trace
# ---------------------------------------------------------------------------


class TestTrace:
    def test_protected_sections(self, sample_vc, key_handle):
        artifact = to_jwt(sample_vc, "", key_handle)
        trace = artifact.trace
        assert "---------------- Decoded Protected Header ----------------" in trace
        assert "---------------- Decoded Protected Claimset ----------------" in trace
        assert (
            "---------------- Compact Encoded JSON Web Token ----------------" in trace
        )
        assert json.dumps(artifact.header, indent=2) in trace
        assert json.dumps(sample_vc, indent=2) in trace
        assert trace.rstrip().endswith(artifact.compact_token)

    def test_unprotected_sections(self, minimal_vc):
        trace = to_jwt(minimal_vc, "", KeyHandle.unsigned()).trace
        assert "Decoded Unprotected Header" in trace
        assert "Decoded Unprotected Claimset" in trace
        assert "Protected Header" not in trace.replace("Unprotected Header", "")

    def test_format_trace_layout(self):
        trace = format_trace({"alg": "none"}, {"holder": "did:ex:1"}, "a.b.", protected=False)
        assert trace == (
            "\n"
            "---------------- Decoded Unprotected Header ----------------\n"
            '{\n  "alg": "none"\n}\n'
            "---------------- Decoded Unprotected Claimset ----------------\n"
            '{\n  "holder": "did:ex:1"\n}\n'
            "---------------- Compact Encoded JSON Web Token ----------------\n"
            "a.b.\n"
        )


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class TestErrors:
    def test_unknown_document_kind(self, key_handle):
        with pytest.raises(UnknownDocumentKindError):
            to_jwt({"credentialSubject": {"id": "did:example:456"}}, "", key_handle)

    def test_non_serializable_claims(self, key_handle):
        with pytest.raises(EncodingError):
            to_jwt({"issuer": "did:example:1", "when": object()}, "", key_handle)

    def test_nan_is_not_json(self):
        with pytest.raises(EncodingError):
            to_jwt({"issuer": "did:example:1", "n": float("inf")}, "", KeyHandle.unsigned())


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _b64url_decode(s: str) -> bytes:
    return base64.urlsafe_b64decode(s + "=" * (-len(s) % 4))


def _decode_segment(token: str, index: int) -> dict:
    return json.loads(_b64url_decode(token.split(".")[index]))
