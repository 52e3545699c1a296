"""Transform Verifiable Credentials and Presentations into compact JWTs.

The claim set is the source document itself, byte for byte the same JSON
object; all protocol metadata travels in the JOSE header:

- Credentials get ``typ: vc+ld+jwt``, presentations ``typ: vp+ld+jwt``
- ``iss`` is the issuer (or holder) id, ``iat`` the issue time in seconds
- Presentations also carry the caller's ``nonce`` and ``aud``
- ``kid`` names the verification method; it is left out when empty

Header keys are emitted in the fixed order of :data:`HEADER_KEY_ORDER` so the
same input and clock always give the same header bytes.

The ``none`` algorithm produces an unsigned token (empty signature segment)
for debugging and documentation. It is only used when a caller explicitly
asks for :meth:`KeyHandle.unsigned`.

CLI Usage:
    python -m vcdoc.jwt_transformer --help
    python -m vcdoc.jwt_transformer --document vc.json --key key.jwk --kid did:key:...
    python -m vcdoc.jwt_transformer -d vp.json -k key.jwk --nonce n-0S6 --audience https://verifier.example
"""

import argparse
import base64
import copy
import json
import logging
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from joserfc import jws
from joserfc.errors import JoseError
from joserfc.registry import HeaderParameter
from vcdoc._crypto import import_p256_private_key
from vcdoc.document import Credential, Presentation, SourceDocument, parse_document
from vcdoc.errors import (
    EncodingError,
    InvalidDocumentError,
    SigningError,
)
from vcdoc.keys import PrivateKey, generate_p256_keypair, load_private_key

logger = logging.getLogger(__name__)

ES256 = "ES256"
UNSIGNED_ALG = "none"

VC_JWT_TYP = Credential.typ
VP_JWT_TYP = Presentation.typ

#: Canonical order of the recognized header keys
HEADER_KEY_ORDER = ("alg", "typ", "iss", "iat", "kid", "nonce", "aud")

#: Header keys dropped from unsigned tokens
UNSIGNED_STRIPPED_KEYS = ("kid", "iat", "nonce", "aud")

# Header parameters beyond the RFC 7515 registry
_EXTRA_HEADER_REGISTRY = {
    "iss": HeaderParameter("Issuer", "str"),
    "iat": HeaderParameter("Issued At", "int"),
    "nonce": HeaderParameter("Nonce", "str"),
    "aud": HeaderParameter("Audience", "str"),
}

_TRACE_RULE = "----------------"


class KeyHandle:
    """P-256 signing key for JWTs, or the explicit unsigned sentinel."""

    def __init__(self, private_key: PrivateKey | None = None, alg: str = ES256):
        if alg not in (ES256, UNSIGNED_ALG):
            raise ValueError(f"Unsupported JWT algorithm: {alg!r}")
        self.private_key = private_key
        self.alg = alg

    @classmethod
    def generate(cls) -> "KeyHandle":
        """Create a handle around a freshly generated P-256 key."""
        private_key, _ = generate_p256_keypair()
        return cls(private_key)

    @classmethod
    def unsigned(cls) -> "KeyHandle":
        """Create the ``alg: none`` handle (debug/demo output only)."""
        return cls(None, alg=UNSIGNED_ALG)

    @property
    def is_unsigned(self) -> bool:
        return self.alg == UNSIGNED_ALG

    def sign(self, header: dict[str, Any], claims: dict[str, Any]) -> str:
        """Serialize ``header`` and ``claims`` into a compact token.

        Raises:
            EncodingError: If the claims are not JSON-serializable.
            SigningError: If the key is missing or rejected.
        """
        payload = encode_claims(claims)

        if self.is_unsigned:
            encoded_header = _b64url(
                json.dumps(header, separators=(",", ":")).encode("utf-8")
            )
            return f"{encoded_header}.{_b64url(payload)}."

        if self.private_key is None:
            raise SigningError("Key handle has no private key")
        key = import_p256_private_key(self.private_key)
        registry = jws.JWSRegistry(
            header_registry=_EXTRA_HEADER_REGISTRY, algorithms=[self.alg]
        )
        registry.max_header_length = 8192
        try:
            return jws.serialize_compact(
                header, payload, key, algorithms=[self.alg], registry=registry
            )
        except JoseError as e:
            raise SigningError(f"JWS signing failed: {e}") from e


@dataclass(frozen=True)
class JwtArtifact:
    """A produced JWT together with its decoded parts and display trace."""

    header: dict[str, Any]
    claims: dict[str, Any]
    compact_token: str
    trace: str


def to_jwt(
    document: dict,
    verification_method_id: str | None,
    key_handle: KeyHandle,
    *,
    nonce: str | None = None,
    audience: str | None = None,
    issued_at: int | None = None,
) -> JwtArtifact:
    """Transform a VC or VP into a JWT.

    Args:
        document: The credential or presentation. Used verbatim as claim set.
        verification_method_id: Value for ``kid``; ``""`` omits the header.
        key_handle: ES256 signing key, or ``KeyHandle.unsigned()``.
        nonce: Verifier challenge. Required for signed presentations.
        audience: Intended verifier. Required for signed presentations.
        issued_at: ``iat`` in seconds since epoch. Default: now.

    Returns:
        JwtArtifact with header, claims, compact token and display trace.

    Raises:
        UnknownDocumentKindError: If the document has neither issuer nor holder.
        SigningError: If the key material is invalid.
        EncodingError: If the claims are not JSON-serializable.
        ValueError: If a signed presentation lacks nonce or audience.
    """
    source = parse_document(document)
    if issued_at is None:
        issued_at = int(time.time())

    header = build_header(
        source,
        key_handle.alg,
        verification_method_id,
        issued_at,
        nonce=nonce,
        audience=audience,
    )
    claims = copy.deepcopy(source.document)

    token = key_handle.sign(header, claims)
    trace = format_trace(header, claims, token, protected=not key_handle.is_unsigned)

    logger.debug("Produced %s token for %s (alg=%s)", header["typ"], source.iss, header["alg"])
    return JwtArtifact(header=header, claims=claims, compact_token=token, trace=trace)


def build_header(
    source: SourceDocument,
    alg: str,
    kid: str | None,
    iat: int,
    *,
    nonce: str | None = None,
    audience: str | None = None,
) -> dict[str, Any]:
    """Build the JOSE header for a decoded document, in canonical key order."""
    header: dict[str, Any] = {
        "alg": alg,
        "typ": source.typ,
        "iss": source.iss,
        "iat": iat,
    }

    if isinstance(source, Presentation) and alg != UNSIGNED_ALG:
        if not nonce or not audience:
            raise ValueError(
                "Presentation JWTs require a caller-supplied nonce and audience"
            )
        header["nonce"] = nonce
        header["aud"] = audience

    if kid:
        header["kid"] = kid

    if alg == UNSIGNED_ALG:
        for key in UNSIGNED_STRIPPED_KEYS:
            header.pop(key, None)
        header["typ"] = VP_JWT_TYP

    return order_header(header)


def order_header(header: dict[str, Any]) -> dict[str, Any]:
    """Return ``header`` with keys in :data:`HEADER_KEY_ORDER`.

    Unrecognized keys are rejected rather than appended, which keeps the
    ordering total.
    """
    unknown = set(header) - set(HEADER_KEY_ORDER)
    if unknown:
        raise ValueError(f"Unrecognized header keys: {sorted(unknown)}")
    return {key: header[key] for key in HEADER_KEY_ORDER if key in header}


def encode_claims(claims: Any) -> bytes:
    """Serialize the claim set as UTF-8 JSON (the JWT payload)."""
    try:
        return json.dumps(claims, ensure_ascii=False, allow_nan=False).encode("utf-8")
    except (TypeError, ValueError) as e:
        raise EncodingError(f"Claim set is not JSON-serializable: {e}") from e


def format_trace(
    header: dict[str, Any], claims: dict[str, Any], token: str, *, protected: bool
) -> str:
    """Render the decoded header, claim set and compact token for display."""
    framing = "Protected" if protected else "Unprotected"
    sections = [
        (f"Decoded {framing} Header", _pretty(header)),
        (f"Decoded {framing} Claimset", _pretty(claims)),
        ("Compact Encoded JSON Web Token", token),
    ]
    lines = [""]
    for title, body in sections:
        lines.append(f"{_TRACE_RULE} {title} {_TRACE_RULE}")
        lines.append(body)
    lines.append("")
    return "\n".join(lines)


def _pretty(value: Any) -> str:
    return json.dumps(value, indent=2, ensure_ascii=False)


def _b64url(data: bytes) -> str:
    """Base64url encode without padding."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode()


def main():
    """CLI entry point for JWT transformation."""
    parser = argparse.ArgumentParser(
        prog="vcdoc.jwt_transformer",
        description="vcdoc VC/VP to JWT CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m vcdoc.jwt_transformer --document vc.json --key key.jwk --kid did:key:zDn...#zDn...
  python -m vcdoc.jwt_transformer -d vp.json -k key.jwk --nonce abc123 --audience did:web:verifier.example
  python -m vcdoc.jwt_transformer -d vc.json --unsigned --trace
        """,
    )
    parser.add_argument("--document", "-d", required=True, help="VC/VP JSON file")
    parser.add_argument("--key", "-k", help="P-256 private key (JWK file)")
    parser.add_argument("--kid", default="", help="Key ID for the JOSE header")
    parser.add_argument("--nonce", help="Challenge nonce (presentations)")
    parser.add_argument("--audience", help="Intended audience (presentations)")
    parser.add_argument(
        "--unsigned",
        action="store_true",
        help="Emit an unsigned (alg: none) token for debugging",
    )
    parser.add_argument(
        "--trace", action="store_true", help="Print the decoded trace, not the token"
    )

    args = parser.parse_args()

    if args.unsigned:
        key_handle = KeyHandle.unsigned()
    elif args.key:
        key_handle = KeyHandle(load_private_key(args.key))
    else:
        parser.error("--key is required unless --unsigned is given")

    document = json.loads(Path(args.document).read_text())
    try:
        artifact = to_jwt(
            document,
            args.kid,
            key_handle,
            nonce=args.nonce,
            audience=args.audience,
        )
    except (InvalidDocumentError, SigningError, EncodingError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    print(artifact.trace if args.trace else artifact.compact_token)


if __name__ == "__main__":
    main()
