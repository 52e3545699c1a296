"""Key material for proof and JWT signing: generation, did:key, JWK import/export.

Both signing paths accept Ed25519 and P-256 keys for Data Integrity proofs;
JWTs are always signed with P-256 (ES256).

CLI Usage:
    python -m vcdoc.keys --help
    python -m vcdoc.keys generate --algorithm ES256
    python -m vcdoc.keys convert --input key.jwk --format verification-method
"""

import argparse
import base64
import json
import sys
from pathlib import Path

import base58
from cryptography.hazmat.primitives.asymmetric.ec import (
    SECP256R1,
    EllipticCurvePrivateKey,
    EllipticCurvePrivateNumbers,
    EllipticCurvePublicKey,
    EllipticCurvePublicNumbers,
    generate_private_key,
)
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    NoEncryption,
    PrivateFormat,
    PublicFormat,
)

# Multicodec prefixes (varint-encoded)
_ED25519_MULTICODEC_PREFIX = b"\xed\x01"  # ed25519-pub 0xed
_P256_MULTICODEC_PREFIX = b"\x80\x24"  # p256-pub 0x1200

# Union type for keys supported by this module
PrivateKey = Ed25519PrivateKey | EllipticCurvePrivateKey
PublicKeyType = Ed25519PublicKey | EllipticCurvePublicKey


# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------


def generate_ed25519_keypair() -> tuple[Ed25519PrivateKey, Ed25519PublicKey]:
    """Generate a fresh Ed25519 key pair."""
    private_key = Ed25519PrivateKey.generate()
    return private_key, private_key.public_key()


def generate_p256_keypair() -> tuple[EllipticCurvePrivateKey, EllipticCurvePublicKey]:
    """Generate a fresh P-256 (secp256r1) key pair."""
    private_key = generate_private_key(SECP256R1())
    return private_key, private_key.public_key()


# ---------------------------------------------------------------------------
# did:key
# ---------------------------------------------------------------------------


def public_key_to_multibase(public_key: PublicKeyType) -> str:
    """Encode a public key as multibase base58btc (z6Mk... or zDn...)."""
    if isinstance(public_key, Ed25519PublicKey):
        raw = public_key.public_bytes(Encoding.Raw, PublicFormat.Raw)
        return multibase_encode(_ED25519_MULTICODEC_PREFIX + raw)
    if isinstance(public_key, EllipticCurvePublicKey):
        # Compressed SEC1 encoding (33 bytes)
        compressed = public_key.public_bytes(
            Encoding.X962, PublicFormat.CompressedPoint
        )
        return multibase_encode(_P256_MULTICODEC_PREFIX + compressed)
    raise TypeError(f"Unsupported key type: {type(public_key)}")


def public_key_to_did_key(public_key: PublicKeyType) -> str:
    """Derive a did:key identifier from a public key."""
    return f"did:key:{public_key_to_multibase(public_key)}"


def did_key_verification_method(public_key: PublicKeyType) -> str:
    """Derive the did:key verification method id (did:key:z...#z...)."""
    did = public_key_to_did_key(public_key)
    return f"{did}#{did.split(':')[-1]}"


def multibase_encode(data: bytes) -> str:
    """Multibase base58btc encoding ('z' prefix)."""
    return "z" + base58.b58encode(data).decode()


# ---------------------------------------------------------------------------
# JWK
# ---------------------------------------------------------------------------


def private_key_to_jwk(private_key: PrivateKey) -> dict:
    """Export a private key as a JWK dict (OKP/Ed25519 or EC/P-256)."""
    if isinstance(private_key, Ed25519PrivateKey):
        raw_private = private_key.private_bytes(
            Encoding.Raw, PrivateFormat.Raw, NoEncryption()
        )
        jwk = public_key_to_jwk(private_key.public_key())
        jwk["d"] = _b64url(raw_private)
        return jwk
    if isinstance(private_key, EllipticCurvePrivateKey):
        jwk = public_key_to_jwk(private_key.public_key())
        jwk["d"] = _b64url(private_key.private_numbers().private_value.to_bytes(32, "big"))
        return jwk
    raise TypeError(f"Unsupported key type: {type(private_key)}")


def public_key_to_jwk(public_key: PublicKeyType) -> dict:
    """Export a public key as a JWK dict (OKP/Ed25519 or EC/P-256)."""
    if isinstance(public_key, Ed25519PublicKey):
        raw_public = public_key.public_bytes(Encoding.Raw, PublicFormat.Raw)
        return {"kty": "OKP", "crv": "Ed25519", "x": _b64url(raw_public)}
    if isinstance(public_key, EllipticCurvePublicKey):
        numbers = public_key.public_numbers()
        return {
            "kty": "EC",
            "crv": "P-256",
            "x": _b64url(numbers.x.to_bytes(32, "big")),
            "y": _b64url(numbers.y.to_bytes(32, "big")),
        }
    raise TypeError(f"Unsupported key type: {type(public_key)}")


def private_key_from_jwk(jwk: dict) -> PrivateKey:
    """Reconstruct a private key from a JWK dict."""
    if jwk.get("kty") == "EC" and jwk.get("crv") == "P-256":
        x = int.from_bytes(_b64url_decode(jwk["x"]), "big")
        y = int.from_bytes(_b64url_decode(jwk["y"]), "big")
        d = int.from_bytes(_b64url_decode(jwk["d"]), "big")
        pub_nums = EllipticCurvePublicNumbers(x, y, SECP256R1())
        return EllipticCurvePrivateNumbers(d, pub_nums).private_key()
    if jwk.get("kty") == "OKP" and jwk.get("crv") == "Ed25519":
        return Ed25519PrivateKey.from_private_bytes(_b64url_decode(jwk["d"]))
    raise ValueError(f"Unsupported key type: {jwk.get('kty')}/{jwk.get('crv')}")


def public_key_from_jwk(jwk: dict) -> PublicKeyType:
    """Reconstruct a public key from a JWK dict."""
    if jwk.get("kty") == "EC" and jwk.get("crv") == "P-256":
        x = int.from_bytes(_b64url_decode(jwk["x"]), "big")
        y = int.from_bytes(_b64url_decode(jwk["y"]), "big")
        return EllipticCurvePublicNumbers(x, y, SECP256R1()).public_key()
    if jwk.get("kty") == "OKP" and jwk.get("crv") == "Ed25519":
        return Ed25519PublicKey.from_public_bytes(_b64url_decode(jwk["x"]))
    raise ValueError(f"Unsupported key type: {jwk.get('kty')}/{jwk.get('crv')}")


def load_private_key(jwk_path: str | Path) -> PrivateKey:
    """Load a private key from a JWK file."""
    return private_key_from_jwk(json.loads(Path(jwk_path).read_text()))


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _b64url(data: bytes) -> str:
    """Base64url encode without padding."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode()


def _b64url_decode(s: str) -> bytes:
    """Base64url decode with padding restoration."""
    s += "=" * (-len(s) % 4)
    return base64.urlsafe_b64decode(s)


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


def main():
    """CLI entry point for key operations."""
    parser = argparse.ArgumentParser(
        prog="vcdoc.keys",
        description="vcdoc Key Management CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m vcdoc.keys generate --algorithm ES256 --output jwt-key.jwk
  python -m vcdoc.keys generate --algorithm EdDSA --output proof-key.jwk
  python -m vcdoc.keys convert --input proof-key.jwk --format verification-method
        """,
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    gen_parser = subparsers.add_parser(
        "generate",
        help="Generate a new keypair (Ed25519 or P-256)",
        description="Generate a keypair for proof or JWT signing.",
    )
    gen_parser.add_argument(
        "--algorithm",
        "-a",
        choices=["ES256", "EdDSA"],
        default="ES256",
        help="Algorithm: ES256 (P-256) or EdDSA (Ed25519). Default: ES256",
    )
    gen_parser.add_argument("--output", "-o", help="Output file (default: stdout)")
    gen_parser.add_argument(
        "--public-only", action="store_true", help="Output only public key"
    )

    conv_parser = subparsers.add_parser(
        "convert",
        help="Convert a JWK to did:key, multibase or verification method id",
    )
    conv_parser.add_argument("--input", "-i", required=True, help="Input JWK file")
    conv_parser.add_argument(
        "--format",
        "-f",
        choices=["jwk", "did-key", "multibase", "verification-method"],
        default="did-key",
        help="Output format. Default: did-key",
    )

    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    if args.command == "generate":
        if args.algorithm == "ES256":
            priv, pub = generate_p256_keypair()
        else:
            priv, pub = generate_ed25519_keypair()
        jwk = public_key_to_jwk(pub) if args.public_only else private_key_to_jwk(priv)

        output = json.dumps(jwk, indent=2)
        if args.output:
            Path(args.output).write_text(output)
            print(f"Key written to {args.output}", file=sys.stderr)
        else:
            print(output)

    elif args.command == "convert":
        jwk = json.loads(Path(args.input).read_text())
        try:
            pub = public_key_from_jwk(jwk)
        except ValueError as e:
            print(str(e), file=sys.stderr)
            sys.exit(1)

        if args.format == "did-key":
            print(public_key_to_did_key(pub))
        elif args.format == "multibase":
            print(public_key_to_multibase(pub))
        elif args.format == "verification-method":
            print(did_key_verification_method(pub))
        else:
            print(json.dumps(public_key_to_jwk(pub), indent=2))


if __name__ == "__main__":
    main()
