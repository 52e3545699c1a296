"""Shared signing primitives for proofs and JWTs.

Internal module used by data_integrity and jwt_transformer.
"""

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives.asymmetric.ec import (
    ECDSA,
    SECP256R1,
    EllipticCurvePrivateKey,
)
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from cryptography.hazmat.primitives.asymmetric.utils import decode_dss_signature
from cryptography.hazmat.primitives.hashes import SHA256
from joserfc.jwk import ECKey
from vcdoc.errors import SigningError
from vcdoc.keys import PrivateKey, private_key_to_jwk


def import_p256_private_key(private_key: PrivateKey) -> ECKey:
    """Import a cryptography P-256 private key into a joserfc JWK."""
    check_p256_key(private_key)
    return ECKey.import_key(private_key_to_jwk(private_key))


def check_p256_key(private_key: object) -> None:
    """Raise SigningError unless ``private_key`` is a P-256 private key."""
    if not isinstance(private_key, EllipticCurvePrivateKey):
        raise SigningError(f"Expected a P-256 private key, got {type(private_key)}")
    if not isinstance(private_key.curve, SECP256R1):
        raise SigningError(f"Expected curve P-256, got {private_key.curve.name}")


def sign_raw(private_key: PrivateKey, data: bytes) -> bytes:
    """Sign ``data`` and return the raw signature bytes.

    Ed25519 signatures are 64 bytes; P-256 signatures are the 64-byte
    IEEE P1363 ``r || s`` form rather than DER.
    """
    try:
        if isinstance(private_key, Ed25519PrivateKey):
            return private_key.sign(data)
        if isinstance(private_key, EllipticCurvePrivateKey):
            check_p256_key(private_key)
            r, s = decode_dss_signature(private_key.sign(data, ECDSA(SHA256())))
            return r.to_bytes(32, "big") + s.to_bytes(32, "big")
    except (UnsupportedAlgorithm, ValueError) as e:
        raise SigningError(f"Signing failed: {e}") from e
    raise SigningError(f"Unsupported key type: {type(private_key)}")
