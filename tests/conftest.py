"""Shared fixtures for vcdoc tests."""

import json
from pathlib import Path

import pytest
from vcdoc.context_loader import ContextRegistry
from vcdoc.data_integrity import DataIntegritySuite
from vcdoc.jwt_transformer import KeyHandle
from vcdoc.keys import did_key_verification_method, load_private_key

FIXTURES_DIR = Path(__file__).parent / "fixtures"
EXAMPLES_DIR = FIXTURES_DIR / "examples"


# ---------------------------------------------------------------------------
# Key fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def ed25519_private_key():
    """Ed25519 private key loaded from the committed test fixture."""
    return load_private_key(FIXTURES_DIR / "test-keypair.json")


@pytest.fixture(scope="session")
def p256_private_key():
    """P-256 private key loaded from the committed test fixture."""
    return load_private_key(FIXTURES_DIR / "test-keypair-p256.json")


@pytest.fixture(scope="session")
def ed25519_did_key_vm(ed25519_private_key):
    """did:key verification method id for the Ed25519 key (did:key:z6Mk...#z6Mk...)."""
    return did_key_verification_method(ed25519_private_key.public_key())


@pytest.fixture(scope="session")
def p256_did_key_vm(p256_private_key):
    """did:key verification method id for the P-256 key (did:key:zDn...#zDn...)."""
    return did_key_verification_method(p256_private_key.public_key())


@pytest.fixture()
def key_handle(p256_private_key):
    return KeyHandle(p256_private_key)


@pytest.fixture()
def suite(ed25519_private_key, ed25519_did_key_vm):
    """Ed25519 Data Integrity suite pointed at the key's did:key."""
    return DataIntegritySuite(ed25519_private_key, ed25519_did_key_vm)


@pytest.fixture()
def contexts():
    """A fresh registry with the bundled contexts, one per test."""
    return ContextRegistry.with_bundled_contexts()


# ---------------------------------------------------------------------------
# Sample documents
# ---------------------------------------------------------------------------


@pytest.fixture()
def sample_vc():
    """A VC Data Model v2 credential with an embedded issuer object."""
    return json.loads((FIXTURES_DIR / "sample-vc.json").read_text())


@pytest.fixture()
def sample_vp(sample_vc):
    """A presentation wrapping the sample VC, held by its subject."""
    return {
        "@context": ["https://www.w3.org/ns/credentials/v2"],
        "type": ["VerifiablePresentation"],
        "holder": sample_vc["credentialSubject"]["id"],
        "verifiableCredential": [sample_vc],
    }


@pytest.fixture()
def minimal_vc():
    return {
        "issuer": "did:example:123",
        "credentialSubject": {"id": "did:example:456"},
    }


@pytest.fixture()
def minimal_vp():
    return {"holder": {"id": "did:example:789"}}
