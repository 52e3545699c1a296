"""Attach Data Integrity proofs to Verifiable Credentials and Presentations.

Proofs use the JCS-based cryptosuites, so no RDF canonicalization is needed:

- Ed25519 keys sign with ``eddsa-jcs-2022``
- P-256 keys sign with ``ecdsa-jcs-2019``

The signed bytes are ``sha256(JCS(proof config)) || sha256(JCS(document))``
and the signature is stored multibase-encoded in ``proofValue``. Every context
URL the document references, directly or through the contexts it pulls in,
is dereferenced through the document loader first, so a document that names
an unknown context is never signed.

CLI Usage:
    python -m vcdoc.data_integrity --help
    python -m vcdoc.data_integrity --credential vc.json --key key.jwk
"""

import argparse
import copy
import hashlib
import json
import logging
import sys
from collections.abc import Callable, Iterator
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import rfc8785
from cryptography.hazmat.primitives.asymmetric.ec import EllipticCurvePrivateKey
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from vcdoc._crypto import sign_raw
from vcdoc.context_loader import ContextRegistry, load_context_file
from vcdoc.errors import (
    ContextResolutionError,
    DocumentLoadError,
    EncodingError,
    SigningError,
)
from vcdoc.keys import (
    PrivateKey,
    did_key_verification_method,
    load_private_key,
    multibase_encode,
)

logger = logging.getLogger(__name__)

PROOF_TYPE = "DataIntegrityProof"
EDDSA_JCS_2022 = "eddsa-jcs-2022"
ECDSA_JCS_2019 = "ecdsa-jcs-2019"
DEFAULT_PROOF_PURPOSE = "assertionMethod"

DocumentLoader = Callable[..., dict]


class DataIntegritySuite:
    """Signature suite bound to a private key and a verification method.

    ``verification_method`` is a plain attribute read at signing time, so a
    single suite can sign under several key identifiers by repointing it
    between calls.

    Args:
        key: Ed25519 or P-256 private key.
        verification_method: URL naming the key, e.g. ``did:key:z..#z..``.
        proof_purpose: Value of ``proofPurpose``. Default: assertionMethod.
        created: Fixed creation time. Default: the current time per call.
    """

    def __init__(
        self,
        key: PrivateKey | None = None,
        verification_method: str | None = None,
        *,
        proof_purpose: str = DEFAULT_PROOF_PURPOSE,
        created: datetime | None = None,
    ):
        self.key = key
        self.verification_method = verification_method
        self.proof_purpose = proof_purpose
        self.created = created

    @classmethod
    def from_key(cls, key: PrivateKey, **kwargs) -> "DataIntegritySuite":
        """Create a suite whose verification method is the key's did:key."""
        return cls(key, did_key_verification_method(key.public_key()), **kwargs)

    @property
    def cryptosuite(self) -> str:
        if isinstance(self.key, Ed25519PrivateKey):
            return EDDSA_JCS_2022
        if isinstance(self.key, EllipticCurvePrivateKey):
            return ECDSA_JCS_2019
        raise SigningError(f"Unsupported key type: {type(self.key)}")

    def issue(self, document: dict, document_loader: DocumentLoader) -> dict:
        """Return a copy of ``document`` with a Data Integrity proof added.

        Raises:
            SigningError: If the key or verification method is missing or the
                key is rejected by the signer.
            ContextResolutionError: If a referenced context cannot be loaded.
            EncodingError: If the document is not JSON-serializable.
        """
        if self.key is None:
            raise SigningError("Signature suite has no key material")
        if not self.verification_method:
            raise SigningError("Signature suite has no verification method")
        cryptosuite = self.cryptosuite

        dereference_contexts(document, document_loader)

        unsecured = {k: v for k, v in document.items() if k != "proof"}
        proof_config: dict[str, Any] = {
            "type": PROOF_TYPE,
            "cryptosuite": cryptosuite,
            "created": _format_created(self.created),
            "verificationMethod": self.verification_method,
            "proofPurpose": self.proof_purpose,
        }
        if "@context" in document:
            proof_config["@context"] = document["@context"]

        hash_data = (
            hashlib.sha256(canonicalize(proof_config)).digest()
            + hashlib.sha256(canonicalize(unsecured)).digest()
        )

        proof = {k: v for k, v in proof_config.items() if k != "@context"}
        proof["proofValue"] = multibase_encode(sign_raw(self.key, hash_data))

        secured = dict(document)
        existing = document.get("proof")
        if existing is None:
            secured["proof"] = proof
        elif isinstance(existing, list):
            secured["proof"] = [*existing, proof]
        else:
            secured["proof"] = [existing, proof]

        logger.debug(
            "Issued %s proof for %s", cryptosuite, self.verification_method
        )
        return secured


def attach_proof(
    document: dict, suite: DataIntegritySuite, contexts: ContextRegistry
) -> dict:
    """Sign a deep copy of ``document`` and return the proof envelope.

    The caller's document is never handed to the suite, so it is left
    untouched whether signing succeeds or fails. Context dereferencing goes
    exclusively through ``contexts``.
    """
    document_copy = copy.deepcopy(document)
    return suite.issue(document_copy, contexts.document_loader)


def dereference_contexts(document: Any, document_loader: DocumentLoader) -> list[str]:
    """Load every context URL in the document's context chain.

    Returns the URLs in the order they were loaded.

    Raises:
        ContextResolutionError: On the first URL the loader cannot resolve.
    """
    pending = list(iter_context_urls(document))
    loaded: list[str] = []
    while pending:
        url = pending.pop(0)
        if url in loaded:
            continue
        try:
            result = document_loader(url)
        except ContextResolutionError:
            raise
        except DocumentLoadError as e:
            raise ContextResolutionError(e.url) from e
        loaded.append(url)
        pending.extend(iter_context_urls(result["document"]))
    return loaded


def iter_context_urls(value: Any) -> Iterator[str]:
    """Yield context URLs referenced by ``@context`` and ``@import`` entries."""
    if isinstance(value, dict):
        for key, item in value.items():
            if key in ("@context", "@import"):
                if isinstance(item, str):
                    yield item
                elif isinstance(item, list):
                    yield from (c for c in item if isinstance(c, str))
            yield from iter_context_urls(item)
    elif isinstance(value, list):
        for item in value:
            yield from iter_context_urls(item)


def canonicalize(obj: Any) -> bytes:
    """RFC 8785 JSON Canonicalization Scheme (JCS) serialization."""
    try:
        return rfc8785.dumps(obj)
    except (rfc8785.CanonicalizationError, TypeError) as e:
        raise EncodingError(f"Document cannot be canonicalized: {e}") from e


def _format_created(created: datetime | None) -> str:
    if created is None:
        created = datetime.now(timezone.utc)
    return created.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def main():
    """CLI entry point for attaching a Data Integrity proof."""
    parser = argparse.ArgumentParser(
        prog="vcdoc.data_integrity",
        description="vcdoc Data Integrity Proof CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m vcdoc.data_integrity --credential vc.json --key key.jwk
  python -m vcdoc.data_integrity -c vc.json -k key.jwk --context https://example.org/ctx=ctx.json
        """,
    )
    parser.add_argument("--credential", "-c", required=True, help="VC/VP JSON file")
    parser.add_argument("--key", "-k", required=True, help="Private key (JWK file)")
    parser.add_argument(
        "--verification-method",
        help="Verification method id. Default: did:key of the signing key",
    )
    parser.add_argument(
        "--context",
        action="append",
        default=[],
        metavar="URL=FILE",
        help="Register an extra context document (repeatable)",
    )
    parser.add_argument("--output", "-o", help="Output file (default: stdout)")

    args = parser.parse_args()

    contexts = ContextRegistry.with_bundled_contexts()
    for entry in args.context:
        url, _, path = entry.partition("=")
        contexts.register_context(url, load_context_file(path))

    suite = DataIntegritySuite.from_key(load_private_key(args.key))
    if args.verification_method:
        suite.verification_method = args.verification_method

    document = json.loads(Path(args.credential).read_text())
    try:
        secured = attach_proof(document, suite, contexts)
    except (DocumentLoadError, SigningError, EncodingError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    output = json.dumps(secured, indent=2, ensure_ascii=False)
    if args.output:
        Path(args.output).write_text(output + "\n")
        print(f"Secured document written to {args.output}", file=sys.stderr)
    else:
        print(output)


if __name__ == "__main__":
    main()
