"""vcdoc - signed artifacts for Verifiable Credential documentation examples.

This package renders a W3C Verifiable Credential or Presentation into:
- A Data Integrity proof envelope (eddsa-jcs-2022 / ecdsa-jcs-2019)
- A compact JWT (vc+ld+jwt / vp+ld+jwt), signed with ES256 or explicitly unsigned
- A human-readable decoded trace of the JWT

Context documents come from a static, offline registry.

Usage:
    from vcdoc import ContextRegistry, DataIntegritySuite, KeyHandle
    from vcdoc import attach_proof, to_jwt

    contexts = ContextRegistry.with_bundled_contexts()
    envelope = attach_proof(vc, DataIntegritySuite.from_key(ed25519_key), contexts)
    artifact = to_jwt(vc, kid, KeyHandle(p256_key))
"""


# Use lazy imports to avoid RuntimeWarning when running modules directly
def __getattr__(name):
    """Lazy import to avoid import cycle when running modules directly."""
    if name in ("ContextRegistry", "BUNDLED_CONTEXTS"):
        from vcdoc import context_loader

        return getattr(context_loader, name)
    elif name in ("DataIntegritySuite", "attach_proof"):
        from vcdoc import data_integrity

        return getattr(data_integrity, name)
    elif name in ("HEADER_KEY_ORDER", "JwtArtifact", "KeyHandle", "to_jwt"):
        from vcdoc import jwt_transformer

        return getattr(jwt_transformer, name)
    elif name in ("Credential", "Presentation", "parse_document"):
        from vcdoc import document

        return getattr(document, name)
    elif name in (
        "VcDocError",
        "DocumentLoadError",
        "ContextResolutionError",
        "InvalidDocumentError",
        "UnknownDocumentKindError",
        "SigningError",
        "EncodingError",
    ):
        from vcdoc import errors

        return getattr(errors, name)
    raise AttributeError(f"module 'vcdoc' has no attribute {name!r}")


__all__ = [
    # Contexts
    "ContextRegistry",
    "BUNDLED_CONTEXTS",
    # Proofs
    "DataIntegritySuite",
    "attach_proof",
    # JWT
    "HEADER_KEY_ORDER",
    "JwtArtifact",
    "KeyHandle",
    "to_jwt",
    # Documents
    "Credential",
    "Presentation",
    "parse_document",
    # Errors
    "VcDocError",
    "DocumentLoadError",
    "ContextResolutionError",
    "InvalidDocumentError",
    "UnknownDocumentKindError",
    "SigningError",
    "EncodingError",
]
