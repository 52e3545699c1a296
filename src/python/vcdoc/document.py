"""Decode a source document into a Credential or Presentation variant.

The kind of a document is decided once, here, from the presence of an
``issuer`` (credential) or ``holder`` (presentation) entry. Everything
downstream dispatches on the returned variant.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union

from vcdoc.errors import InvalidDocumentError, UnknownDocumentKindError


@dataclass(frozen=True)
class Credential:
    """A Verifiable Credential, identified by its issuer."""

    document: dict[str, Any]
    issuer: str

    typ = "vc+ld+jwt"

    @property
    def iss(self) -> str:
        return self.issuer


@dataclass(frozen=True)
class Presentation:
    """A Verifiable Presentation, identified by its holder."""

    document: dict[str, Any]
    holder: str

    typ = "vp+ld+jwt"

    @property
    def iss(self) -> str:
        return self.holder


SourceDocument = Union[Credential, Presentation]


def parse_document(document: Any) -> SourceDocument:
    """Decode ``document`` into its variant.

    Raises:
        UnknownDocumentKindError: If the document has neither ``issuer`` nor
            ``holder``, or has both.
        InvalidDocumentError: If the issuer/holder reference has no usable id.
    """
    if not isinstance(document, dict):
        raise UnknownDocumentKindError(
            f"Expected a JSON object, got {type(document).__name__}"
        )

    issuer = document.get("issuer")
    holder = document.get("holder")

    if issuer and holder:
        raise UnknownDocumentKindError(
            "Document has both 'issuer' and 'holder'; cannot tell credential "
            "from presentation"
        )
    if issuer:
        return Credential(document=document, issuer=entity_id(issuer, "issuer"))
    if holder:
        return Presentation(document=document, holder=entity_id(holder, "holder"))
    raise UnknownDocumentKindError(
        "Document has neither 'issuer' nor 'holder'"
    )


def entity_id(entity: Any, field: str = "entity") -> str:
    """Return the identifier of an entity reference.

    Accepts both the plain string form (``"did:example:123"``) and the
    embedded object form (``{"id": "did:example:123", ...}``).
    """
    if isinstance(entity, dict):
        entity = entity.get("id")
    if not isinstance(entity, str) or not entity:
        raise InvalidDocumentError(f"'{field}' has no string identifier")
    return entity
