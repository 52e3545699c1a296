"""Exception types raised while rendering credentials into signed artifacts.

Every failure reaches the immediate caller as one of these types. Nothing
here is retried automatically; a partially produced artifact is never
returned alongside an error.
"""


class VcDocError(Exception):
    """Base class for all vcdoc errors."""


class DocumentLoadError(VcDocError):
    """Raised when a context URL is not present in the context registry."""

    def __init__(self, url: str, message: str | None = None):
        self.url = url
        super().__init__(message or f'Document loader unable to load URL "{url}".')


class ContextResolutionError(DocumentLoadError):
    """Raised by the proof attacher when the document's context chain
    references an unregistered context URL."""


class InvalidDocumentError(VcDocError, ValueError):
    """Raised when a source document cannot be decoded."""


class UnknownDocumentKindError(InvalidDocumentError):
    """Raised when a document is neither a credential nor a presentation."""


class SigningError(VcDocError):
    """Raised when key material is missing or rejected by the signer."""


class EncodingError(VcDocError):
    """Raised when a document cannot be serialized to JSON."""
