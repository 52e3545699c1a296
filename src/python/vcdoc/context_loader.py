"""Static JSON-LD context registry and document loader.

Context documents are looked up in an in-memory table; there is no network
access and no fallback. A registry is built once per session, handed by
reference to whatever needs to dereference contexts, and only grows through
:meth:`ContextRegistry.register_context`.

CLI Usage:
    python -m vcdoc.context_loader --help
    python -m vcdoc.context_loader list
    python -m vcdoc.context_loader show https://www.w3.org/ns/credentials/v2
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

from vcdoc.errors import DocumentLoadError

logger = logging.getLogger(__name__)

CREDENTIALS_V1_URL = "https://www.w3.org/2018/credentials/v1"
CREDENTIALS_V2_URL = "https://www.w3.org/ns/credentials/v2"
DATA_INTEGRITY_V2_URL = "https://w3id.org/security/data-integrity/v2"
ED25519_2020_V1_URL = "https://w3id.org/security/suites/ed25519-2020/v1"

# Bundled contexts (URL -> file in the contexts/ package directory)
BUNDLED_CONTEXTS = {
    CREDENTIALS_V1_URL: "credentials-v1.json",
    CREDENTIALS_V2_URL: "credentials-v2.json",
    DATA_INTEGRITY_V2_URL: "data-integrity-v2.json",
    ED25519_2020_V1_URL: "ed25519-2020-v1.json",
}

CONTEXTS_DIR = Path(__file__).resolve().parent / "contexts"


class ContextRegistry:
    """Append-only mapping from context URL to context document."""

    def __init__(self, contexts: dict[str, Any] | None = None):
        self._contexts: dict[str, Any] = {}
        for url, document in (contexts or {}).items():
            self.register_context(url, document)

    @classmethod
    def with_bundled_contexts(cls) -> "ContextRegistry":
        """Create a registry pre-populated with the bundled W3C contexts."""
        registry = cls()
        for url, filename in BUNDLED_CONTEXTS.items():
            registry.register_context(url, _read_bundled(filename))
        return registry

    def register_context(self, url: str, document: Any) -> None:
        """Insert or overwrite the context document for ``url``."""
        if url in self._contexts:
            logger.debug("Replacing registered context %s", url)
        self._contexts[url] = document

    def resolve(self, url: str) -> dict[str, Any]:
        """Return a loader result for ``url``.

        Raises:
            DocumentLoadError: If ``url`` has not been registered.
        """
        try:
            document = self._contexts[url]
        except (KeyError, TypeError):
            raise DocumentLoadError(url) from None
        return {
            "contentType": "application/ld+json",
            "contextUrl": None,
            "documentUrl": url,
            "document": document,
        }

    def document_loader(self, url: str, options: dict | None = None) -> dict[str, Any]:
        """Loader callable handed to signature suites (same result as resolve)."""
        return self.resolve(url)

    @property
    def urls(self) -> list[str]:
        return sorted(self._contexts)

    def __contains__(self, url: object) -> bool:
        return url in self._contexts

    def __len__(self) -> int:
        return len(self._contexts)


def load_context_file(path: str | Path) -> Any:
    """Read a context document from a JSON file."""
    return json.loads(Path(path).read_text())


def _read_bundled(filename: str) -> Any:
    return json.loads((CONTEXTS_DIR / filename).read_text())


def main():
    """CLI entry point for inspecting the bundled contexts."""
    parser = argparse.ArgumentParser(
        prog="vcdoc.context_loader",
        description="vcdoc Context Registry CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m vcdoc.context_loader list
  python -m vcdoc.context_loader show https://www.w3.org/2018/credentials/v1
        """,
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")
    subparsers.add_parser("list", help="List bundled context URLs")
    show_parser = subparsers.add_parser("show", help="Print a bundled context")
    show_parser.add_argument("url", help="Context URL")

    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    registry = ContextRegistry.with_bundled_contexts()

    if args.command == "list":
        for url in registry.urls:
            print(url)

    elif args.command == "show":
        try:
            result = registry.resolve(args.url)
        except DocumentLoadError as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)
        print(json.dumps(result["document"], indent=2))


if __name__ == "__main__":
    main()
