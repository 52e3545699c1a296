"""Render documentation examples into a proof envelope and a JWT each.

Reads example credentials/presentations (JSON, optionally annotated with
``// ...`` line comments) and writes, per example:

  - <name>.proof.json  the document with an attached Data Integrity proof
  - <name>.jwt         the compact JWT
  - <name>.jwt.txt     decoded header, claim set and token for display

An example can name its own verification method with a
``// verification-method: <id>`` line; otherwise the global one is used.

The proof and the JWT are produced independently: a failure in one is
logged and reported, and the other is still written. Source files are
never modified.

CLI Usage:
    python -m vcdoc.examples --help
    python -m vcdoc.examples examples/
    python -m vcdoc.examples examples/vc.json --key proof-key.jwk --jwt-key jwt-key.jwk
"""

import argparse
import copy
import json
import logging
import re
import secrets
import sys
from dataclasses import dataclass, field
from pathlib import Path

from vcdoc.context_loader import ContextRegistry, load_context_file
from vcdoc.data_integrity import DataIntegritySuite, attach_proof
from vcdoc.errors import (
    DocumentLoadError,
    EncodingError,
    InvalidDocumentError,
    SigningError,
)
from vcdoc.jwt_transformer import JwtArtifact, KeyHandle, to_jwt
from vcdoc.keys import generate_ed25519_keypair, load_private_key

logger = logging.getLogger(__name__)

_LINE_COMMENT = re.compile(r"// .*$", re.MULTILINE)
_VM_ANNOTATION = re.compile(r"^\s*// verification-method: (\S+)\s*$", re.MULTILINE)

DEFAULT_WRAP_WIDTH = 75


@dataclass
class RenderedExample:
    """Artifacts (and per-artifact failures) for one example."""

    name: str
    document: dict
    proof_envelope: dict | None = None
    jwt: JwtArtifact | None = None
    errors: dict[str, Exception] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors


def strip_comments(text: str) -> str:
    """Remove ``// ...`` annotations that documentation examples carry."""
    return _LINE_COMMENT.sub("", text)


def example_verification_method(text: str) -> str | None:
    """Return the id named by a ``// verification-method: <id>`` line, if any."""
    match = _VM_ANNOTATION.search(text)
    return match.group(1) if match else None


def parse_example(text: str) -> dict:
    """Parse an annotated example into a JSON object."""
    try:
        document = json.loads(strip_comments(text))
    except json.JSONDecodeError as e:
        raise InvalidDocumentError(f"Example is not valid JSON: {e}") from e
    if not isinstance(document, dict):
        raise InvalidDocumentError("Example must be a JSON object")
    return document


def render_example(
    document: dict,
    suite: DataIntegritySuite,
    key_handle: KeyHandle,
    contexts: ContextRegistry,
    *,
    name: str = "example",
    verification_method: str | None = None,
    nonce: str | None = None,
    audience: str | None = None,
) -> RenderedExample:
    """Produce the proof envelope and the JWT for one example.

    If ``verification_method`` is given, this example is signed under it
    instead of the suite's own; the suite itself is left unchanged. The JWT
    ``kid`` is whichever id the proof is signed under.
    """
    if verification_method:
        suite = copy.copy(suite)
        suite.verification_method = verification_method

    rendered = RenderedExample(name=name, document=document)

    try:
        rendered.proof_envelope = attach_proof(document, suite, contexts)
    except (DocumentLoadError, SigningError, EncodingError) as e:
        logger.error("Failed to attach proof to %s: %s", name, e)
        rendered.errors["proof"] = e

    try:
        rendered.jwt = to_jwt(
            document,
            suite.verification_method or "",
            key_handle,
            nonce=nonce,
            audience=audience,
        )
    except (InvalidDocumentError, SigningError, EncodingError, ValueError) as e:
        logger.error("Failed to convert %s to JWT: %s", name, e)
        rendered.errors["jwt"] = e

    return rendered


def wrap_lines(text: str, width: int = DEFAULT_WRAP_WIDTH) -> str:
    """Hard-wrap every line of ``text`` at ``width`` characters.

    Empty lines are dropped.
    """
    return "\n".join(
        line[i : i + width]
        for line in text.splitlines()
        for i in range(0, len(line), width)
    )


def write_artifacts(
    rendered: RenderedExample, output_dir: Path, wrap: int | None = None
) -> list[Path]:
    """Write the artifacts that were produced and return their paths."""
    output_dir.mkdir(parents=True, exist_ok=True)
    written = []

    if rendered.proof_envelope is not None:
        text = json.dumps(rendered.proof_envelope, indent=2, ensure_ascii=False)
        if wrap:
            text = wrap_lines(text, wrap)
        path = output_dir / f"{rendered.name}.proof.json"
        path.write_text(text + "\n")
        written.append(path)

    if rendered.jwt is not None:
        jwt_path = output_dir / f"{rendered.name}.jwt"
        jwt_path.write_text(rendered.jwt.compact_token + "\n")
        written.append(jwt_path)

        trace = rendered.jwt.trace
        if wrap:
            trace = wrap_lines(trace, wrap)
        trace_path = output_dir / f"{rendered.name}.jwt.txt"
        trace_path.write_text(trace + "\n")
        written.append(trace_path)

    return written


def collect_examples(paths: list[str]) -> list[Path]:
    """Expand files and directories into a sorted list of example files."""
    example_files = []
    for path_str in paths:
        path = Path(path_str)
        if path.is_dir():
            example_files.extend(sorted(path.glob("*.json")))
        elif path.is_file():
            example_files.append(path)
        else:
            print(f"Warning: {path} not found", file=sys.stderr)
    return example_files


def main():
    """CLI entry point for example rendering."""
    parser = argparse.ArgumentParser(
        prog="vcdoc.examples",
        description="Render example credentials into proof and JWT artifacts",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m vcdoc.examples examples/
  python -m vcdoc.examples examples/vc.json --key proof-key.jwk --jwt-key jwt-key.jwk
  python -m vcdoc.examples examples/ --audience https://verifier.example --wrap 75
        """,
    )

    parser.add_argument("examples", nargs="+", help="Example files or directories")
    parser.add_argument(
        "--key", "-k", help="Proof signing key (JWK file). Default: fresh Ed25519 key"
    )
    parser.add_argument(
        "--jwt-key", help="JWT signing key (P-256 JWK file). Default: fresh P-256 key"
    )
    parser.add_argument(
        "--verification-method",
        help=(
            "Verification method id. Default: did:key of the proof key. "
            "An example's own // verification-method: line takes precedence"
        ),
    )
    parser.add_argument(
        "--nonce", help="Presentation nonce. Default: random per run"
    )
    parser.add_argument("--audience", help="Presentation audience")
    parser.add_argument(
        "--context",
        action="append",
        default=[],
        metavar="URL=FILE",
        help="Register an extra context document (repeatable)",
    )
    parser.add_argument(
        "--unsigned",
        action="store_true",
        help="Emit unsigned (alg: none) JWTs for debugging",
    )
    parser.add_argument(
        "--wrap",
        type=int,
        default=0,
        help=f"Wrap text output at N columns (e.g. {DEFAULT_WRAP_WIDTH}). Default: off",
    )
    parser.add_argument(
        "--output-dir", "-o", help="Output directory. Default: <input-dir>/signed/"
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    contexts = ContextRegistry.with_bundled_contexts()
    for entry in args.context:
        url, _, path = entry.partition("=")
        contexts.register_context(url, load_context_file(path))

    if args.key:
        proof_key = load_private_key(args.key)
    else:
        proof_key, _ = generate_ed25519_keypair()
    suite = DataIntegritySuite.from_key(proof_key)
    if args.verification_method:
        suite.verification_method = args.verification_method

    if args.unsigned:
        key_handle = KeyHandle.unsigned()
    elif args.jwt_key:
        key_handle = KeyHandle(load_private_key(args.jwt_key))
    else:
        key_handle = KeyHandle.generate()

    nonce = args.nonce or secrets.token_urlsafe(9)

    example_files = collect_examples(args.examples)
    if not example_files:
        print("No example credentials found", file=sys.stderr)
        sys.exit(1)

    output_dir = (
        Path(args.output_dir) if args.output_dir else example_files[0].parent / "signed"
    )

    print(f"Rendering {len(example_files)} examples...")
    print(f"  verification method: {suite.verification_method}")
    print(f"  output: {output_dir}")

    failures = 0
    for path in example_files:
        try:
            text = path.read_text()
            document = parse_example(text)
        except InvalidDocumentError as e:
            logger.error("Failed to parse %s: %s", path.name, e)
            failures += 1
            continue

        rendered = render_example(
            document,
            suite,
            key_handle,
            contexts,
            name=path.stem,
            verification_method=example_verification_method(text),
            nonce=nonce,
            audience=args.audience,
        )
        written = write_artifacts(rendered, output_dir, wrap=args.wrap or None)
        print(f"  {path.name} -> {', '.join(p.name for p in written) or '(nothing)'}")
        if not rendered.ok:
            failures += 1

    if failures:
        print(f"\n{failures} example(s) had errors", file=sys.stderr)
        sys.exit(1)

    print("Done.")


if __name__ == "__main__":
    main()
