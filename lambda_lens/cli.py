"""
cli.py — command-line entry point for lambda_lens.

Usage
-----
# List run/debug/configure affordances for a file
python -m lambda_lens scan src/app.py --workspace .

# Detect the SAM CLI (forced re-detect)
python -m lambda_lens detect --force

# Check the SAM CLI version against the supported range
python -m lambda_lens validate

# Build and locally invoke one handler
python -m lambda_lens invoke src/app.py app.handler --workspace .

Environment
-----------
Settings come from LAMBDA_LENS_* variables or a .env file, e.g.
  LAMBDA_LENS_SAM_CLI_LOCATION=/usr/local/bin/sam
  LAMBDA_LENS_LOG_LEVEL=DEBUG
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Any

from pydantic import ValidationError

from lambda_lens.config import VERSION, configure_logging, get_settings
from lambda_lens.contracts import AffordanceAction, ValidationOutcome
from lambda_lens.document import Document
from lambda_lens.errors import LensError
from lambda_lens.toolkit import LambdaLensToolkit


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, default=str))


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lambda_lens",
        description="Find serverless handlers and run them locally through SAM CLI.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--version", action="version", version=f"lambda_lens {VERSION}")
    sub = parser.add_subparsers(dest="command", required=True)

    scan = sub.add_parser("scan", help="List handler affordances in a source file.")
    scan.add_argument("path")
    scan.add_argument("--workspace", action="append", default=None,
                      help="Workspace folder (repeatable). Defaults to the current directory.")
    scan.add_argument("--language", default=None, help="Override the detected language id.")

    detect = sub.add_parser("detect", help="Locate the SAM CLI and report its version.")
    detect.add_argument("--force", action="store_true", help="Ignore the cached result.")

    sub.add_parser("validate", help="Validate the SAM CLI version.")

    invoke = sub.add_parser("invoke", help="Build and locally invoke a handler.")
    invoke.add_argument("path")
    invoke.add_argument("handler", help="Fully-qualified handler name, e.g. app.handler")
    invoke.add_argument("--workspace", action="append", default=None)
    invoke.add_argument("--debug", action="store_true", help="Attach a debugger port.")

    return parser


async def _run(args: argparse.Namespace) -> int:
    settings = get_settings()
    toolkit = LambdaLensToolkit(getattr(args, "workspace", None) or ["."], settings)

    if args.command == "detect":
        result = await toolkit.detect_tool(force_refresh=args.force)
        _print_json(result.model_dump(mode="json"))
        return 0 if result.found else 1

    if args.command == "validate":
        outcome = await toolkit.validate_tool_version()
        print(outcome.value)
        return 0 if outcome is ValidationOutcome.VALID else 1

    document = Document.from_path(args.path, getattr(args, "language", None))

    if args.command == "scan":
        affordances = toolkit.build_affordances(document)
        _print_json([a.model_dump(mode="json") for a in affordances])
        return 0

    # invoke
    action = AffordanceAction.DEBUG if args.debug else AffordanceAction.RUN
    matches = [
        a for a in toolkit.build_affordances(document)
        if a.handler_name == args.handler and a.action is action
    ]
    if not matches:
        print(f"[lambda_lens] no {action.value} affordance for '{args.handler}'", file=sys.stderr)
        return 2
    result = await toolkit.invoke(matches[0], args.debug)
    print(result.output)
    if not result.succeeded and result.error is not None:
        print(f"[lambda_lens] FAILED: {result.error.message}", file=sys.stderr)
    return 0 if result.succeeded else 1


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    try:
        configure_logging(get_settings())
    except ValidationError as exc:
        print(f"[lambda_lens] ERROR: invalid LAMBDA_LENS_* settings:\n{exc}", file=sys.stderr)
        return 1
    try:
        return asyncio.run(_run(args))
    except LensError as exc:
        print(f"[lambda_lens] ERROR: {exc}", file=sys.stderr)
        return 1
    except (OSError, UnicodeDecodeError) as exc:
        print(f"[lambda_lens] ERROR: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\n[lambda_lens] Interrupted by user.", file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())
