# src/parsersmith/main.py — v1
"""CLI entry point: parse, cache and check commands.

Usage:
    parsersmith parse <text-file> --source S [--account-type T] --file-type pdf --mode transaction
    parsersmith cache list [--mode M]
    parsersmith cache show <source> --file-type pdf --mode transaction
    parsersmith cache clear <source> --file-type pdf --mode transaction
    parsersmith check <code-file>
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from parsersmith.core.models import FILE_TYPES, PARSING_MODES
from parsersmith.version import __version__

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    try:
        _setup_logging(args.verbose)
        return asyncio.run(args.func(args))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return 1


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="parsersmith",
        description=f"parsersmith v{__version__}: cached, validated statement parsers",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- parse ---
    p_parse = subparsers.add_parser(
        "parse", help="Extract records from a document's text",
    )
    p_parse.add_argument("file", type=Path, help="Path to the extracted document text")
    p_parse.add_argument("--source", required=True, help="Issuer / source identifier")
    _add_key_arguments(p_parse)
    p_parse.add_argument(
        "--expected", default=None,
        help='Expected summary as JSON, e.g. \'{"debit_count": 12}\'',
    )
    p_parse.add_argument(
        "--institution", default=None,
        help="Institution name for format hints (default: the source)",
    )
    p_parse.add_argument(
        "--account-type", default=None,
        help="Bank account type; keys the cache by institution and account type",
    )
    p_parse.add_argument(
        "--no-cache", action="store_true",
        help="Skip cached parsers and do not save the generated one",
    )
    p_parse.set_defaults(func=_cmd_parse)

    # --- cache ---
    p_cache = subparsers.add_parser("cache", help="Inspect or purge cached parsers")
    cache_sub = p_cache.add_subparsers(dest="cache_command")

    p_list = cache_sub.add_parser("list", help="List cached source keys")
    p_list.add_argument("--mode", choices=PARSING_MODES, default=None)
    p_list.set_defaults(func=_cmd_cache_list)

    p_show = cache_sub.add_parser("show", help="Show cached versions for a source")
    p_show.add_argument("source")
    _add_key_arguments(p_show)
    p_show.add_argument("--code", action="store_true", help="Print the code of each version")
    p_show.set_defaults(func=_cmd_cache_show)

    p_clear = cache_sub.add_parser("clear", help="Delete all versions for a source")
    p_clear.add_argument("source")
    _add_key_arguments(p_clear)
    p_clear.set_defaults(func=_cmd_cache_clear)

    # --- check ---
    p_check = subparsers.add_parser(
        "check", help="Run the static safety checks on a parser body",
    )
    p_check.add_argument("file", type=Path, help="Path to the parser function body")
    p_check.set_defaults(func=_cmd_check)

    return parser


def _add_key_arguments(p: argparse.ArgumentParser) -> None:
    p.add_argument("--file-type", choices=FILE_TYPES, default="pdf")
    p.add_argument("--mode", choices=PARSING_MODES, default="transaction")


async def _cmd_parse(args: argparse.Namespace) -> int:
    """Parse one document and print the outcome as JSON."""
    from parsersmith.core.errors import ParsingFailedError
    from parsersmith.core.keys import bank_source
    from parsersmith.core.models import ExpectedSummary
    from parsersmith.engine.service import create_parser_service

    file_path: Path = args.file
    if not file_path.exists():
        logger.error("File not found: %s", file_path)
        return 1

    expected = None
    if args.expected:
        expected = ExpectedSummary.model_validate_json(args.expected)

    source = args.source
    if args.account_type:
        source = bank_source(args.source, args.account_type)

    service = create_parser_service()
    try:
        outcome = await service.parse(
            source,
            args.file_type,
            file_path.read_text(encoding="utf-8"),
            args.mode,
            expected=expected,
            institution=args.institution or args.source,
            use_cache=not args.no_cache,
        )
    except ParsingFailedError as e:
        logger.error("%s (tried versions: %s)", e, e.tried_versions)
        return 1
    finally:
        service.close()

    print(outcome.model_dump_json(indent=2))
    return 0


async def _cmd_cache_list(args: argparse.Namespace) -> int:
    """Print cached keys per mode."""
    from parsersmith.engine.service import create_parser_service

    service = create_parser_service()
    try:
        for mode in [args.mode] if args.mode else PARSING_MODES:
            summaries = await service.list_cached(mode)
            print(f"\n{mode} ({service.store_for(mode).namespace}): {len(summaries)} keys")
            for s in summaries:
                print(f"  {s.key:40s} versions={s.version_count} latest=v{s.latest_version}")
    finally:
        service.close()
    return 0


async def _cmd_cache_show(args: argparse.Namespace) -> int:
    """Print every cached version of one source, newest first."""
    from parsersmith.engine.service import create_parser_service

    service = create_parser_service()
    try:
        entries = await service.describe(args.source, args.file_type, args.mode)
    finally:
        service.close()

    if not entries:
        print("No cached versions")
        return 0

    print(f"\n{entries[0].source_key}:")
    for e in entries:
        rate = "n/a" if e.success_rate is None else f"{e.success_rate:.0%}"
        print(
            f"  v{e.version}: format={e.detected_format} confidence={e.confidence:.2f} "
            f"success={e.success_count} fail={e.fail_count} rate={rate} "
            f"created={e.created_at.isoformat()}"
        )
        if args.code:
            print(e.code)
    return 0


async def _cmd_cache_clear(args: argparse.Namespace) -> int:
    """Delete all cached versions of one source."""
    from parsersmith.engine.service import create_parser_service

    service = create_parser_service()
    try:
        count = await service.clear_cache(args.source, args.file_type, args.mode)
    finally:
        service.close()
    print(f"Deleted {count} cached versions")
    return 0


async def _cmd_check(args: argparse.Namespace) -> int:
    """Report syntax errors and disallowed constructs in a parser body."""
    from parsersmith.core.errors import CodeSyntaxError
    from parsersmith.sandbox.validator import find_violations

    file_path: Path = args.file
    if not file_path.exists():
        logger.error("File not found: %s", file_path)
        return 1

    try:
        violations = find_violations(file_path.read_text(encoding="utf-8"))
    except CodeSyntaxError as e:
        print(json.dumps({"valid": False, "syntax_error": str(e)}, indent=2))
        return 1

    print(json.dumps({"valid": not violations, "violations": violations}, indent=2))
    return 0 if not violations else 1


def _setup_logging(verbose: bool) -> None:
    """Configure logging for CLI usage from LOG_* settings."""
    from parsersmith.config.settings import load_settings
    from parsersmith.logging.logger import setup_logging

    settings = load_settings()
    setup_logging(
        level="DEBUG" if verbose else settings.log_level,
        log_format=settings.log_format,
        log_file=settings.log_file,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )


if __name__ == "__main__":
    sys.exit(main())
