# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Site Chrome CLI: build, css commands.

Usage:
    python -m sitechrome.cli build [--url URL] [--units-dir DIR] [--stylesheet FILE] [--allow-fallback] [--no-sandbox]
    python -m sitechrome.cli css --css FILE --markup FILE --namespace SELECTOR [--output FILE]

Exit codes:
    0  every region live, or some regions deliberately emitted as placeholders
    1  fatal failure answered with fallback placeholders (0 with --allow-fallback),
       any write failure, or bad input
    130  interrupted
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from . import CSSDocument
from .build import run_build
from .config import BuildConfig
from .css.pipeline import run_pipeline
from .errors import ConfigError, WriteFailure
from .logging_config import configure

logger = logging.getLogger(__name__)


def _configure_logging(args: argparse.Namespace, config: BuildConfig | None = None) -> None:
    level = "DEBUG" if args.verbose else (config.log_level if config else "INFO")
    configure(json_output=args.json_logs or bool(config and config.json_logs), level=level)


def cmd_build(args: argparse.Namespace) -> int:
    """Extract header/footer from the target page and emit the units."""
    try:
        env_config = BuildConfig.from_env()
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    config = env_config.with_overrides(
        target_url=args.url,
        units_dir=Path(args.units_dir) if args.units_dir else None,
        stylesheet_path=Path(args.stylesheet) if args.stylesheet else None,
        no_sandbox=True if args.no_sandbox else None,
    )
    _configure_logging(args, config)

    try:
        report = asyncio.run(run_build(config))
    except WriteFailure as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    logger.info(
        "Done: status=%s, %d file(s) written, %d stylesheet(s) collected, %d failed",
        report.status.value,
        len(report.written),
        report.stylesheets_collected,
        report.stylesheets_failed,
    )
    code = report.exit_code(allow_fallback=args.allow_fallback)
    if report.error and code:
        print(f"Error: {report.error} (placeholders emitted; pass --allow-fallback to exit 0)", file=sys.stderr)
    return code


def cmd_css(args: argparse.Namespace) -> int:
    """Replay the CSS pipeline offline on saved CSS and markup."""
    _configure_logging(args)
    try:
        css_text = Path(args.css).read_text(encoding="utf-8")
        markup = Path(args.markup).read_text(encoding="utf-8")
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    result = run_pipeline(CSSDocument(text=css_text), markup, args.namespace)
    if not args.output:
        sys.stdout.write(result.text)
        return 0
    try:
        Path(args.output).write_text(result.text, encoding="utf-8")
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    common.add_argument("--json-logs", action="store_true", help="Log JSON lines to stderr")

    parser = argparse.ArgumentParser(
        description="Site Chrome CLI",
        prog="python -m sitechrome.cli",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    _build_epilog = """\
examples:
  %(prog)s --url https://example.org/?flg=fr       Build from a live page
  %(prog)s --no-sandbox                             Root CI container (URL from env)
  %(prog)s --allow-fallback                         Exit 0 even when placeholders were emitted
"""
    p_build = subparsers.add_parser(
        "build",
        parents=[common],
        help="Extract header/footer and emit components + stylesheet",
        epilog=_build_epilog,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    p_build.add_argument("--url", type=str, metavar="URL", help="Page to lift (default: SITECHROME_TARGET_URL)")
    p_build.add_argument("--units-dir", type=str, metavar="DIR", help="Output directory for the components")
    p_build.add_argument("--stylesheet", type=str, metavar="FILE", help="Output path for the stylesheet")
    p_build.add_argument(
        "--allow-fallback",
        action="store_true",
        help="Exit 0 when a fatal failure was answered with placeholders",
    )
    p_build.add_argument("--no-sandbox", action="store_true", help="Disable the Chromium sandbox (root containers)")
    p_build.set_defaults(func=cmd_build)

    p_css = subparsers.add_parser("css", parents=[common], help="Run the CSS pipeline on saved files")
    p_css.add_argument("--css", type=str, required=True, metavar="FILE", help="Collected CSS")
    p_css.add_argument("--markup", type=str, required=True, metavar="FILE", help="Region markup to purge against")
    p_css.add_argument("--namespace", type=str, required=True, metavar="SELECTOR", help="Scope selector")
    p_css.add_argument("-o", "--output", type=str, metavar="FILE", help="Output file (default: stdout)")
    p_css.set_defaults(func=cmd_css)

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        code = args.func(args)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(130)
    sys.exit(code)


if __name__ == "__main__":
    main()
