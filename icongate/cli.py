"""
Command-line entry point for the icon compliance gate.

Usage:
  icongate run --root .                    # detect, validate, repair, report
  icongate emergency --root .              # pre-build pass over critical sizes
  icongate check --root .                  # validate and report only
  icongate run --logo assets/images/logo.png --parallel

Exit status: 0 gate passed, 1 no platform ready, 2 no platform detected.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from dataclasses import replace
from typing import List, Optional

from icongate.config import APP_NAME, APP_VERSION, PipelineConfig, config_from_env, load_config, parse_color, parse_sizes
from icongate.core.pipeline import CompliancePipeline
from icongate.errors import NoPlatformDetected
from icongate.logs import configure_logging
from icongate.models import PlatformTarget

logger = logging.getLogger("icongate.cli")

EXIT_OK = 0
EXIT_NOT_READY = 1
EXIT_NO_PLATFORM = 2


def _add_common(p: argparse.ArgumentParser) -> None:
    p.add_argument("--root", default=".", help="Project root containing ios/ and/or android/ (default: .)")
    p.add_argument("--config", default=None, help="JSON config file")
    p.add_argument("--logo", default=None, help="Preferred source image (default: assets/images/logo.png)")
    p.add_argument("--fallback", default=None, help="Fallback source image when no logo or icon is usable")
    p.add_argument("--background", default=None, help="Flatten colour for opaque icons, e.g. #FFFFFF")
    p.add_argument("--report", default=None, help="Report file name, relative to --root")
    p.add_argument("--no-json", action="store_true", help="Skip the JSON report sidecar")
    p.add_argument("--no-placeholder", action="store_true", help="Fail repair instead of drawing a placeholder icon")
    p.add_argument("--parallel", action="store_true", help="Process platforms concurrently")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="icongate", description=f"{APP_NAME}: store icon compliance gate")
    parser.add_argument("--version", action="version", version=f"%(prog)s {APP_VERSION}")
    sub = parser.add_subparsers(dest="command", required=True)

    p_run = sub.add_parser("run", help="Validate, repair and report (main pass)")
    _add_common(p_run)

    p_em = sub.add_parser("emergency", help="Pre-build pass over the critical icon sizes")
    _add_common(p_em)
    p_em.add_argument(
        "--critical-sizes",
        action="append",
        default=[],
        metavar="PLATFORM=SIZES",
        help="Override critical sizes, e.g. ios=120,152,167 (repeatable)",
    )

    p_check = sub.add_parser("check", help="Validate and report without repairing")
    _add_common(p_check)
    return parser


def build_config(args: argparse.Namespace, environ=None) -> PipelineConfig:
    """File config < environment < command-line flags."""
    base = load_config(args.config) if args.config else PipelineConfig()
    cfg = config_from_env(environ, base=base)

    changes = {}
    if args.logo:
        changes["logo_path"] = args.logo
    if args.fallback:
        changes["fallback_path"] = args.fallback
    if args.background:
        changes["background_color"] = parse_color(args.background)
    if args.report:
        key = "prebuild_report_name" if args.command == "emergency" else "report_name"
        changes[key] = args.report
    if args.no_json:
        changes["write_json"] = False
    if args.no_placeholder:
        changes["synthesize_placeholder"] = False
    if args.parallel:
        changes["parallel"] = True

    overrides = getattr(args, "critical_sizes", None) or []
    if overrides:
        critical = dict(cfg.critical_sizes)
        for item in overrides:
            name, sep, sizes = item.partition("=")
            if not sep:
                raise ValueError(f"Expected PLATFORM=SIZES, got {item!r}")
            critical[PlatformTarget(name.strip().lower())] = parse_sizes(sizes)
        changes["critical_sizes"] = critical

    return replace(cfg, **changes) if changes else cfg


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(verbose=args.verbose)

    try:
        cfg = build_config(args, os.environ)
    except (OSError, ValueError) as e:
        parser.error(f"invalid configuration: {e}")

    pipeline = CompliancePipeline(cfg)
    root = os.path.abspath(args.root)
    try:
        if args.command == "emergency":
            run = pipeline.emergency_fix(root)
        elif args.command == "check":
            run = pipeline.check(root)
        else:
            run = pipeline.run(root)
    except NoPlatformDetected as e:
        logger.error("%s", e)
        return EXIT_NO_PLATFORM

    return EXIT_OK if run.gate_passed else EXIT_NOT_READY


if __name__ == "__main__":
    sys.exit(main())
