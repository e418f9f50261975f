from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path
from typing import Optional, Sequence

from .config import SiteConfig, load_config
from .errors import BuildReport, CollisionError, ConfigError
from .site import build_site
from .utils import parse_bool, parse_int

logger = logging.getLogger(__name__)


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )


def print_report(report: BuildReport) -> None:
    if report.ok:
        return
    print(f"{len(report.failures)} document(s) failed:", file=sys.stderr)
    for number, failure in enumerate(report.failures, start=1):
        print(f"  {number}. {failure.source}: {failure}", file=sys.stderr)


def main(argv: Optional[Sequence[str]] = None) -> int:
    pre_parser = argparse.ArgumentParser(add_help=False)
    pre_parser.add_argument("--source", default=".")
    pre_parser.add_argument("--config", default="_config.yml")
    pre_args, _ = pre_parser.parse_known_args(argv)
    source = Path(pre_args.source)
    config_path = Path(pre_args.config)
    if not config_path.is_absolute():
        config_path = source / config_path

    try:
        raw_config = load_config(config_path)
    except ConfigError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 1

    def cfg_value(key: str, default: object) -> object:
        value = raw_config.get(key)
        return default if value is None else value

    parser = argparse.ArgumentParser(description="Build a static blog from Markdown posts.")
    parser.add_argument("--source", default=pre_args.source, help="Site source directory.")
    parser.add_argument(
        "--config",
        default=pre_args.config,
        help="Site config file (YAML/TOML/JSON), relative to the source directory.",
    )
    parser.add_argument(
        "--destination",
        default=str(cfg_value("destination", "_site")),
        help="Output directory, relative to the source directory.",
    )
    parser.add_argument(
        "--clean",
        action=argparse.BooleanOptionalAction,
        default=parse_bool(cfg_value("clean", True)),
        help="Remove the output directory before writing.",
    )
    parser.add_argument(
        "--drafts",
        action=argparse.BooleanOptionalAction,
        default=parse_bool(cfg_value("show_drafts", False)),
        help="Render posts from _drafts.",
    )
    parser.add_argument(
        "--workers",
        default=parse_int(cfg_value("build_workers", 0), 0),
        type=int,
        help="Number of render threads (0 = auto).",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    args = parser.parse_args(argv)
    _setup_logging(args.verbose)

    destination = Path(args.destination)
    if not destination.is_absolute():
        destination = source / destination

    start = time.perf_counter()
    try:
        config = SiteConfig.from_mapping(raw_config)
        report = build_site(
            config,
            source,
            destination,
            clean=args.clean,
            drafts=args.drafts,
            workers=args.workers,
        )
    except ConfigError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 1
    except CollisionError as exc:
        print(f"Permalink collision: {exc}", file=sys.stderr)
        return 1
    elapsed = time.perf_counter() - start
    print(f"Build completed in {elapsed:.2f}s.")
    print(f"Wrote {len(report.written)} files to: {destination}")
    print_report(report)
    return 0 if report.ok else 1


def run() -> None:
    sys.exit(main())
