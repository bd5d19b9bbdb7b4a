#!/usr/bin/env python3
"""
Command line entry point.

Run: savings-harness [--variant TAG ...] [--cross-check]

Exit status: 0 when every counted run passed, 1 when any failed, 2 when
setup failed before results could be trusted.
"""

import argparse
import dataclasses

from pathlib import Path
from typing import Optional, Sequence

from .config import Settings
from .errors import FatalHarnessError
from .runner import ScenarioRunner
from .utils import log, save_json
from .variants import default_registry

EXIT_PASSED = 0
EXIT_FAILED = 1
EXIT_FATAL = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="savings-harness",
        description="Run the HelpMeSave scenario matrix against its bytecode variants",
    )
    parser.add_argument(
        "--variant",
        action="append",
        dest="variants",
        metavar="TAG",
        help="Variant to run (repeatable): compiled, literal-historical, forked-reference. Default: all available",
    )
    parser.add_argument(
        "--artifact",
        default=None,
        help="Compiled HelpMeSave artifact (truffle or forge JSON). Overrides HELPMESAVE_ARTIFACT",
    )
    parser.add_argument(
        "--fork-url",
        default=None,
        help="Archive node to fork for forked-reference runs. Overrides FORK_NODE_URL",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Scenario runs to execute in parallel. Overrides HARNESS_WORKERS",
    )
    parser.add_argument(
        "--cross-check",
        action="store_true",
        help="Hold every variant to both withdraw specifications and report which one it satisfies",
    )
    parser.add_argument(
        "--report",
        default=None,
        help="Write a JSON summary here. Overrides REPORT_PATH",
    )
    return parser


def settings_from_args(args) -> Settings:
    settings = Settings.from_env()
    overrides = {}
    if args.artifact:
        overrides["artifact_path"] = str(Path(args.artifact).expanduser().resolve())
    if args.fork_url:
        overrides["fork_url"] = args.fork_url
    if args.workers is not None:
        if args.workers < 1:
            raise SystemExit("--workers must be at least 1")
        overrides["workers"] = args.workers
    if args.report:
        overrides["report_path"] = args.report
    return dataclasses.replace(settings, **overrides)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = settings_from_args(args)

    try:
        registry = default_registry(settings)
        runner = ScenarioRunner(registry, settings, cross_check=args.cross_check)
        report = runner.run(args.variants)
    except FatalHarnessError as e:
        log(f"[FATAL] {type(e).__name__}: {e}")
        return EXIT_FATAL

    report.print_summary()
    if settings.report_path:
        save_json(report.to_dict(), settings.report_path)
        log(f"Summary saved to {settings.report_path}")
    return EXIT_FAILED if report.exit_code else EXIT_PASSED
