"""Command-line entry point for the FTP server image harness.

Runs the built-in server scenarios outside pytest and prints one
result per scenario.
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from ftpharness.config.scenarios import SCENARIOS, get_scenario, scenario_names
from ftpharness.config.settings import HarnessSettings
from ftpharness.containers.exceptions import DockerUnavailableError
from ftpharness.containers.provisioner import ServerProvisioner
from ftpharness.scenario import ScenarioRunner
from ftpharness.utils.logging import setup_logging

EXIT_OK = 0
EXIT_CHECKS_FAILED = 1
EXIT_FATAL = 2


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="ftpharness",
        description="Check FTP/FTPS server container images against ftplib.",
    )
    parser.add_argument(
        "-s", "--scenario",
        action="append",
        dest="scenarios",
        metavar="NAME",
        help="Scenario to run (repeatable, default: all)",
    )
    parser.add_argument("--list", action="store_true", help="List scenario names and exit")
    parser.add_argument("--log-level", default=None, help="Logging level (default from settings)")
    parser.add_argument("--log-file", type=Path, default=None, help="Also write logs to this file")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    Harness entry point.

    Returns:
        0 if every scenario passed, 1 if checks failed, 2 on fatal errors
    """
    args = build_parser().parse_args(argv)

    if args.list:
        for name in scenario_names():
            print(name)
        return EXIT_OK

    try:
        settings = HarnessSettings.from_env()
        scenarios = [get_scenario(name) for name in args.scenarios] if args.scenarios else SCENARIOS
    except (ValueError, KeyError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FATAL

    log_file = args.log_file or (Path(settings.log_file) if settings.log_file else None)
    try:
        setup_logging(level=args.log_level or settings.log_level, log_file=log_file)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FATAL

    provisioner = ServerProvisioner(settings)
    try:
        provisioner.ping()
    except DockerUnavailableError as e:
        print(f"Fatal error: {e}", file=sys.stderr)
        return EXIT_FATAL

    runner = ScenarioRunner(settings, provisioner)
    results = [runner.run(scenario) for scenario in scenarios]

    for result in results:
        status = "PASS" if result.passed else "FAIL"
        print(f"{status} {result.summary()}")

    if any(result.fatal_error for result in results):
        return EXIT_FATAL
    if not all(result.passed for result in results):
        return EXIT_CHECKS_FAILED
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
