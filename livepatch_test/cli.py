"""CLI entry point for the live patch integration tests."""

import argparse
import asyncio
import json
import logging
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from livepatch_test.config import RunConfig, ToolConfigError
from livepatch_test.discovery import DiscoveryError, TestPlan, collect, discover
from livepatch_test.models.result import Verdict
from livepatch_test.orchestrator import RunController
from livepatch_test.result_log import ResultLog
from livepatch_test.runners.base import CommandRunner
from livepatch_test.runners.local import LocalCommandRunner

STATUS_SYMBOLS = {
    "pass": "✅",
    "fail": "❌",
    "skip": "⏭️",
}


def log_results_summary(log: logging.Logger, verdicts: Sequence[Verdict]) -> None:
    """Log a formatted summary of every verdict of the run."""
    log.info("=" * 80)
    log.info("Test Results Summary:")
    log.info("=" * 80)

    for verdict in verdicts:
        symbol = STATUS_SYMBOLS.get(verdict.status, "?")
        if verdict.reason:
            log.info(
                "%s %s: %s (%s)", symbol, verdict.check, verdict.status, verdict.reason
            )
        else:
            log.info("%s %s: %s", symbol, verdict.check, verdict.status)


def format_output(verdicts: Sequence[Verdict]) -> dict[str, Any]:
    """Format verdicts for JSON output."""
    results = [
        {"check": v.check, "status": v.status, "reason": v.reason} for v in verdicts
    ]
    return {
        "total": len(results),
        "passed": sum(1 for r in results if r["status"] == "pass"),
        "failed": sum(1 for r in results if r["status"] == "fail"),
        "skipped": sum(1 for r in results if r["status"] == "skip"),
        "results": results,
    }


def build_plan(directory: Path, patch_files: Sequence[Path]) -> TestPlan:
    """Discover the plan from explicit patch files or a directory."""
    if patch_files:
        return collect(patch_files)
    return discover(directory)


async def run(
    config: RunConfig,
    plan: TestPlan,
    runner: CommandRunner | None = None,
    json_output: bool = False,
) -> int:
    """Run the integration tests and return the exit code."""
    log = logging.getLogger("livepatch_test")

    result_log = ResultLog(path=config.run_log_path)
    if runner is None:
        runner = LocalCommandRunner(cwd=config.output_dir)

    controller = RunController(runner=runner, config=config, result_log=result_log)
    state = await controller.run(plan)

    log_results_summary(log, state.verdicts)
    if json_output:
        print(json.dumps(format_output(state.verdicts), indent=2))

    return result_log.exit_code


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Build, load and unload live patches and check probe results"
    )
    parser.add_argument(
        "patches",
        nargs="*",
        type=Path,
        metavar="PATCH",
        help="Patch files to test (default: every *.patch in --directory)",
    )
    parser.add_argument(
        "-c",
        "--cached",
        action="store_true",
        help="Reuse existing build artifacts instead of rebuilding",
    )
    parser.add_argument(
        "-d",
        "--directory",
        type=Path,
        default=Path.cwd(),
        help="Directory searched for *.patch and *.test files",
    )
    parser.add_argument(
        "-q",
        "--quick",
        action="store_true",
        help="Skip per-patch and custom load tests",
    )
    parser.add_argument(
        "-j",
        "--jobs",
        type=int,
        default=None,
        help="Number of parallel jobs passed to the builder",
    )
    parser.add_argument(
        "-o",
        "--output-dir",
        type=Path,
        default=None,
        help="Directory for built modules and logs (default: current directory)",
    )
    parser.add_argument(
        "--tool-config",
        default="",
        help="JSON object overriding tool commands, paths and timeouts",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print a JSON report of every verdict on stdout",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log external tool output on the console",
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    try:
        config = RunConfig(cached=args.cached, quick=args.quick).with_overrides(
            args.tool_config
        )
        updates: dict[str, Any] = {}
        if args.jobs is not None:
            updates["jobs"] = args.jobs
        if args.output_dir is not None:
            updates["output_dir"] = args.output_dir
        if updates:
            config = config.with_overrides(json.dumps(updates, default=str))
    except ToolConfigError as e:
        parser.error(str(e))

    try:
        plan = build_plan(args.directory, args.patches)
    except DiscoveryError as e:
        logging.getLogger("livepatch_test").error("%s", e)
        sys.exit(1)

    exit_code = asyncio.run(run(config, plan, json_output=args.json))
    sys.exit(exit_code)


if __name__ == "__main__":  # pragma: no cover
    main()
