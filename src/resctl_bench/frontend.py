"""
Command line interface for resctl-bench.

    resctl-bench run SCENARIO.yaml [SCENARIO.yaml ...] [--resume]
    resctl-bench report RESULT.json
    resctl-bench compare BASELINE.json CURRENT.json

Scenarios given to `run` execute strictly one after another, since the
engine assumes a single active run per resource-control agent.
"""

import argparse
import logging
import signal
import sys
import threading
from pathlib import Path
from typing import List, Optional

from resctl_bench import __version__, config
from resctl_bench.core.orchestrator import ScenarioOrchestrator
from resctl_bench.errors import BenchError, ConfigError, SetupError
from resctl_bench.infra.adapters import AgentControl, HashdWorkload
from resctl_bench.infra.communicator import create_communicator
from resctl_bench.models.result import BenchmarkResult
from resctl_bench.models.scenario import load_scenario
from resctl_bench.models.verdict import RunStatus
from resctl_bench.reporting.artifacts import (
    build_environment,
    calculate_scenario_hash,
    read_checkpoint,
    read_result_json,
    write_checkpoint,
    write_result_json,
)
from resctl_bench.reporting.reporter import (
    compare_results,
    format_comparison,
    generate_markdown_report,
    write_report,
)
from resctl_bench.reporting.plotting import plot_rounds


def setup_logging(level: str = config.LOG_LEVEL) -> None:
    """Configure root logging for the command line."""
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def print_result_summary(result: BenchmarkResult, run_dir: Path) -> None:
    knob = result.parameters.get("knob", "parameter")
    print(f"\n{'='*60}")
    print(f"Scenario: {result.scenario}")
    print(f"{'='*60}")
    print(f"Status:            {result.status.value}")
    print(f"Final verdict:     {result.final_verdict.value}")
    print(f"Best {knob}: {result.best_parameter}")
    print(f"Parameters probed: {len(result.parameters_probed())}")
    print(f"Rounds:            {result.round_count}")
    print(f"Duration:          {result.duration:.1f}s")
    print(f"Artifacts:         {run_dir}")
    for note in result.notes:
        print(f"Note:              {note}")
    print(f"{'='*60}\n")


def run_scenario(
    path: Path,
    results_dir: Path,
    target: str = "",
    resume: bool = False,
    cancel_event: Optional[threading.Event] = None,
) -> Optional[BenchmarkResult]:
    """
    Run one scenario file against the configured host and write its artifacts.

    Args:
        path: Scenario YAML file
        results_dir: Root directory for artifacts
        target: Overrides the scenario's connection target when set
        resume: Continue from the scenario's checkpoint if one exists
        cancel_event: Event that cancels the run after the current round

    Returns:
        BenchmarkResult, or None if the host could not be reached

    Raises:
        ConfigError: If the scenario is invalid
        SetupError: If a collaborator rejects the initial configuration
    """
    scenario = load_scenario(path)
    if target:
        scenario.connection.target = target
    print(f"✓ Loaded scenario '{scenario.name}' from {path}")

    run_dir = config.get_run_dir(scenario.name, results_dir)
    checkpoint_path = run_dir / config.CHECKPOINT_FILENAME
    scenario_hash = calculate_scenario_hash(scenario.to_dict())

    checkpoint = read_checkpoint(checkpoint_path) if resume else None
    if checkpoint is not None:
        print(f"✓ Resuming from {checkpoint_path} ({len(checkpoint.rounds)} rounds)")
    elif resume:
        print(f"  No checkpoint at {checkpoint_path}, starting fresh")

    communicator = create_communicator(scenario.connection.target)
    if not communicator.connect():
        print(f"✗ Cannot reach {scenario.connection.target}")
        return None

    try:
        timeout = scenario.collector.timeout
        workload = HashdWorkload(communicator, scenario.connection.workload_dir, timeout=timeout)
        agent = AgentControl(communicator, scenario.connection.agent_dir, timeout=timeout)
        orchestrator = ScenarioOrchestrator(
            scenario,
            workload,
            agent,
            cancel_event=cancel_event,
            checkpoint=lambda cp: write_checkpoint(cp, checkpoint_path),
            scenario_hash=scenario_hash,
            environment=build_environment(scenario.connection.target),
        )
        result = orchestrator.run(resume=checkpoint)
    finally:
        communicator.disconnect()

    result_path = write_result_json(result, run_dir / config.RESULT_FILENAME)
    write_report(result, run_dir / config.REPORT_FILENAME)
    print(f"✓ Result written to {result_path}")

    plot_rounds(result, run_dir / config.PLOT_FILENAME)

    if result.status == RunStatus.COMPLETED and checkpoint_path.exists():
        checkpoint_path.unlink()

    print_result_summary(result, run_dir)
    return result


def cmd_run(args: argparse.Namespace) -> int:
    cancel_event = threading.Event()

    def handle_sigint(signum, frame):
        if cancel_event.is_set():
            raise KeyboardInterrupt
        print("\n✗ Cancelling after the current round (Ctrl-C again to abort)")
        cancel_event.set()

    previous = signal.signal(signal.SIGINT, handle_sigint)
    failures = 0
    try:
        for path in args.scenarios:
            if cancel_event.is_set():
                print(f"  Skipping {path} (cancelled)")
                continue
            try:
                result = run_scenario(
                    path,
                    args.results_dir,
                    target=args.target,
                    resume=args.resume,
                    cancel_event=cancel_event,
                )
            except ConfigError as e:
                print(f"✗ Invalid scenario {path}: {e}", file=sys.stderr)
                failures += 1
                continue
            except SetupError as e:
                print(f"✗ Setup failed for {path}: {e}", file=sys.stderr)
                failures += 1
                continue
            if result is None:
                failures += 1
    finally:
        signal.signal(signal.SIGINT, previous)

    return 1 if failures else 0


def cmd_report(args: argparse.Namespace) -> int:
    result = read_result_json(args.result)
    if args.output:
        write_report(result, args.output)
        print(f"✓ Report written to {args.output}")
    else:
        print(generate_markdown_report(result))
    return 0


def cmd_compare(args: argparse.Namespace) -> int:
    baseline = read_result_json(args.baseline)
    current = read_result_json(args.current)
    thresholds = {}
    if args.parameter_pct is not None:
        thresholds["parameter_pct"] = args.parameter_pct
    if args.key_value_pct is not None:
        thresholds["key_value_pct"] = args.key_value_pct

    comparison = compare_results(baseline, current, thresholds)
    print(format_comparison(comparison))
    return 0 if comparison["verdict"] == "PASS" else 1


def create_argument_parser() -> argparse.ArgumentParser:
    """
    Create and configure the command-line argument parser.

    Returns:
        Configured ArgumentParser instance
    """
    parser = argparse.ArgumentParser(
        prog="resctl-bench",
        description="Resource control benchmark engine",
        epilog="Example: resctl-bench run scenarios/memory-protection.yaml",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--log-level",
        default=config.LOG_LEVEL,
        help="Logging level (default: %(default)s)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Run one or more scenarios")
    run_parser.add_argument("scenarios", type=Path, nargs="+", help="Scenario YAML files")
    run_parser.add_argument(
        "--resume",
        action="store_true",
        help="Continue interrupted runs from their checkpoints",
    )
    run_parser.add_argument(
        "--results-dir",
        type=Path,
        default=config.RESULTS_DIR,
        help="Root directory for artifacts (default: %(default)s)",
    )
    run_parser.add_argument(
        "--target",
        default=config.TARGET,
        help="SSH target of the benchmarked host, overrides the scenario",
    )
    run_parser.set_defaults(func=cmd_run)

    report_parser = subparsers.add_parser("report", help="Render a result as Markdown")
    report_parser.add_argument("result", type=Path, help="result.json or result.json.gz")
    report_parser.add_argument("-o", "--output", type=Path, help="Write to a file instead of stdout")
    report_parser.set_defaults(func=cmd_report)

    compare_parser = subparsers.add_parser("compare", help="Compare two results for regressions")
    compare_parser.add_argument("baseline", type=Path)
    compare_parser.add_argument("current", type=Path)
    compare_parser.add_argument("--parameter-pct", type=float, help="Allowed best parameter regression (%%)")
    compare_parser.add_argument("--key-value-pct", type=float, help="Allowed key statistic regression (%%)")
    compare_parser.set_defaults(func=cmd_compare)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for the command line.

    Returns:
        Exit code (0 for success, non-zero for errors)
    """
    parser = create_argument_parser()
    args = parser.parse_args(argv)
    setup_logging(args.log_level)

    try:
        return args.func(args)
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except (BenchError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    except KeyboardInterrupt:
        print("\nAborted", file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())
