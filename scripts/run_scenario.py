#!/usr/bin/env python3
"""
Traffic scenario runner

Usage:
  python scripts/run_scenario.py run --scenario-file <path> [--format text|json] [--print-scenario]
                                     [--max-concurrency <n>] [--default-timeout-ms <ms>]
                                     [--log-level <level>] [--log-format text|json]
  python scripts/run_scenario.py show --scenario-file <path>

Examples:
  python scripts/run_scenario.py scenarios/single_request_response.json
  python scripts/run_scenario.py run --scenario-file scenarios/dependent_requests.yaml --format json

Exit status: 0 when every request passed, 1 when the scenario ran with failures
or blocked requests, 2 when the scenario could not be loaded or is invalid.
"""
from __future__ import annotations

import argparse
import json
import sys
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Optional

# プロジェクトルートをPYTHONPATHに追加（直接実行時）
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from dotenv import load_dotenv

from application.executor.request_executor import RequestExecutor
from application.executor.scenario_runner import ScenarioRunner, ScenarioRunResult
from application.executor.transport_registry import TransportRegistry
from application.executor.wave_scheduler import WaveScheduler
from application.outcome import OutcomeKind
from application.ports.http_client import HttpTransportPort
from application.ports.httpx_client import HttpxHttp2Transport
from application.ports.logger import LoggerPort
from application.ports.requests_client import RequestsHttpTransport
from application.services.execution_deps import ExecutionDeps
from application.services.response_validator import ResponseValidator
from application.services.statistics import Verdict
from domain.scenario import Scenario
from infrastructure.config.settings import LOG_FORMATS, LOG_LEVELS, ConfigError, RunnerSettings
from infrastructure.logging.console_logger import ConsoleLogger
from infrastructure.logging.log_setup import setup_console_logging
from infrastructure.logging.loguru_logger import LoguruLogger
from infrastructure.scenario.base_loader import ScenarioLoadError
from infrastructure.scenario.loader_registry import ScenarioLoaderRegistry
from infrastructure.scenario.serializer import scenario_to_dict

EXIT_PASSED = 0
EXIT_FAILED = 1
EXIT_INVALID = 2

USER_AGENT = "traffic-scenario/0.1"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run a declarative HTTP traffic scenario")
    subparsers = parser.add_subparsers(dest="command")

    run_parser = subparsers.add_parser("run", help="Execute a scenario and report the verdict")
    run_parser.add_argument("--scenario-file", type=str, required=True)
    run_parser.add_argument("--scenario-format", type=str, choices=["json", "yaml", "yml"])
    run_parser.add_argument("--format", type=str, choices=["text", "json"], default="text")
    run_parser.add_argument("--print-scenario", action="store_true")
    run_parser.add_argument("--max-concurrency", type=int)
    run_parser.add_argument("--default-timeout-ms", type=int)
    run_parser.add_argument("--log-level", type=str.upper, choices=LOG_LEVELS)
    run_parser.add_argument("--log-format", type=str, choices=LOG_FORMATS)

    show_parser = subparsers.add_parser("show", help="Pretty-print a scenario without running it")
    show_parser.add_argument("--scenario-file", type=str, required=True)
    show_parser.add_argument("--scenario-format", type=str, choices=["json", "yaml", "yml"])

    return parser


def _load_scenario(path: str, forced_format: Optional[str]) -> Scenario:
    scenario_path = Path(path)
    loader = ScenarioLoaderRegistry().get_loader(scenario_path, forced_format)
    return loader.load_from_file(scenario_path)


def _build_logger(settings: RunnerSettings) -> LoggerPort:
    if settings.log_format == "json":
        return ConsoleLogger(level=settings.log_level)
    setup_console_logging(level=settings.log_level)
    return LoguruLogger()


def _build_transports(pool_size: int) -> TransportRegistry:
    transports: list[HttpTransportPort] = [
        RequestsHttpTransport(base_headers={"User-Agent": USER_AGENT}, pool_size=pool_size),
        HttpxHttp2Transport(base_headers={"User-Agent": USER_AGENT}, pool_size=pool_size),
    ]
    return TransportRegistry(transports)


def _execute(runner: ScenarioRunner, scheduler: WaveScheduler, scenario: Scenario, deps: ExecutionDeps) -> ScenarioRunResult:
    # Ctrl-C でも実行中のリクエストは最後まで待つ
    with ThreadPoolExecutor(max_workers=1, thread_name_prefix="scenario-run") as pool:
        future = pool.submit(runner.run, scenario, deps)
        try:
            return future.result()
        except KeyboardInterrupt:
            print("Interrupted: no further waves will be dispatched", file=sys.stderr)
            scheduler.cancel()
            return future.result()


def _print_text_report(result: ScenarioRunResult) -> None:
    print(f"Scenario: {result.scenario_name}")
    print(f"Run ID: {result.run_id}")

    if result.error is not None:
        print(f"Verdict: {Verdict.INVALID.value.upper()}")
        print(f"Scenario is invalid: {result.error.error_type}: {result.error.message}")
        return

    report = result.report
    counts = ", ".join(f"{kind.value} {report.counts[kind]}" for kind in OutcomeKind)
    print(f"Verdict: {report.verdict.value.upper()}")
    print(f"Requests: {report.total} ({counts})")
    print(f"Waves: {report.waves}  Elapsed: {report.elapsed_ms} ms")
    for outcome in report.outcomes:
        line = f"  [wave {outcome.wave}] request {outcome.request_id}: {outcome.kind.value}"
        if outcome.status is not None:
            line += f" status={outcome.status}"
        if outcome.elapsed_ms is not None:
            line += f" ({outcome.elapsed_ms} ms)"
        if outcome.reason and not outcome.passed:
            line += f" - {outcome.reason}"
        print(line)


def _exit_code(result: ScenarioRunResult) -> int:
    if result.verdict is Verdict.INVALID:
        return EXIT_INVALID
    return EXIT_PASSED if result.ok else EXIT_FAILED


def _run(args: argparse.Namespace) -> int:
    settings = RunnerSettings.from_env().override(
        max_concurrency=args.max_concurrency,
        default_timeout_ms=args.default_timeout_ms,
        log_level=args.log_level,
        log_format=args.log_format,
    )
    scenario = _load_scenario(args.scenario_file, args.scenario_format)

    if args.print_scenario:
        print(json.dumps(scenario_to_dict(scenario), indent=2, ensure_ascii=False))

    logger = _build_logger(settings)
    transports = _build_transports(pool_size=max(settings.max_concurrency or 0, scenario.config.rate, 10))
    try:
        scheduler = WaveScheduler(
            RequestExecutor(transports),
            ResponseValidator(),
            max_concurrency=settings.max_concurrency,
        )
        runner = ScenarioRunner(scheduler)
        deps = ExecutionDeps(logger=logger, default_timeout_ms=settings.default_timeout_ms)
        result = _execute(runner, scheduler, scenario, deps)
    finally:
        transports.close()

    if args.format == "json":
        print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False, default=str))
    else:
        _print_text_report(result)
    return _exit_code(result)


def _show(args: argparse.Namespace) -> int:
    scenario = _load_scenario(args.scenario_file, args.scenario_format)
    print(json.dumps(scenario_to_dict(scenario), indent=2, ensure_ascii=False))
    return EXIT_PASSED


def main(argv: Optional[list[str]] = None) -> None:
    load_dotenv()

    parser = _build_parser()
    argv = list(sys.argv[1:] if argv is None else argv)
    if argv and argv[0] not in {"run", "show", "-h", "--help"}:
        argv = ["run", "--scenario-file", argv[0]] + argv[1:]
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(EXIT_INVALID)

    try:
        if args.command == "run":
            exit_code = _run(args)
        elif args.command == "show":
            exit_code = _show(args)
        else:
            raise ValueError(f"Unknown command: {args.command}")
    except ScenarioLoadError as exc:
        print(f"ERROR: Failed to load scenario: {exc}")
        sys.exit(EXIT_INVALID)
    except ConfigError as exc:
        print(f"ERROR: Invalid configuration: {exc}")
        sys.exit(EXIT_INVALID)
    except ValueError as exc:
        print(f"ERROR: {exc}")
        sys.exit(EXIT_INVALID)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
