"""
model-testbench CLI Runner

Usage:
    python -m model_testbench.runner seed seeds/default.json
    python -m model_testbench.runner run --model gpt-4o-mini --group base
    python -m model_testbench.runner run-all --group base
    python -m model_testbench.runner clear-no-tools qwen3:8b
    python -m model_testbench.runner recalc-writer
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from dataclasses import asdict
from datetime import datetime
from pathlib import Path

import pandas as pd
from dotenv import load_dotenv

from model_testbench.bench_config import BenchConfig, load_config
from model_testbench.domain.entities import RunSummary
from model_testbench.domain.errors import TestbenchError
from model_testbench.infrastructure.model_clients import DefaultModelProvider
from model_testbench.infrastructure.progress import ProgressChannel, ProgressEvent
from model_testbench.infrastructure.store import SqlTestStore
from model_testbench.scoring.story_evaluator import LLMStoryEvaluator
from model_testbench.seed_loader import load_seed
from model_testbench.use_cases.orchestrator import TestRunOrchestrator


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="model-testbench: Run declarative test groups against language models",
    )
    parser.add_argument(
        "--database",
        default=None,
        help="SQLAlchemy database URL (default: TESTBENCH_DATABASE_URL or sqlite:///testbench.db)",
    )
    parser.add_argument(
        "--output-dir",
        default="results",
        help="Directory for output CSV files (default: results)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Run a test group against one model")
    run_parser.add_argument("--model", required=True, help="Model name")
    run_parser.add_argument("--group", required=True, help="Test group name")

    run_all_parser = subparsers.add_parser("run-all", help="Run a test group against every enabled model")
    run_all_parser.add_argument("--group", default=None, help="Test group name (default: first known group)")

    seed_parser = subparsers.add_parser("seed", help="Load models, agents and test definitions from JSON")
    seed_parser.add_argument("file", help="Path to the seed JSON file")

    clear_parser = subparsers.add_parser("clear-no-tools", help="Clear the no-tools flag of a model")
    clear_parser.add_argument("model", help="Model name")

    subparsers.add_parser("recalc-writer", help="Recompute the writer score of every model")
    subparsers.add_parser("groups", help="List the known test groups")

    return parser.parse_args(argv)


def _print_event(event: ProgressEvent) -> None:
    """Console listener of the progress channel"""
    if event.kind == "append":
        print(f"  {event.message}", flush=True)
    elif event.kind == "activity_started":
        print(f"  ... {event.display_name}: {event.status}", flush=True)


def _save_summaries(summaries: list[RunSummary], output_dir: Path) -> Path:
    """Save run summaries to CSV."""
    output_dir.mkdir(parents=True, exist_ok=True)
    path = output_dir / f"run_summary_{datetime.now().strftime('%Y%m%d_%H%M%S')}.csv"
    pd.DataFrame([asdict(s) for s in summaries]).to_csv(path, index=False)
    return path


def _print_summaries(summaries: list[RunSummary]) -> None:
    print("\n=== Run Summary ===\n")
    print(f"  {'Model':<40} {'Group':<20} {'Passed':>8} {'Score':>6} {'Duration':>10}")
    print(f"  {'-'*40} {'-'*20} {'-'*8} {'-'*6} {'-'*10}")
    for s in summaries:
        print(
            f"  {s.model_name:<40} "
            f"{s.group_name:<20} "
            f"{f'{s.passed}/{s.steps}':>8} "
            f"{s.score:>6} "
            f"{s.duration_ms / 1000:>9.1f}s"
        )
    print()


def _build_orchestrator(store: SqlTestStore, config: BenchConfig) -> TestRunOrchestrator:
    progress = ProgressChannel()
    progress.subscribe(_print_event)
    provider = DefaultModelProvider(config)
    evaluator = LLMStoryEvaluator(store, provider, config, progress=progress)
    return TestRunOrchestrator(store, provider, config, progress=progress, story_evaluator=evaluator)


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    args = parse_args(argv)
    logging.basicConfig(
        level=os.environ.get("TESTBENCH_LOG_LEVEL", "WARNING").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = load_config()
    if args.database:
        config.database.url = args.database
    store = SqlTestStore(config.database.url, echo=config.database.echo)

    try:
        if args.command == "seed":
            print(f"\n=== Loading seed: {args.file} ===\n")
            summary = load_seed(store, args.file)
            print(f"  Models: {summary.models}")
            print(f"  Agents: {summary.agents}")
            print(f"  Test definitions: {summary.test_definitions}")
            return 0

        if args.command == "groups":
            for group in store.list_test_groups():
                print(group)
            return 0

        if args.command == "clear-no-tools":
            changed = store.clear_model_no_tools(args.model)
            print(f"No-tools flag {'cleared' if changed else 'was not set'} for {args.model}")
            return 0

        if args.command == "recalc-writer":
            store.recalculate_all_writer_scores()
            print("Writer scores recalculated")
            return 0

        orchestrator = _build_orchestrator(store, config)
        if args.command == "run":
            print(f"\n=== Running group '{args.group}' on {args.model} ===\n")
            summaries = [orchestrator.run_group(args.model, args.group)]
        else:
            print(f"\n=== Running group '{args.group or '(first)'}' on all enabled models ===\n")
            summaries = orchestrator.run_all_enabled_models(args.group)
    except (TestbenchError, FileNotFoundError) as e:
        print(f"ERROR: {e}")
        return 1

    if not summaries:
        print("No runs completed.")
        return 1

    _print_summaries(summaries)
    path = _save_summaries(summaries, Path(args.output_dir))
    print("=== Output ===\n")
    print(f"  Summary: {path}")
    print()
    return 0


if __name__ == "__main__":
    sys.exit(main())
