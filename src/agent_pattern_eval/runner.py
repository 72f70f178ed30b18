"""
agent-pattern-eval CLI Runner

Generates test suites, evaluates recorded agent responses in batch, and
calibrates metric weights against human-rated gold samples.

Usage:
    python -m agent_pattern_eval.runner generate --patterns routing,parallel-processing --count 10 --output suites/generated.json
    python -m agent_pattern_eval.runner evaluate --suites suites/answered.json
    python -m agent_pattern_eval.runner evaluate --suites suites/answered.json --scoring-mode judge --judge-model gpt-4o
    python -m agent_pattern_eval.runner calibrate --pattern routing --gold gold/routing.json --results results/results_20260101_120000.json
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import datetime
from pathlib import Path

from dotenv import load_dotenv

from agent_pattern_eval.calibration import ReliabilityCalibrator, load_gold_samples
from agent_pattern_eval.domain.batch import BatchJob, TestSuite
from agent_pattern_eval.domain.entities import CalibrationResult
from agent_pattern_eval.domain.enums import AgentPattern, BatchEvent, Complexity, JudgeModel, ScoringMode
from agent_pattern_eval.domain.errors import CalibrationError
from agent_pattern_eval.domain.value_objects import coerce_enum
from agent_pattern_eval.evaluators import default_registry
from agent_pattern_eval.harness_config import HarnessConfig, load_config
from agent_pattern_eval.infrastructure.judge_clients import create_client
from agent_pattern_eval.orchestration import BatchOrchestrator
from agent_pattern_eval.scoring.llm_judge import LLMJudgeScorer
from agent_pattern_eval.suite_loader import load_test_suites, save_test_suites
from agent_pattern_eval.use_cases.evaluation import EvaluationPipeline, default_config
from agent_pattern_eval.use_cases.health_check import run_judge_health_check
from agent_pattern_eval.use_cases.reporting import load_results_json, save_batch_report


def _patterns(value: str | None) -> list[AgentPattern]:
    if not value:
        return list(AgentPattern)
    return [coerce_enum(AgentPattern, p.strip(), "patterns") for p in value.split(",") if p.strip()]


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="agent-pattern-eval: Evaluate agent pattern responses",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: WARNING)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    gen = sub.add_parser("generate", help="Generate test suites")
    gen.add_argument("--patterns", default=None, help="Comma-separated patterns (default: all)")
    gen.add_argument("--count", type=int, default=5, help="Test cases per pattern (default: 5)")
    gen.add_argument(
        "--complexity",
        default=Complexity.MODERATE.value,
        choices=[c.value for c in Complexity],
    )
    gen.add_argument("--output", required=True, help="Path of the suite pack JSON to write")

    ev = sub.add_parser("evaluate", help="Evaluate recorded responses in batch")
    ev.add_argument("--suites", required=True, nargs="+", help="Suite or suite pack JSON files")
    ev.add_argument("--patterns", default=None, help="Comma-separated patterns (default: all)")
    ev.add_argument("--name", default=None, help="Batch job name")
    ev.add_argument(
        "--scoring-mode",
        default=ScoringMode.HEURISTIC.value,
        choices=[m.value for m in ScoringMode],
    )
    ev.add_argument("--judge-model", default=None, help="Judge model (default: JUDGE_MODEL from .env)")
    ev.add_argument("--max-concurrency", type=int, default=None,
                    help="Items evaluated at once (default: BATCH_MAX_CONCURRENCY from .env)")
    ev.add_argument("--error-handling", default=None, choices=["fail-fast", "continue", "retry-failed"])
    ev.add_argument("--prioritization", default=None, choices=["fifo", "lifo", "priority", "round-robin"])
    ev.add_argument("--max-retries", type=int, default=None)
    ev.add_argument("--calibration", nargs="*", default=(), help="Calibration JSON files whose weights to apply")
    ev.add_argument("--run-id", default=None, help="Run ID used in output file names")
    ev.add_argument("--output-dir", default="results", help="Directory for output files (default: results)")

    cal = sub.add_parser("calibrate", help="Calibrate metric weights against gold samples")
    cal.add_argument("--pattern", required=True, choices=[p.value for p in AgentPattern])
    cal.add_argument("--gold", required=True, help="Gold samples JSON")
    cal.add_argument("--results", required=True, help="Results JSON written by evaluate")
    cal.add_argument("--version", default=None, help="Gold dataset version to use")
    cal.add_argument("--seed", type=int, default=None, help="Bootstrap seed")
    cal.add_argument("--output", default=None, help="Calibration JSON to write (default: print)")

    return parser.parse_args(argv)


def run_generate(args: argparse.Namespace) -> int:
    registry = default_registry()
    suites = []
    print(f"\n=== Generating test suites ({args.complexity}) ===\n")
    for pattern in _patterns(args.patterns):
        cases = registry.get(pattern).generate_test_cases(args.count, args.complexity)
        suites.append(TestSuite(suite_id=f"{pattern.value}-{args.complexity}", pattern=pattern, test_cases=cases))
        print(f"  {pattern.display_name:<25} {len(cases)} test cases")
    save_test_suites(suites, args.output)
    print(f"\n  Output: {args.output}\n")
    return 0


def _print_progress(event: BatchEvent, job: BatchJob) -> None:
    progress = job.progress
    if event == BatchEvent.PROGRESS:
        eta = progress.estimated_time_remaining_ms
        eta_text = f" | ETA {eta / 1000:.1f}s" if eta else ""
        print(
            f"[{progress.processed_tests}/{progress.total_tests}] "
            f"{progress.percent_complete:5.1f}% | done {progress.completed_tests} "
            f"| failed {progress.failed_tests} | skipped {progress.skipped_tests}{eta_text}"
        )
    elif event in (BatchEvent.STARTED, BatchEvent.COMPLETED, BatchEvent.FAILED, BatchEvent.CANCELLED):
        print(f"=== Batch {job.name}: {job.status.value} ===")


def _build_pipeline(args: argparse.Namespace, config: HarnessConfig, patterns: list[AgentPattern]):
    scoring_mode = ScoringMode(args.scoring_mode)
    judge_model = coerce_enum(JudgeModel, args.judge_model or config.judge.model, "judge_model")

    judge = None
    if scoring_mode == ScoringMode.JUDGE:
        check = run_judge_health_check(judge_model.value, lambda name: create_client(name, config))
        if not check.success:
            return None
        judge = LLMJudgeScorer(create_client(judge_model, config), model_name=judge_model.value)

    registry = default_registry(judge=judge)
    calibrator = ReliabilityCalibrator()
    configs = {}
    for path in args.calibration:
        with open(path, "r", encoding="utf-8") as f:
            calibration = CalibrationResult.from_dict(json.load(f))
        base = default_config(registry.get(calibration.pattern), scoring_mode, judge_model)
        configs[calibration.pattern] = calibrator.apply_calibration(base, calibration)
        print(f"  Calibrated weights applied: {calibration.pattern.value} ({path})")
    for pattern in patterns:
        configs.setdefault(pattern, default_config(registry.get(pattern), scoring_mode, judge_model))
    return EvaluationPipeline(registry, configs, scoring_mode=scoring_mode, judge_model=judge_model)


def run_evaluate(args: argparse.Namespace, config: HarnessConfig) -> int:
    suites = [s for path in args.suites for s in load_test_suites(path)]
    patterns = _patterns(args.patterns) if args.patterns else list(dict.fromkeys(s.pattern for s in suites))
    run_id = args.run_id or datetime.now().strftime("%Y%m%d_%H%M%S")

    print(f"\n=== Loading suites ===\n")
    print(f"  Suites:   {len(suites)}")
    print(f"  Tests:    {sum(len(s.test_cases) for s in suites if s.pattern in patterns)}")
    print(f"  Patterns: {[p.value for p in patterns]}")
    print(f"  Run ID:   {run_id}")
    print()

    pipeline = _build_pipeline(args, config, patterns)
    if pipeline is None:
        print("ERROR: Judge unavailable. Exiting.")
        return 1

    overrides = {
        key: value
        for key, value in (
            ("max_concurrency", args.max_concurrency),
            ("error_handling", args.error_handling),
            ("prioritization", args.prioritization),
            ("max_retries", args.max_retries),
        )
        if value is not None
    }
    batch_config = config.batch_config(**overrides)

    with BatchOrchestrator(pipeline, max_concurrent_jobs=config.batch.max_concurrent_jobs) as orchestrator:
        orchestrator.add_listener(_print_progress)
        job = orchestrator.create_batch_job(args.name or f"run-{run_id}", patterns, suites, batch_config)
        try:
            results = orchestrator.execute_batch(job.id)
        except KeyboardInterrupt:
            orchestrator.cancel_batch(job.id)
            raise
        status = orchestrator.get_batch_status(job.id).status

    summary = results.summary
    print(f"\n=== Summary ({status.value}) ===\n")
    print(f"  {'Pattern':<25} {'Run':>5} {'Passed':>7} {'Failed':>7} {'Avg score':>10} {'Avg ms':>8}")
    print(f"  {'-'*25} {'-'*5} {'-'*7} {'-'*7} {'-'*10} {'-'*8}")
    for pattern, pr in results.pattern_results.items():
        print(
            f"  {pattern.display_name:<25} {pr.tests_run:>5} {pr.tests_passed:>7} {pr.tests_failed:>7} "
            f"{pr.average_score:>10.3f} {pr.average_latency_ms:>8.0f}"
        )
    print()
    print(f"  Total: {summary.total_tests} | passed {summary.passed_tests} | not passed {summary.failed_tests} "
          f"| errors {summary.error_tests} | skipped {summary.skipped_tests}")
    print(f"  Success rate: {summary.success_rate:.1%} | Average score: {summary.average_score:.3f}")
    if results.errors:
        print(f"\n  Errors ({len(results.errors)}):")
        for error in results.errors[:10]:
            print(f"    [{error.severity.value}] {error.test_id or '-'}: {error.error[:100]}")

    paths = save_batch_report(results, args.output_dir, run_id)
    print(f"\n=== Output ===\n")
    for kind, path in paths.items():
        print(f"  {kind:<8} {path}")
    print()
    return 0 if status.value in ("completed", "partially-completed") else 1


def run_calibrate(args: argparse.Namespace, config: HarnessConfig) -> int:
    samples = load_gold_samples(args.gold)
    results = load_results_json(args.results)
    calibrator = ReliabilityCalibrator(
        min_samples=config.calibration.min_samples,
        bootstrap_iterations=config.calibration.bootstrap_iterations,
        confidence_level=config.calibration.confidence_level,
        optimal_length=config.calibration.optimal_length,
        seed=args.seed,
    )
    print(f"\n=== Calibrating {args.pattern} ({len(samples)} gold samples, {len(results)} results) ===\n")
    try:
        calibration = calibrator.calibrate(args.pattern, samples, results, version=args.version)
    except CalibrationError as e:
        print(f"ERROR: {e}")
        return 1

    lower, upper = calibration.confidence_interval
    print(f"  Samples:            {calibration.sample_count}")
    print(f"  Spearman rho:       {calibration.spearman_correlation:.3f} (95% CI {lower:.3f} .. {upper:.3f})")
    print(f"  Krippendorff alpha: {calibration.krippendorff_alpha:.3f}")
    print(f"  MSE / MAE / bias:   {calibration.validation_metrics['mse']:.4f} / "
          f"{calibration.validation_metrics['mae']:.4f} / {calibration.validation_metrics['bias']:+.4f}")
    print("  Weights:")
    for metric, weight in sorted(calibration.weights.items(), key=lambda x: -x[1]):
        print(f"    {metric:<30} {weight:.3f}")
    print()

    payload = json.dumps(calibration.to_dict(), ensure_ascii=False, indent=2)
    if args.output:
        Path(args.output).parent.mkdir(parents=True, exist_ok=True)
        Path(args.output).write_text(payload, encoding="utf-8")
        print(f"  Output: {args.output}\n")
    else:
        print(payload)
    return 0


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    config = load_config()

    if args.command == "generate":
        return run_generate(args)
    if args.command == "evaluate":
        return run_evaluate(args, config)
    return run_calibrate(args, config)


if __name__ == "__main__":
    sys.exit(main())
