"""CLI entrypoint for validation, generation and simulation runs."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Any

from rtheter_sim.core import SimulationSession
from rtheter_sim.errors import GenerationError, SimulationError, ValidationError
from rtheter_sim.generation import TasksetGenerator
from rtheter_sim.io import TRACE_FORMATS, ConfigLoader, write_trace
from rtheter_sim.model import GenMethod, RunState
from rtheter_sim.validation import ConfigValidator

logger = logging.getLogger("rtheter_sim.cli")


def _write_json(path: str, payload: dict[str, Any]) -> None:
    output = Path(path)
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")


def _configure_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def _load(path: str):
    config = ConfigLoader().load(path)
    logger.debug("loaded config %s", path)
    ConfigValidator().validate(config)
    return config


def cmd_validate(args: argparse.Namespace) -> int:
    try:
        config = _load(args.config)
        # Random tasksets must also be generable.
        TasksetGenerator().materialize(config)
    except (ValidationError, GenerationError) as exc:
        print(f"[ERROR] {args.config}: [{exc.kind}] {exc.message}")
        return 1
    print("[OK] config validation passed")
    return 0


def cmd_generate(args: argparse.Namespace) -> int:
    loader = ConfigLoader()
    try:
        config = _load(args.config)
        materialized = TasksetGenerator().materialize(config)
    except (ValidationError, GenerationError) as exc:
        print(f"[ERROR] {args.config}: [{exc.kind}] {exc.message}")
        return 1

    taskset = materialized.taskset.model_copy(update={"gen_method": GenMethod.USER})
    loader.save(materialized.model_copy(update={"taskset": taskset}), args.out)
    print(f"[OK] generated {len(materialized.taskset.tasks)} tasks, out={args.out}")
    return 0


def cmd_run(args: argparse.Namespace) -> int:
    loader = ConfigLoader()
    try:
        config = loader.load(args.config)
        if args.scheduler:
            config = config.model_copy(update={"scheduler": args.scheduler})
        handle = SimulationSession().submit(config)
    except SimulationError as exc:
        print(f"[ERROR] {args.config}: [{exc.kind}] {exc.message}")
        return 1

    last_percent = -1
    for message in handle.messages():
        if message.kind == "progress" and message.progress is not None and not args.quiet:
            percent = int(message.progress.progress * 100)
            if percent // 10 != last_percent // 10:
                last_percent = percent
                print(
                    f"[..] {percent:3d}% slice {message.progress.current_slice}/{message.progress.total_slices}"
                )

    if handle.state != RunState.COMPLETED:
        error = handle.error
        detail = f"[{error.kind}] {error.message}" if error is not None else handle.state.value
        print(f"[ERROR] simulation {handle.state.value}: {detail}")
        return 2

    result = handle.result
    assert result is not None
    result_out = args.result_out or "artifacts/result.json"
    _write_json(result_out, result.to_payload())
    if args.trace_out:
        write_trace(result, args.trace_out, fmt=args.trace_format)

    print(
        f"[OK] simulation completed, schedulable={result.is_schedulable}, "
        f"misses={len(result.deadline_misses)}, avg_response={result.average_response_time:.3f}, "
        f"worst_response={result.worst_response_time:.3f}, result={result_out}"
    )
    if args.strict and not result.is_schedulable:
        print("[ERROR] task set is not schedulable in strict mode")
        return 2
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="rtheter-sim", description="Heterogeneous real-time simulation CLI")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="increase log verbosity")
    subparsers = parser.add_subparsers(dest="command", required=True)

    validate_parser = subparsers.add_parser("validate", help="validate config file")
    validate_parser.add_argument("-c", "--config", required=True, help="path to config YAML/JSON")
    validate_parser.set_defaults(func=cmd_validate)

    generate_parser = subparsers.add_parser("generate", help="materialize a random taskset into a config file")
    generate_parser.add_argument("-c", "--config", required=True, help="path to config YAML/JSON")
    generate_parser.add_argument("-o", "--out", required=True, help="output config path (.yaml/.json)")
    generate_parser.set_defaults(func=cmd_generate)

    run_parser = subparsers.add_parser("run", help="run simulation")
    run_parser.add_argument("-c", "--config", required=True, help="path to config YAML/JSON")
    run_parser.add_argument("--scheduler", default=None, help="override dispatch policy")
    run_parser.add_argument("--result-out", default=None, help="path to write result JSON")
    run_parser.add_argument("--trace-out", default=None, help="path to write trace export")
    run_parser.add_argument(
        "--trace-format",
        choices=TRACE_FORMATS,
        default=None,
        help="trace export format (default: from --trace-out suffix)",
    )
    run_parser.add_argument("--quiet", action="store_true", help="do not print progress lines")
    run_parser.add_argument(
        "--strict",
        action="store_true",
        help="return non-zero when the task set is not schedulable",
    )
    run_parser.set_defaults(func=cmd_run)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)
    return args.func(args)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
