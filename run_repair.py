"""CLI entrypoint: load a program, localize faults, apply edits, evaluate the variant."""

from __future__ import annotations

import argparse
import json
import random
import sys
from typing import Any, Optional

from repair.archive import VariantArchive
from repair.cache import EvaluationCache
from repair.config import RepairConfig, config_from_env, load_config_file, load_env_file
from repair.errors import RepairError
from repair.evaluator import evaluate_variant
from repair.mutation import parse_edits, random_edit
from repair.representation import snapshot_backend
from repair.stats import RunStats
from representations import get_representation, representation_for_path

DEFAULT_CONFIG_PATH = "configs/repair.yaml"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Evaluate program-repair variants against a test oracle")
    parser.add_argument(
        "--config",
        default=DEFAULT_CONFIG_PATH,
        help=f"Path to YAML/JSON config (default: {DEFAULT_CONFIG_PATH})",
    )
    parser.add_argument("--no-config", action="store_true", help="Ignore config file and use only CLI args + env vars")
    parser.add_argument("--env-file", default=".env", help="Path to env file (default: .env)")
    parser.add_argument("--program", default=None, help="Program source file to repair")
    parser.add_argument("--representation", default=None, help="Representation backend (default: by file extension)")
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--pos-tests", type=int, default=None, help="Number of positive tests p1..pN")
    parser.add_argument("--neg-tests", type=int, default=None, help="Number of negative tests n1..nM")
    parser.add_argument("--compiler", dest="compiler_name", default=None, help="Compiler executable")
    parser.add_argument("--compiler-opts", dest="compiler_options", default=None, help="Extra compiler options")
    parser.add_argument("--compile-command", default=None, help="Compile command template")
    parser.add_argument("--test-command", default=None, help="Test command template")
    parser.add_argument("--test-timeout", dest="test_timeout_seconds", type=float, default=None)
    parser.add_argument("--cache-path", default=None, help="Test outcome cache file")
    parser.add_argument("--no-cache", action="store_true", help="Neither read nor write the test outcome cache")
    parser.add_argument("--fault-scheme", default=None, choices=["path", "uniform", "line"])
    parser.add_argument("--fault-file", default=None, help="line[,weight] rows for --fault-scheme line")
    parser.add_argument("--work-dir", default=None, help="Directory for rendered sources and executables")
    parser.add_argument("--keep-source", action="store_true", help="Keep rendered variant sources")
    parser.add_argument("--no-progress", action="store_true", help="Disable progress bars")
    parser.add_argument("--sanity", default="yes", choices=["yes", "no"], help="Run the sanity check first")
    parser.add_argument("--edits", default="", help='Edit list to apply, e.g. "d5 a3,7 s2,4"')
    parser.add_argument("--random-edits", type=int, default=0, help="Apply N localization-biased random edits")
    parser.add_argument("--load-binary", default=None, help="Load a saved representation instead of --program")
    parser.add_argument("--save-binary", default=None, help="Save the localized original representation")
    parser.add_argument("--archive-dir", default=None, help="Archive variants that pass every test here")
    parser.add_argument("--output", default=None, help="Append the evaluation as JSONL here")
    parser.add_argument("--debug", action="store_true", help="Print the variant's atoms after evaluation")
    return parser


def resolve_config(args: argparse.Namespace) -> RepairConfig:
    """CLI flag > config file > environment > dataclass default."""

    load_env_file(args.env_file)
    config = config_from_env(RepairConfig())

    file_values = (
        {}
        if args.no_config
        else load_config_file(args.config, allow_missing=(args.config == DEFAULT_CONFIG_PATH))
    )
    config = RepairConfig.from_mapping(file_values, base=config)

    cli_values: dict[str, Any] = {
        name: getattr(args, name)
        for name in (
            "program",
            "representation",
            "seed",
            "pos_tests",
            "neg_tests",
            "compiler_name",
            "compiler_options",
            "compile_command",
            "test_command",
            "test_timeout_seconds",
            "cache_path",
            "fault_scheme",
            "fault_file",
            "work_dir",
        )
        if getattr(args, name) is not None
    }
    if args.no_cache:
        cli_values["use_cache"] = False
    if args.keep_source:
        cli_values["keep_source"] = True
    if args.no_progress:
        cli_values["progress"] = False
    return RepairConfig.from_mapping(cli_values, base=config)


def run(args: argparse.Namespace) -> int:
    config = resolve_config(args)
    if not config.program and not args.load_binary:
        raise ValueError("--program (or program in the config file) is required")

    cache: Optional[EvaluationCache] = None
    if config.use_cache:
        cache = EvaluationCache(config.cache_path)
        cache.restore()

    stats = RunStats()
    if config.representation:
        backend = config.representation
    elif args.load_binary:
        backend = snapshot_backend(args.load_binary)
    else:
        backend = representation_for_path(config.program)
    rep = get_representation(backend, config=config, cache=cache, stats=stats)
    try:
        if args.load_binary:
            rep.load_binary(args.load_binary)
            print(f"[Load] {args.load_binary}: {rep.max_atom()} atoms")
        else:
            rep.load_source(config.program)
            print(f"[Load] {config.program}: {backend} representation, {rep.max_atom()} atoms")

        if args.sanity == "yes":
            rep.sanity_check()
        if not args.load_binary or not rep.get_localization():
            rep.compute_fault_localization()
        if args.save_binary:
            rep.save_binary(args.save_binary)
            print(f"[Save] {args.save_binary}")

        variant = rep.copy()
        for edit in parse_edits(args.edits):
            edit.apply(variant)
        rng = random.Random(config.seed)
        for _ in range(max(0, args.random_edits)):
            random_edit(
                variant,
                rng,
                delete_probability=config.delete_probability,
                append_probability=config.append_probability,
                swap_probability=config.swap_probability,
            ).apply(variant)

        evaluation = evaluate_variant(variant, config, output_path=args.output)
        print(
            f"[Variant] {evaluation.name}: fitness={evaluation.fitness:g}/{evaluation.max_fitness:g} "
            f"passed_all={evaluation.passed_all}"
        )
        if evaluation.passed_all and args.archive_dir:
            archive = VariantArchive(args.archive_dir, suffix=variant.source_suffix or ".txt")
            sha = archive.save(variant.output_source(), evaluation.name, fitness=evaluation.fitness)
            print(f"[Archive] saved repaired variant {sha} to {args.archive_dir}")
        if args.debug:
            variant.debug_info()
    finally:
        if cache is not None:
            cache.persist()
            print(f"[Cache] {len(cache)} outcome(s) saved; {cache.num_evaluations()} evaluated this run")

    print(json.dumps(stats.summary(), indent=2))
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        return run(args)
    except (RepairError, ValueError, OSError, SyntaxError) as exc:
        print(f"[Abort] {type(exc).__name__}: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
