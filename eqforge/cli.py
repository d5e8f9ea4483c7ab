"""
eqforge/cli.py
Command-line interface for eqforge

Usage:
    python -m eqforge broaden "sin(x)" --class Bass --seed t1
    python -m eqforge widen --class FX --amount 0.8
    python -m eqforge analyze "3*sin(x)" --fields patch.json
    python -m eqforge probe "tan(x) / x"
    python -m eqforge list-classes
    python -m eqforge list-strategies
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Dict, Optional

from . import __version__
from .config import DEFAULT_STRATEGY, ENGINE_VERSION

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Console handler on the package logger; DEBUG with --verbose."""
    root = logging.getLogger("eqforge")
    for handler in list(root.handlers):
        root.removeHandler(handler)
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(
        "%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S"
    ))
    root.addHandler(handler)
    root.setLevel(logging.DEBUG if verbose else logging.INFO)
    root.propagate = False


def load_fields(path: Optional[str]) -> Dict[str, float]:
    """Read a JSON object of initial field values."""
    if not path:
        return {}
    data = json.loads(Path(path).read_text())
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a JSON object of field values")
    return data


def _print_fields(fields: Dict[str, float]) -> None:
    for key, value in fields.items():
        print(f"  {key:18s} {value}")


def cmd_broaden(args: argparse.Namespace) -> int:
    """Broaden an expression and gain-stage the result."""
    from .engine import BroadeningEngine, TAG_BROADENED, TAG_GENERATED
    from .fields import DictFieldStore

    store = DictFieldStore(load_fields(args.fields))
    engine = BroadeningEngine(store, strategy=args.strategy, widen=not args.no_widen)
    result = engine.broaden_now(
        args.expression,
        instrument=args.instrument,
        seed=args.seed,
        amount=args.amount,
        complexity=args.complexity,
        randomness=args.randomness,
        tag=TAG_GENERATED if args.generated else TAG_BROADENED,
    )

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
        return 0

    print(result.status)
    print()
    print("Expression:")
    print(f"  {result.expression}")
    print()
    print(f"Analysis: {result.analysis.status.value}")
    if result.analysis.ok:
        print(f"  rms:  {result.analysis.rms:.4f}")
        print(f"  peak: {result.analysis.peak:.4f}")
        print(f"  mean: {result.analysis.mean:.4f}")
    if result.written:
        print()
        print(f"Fields written ({result.settle_passes} normalization passes):")
        _print_fields(result.written)
    return 0


def cmd_widen(args: argparse.Namespace) -> int:
    """Widen the randomizer ranges for a class."""
    from .engine import widen_now

    ranges = widen_now(args.instrument, seed=args.seed, amount=args.amount)
    if args.json:
        print(json.dumps(ranges.to_fields(), indent=2))
        return 0

    for name, (lo, hi) in ranges.pairs().items():
        print(f"  {name:9s} [{lo:.4f}, {hi:.4f}]")
    return 0


def cmd_analyze(args: argparse.Namespace) -> int:
    """Analyze one period of an expression against the given fields."""
    from .analyze import analyze
    from .fields import DictFieldStore, read_analysis_inputs

    store = DictFieldStore(load_fields(args.fields))
    result = analyze(args.expression, **read_analysis_inputs(store))

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        print(f"Status: {result.status.value} ({result.valid} finite samples)")
        if result.ok:
            print(f"  rms:  {result.rms:.4f}")
            print(f"  peak: {result.peak:.4f}")
            print(f"  mean: {result.mean:.4f}")
    return 0 if result.ok else 1


def cmd_probe(args: argparse.Namespace) -> int:
    """Sample an expression at random points and report non-finite output."""
    from .safety import probe_finite

    result = probe_finite(args.expression, n_points=args.points)

    if args.json:
        print(json.dumps({
            "passed": result.passed,
            "n_points": result.n_points,
            "n_nonfinite": result.n_nonfinite,
            "max_abs": result.max_abs,
            "reason": result.fail_reason,
            "details": result.details,
        }, indent=2))
    else:
        mark = "PASS" if result.passed else "FAIL"
        print(f"{mark}: {result.n_nonfinite}/{result.n_points} non-finite, max |y| {result.max_abs:.4g}")
        if result.error:
            print(f"  error: {result.error}")
    return 0 if result.passed else 1


def cmd_list_classes(args: argparse.Namespace) -> int:
    """List instrument classes with their loudness targets."""
    from .models import ANY_CLASS, RANDOM_CLASS, InstrumentClass
    from .profiles import target_for

    for cls in InstrumentClass:
        target = target_for(cls)
        print(f"  {cls.value:6s} rms={target.rms_target:.2f} "
              f"cutoff={target.cutoff_range} resonance={target.resonance_range}")
    print(f"  {ANY_CLASS}    -> FX")
    print(f"  {RANDOM_CLASS} -> seeded choice")
    return 0


def cmd_list_strategies(args: argparse.Namespace) -> int:
    """List registered synthesis strategies."""
    from .synth import get_strategy, list_strategies

    for name in list_strategies():
        strategy = get_strategy(name)
        marker = "*" if name == DEFAULT_STRATEGY else " "
        print(f" {marker}{name:8s} {strategy.definition.description}")
    return 0


def _add_class_seed(p: argparse.ArgumentParser) -> None:
    p.add_argument("--class", "-c", dest="instrument", type=str, default="Any",
                   help="Instrument class (Bass, Lead, Pad, Pluck, Perc, Drone, FX, Any, Random)")
    p.add_argument("--seed", "-s", type=str, default=None, help="Seed string")
    p.add_argument("--amount", "-a", type=float, default=0.55, help="Broadening amount 0-1")


def main(argv: Optional[list] = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="eqforge",
        description="Seeded waveform expression broadening and gain staging",
    )
    parser.add_argument(
        "--version", action="version",
        version=f"%(prog)s {__version__} (engine {ENGINE_VERSION})"
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    # broaden command
    broaden_parser = subparsers.add_parser("broaden", help="Broaden an expression")
    broaden_parser.add_argument("expression", type=str, help="Current expression")
    _add_class_seed(broaden_parser)
    broaden_parser.add_argument("--complexity", "-x", type=float, default=7, help="Complexity 1-10")
    broaden_parser.add_argument("--randomness", "-r", type=float, default=0.5, help="Randomness 0-1")
    broaden_parser.add_argument("--strategy", type=str, default=DEFAULT_STRATEGY, help="Synthesis strategy")
    broaden_parser.add_argument("--no-widen", action="store_true", help="Leave randomizer ranges alone")
    broaden_parser.add_argument("--generated", action="store_true",
                                help="Tag the status as a generate + broaden run")
    broaden_parser.add_argument("--fields", "-f", type=str, help="JSON file of field values")
    broaden_parser.add_argument("--json", "-j", action="store_true", help="Output as JSON")
    broaden_parser.set_defaults(func=cmd_broaden)

    # widen command
    widen_parser = subparsers.add_parser("widen", help="Widen randomizer ranges")
    _add_class_seed(widen_parser)
    widen_parser.add_argument("--json", "-j", action="store_true", help="Output as JSON")
    widen_parser.set_defaults(func=cmd_widen)

    # analyze command
    analyze_parser = subparsers.add_parser("analyze", help="Analyze one period")
    analyze_parser.add_argument("expression", type=str, help="Expression to analyze")
    analyze_parser.add_argument("--fields", "-f", type=str, help="JSON file of field values")
    analyze_parser.add_argument("--json", "-j", action="store_true", help="Output as JSON")
    analyze_parser.set_defaults(func=cmd_analyze)

    # probe command
    probe_parser = subparsers.add_parser("probe", help="Check an expression for non-finite output")
    probe_parser.add_argument("expression", type=str, help="Expression to probe")
    probe_parser.add_argument("--points", "-n", type=int, default=1000, help="Sample count")
    probe_parser.add_argument("--json", "-j", action="store_true", help="Output as JSON")
    probe_parser.set_defaults(func=cmd_probe)

    # list commands
    classes_parser = subparsers.add_parser("list-classes", help="List instrument classes")
    classes_parser.set_defaults(func=cmd_list_classes)

    strategies_parser = subparsers.add_parser("list-strategies", help="List synthesis strategies")
    strategies_parser.set_defaults(func=cmd_list_strategies)

    args = parser.parse_args(argv)
    setup_logging(args.verbose)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
