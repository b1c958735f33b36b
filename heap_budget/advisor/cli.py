# heap_budget/advisor/cli.py
from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional, Tuple

from ..model.entities import MemoryProfile, DeploymentConstraint
from ..model.units import (
    parse_memory, format_bytes_human, format_heap_flag, format_memory_quantity
)
from ..snapshot.io import load_request_from_file, recommendation_to_dict
from ..types import Bytes
from .budget import compute_recommendation, explain
from .errors import AdvisorError, InvalidInputError
from .presets import get_preset, list_presets

log = logging.getLogger(__name__)

EXIT_INVALID_INPUT = 2
EXIT_INTERNAL = 3

DEFAULT_MARGIN = os.getenv("HEAP_BUDGET_DEFAULT_MARGIN", "0.5")


def _memory_arg(value: str) -> Bytes:
    try:
        return parse_memory(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e))


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="heap-budget",
        description="Recommend heap and container memory limits from a measured memory profile.",
    )
    parser.add_argument(
        "--input",
        help="JSON-документ с секциями profile и constraint. Флаги ниже его не переопределяют.",
    )
    parser.add_argument("--heap-used", type=_memory_arg, help="Пиковый heap, например 150M или 143Mi.")
    parser.add_argument("--resident", type=_memory_arg, help="Пиковый RSS / working set.")
    parser.add_argument("--replicas", type=int, default=1, help="Число реплик (по умолчанию 1).")
    parser.add_argument(
        "--margin",
        default=DEFAULT_MARGIN,
        help="Доля запаса в (0, 1], 0.5 == 1.5x пика (env HEAP_BUDGET_DEFAULT_MARGIN).",
    )
    group = parser.add_mutually_exclusive_group()
    group.add_argument(
        "--platform-default-heap",
        type=_memory_arg,
        help="Дефолтный потолок heap рантайма без флага.",
    )
    group.add_argument("--runtime", help="Имя пресета вместо --platform-default-heap.")
    parser.add_argument("--format", choices=("text", "json"), default="text")
    parser.add_argument("--out", help="Путь к JSON-файлу для записи результата.")
    parser.add_argument("--list-runtimes", action="store_true", help="Показать пресеты и выйти.")
    parser.add_argument("--verbose", action="store_true")
    return parser


def _request_from_args(args: argparse.Namespace) -> Tuple[MemoryProfile, DeploymentConstraint]:
    if args.input:
        return load_request_from_file(Path(args.input))

    if args.heap_used is None:
        raise InvalidInputError("peak_heap_used_bytes", "--heap-used is required without --input")
    if args.resident is None:
        raise InvalidInputError("peak_resident_bytes", "--resident is required without --input")

    try:
        margin = float(args.margin)
    except ValueError:
        raise InvalidInputError("safety_margin_ratio", f"not a number: {args.margin!r}")

    if args.runtime:
        try:
            default_heap = get_preset(args.runtime).default_heap_bytes
        except KeyError as e:
            raise InvalidInputError("runtime", e.args[0])
    else:
        default_heap = args.platform_default_heap or Bytes(0)

    profile = MemoryProfile(
        peak_heap_used_bytes=args.heap_used,
        peak_resident_bytes=args.resident,
        source="manual",
    )
    constraint = DeploymentConstraint(
        desired_replica_count=args.replicas,
        safety_margin_ratio=margin,
        platform_default_heap_bytes=default_heap,
    )
    return profile, constraint


def _print_runtimes() -> None:
    for p in list_presets():
        print(f"{p.name:<18} {format_bytes_human(p.default_heap_bytes):>10}  {p.description}")


def main_cli(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    if args.list_runtimes:
        _print_runtimes()
        return 0

    try:
        profile, constraint = _request_from_args(args)
        log.debug(f"Advising on {profile} with {constraint}")
        rec = compute_recommendation(profile, constraint)
    except AdvisorError as e:
        # одна строка в stderr, никакой частичной рекомендации
        print(f"{e.kind}: {e}", file=sys.stderr)
        return EXIT_INVALID_INPUT if isinstance(e, InvalidInputError) else EXIT_INTERNAL

    data = recommendation_to_dict(rec, constraint)

    if args.out:
        try:
            Path(args.out).write_text(json.dumps(data, indent=2, sort_keys=True))
        except OSError as e:
            print(f"InvalidInputError: out: cannot write {args.out}: {e}", file=sys.stderr)
            return EXIT_INVALID_INPUT
        print(f"Written recommendation to {args.out}")
    elif args.format == "json":
        print(json.dumps(data, indent=2, sort_keys=True))
    else:
        print(explain(rec))
        print("")
        print(f"heap flag:       {format_heap_flag(rec.recommended_heap_limit_bytes)}")
        print(f"memory limit:    {format_memory_quantity(rec.recommended_container_limit_bytes)}")
        print(
            f"fleet budget:    {data['fleet_budget_bytes']} bytes "
            f"({format_bytes_human(data['fleet_budget_bytes'])}) "
            f"for {constraint.desired_replica_count} replica(s)"
        )
    return 0


def main() -> None:
    sys.exit(main_cli())


if __name__ == "__main__":
    main()
