# heap_budget/advisor/budget.py
from __future__ import annotations

import logging
import math
from decimal import Decimal
from fractions import Fraction
from typing import List

from ..model.entities import MemoryProfile, DeploymentConstraint, Recommendation
from ..model.units import format_bytes_human, format_heap_flag
from ..types import Bytes, MarginRatio
from .errors import InvalidInputError, InternalInconsistencyError

log = logging.getLogger(__name__)

MANDATORY_HEAP_FLAG_WARNING = (
    "container limit {container} is lower than the platform default heap ceiling {default}: "
    "an explicit heap-limit flag ({flag}) is mandatory, otherwise the runtime grows the heap "
    "toward its default, exceeds the container limit and is OOM-killed at or before startup"
)

DEFAULT_HEAP_TOO_SMALL_WARNING = (
    "recommended heap limit {heap} is above the platform default heap ceiling {default}: "
    "without {flag} the runtime stops growing the heap at its default and aborts with "
    "a heap out-of-memory error under peak load"
)


# ---------------------------------------------------------------------------
# Проверка входа
# ---------------------------------------------------------------------------


def _require_int(field: str, value) -> int:
    # bool — тоже int, но профиль "True байт" нам не нужен
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidInputError(field, f"must be an integer, got {value!r}")
    return value


def _as_fraction(field: str, value: MarginRatio) -> Fraction:
    """
    Маржу переводим в точную дробь через десятичную запись:
    0.33 должно значить ровно 33/100, а не ближайший double.
    """
    if isinstance(value, bool):
        raise InvalidInputError(field, f"must be a number, got {value!r}")
    if isinstance(value, (int, Fraction)):
        return Fraction(value)
    if isinstance(value, (float, Decimal)):
        try:
            return Fraction(str(value))
        except ValueError:
            raise InvalidInputError(field, f"must be a finite number, got {value!r}")
    raise InvalidInputError(field, f"must be a number, got {value!r}")


def _validate(profile: MemoryProfile, constraint: DeploymentConstraint) -> Fraction:
    resident = _require_int("peak_resident_bytes", profile.peak_resident_bytes)
    if resident <= 0:
        raise InvalidInputError("peak_resident_bytes", f"must be > 0, got {resident}")

    heap = _require_int("peak_heap_used_bytes", profile.peak_heap_used_bytes)
    if heap <= 0:
        raise InvalidInputError("peak_heap_used_bytes", f"must be > 0, got {heap}")

    # инвариант профиля перепроверяем сами, вызывающему не доверяем
    if resident < heap:
        raise InvalidInputError(
            "peak_heap_used_bytes",
            f"peak heap {heap} is larger than peak resident {resident}",
        )

    margin = _as_fraction("safety_margin_ratio", constraint.safety_margin_ratio)
    if margin <= 0 or margin > 1:
        raise InvalidInputError(
            "safety_margin_ratio", f"must be in (0, 1], got {constraint.safety_margin_ratio}"
        )

    replicas = _require_int("desired_replica_count", constraint.desired_replica_count)
    if replicas < 1:
        raise InvalidInputError("desired_replica_count", f"must be >= 1, got {replicas}")

    default_heap = _require_int(
        "platform_default_heap_bytes", constraint.platform_default_heap_bytes
    )
    if default_heap < 0:
        raise InvalidInputError(
            "platform_default_heap_bytes", f"must be >= 0, got {default_heap}"
        )

    return margin


# ---------------------------------------------------------------------------
# Основной расчёт
# ---------------------------------------------------------------------------


def _with_margin(value: int, margin: Fraction) -> int:
    return math.ceil(value * (1 + margin))


def compute_recommendation(
    profile: MemoryProfile, constraint: DeploymentConstraint
) -> Recommendation:
    """
    Профиль + ограничения -> рекомендуемые лимиты heap и контейнера.

      heap_limit      = ceil(peak_heap * (1 + margin))
      non_heap        = peak_resident - peak_heap
      container_limit = heap_limit + ceil(non_heap * (1 + margin))

    Non-heap (native буферы, стеки потоков, метаданные рантайма) флагом heap
    не ограничивается, поэтому закладывается в лимит контейнера отдельно.
    Запас один и тот же для обеих частей.
    """
    margin = _validate(profile, constraint)

    heap = profile.peak_heap_used_bytes
    resident = profile.peak_resident_bytes
    default_heap = constraint.platform_default_heap_bytes

    heap_limit = Bytes(_with_margin(heap, margin))
    non_heap = Bytes(resident - heap)
    container_limit = Bytes(heap_limit + _with_margin(non_heap, margin))

    factor = float(1 + margin)
    rationale = [
        f"heap limit = peak heap {format_bytes_human(heap)} x {factor:g} "
        f"= {heap_limit} bytes ({format_heap_flag(heap_limit)})",
        f"non-heap overhead = peak resident {format_bytes_human(resident)} - peak heap "
        f"= {non_heap} bytes, not covered by the heap flag",
        f"container limit = heap limit + non-heap overhead x {factor:g} = {container_limit} bytes",
    ]

    warnings: List[str] = []
    if container_limit < default_heap:
        warnings.append(
            MANDATORY_HEAP_FLAG_WARNING.format(
                container=format_bytes_human(container_limit),
                default=format_bytes_human(default_heap),
                flag=format_heap_flag(heap_limit),
            )
        )
    elif default_heap and heap_limit > default_heap:
        warnings.append(
            DEFAULT_HEAP_TOO_SMALL_WARNING.format(
                heap=format_bytes_human(heap_limit),
                default=format_bytes_human(default_heap),
                flag=format_heap_flag(heap_limit),
            )
        )

    # при нулевом non-heap лимиты совпадают: профиль с heap == resident недостоверен
    if heap_limit >= container_limit:
        raise InternalInconsistencyError(
            "recommended_container_limit_bytes",
            f"container limit {container_limit} is not above heap limit {heap_limit} "
            f"(non-heap overhead {non_heap})",
        )

    log.debug(
        f"Recommendation for {profile.name or 'profile'}: heap={heap_limit} "
        f"container={container_limit} warnings={len(warnings)}"
    )

    return Recommendation(
        recommended_heap_limit_bytes=heap_limit,
        recommended_container_limit_bytes=container_limit,
        non_heap_overhead_bytes=non_heap,
        warnings=tuple(warnings),
        rationale=tuple(rationale),
    )


def aggregate_fleet_budget(profile: MemoryProfile, constraint: DeploymentConstraint) -> int:
    """Сколько памяти суммарно резервировать под все реплики."""
    rec = compute_recommendation(profile, constraint)
    return rec.recommended_container_limit_bytes * constraint.desired_replica_count


def explain(recommendation: Recommendation) -> str:
    lines = [
        f"heap limit:      {recommendation.recommended_heap_limit_bytes} bytes "
        f"({format_bytes_human(recommendation.recommended_heap_limit_bytes)})",
        f"container limit: {recommendation.recommended_container_limit_bytes} bytes "
        f"({format_bytes_human(recommendation.recommended_container_limit_bytes)})",
        "",
        "rationale:",
    ]
    lines.extend(f"  - {r}" for r in recommendation.rationale)
    if recommendation.warnings:
        lines.append("")
        lines.append("warnings:")
        lines.extend(f"  ! {w}" for w in recommendation.warnings)
    return "\n".join(lines)
