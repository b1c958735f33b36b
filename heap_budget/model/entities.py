# heap_budget/model/entities.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Tuple

from ..types import Bytes, MarginRatio


@dataclass(frozen=True)
class MemoryProfile:
    """
    Профиль потребления памяти процесса за репрезентативный прогон.

    Всё в байтах:
      - peak_heap_used_bytes: максимум занятого heap
      - peak_resident_bytes: максимум RSS / working set (heap + native буферы, стеки, метаданные)

    Инвариант peak_resident_bytes >= peak_heap_used_bytes тут НЕ проверяется,
    его перепроверяет advisor на входе.
    """
    peak_heap_used_bytes: Bytes
    peak_resident_bytes: Bytes

    # только для отображения
    name: Optional[str] = None
    source: str = "manual"  # manual / file / prometheus


@dataclass(frozen=True)
class DeploymentConstraint:
    desired_replica_count: int
    safety_margin_ratio: MarginRatio
    # дефолтный потолок heap рантайма без флага, задаёт вызывающий
    platform_default_heap_bytes: Bytes = Bytes(0)


@dataclass(frozen=True)
class Recommendation:
    """
    Результат одного вызова advisor'а. Неизменяемый, ни с чем не связан.
    """
    recommended_heap_limit_bytes: Bytes
    recommended_container_limit_bytes: Bytes
    non_heap_overhead_bytes: Bytes
    warnings: Tuple[str, ...] = field(default_factory=tuple)
    rationale: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def has_warnings(self) -> bool:
        return bool(self.warnings)
