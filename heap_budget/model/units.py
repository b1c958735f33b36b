# heap_budget/model/units.py
from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation, ROUND_CEILING
from typing import Union

from ..types import Bytes, MiB, BYTES_PER_MIB

_MULTIPLIERS = {
    'Ki': 1024, 'Mi': 1024**2, 'Gi': 1024**3, 'Ti': 1024**4, 'Pi': 1024**5,
    'k': 1000, 'K': 1000, 'M': 1000**2, 'G': 1000**3, 'T': 1000**4, 'P': 1000**5,
}

_QUANTITY_RE = re.compile(r'^\s*([0-9]+(?:\.[0-9]+)?)\s*([A-Za-z]*)\s*$')


def parse_memory(quantity: Union[str, int]) -> Bytes:
    """
    Kubernetes-подобное количество памяти -> байты.

    "180Mi", "1.5Gi", "200M", "150000000" или просто int.
    В отличие от парсера в collector'е мусор не превращаем в 0, а падаем:
    нулевой профиль молча даст бессмысленную рекомендацию.
    """
    if isinstance(quantity, bool):
        raise ValueError(f"Invalid memory quantity: {quantity!r}")
    if isinstance(quantity, int):
        if quantity < 0:
            raise ValueError(f"Negative memory quantity: {quantity}")
        return Bytes(quantity)

    m = _QUANTITY_RE.match(str(quantity))
    if not m:
        raise ValueError(f"Invalid memory quantity: {quantity!r}")

    number_part, suffix = m.group(1), m.group(2)
    if suffix and suffix not in _MULTIPLIERS:
        raise ValueError(f"Unknown memory suffix {suffix!r} in {quantity!r}")
    mult = _MULTIPLIERS.get(suffix, 1)

    try:
        value = Decimal(number_part) * mult
    except InvalidOperation:
        raise ValueError(f"Invalid memory quantity: {quantity!r}")
    # дробные байты округляем вверх, как и весь бюджет
    return Bytes(int(value.to_integral_value(rounding=ROUND_CEILING)))


def to_mib_ceil(num_bytes: int) -> MiB:
    return MiB(-(-num_bytes // BYTES_PER_MIB))


def format_memory_quantity(num_bytes: int) -> str:
    """Значение для resources.limits.memory, в Mi с округлением вверх."""
    return f"{to_mib_ceil(num_bytes)}Mi"


def format_heap_flag(num_bytes: int) -> str:
    """Флаг запуска node: --max-old-space-size принимает мегабайты."""
    return f"--max-old-space-size={to_mib_ceil(num_bytes)}"


def format_bytes_human(num_bytes: int) -> str:
    for unit, size in (("GiB", 1024**3), ("MiB", 1024**2), ("KiB", 1024)):
        if num_bytes >= size:
            return f"{num_bytes / size:.1f} {unit}"
    return f"{num_bytes} B"
