# heap_budget/types.py
from __future__ import annotations

from fractions import Fraction
from typing import NewType, Union


# Ресурсы
Bytes = NewType("Bytes", int)          # байты
MiB = NewType("MiB", int)              # мебибайты (как их ждёт --max-old-space-size)

# Доля запаса сверху над пиком: 0.5 == 1.5x
MarginRatio = Union[float, int, Fraction]

# Имя пресета рантайма (node-legacy-x64 и т.п.)
RuntimeName = NewType("RuntimeName", str)

BYTES_PER_MIB = 1024 * 1024
