# heap_budget/advisor/presets.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List

from ..types import Bytes, RuntimeName, BYTES_PER_MIB


@dataclass(frozen=True)
class RuntimePreset:
    name: RuntimeName
    default_heap_bytes: Bytes
    description: str


# Типичные дефолтные потолки heap без явного флага.
# Реальное значение зависит от версии и архитектуры, поэтому это только подсказка:
# если знаешь точное значение для своего образа, передавай его байтами.
_PRESETS: Dict[str, RuntimePreset] = {
    p.name: p
    for p in (
        RuntimePreset(
            RuntimeName("node-legacy-x64"),
            Bytes(1400 * BYTES_PER_MIB),
            "Node.js <= 11, 64-bit: old space capped around 1.4 GiB",
        ),
        RuntimePreset(
            RuntimeName("node-legacy-x86"),
            Bytes(700 * BYTES_PER_MIB),
            "Node.js <= 11, 32-bit: old space capped around 700 MiB",
        ),
        RuntimePreset(
            RuntimeName("jvm-default-4g"),
            Bytes(1024 * BYTES_PER_MIB),
            "JVM without -Xmx on a 4 GiB host (1/4 of physical memory)",
        ),
    )
}


def get_preset(name: str) -> RuntimePreset:
    preset = _PRESETS.get(name)
    if preset is None:
        known = ", ".join(sorted(_PRESETS))
        raise KeyError(f"Unknown runtime preset {name!r}, known: {known}")
    return preset


def list_presets() -> List[RuntimePreset]:
    return [_PRESETS[k] for k in sorted(_PRESETS)]
