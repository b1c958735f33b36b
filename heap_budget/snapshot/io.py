# heap_budget/snapshot/io.py
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from ..advisor.errors import InvalidInputError
from ..advisor.presets import get_preset
from ..model.entities import MemoryProfile, DeploymentConstraint, Recommendation
from ..model.units import parse_memory, format_heap_flag, format_memory_quantity
from ..types import Bytes


def _memory_field(raw: Dict[str, Any], key: str, section: str) -> Bytes:
    if key not in raw:
        raise InvalidInputError(f"{section}.{key}", "is required")
    try:
        return parse_memory(raw[key])
    except (TypeError, ValueError) as e:
        raise InvalidInputError(f"{section}.{key}", str(e))


def profile_from_dict(raw: Dict[str, Any], source: str = "file") -> MemoryProfile:
    if not isinstance(raw, dict):
        raise InvalidInputError("profile", "must be an object")
    return MemoryProfile(
        peak_heap_used_bytes=_memory_field(raw, "peak_heap_used_bytes", "profile"),
        peak_resident_bytes=_memory_field(raw, "peak_resident_bytes", "profile"),
        name=raw.get("name"),
        source=raw.get("source", source),
    )


def constraint_from_dict(raw: Dict[str, Any]) -> DeploymentConstraint:
    """
    platform_default_heap_bytes можно задать байтами/quantity,
    либо именем пресета в "runtime". Если есть оба — побеждают байты.
    """
    if not isinstance(raw, dict):
        raise InvalidInputError("constraint", "must be an object")

    if "platform_default_heap_bytes" in raw:
        default_heap = _memory_field(raw, "platform_default_heap_bytes", "constraint")
    elif raw.get("runtime"):
        try:
            default_heap = get_preset(raw["runtime"]).default_heap_bytes
        except KeyError as e:
            raise InvalidInputError("constraint.runtime", e.args[0])
    else:
        default_heap = Bytes(0)

    # типы replicas/margin проверяет сам advisor
    return DeploymentConstraint(
        desired_replica_count=raw.get("desired_replica_count", 1),
        safety_margin_ratio=raw.get("safety_margin_ratio", 0.5),
        platform_default_heap_bytes=default_heap,
    )


def request_from_dict(data: Dict[str, Any]) -> Tuple[MemoryProfile, DeploymentConstraint]:
    if not isinstance(data, dict):
        raise InvalidInputError("document", "must be a JSON object")
    profile = profile_from_dict(data.get("profile"))
    constraint = constraint_from_dict(data.get("constraint") or {})
    return profile, constraint


def load_request_from_file(path: Path) -> Tuple[MemoryProfile, DeploymentConstraint]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except OSError as e:
        raise InvalidInputError("document", f"cannot read {path}: {e}")
    except json.JSONDecodeError as e:
        raise InvalidInputError("document", f"invalid JSON in {path}: {e}")
    return request_from_dict(data)


def profile_to_dict(profile: MemoryProfile) -> Dict[str, Any]:
    return {
        "name": profile.name,
        "source": profile.source,
        "peak_heap_used_bytes": int(profile.peak_heap_used_bytes),
        "peak_resident_bytes": int(profile.peak_resident_bytes),
    }


def save_profile_to_file(profile: MemoryProfile, path: Path) -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump({"profile": profile_to_dict(profile)}, f, indent=2, sort_keys=True)


def load_profile_from_file(path: Path) -> MemoryProfile:
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    return profile_from_dict(data.get("profile") if isinstance(data, dict) else None)


def recommendation_to_dict(
    rec: Recommendation, constraint: Optional[DeploymentConstraint] = None
) -> Dict[str, Any]:
    heap = int(rec.recommended_heap_limit_bytes)
    container = int(rec.recommended_container_limit_bytes)
    data: Dict[str, Any] = {
        "recommended_heap_limit_bytes": heap,
        "recommended_container_limit_bytes": container,
        "non_heap_overhead_bytes": int(rec.non_heap_overhead_bytes),
        "heap_flag": format_heap_flag(heap),
        "container_memory_limit": format_memory_quantity(container),
        "warnings": list(rec.warnings),
        "rationale": list(rec.rationale),
    }
    if constraint is not None:
        data["desired_replica_count"] = constraint.desired_replica_count
        data["fleet_budget_bytes"] = container * constraint.desired_replica_count
    return data


def save_recommendation_to_file(
    rec: Recommendation, path: Path, constraint: Optional[DeploymentConstraint] = None
) -> None:
    data = recommendation_to_dict(rec, constraint)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, sort_keys=True)
