# heap_budget/api/schema.py
from __future__ import annotations

from typing import List, Optional, Union
from pydantic import BaseModel, Field

# Байты можно слать числом или quantity-строкой ("180Mi"), разбирает snapshot.io
MemoryValue = Union[int, str]


class ProfileModel(BaseModel):
    name: Optional[str] = None
    peak_heap_used_bytes: MemoryValue
    peak_resident_bytes: MemoryValue


class ConstraintModel(BaseModel):
    desired_replica_count: int = 1
    safety_margin_ratio: float = 0.5
    platform_default_heap_bytes: Optional[MemoryValue] = None
    runtime: Optional[str] = None


class RecommendRequest(BaseModel):
    profile: ProfileModel
    constraint: ConstraintModel = Field(default_factory=ConstraintModel)


class RecommendationModel(BaseModel):
    recommended_heap_limit_bytes: int
    recommended_container_limit_bytes: int
    non_heap_overhead_bytes: int
    heap_flag: str
    container_memory_limit: str
    warnings: List[str]
    rationale: List[str]
    desired_replica_count: int
    fleet_budget_bytes: int


class FleetBudgetResponse(BaseModel):
    per_replica_bytes: int
    desired_replica_count: int
    total_bytes: int


# --- Профили ---

class ProfileListItem(BaseModel):
    id: str
    name: Optional[str]
    source: str
    peak_heap_used_bytes: int
    peak_resident_bytes: int


class CaptureProfileRequest(BaseModel):
    namespace: str
    workload: str
    lookback: Optional[str] = None


class CaptureProfileResponse(BaseModel):
    id: str
    message: str


class RuntimePresetModel(BaseModel):
    name: str
    default_heap_bytes: int
    description: str
