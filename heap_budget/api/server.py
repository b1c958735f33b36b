# heap_budget/api/server.py
from __future__ import annotations

import logging
import os
import time
from dataclasses import replace
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import requests
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from ..advisor.budget import compute_recommendation
from ..advisor.errors import AdvisorError, InvalidInputError, ProfileCollectionError
from ..advisor.presets import list_presets
from ..model.entities import MemoryProfile, DeploymentConstraint, Recommendation
from ..snapshot.collector import collect_memory_profile
from ..snapshot.io import (
    constraint_from_dict, load_profile_from_file, recommendation_to_dict,
    request_from_dict, save_profile_to_file,
)
from .schema import (
    RecommendRequest, ConstraintModel, RecommendationModel, FleetBudgetResponse,
    ProfileListItem, CaptureProfileRequest, CaptureProfileResponse, RuntimePresetModel,
)

app = FastAPI(title="heap-budget")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

log = logging.getLogger("uvicorn")

# --- PATHS ---
MODULE_ROOT = Path(__file__).resolve().parent.parent
PROJECT_ROOT = MODULE_ROOT.parent
PROFILES_DIR = Path(os.getenv("HEAP_BUDGET_PROFILES_DIR", str(PROJECT_ROOT / "profiles")))

# --- Profile Manager ---

class ProfileManager:
    def __init__(self):
        self.profiles: Dict[str, MemoryProfile] = {}

    def add(self, profile_id: str, profile: MemoryProfile):
        self.profiles[profile_id] = profile

    def get(self, profile_id: str) -> MemoryProfile:
        if profile_id not in self.profiles:
            raise KeyError(f"Profile {profile_id} not found")
        return self.profiles[profile_id]

    def clear(self):
        self.profiles.clear()

manager = ProfileManager()

# --- Helpers ---

def _error_detail(e: AdvisorError) -> Dict[str, str]:
    return {"kind": e.kind, "field": e.field, "message": e.message}

def _advise(profile: MemoryProfile, constraint: DeploymentConstraint) -> Recommendation:
    try:
        return compute_recommendation(profile, constraint)
    except InvalidInputError as e:
        raise HTTPException(status_code=422, detail=_error_detail(e))
    except AdvisorError as e:
        log.error(f"Advisor inconsistency: {e}")
        raise HTTPException(status_code=500, detail=_error_detail(e))

def _parse_request(req: RecommendRequest) -> Tuple[MemoryProfile, DeploymentConstraint]:
    try:
        profile, constraint = request_from_dict(req.model_dump(exclude_none=True))
    except InvalidInputError as e:
        raise HTTPException(status_code=422, detail=_error_detail(e))
    return replace(profile, source="api"), constraint

def _to_response(rec: Recommendation, constraint: DeploymentConstraint) -> RecommendationModel:
    return RecommendationModel(**recommendation_to_dict(rec, constraint))

# --- Startup ---

@app.on_event("startup")
async def startup_event() -> None:
    manager.clear()
    try:
        if not PROFILES_DIR.exists():
            return
        for path in sorted(PROFILES_DIR.glob("*.json")):
            try:
                manager.add(path.stem, load_profile_from_file(path))
            except (OSError, ValueError, AdvisorError) as e:
                log.error(f"Failed to load {path}: {e}")
        log.info(f"Loaded {len(manager.profiles)} profile(s) from {PROFILES_DIR}")
    except OSError as e:
        log.error(f"Error loading profiles: {e}")

# --- Endpoints ---

@app.post("/recommend", response_model=RecommendationModel)
def recommend(req: RecommendRequest) -> RecommendationModel:
    profile, constraint = _parse_request(req)
    return _to_response(_advise(profile, constraint), constraint)

@app.post("/fleet-budget", response_model=FleetBudgetResponse)
def fleet_budget(req: RecommendRequest) -> FleetBudgetResponse:
    profile, constraint = _parse_request(req)
    rec = _advise(profile, constraint)
    per_replica = int(rec.recommended_container_limit_bytes)
    return FleetBudgetResponse(
        per_replica_bytes=per_replica,
        desired_replica_count=constraint.desired_replica_count,
        total_bytes=per_replica * constraint.desired_replica_count,
    )

@app.get("/runtimes", response_model=List[RuntimePresetModel])
def runtimes():
    return [
        RuntimePresetModel(name=p.name, default_heap_bytes=p.default_heap_bytes, description=p.description)
        for p in list_presets()
    ]

@app.get("/profiles", response_model=List[ProfileListItem])
def list_profiles():
    result = []
    for pid in sorted(manager.profiles.keys()):
        p = manager.profiles[pid]
        result.append(ProfileListItem(
            id=pid,
            name=p.name,
            source=p.source,
            peak_heap_used_bytes=int(p.peak_heap_used_bytes),
            peak_resident_bytes=int(p.peak_resident_bytes),
        ))
    return result

@app.get("/profiles/{profile_id}", response_model=ProfileListItem)
def get_profile(profile_id: str):
    try:
        p = manager.get(profile_id)
    except KeyError as e:
        raise HTTPException(status_code=404, detail=e.args[0])
    return ProfileListItem(
        id=profile_id,
        name=p.name,
        source=p.source,
        peak_heap_used_bytes=int(p.peak_heap_used_bytes),
        peak_resident_bytes=int(p.peak_resident_bytes),
    )

@app.post("/profiles/{profile_id}/recommend", response_model=RecommendationModel)
def recommend_for_profile(profile_id: str, constraint: Optional[ConstraintModel] = None):
    try:
        profile = manager.get(profile_id)
    except KeyError as e:
        raise HTTPException(status_code=404, detail=e.args[0])
    raw = (constraint or ConstraintModel()).model_dump(exclude_none=True)
    try:
        parsed = constraint_from_dict(raw)
    except InvalidInputError as e:
        raise HTTPException(status_code=422, detail=_error_detail(e))
    return _to_response(_advise(profile, parsed), parsed)

@app.post("/profiles/capture", response_model=CaptureProfileResponse)
def capture_profile(req: CaptureProfileRequest):
    try:
        profile = collect_memory_profile(req.namespace, req.workload, lookback=req.lookback)
    except InvalidInputError as e:
        raise HTTPException(status_code=422, detail=_error_detail(e))
    except ProfileCollectionError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except requests.RequestException as e:
        raise HTTPException(status_code=502, detail=str(e))

    new_id = f"{req.namespace}-{req.workload}-{int(time.time())}"
    PROFILES_DIR.mkdir(parents=True, exist_ok=True)
    save_profile_to_file(profile, PROFILES_DIR / f"{new_id}.json")
    manager.add(new_id, profile)
    return CaptureProfileResponse(id=new_id, message=f"Captured {new_id}")
