"""Shared pytest fixtures."""

import pytest

from heap_budget.model.entities import MemoryProfile, DeploymentConstraint
from heap_budget.types import Bytes


@pytest.fixture
def article_profile() -> MemoryProfile:
    return MemoryProfile(
        peak_heap_used_bytes=Bytes(150_000_000),
        peak_resident_bytes=Bytes(180_000_000),
        name="default/api",
    )


@pytest.fixture
def article_constraint() -> DeploymentConstraint:
    return DeploymentConstraint(
        desired_replica_count=2,
        safety_margin_ratio=0.33,
        platform_default_heap_bytes=Bytes(900_000_000),
    )


@pytest.fixture
def article_document() -> dict:
    return {
        "profile": {
            "name": "default/api",
            "peak_heap_used_bytes": 150_000_000,
            "peak_resident_bytes": 180_000_000,
        },
        "constraint": {
            "desired_replica_count": 2,
            "safety_margin_ratio": 0.33,
            "platform_default_heap_bytes": 900_000_000,
        },
    }
