# heap_budget/snapshot/collector.py
from __future__ import annotations

import logging
import os
import re
from typing import Any, Dict, List, Optional

import requests

from ..advisor.errors import InvalidInputError, ProfileCollectionError
from ..model.entities import MemoryProfile
from ..types import Bytes

log = logging.getLogger(__name__)

PROM_URL = os.getenv("HEAP_BUDGET_PROM_URL", "http://localhost:9090")
LOOKBACK = os.getenv("HEAP_BUDGET_LOOKBACK", "7d")
QUERY_TIMEOUT = float(os.getenv("HEAP_BUDGET_QUERY_TIMEOUT", "20"))

# prom-client (Node.js) отдаёт heap в nodejs_heap_size_used_bytes,
# cadvisor — working set контейнера
HEAP_METRIC = "nodejs_heap_size_used_bytes"
RESIDENT_METRIC = "container_memory_working_set_bytes"

# DNS-1123: namespace и префикс пода, кавычки и обратные слэши сюда не пролезут
_K8S_NAME_RE = re.compile(r"^[a-z0-9]([-a-z0-9.]*[a-z0-9])?$")
_DURATION_RE = re.compile(r"^[0-9]+(ms|[smhdwy])$")


def build_queries(namespace: str, workload: str, lookback: str = LOOKBACK) -> Dict[str, str]:
    for field, value in (("namespace", namespace), ("workload", workload)):
        if not _K8S_NAME_RE.fullmatch(value or ""):
            raise InvalidInputError(field, f"not a valid Kubernetes name: {value!r}")
    if not _DURATION_RE.fullmatch(lookback or ""):
        raise InvalidInputError("lookback", f"not a PromQL duration: {lookback!r}")
    selector = f'namespace="{namespace}", pod=~"{workload}-.*"'
    q_heap = f'max_over_time(max({HEAP_METRIC}{{{selector}}})[{lookback}:])'
    q_resident = (
        f'max_over_time(max({RESIDENT_METRIC}{{{selector}, container!="", container!="POD"}})'
        f'[{lookback}:])'
    )
    return {"heap": q_heap, "resident": q_resident}


def _query_api_url(prom_url: str) -> str:
    return prom_url.rstrip("/") + "/api/v1/query"


def _do_query(prom_url: str, query: str, timeout: float) -> List[Dict[str, Any]]:
    log.info(f"Querying {prom_url}: {query}")
    try:
        resp = requests.get(_query_api_url(prom_url), params={"query": query}, timeout=timeout)
        resp.raise_for_status()
    except requests.RequestException as e:
        log.warning(f"Metrics query failed: {e}")
        raise
    return resp.json().get("data", {}).get("result", [])


def _max_value(result: List[Dict[str, Any]], what: str, query: str) -> Bytes:
    values: List[float] = []
    for r in result:
        val = r.get("value", [0, None])[1]
        if val is None:
            continue
        try:
            values.append(float(val))
        except ValueError:
            log.warning(f"Skipping non-numeric sample {val!r} for {what}")
    if not values:
        raise ProfileCollectionError(f"No {what} samples returned for query: {query}")
    return Bytes(int(max(values)))


def collect_memory_profile(
    namespace: str,
    workload: str,
    prom_url: Optional[str] = None,
    lookback: Optional[str] = None,
    timeout: Optional[float] = None,
) -> MemoryProfile:
    """
    Строит MemoryProfile по уже записанным метрикам (max за окно lookback).
    Сами мы ничего не сэмплируем — это сделал Prometheus / VictoriaMetrics.
    """
    prom_url = prom_url or PROM_URL
    timeout = timeout if timeout is not None else QUERY_TIMEOUT
    queries = build_queries(namespace, workload, lookback or LOOKBACK)

    heap = _max_value(_do_query(prom_url, queries["heap"], timeout), "heap", queries["heap"])
    resident = _max_value(
        _do_query(prom_url, queries["resident"], timeout), "resident", queries["resident"]
    )

    log.info(f"Collected profile {namespace}/{workload}: heap={heap} resident={resident}")
    return MemoryProfile(
        peak_heap_used_bytes=heap,
        peak_resident_bytes=resident,
        name=f"{namespace}/{workload}",
        source="prometheus",
    )
