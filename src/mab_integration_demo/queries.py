"""Canned knowledge-graph queries.

Each query walks the equipment, process and material networks and returns a
QueryResult whose results are plain dicts, ready for JSON.
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Union

from .config import SAMPLE_BATCH_ID
from .equipment_network import get_all_equipment_nodes
from .material_network import (
    get_material_nodes,
    get_material_transformations,
    trace_material_genealogy,
)
from .process_network import ProcessStatus, get_process_network

logger = logging.getLogger(__name__)

DEFAULT_MATERIAL_ID = "MAT_CULTURE_001"
BOTTLENECK_THRESHOLD = 1.1
PRODUCTION_KEYWORDS = ("production", "culture", "batch")


class QueryType(str, Enum):
    EQUIPMENT_IN_PRODUCTION = "equipment_in_production"
    TRACE_BATCH = "trace_batch"
    FIND_QUALITY_ISSUES = "find_quality_issues"
    COMPARE_SITES = "compare_sites"
    PROCESS_BOTTLENECKS = "process_bottlenecks"
    MATERIAL_GENEALOGY = "material_genealogy"


@dataclass
class QueryResult:
    query_name: str
    description: str
    results: List[Dict[str, Any]] = field(default_factory=list)
    execution_time_ms: float = 0.0
    result_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "query_name": self.query_name,
            "description": self.description,
            "results": self.results,
            "execution_time_ms": round(self.execution_time_ms, 3),
            "result_count": self.result_count,
        }


def _elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000


# =============================================================================
# Queries
# =============================================================================


def query_equipment_in_production() -> QueryResult:
    """Running equipment that has a running production-type process on it."""
    started = time.perf_counter()
    processes = get_process_network()
    results = []

    for equipment in get_all_equipment_nodes():
        if equipment.status != "Running":
            continue
        active = [
            p for p in processes
            if p.equipment_id == equipment.id and p.status == ProcessStatus.RUNNING
        ]
        if not any(k in p.name.lower() for p in active for k in PRODUCTION_KEYWORDS):
            continue
        phase = next((p.name for p in active if p.level == "Phase"), "Unknown")
        results.append({
            "equipment": equipment.to_dict(),
            "active_processes": [p.to_dict() for p in active],
            "current_phase": phase,
        })

    return QueryResult(
        query_name="Equipment in Production",
        description="All bioreactors and equipment currently running production processes",
        results=results,
        execution_time_ms=_elapsed_ms(started),
        result_count=len(results),
    )


def _transformation_summary(trans) -> Dict[str, Any]:
    return {
        "type": trans.transformation_type,
        "equipment": trans.equipment_id,
        "process": trans.process_id,
        "yield": trans.yield_percentage,
        "quality_gate": trans.quality_gate.status if trans.quality_gate else None,
    }


def query_trace_batch(batch_id: str) -> QueryResult:
    """Genealogy of every material belonging to a batch, raw materials first.

    Depth is relative to the first batch material found: ancestors go
    negative, descendants positive.
    """
    started = time.perf_counter()
    materials = {m.id: m for m in get_material_nodes()}
    batch_materials = [
        m for m in materials.values()
        if (m.lot_number and batch_id in m.lot_number) or batch_id in m.material_code
    ]

    genealogy: List[Dict[str, Any]] = []
    visited = set()

    def walk(material_id: str, depth: int) -> None:
        if material_id in visited or material_id not in materials:
            return
        visited.add(material_id)

        related = trace_material_genealogy(material_id)
        genealogy.append({
            "depth": depth,
            "material": materials[material_id].to_dict(),
            "ancestors": [a.material_name for a in related["ancestors"]],
            "descendants": [d.material_name for d in related["descendants"]],
            "transformations": [_transformation_summary(t) for t in related["transformations"]],
        })

        for ancestor in related["ancestors"]:
            walk(ancestor.id, depth - 1)
        for descendant in related["descendants"]:
            walk(descendant.id, depth + 1)

    for material in batch_materials:
        walk(material.id, 0)

    genealogy.sort(key=lambda entry: entry["depth"])
    logger.debug(f"Traced {len(genealogy)} materials for batch {batch_id}")

    return QueryResult(
        query_name="Trace Batch",
        description=f"Complete material genealogy for batch {batch_id}",
        results=genealogy,
        execution_time_ms=_elapsed_ms(started),
        result_count=len(genealogy),
    )


def query_find_quality_issues() -> QueryResult:
    """Out-of-spec or quarantined materials with the step and inputs that made them."""
    started = time.perf_counter()
    materials = {m.id: m for m in get_material_nodes()}
    transformations = get_material_transformations()
    equipment = {e.id: e for e in get_all_equipment_nodes()}
    results = []

    for material in materials.values():
        if material.quality_status not in ("OutOfSpec", "Quarantine"):
            continue

        trans = next((t for t in transformations if material.id in t.output_materials), None)
        transformation = None
        inputs: List[Dict[str, Any]] = []
        if trans:
            node = equipment.get(trans.equipment_id)
            transformation = {
                "type": trans.transformation_type,
                "equipment": node.name if node else None,
                "equipment_id": node.id if node else None,
                "process": trans.process_id,
                "quality_gate": trans.quality_gate.to_dict() if trans.quality_gate else None,
            }
            inputs = [materials[i].to_dict() for i in trans.input_materials if i in materials]

        results.append({
            "material": material.to_dict(),
            "failed_specifications": [
                s.to_dict() for s in material.specifications if s.result == "Fail"
            ],
            "transformation": transformation,
            "input_materials": inputs,
            "root_cause": "Analysis Required",
        })

    return QueryResult(
        query_name="Quality Issues",
        description="Materials with quality issues and the equipment/processes that created them",
        results=results,
        execution_time_ms=_elapsed_ms(started),
        result_count=len(results),
    )


def query_compare_sites() -> QueryResult:
    """Equipment grouped by site, then by class, in first-seen order."""
    started = time.perf_counter()
    by_site: Dict[str, Dict[str, list]] = {}
    for node in get_all_equipment_nodes():
        by_site.setdefault(node.site, {}).setdefault(node.equipment_class, []).append(node)

    results = [
        {
            "site": site,
            "equipment_class": equipment_class,
            "count": len(nodes),
            "equipment": [
                {
                    "name": n.name,
                    "status": n.status,
                    "capacity": n.metadata.get("capacity"),
                    "current_process": n.current_process,
                }
                for n in nodes
            ],
        }
        for site, classes in by_site.items()
        for equipment_class, nodes in classes.items()
    ]

    return QueryResult(
        query_name="Cross-Site Comparison",
        description="Equipment capabilities and utilization across all sites",
        results=results,
        execution_time_ms=_elapsed_ms(started),
        result_count=len(results),
    )


def query_process_bottlenecks() -> QueryResult:
    """Processes more than 10% over their expected duration, worst first."""
    started = time.perf_counter()
    bottlenecks = []

    for proc in get_process_network():
        expected, actual = proc.expected_duration, proc.actual_duration
        if not expected or not actual or actual <= expected * BOTTLENECK_THRESHOLD:
            continue
        delay = actual - expected
        bottlenecks.append({
            "process": proc.to_dict(),
            "expected_duration": expected,
            "actual_duration": actual,
            "delay": delay,
            "delay_percentage": f"{delay / expected * 100:.1f}%",
            "equipment_id": proc.equipment_id,
            "critical": proc.critical_step,
        })

    bottlenecks.sort(key=lambda b: b["delay"], reverse=True)

    return QueryResult(
        query_name="Process Bottlenecks",
        description="Processes running longer than expected duration",
        results=bottlenecks,
        execution_time_ms=_elapsed_ms(started),
        result_count=len(bottlenecks),
    )


def query_material_genealogy(material_id: str) -> QueryResult:
    started = time.perf_counter()
    material = next((m for m in get_material_nodes() if m.id == material_id), None)

    if material is None:
        return QueryResult(
            query_name="Material Genealogy",
            description=f"Material {material_id} not found",
            execution_time_ms=_elapsed_ms(started),
        )

    related = trace_material_genealogy(material_id)

    def with_quality(m) -> Dict[str, Any]:
        return {
            "material": m.to_dict(),
            "specifications": [s.to_dict() for s in m.specifications],
            "quality_status": m.quality_status,
        }

    result = {
        "target_material": material.to_dict(),
        "ancestors": [with_quality(a) for a in related["ancestors"]],
        "descendants": [with_quality(d) for d in related["descendants"]],
        "transformations": [
            {
                "type": t.transformation_type,
                "equipment": t.equipment_id,
                "process": t.process_id,
                "yield": t.yield_percentage,
                "quality_gate": t.quality_gate.to_dict() if t.quality_gate else None,
                "timestamp": t.timestamp.isoformat() + "Z",
            }
            for t in related["transformations"]
        ],
    }

    return QueryResult(
        query_name="Material Genealogy",
        description=f"Complete genealogy for {material.material_name}",
        results=[result],
        execution_time_ms=_elapsed_ms(started),
        result_count=len(related["ancestors"]) + len(related["descendants"]) + 1,
    )


# =============================================================================
# Dispatch
# =============================================================================

_HANDLERS: Dict[QueryType, Callable[[Dict[str, Any]], QueryResult]] = {
    QueryType.EQUIPMENT_IN_PRODUCTION: lambda p: query_equipment_in_production(),
    QueryType.TRACE_BATCH: lambda p: query_trace_batch(p.get("batch_id") or SAMPLE_BATCH_ID),
    QueryType.FIND_QUALITY_ISSUES: lambda p: query_find_quality_issues(),
    QueryType.COMPARE_SITES: lambda p: query_compare_sites(),
    QueryType.PROCESS_BOTTLENECKS: lambda p: query_process_bottlenecks(),
    QueryType.MATERIAL_GENEALOGY: lambda p: query_material_genealogy(
        p.get("material_id") or DEFAULT_MATERIAL_ID
    ),
}


def parse_query_type(value: Union[str, QueryType]) -> Optional[QueryType]:
    """QueryType for a string id, or None if it names no query."""
    try:
        return QueryType(value)
    except ValueError:
        return None


def execute_query(
    query_type: Union[str, QueryType], params: Optional[Dict[str, Any]] = None
) -> QueryResult:
    """Run a query by type.

    Unknown types give an empty "Unknown Query" result rather than raising.
    """
    parsed = parse_query_type(query_type)
    if parsed is None:
        logger.warning(f"Unknown query type requested: {query_type}")
        return QueryResult(query_name="Unknown Query", description="Query type not found")

    result = _HANDLERS[parsed](params or {})
    logger.debug(
        f"Query {parsed.value} returned {result.result_count} results "
        f"in {result.execution_time_ms:.2f} ms"
    )
    return result


def get_available_queries() -> List[Dict[str, Any]]:
    return [
        {
            "id": QueryType.EQUIPMENT_IN_PRODUCTION.value,
            "name": "Equipment in Production",
            "description": "Show all bioreactors currently in production phase",
            "params": [],
        },
        {
            "id": QueryType.TRACE_BATCH.value,
            "name": "Trace Batch",
            "description": "Trace batch from seed culture to final product",
            "params": ["batch_id"],
        },
        {
            "id": QueryType.FIND_QUALITY_ISSUES.value,
            "name": "Quality Issues",
            "description": "Find equipment that processed material with quality issues",
            "params": [],
        },
        {
            "id": QueryType.COMPARE_SITES.value,
            "name": "Compare Sites",
            "description": "Compare process flows and equipment between sites",
            "params": [],
        },
        {
            "id": QueryType.PROCESS_BOTTLENECKS.value,
            "name": "Process Bottlenecks",
            "description": "Identify processes running longer than expected",
            "params": [],
        },
        {
            "id": QueryType.MATERIAL_GENEALOGY.value,
            "name": "Material Genealogy",
            "description": "Complete material genealogy for a specific material",
            "params": ["material_id"],
        },
    ]
