"""Raw-to-structured transformation.

Attaches equipment, process and parameter context to raw DCS points and LIMS
results using the ISA-95, ISA-88 and harmonization tables. This is what the
structured view's before/after comparison shows.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from .batch import CompleteBatch
from .dcs import DCSDataPoint
from .harmonization import ParameterMapping, convert_to_standard_value, find_standard_parameter
from .isa88 import ProcessStateContext, get_process_state_at_time
from .isa95 import EquipmentInstance, find_equipment_by_raw_id
from .lims import LIMSSample, TestResult

PATH_SEPARATOR = " → "


@dataclass
class StructuredRecord:
    """A measurement with its ISA-95/ISA-88 context resolved."""

    source_system: str
    raw_id: str
    timestamp: datetime
    equipment_path: str
    equipment_class: str
    standard_id: str
    parameter_name: str
    value: float
    unit: str
    classification: str
    process_context: str
    full_context: str
    in_spec: bool
    spec_range: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source_system": self.source_system,
            "raw_id": self.raw_id,
            "timestamp": self.timestamp.isoformat() + "Z",
            "equipment_path": self.equipment_path,
            "equipment_class": self.equipment_class,
            "standard_id": self.standard_id,
            "parameter_name": self.parameter_name,
            "value": self.value,
            "unit": self.unit,
            "classification": self.classification,
            "process_context": self.process_context,
            "full_context": self.full_context,
            "in_spec": self.in_spec,
            "spec_range": self.spec_range,
        }


def format_spec_range(spec_min: Optional[float], spec_max: Optional[float], unit: str) -> str:
    if spec_min is not None and spec_max is not None:
        return f"{spec_min} - {spec_max} {unit}"
    if spec_min is not None:
        return f"> {spec_min} {unit}"
    if spec_max is not None:
        return f"< {spec_max} {unit}"
    return ""


def format_equipment_path(equipment: Optional[EquipmentInstance]) -> str:
    if equipment is None:
        return "Unknown"
    return PATH_SEPARATOR.join(equipment.full_path.split("."))


def format_process_context(state: Optional[ProcessStateContext]) -> str:
    if state is None:
        return "Before batch start"
    return PATH_SEPARATOR.join(
        [state.current_unit_procedure, state.current_operation, state.current_phase]
    )


def _record(
    system: str,
    raw_id: str,
    timestamp: datetime,
    raw_value: float,
    mapping: ParameterMapping,
    equipment: Optional[EquipmentInstance],
    state: Optional[ProcessStateContext],
    spec_min: Optional[float],
    spec_max: Optional[float],
    in_spec: bool,
) -> StructuredRecord:
    param = mapping.standard_parameter
    return StructuredRecord(
        source_system=system,
        raw_id=raw_id,
        timestamp=timestamp,
        equipment_path=format_equipment_path(equipment),
        equipment_class=equipment.equipment_class if equipment else "Unknown",
        standard_id=param.standard_id,
        parameter_name=param.standard_name,
        value=convert_to_standard_value(raw_value, mapping),
        unit=param.standard_unit,
        classification=param.classification,
        process_context=format_process_context(state),
        full_context=state.full_context if state else "",
        in_spec=in_spec,
        spec_range=format_spec_range(spec_min, spec_max, param.standard_unit),
    )


def contextualize_dcs_point(
    point: DCSDataPoint, batch_start: datetime
) -> Optional[StructuredRecord]:
    """Structured view of one historian sample; None for unmapped tags."""
    mapping = find_standard_parameter(point.tag_id, "DCS")
    if mapping is None:
        return None

    critical = mapping.standard_parameter.critical_range
    value = convert_to_standard_value(point.value, mapping)
    return _record(
        "DCS",
        point.tag_id,
        point.timestamp,
        point.value,
        mapping,
        find_equipment_by_raw_id("dcs", point.tag_id),
        get_process_state_at_time(point.timestamp, batch_start),
        critical.min if critical else None,
        critical.max if critical else None,
        critical.contains(value) if critical else True,
    )


def contextualize_lims_result(
    result: TestResult, sample: Optional[LIMSSample], batch_start: datetime
) -> Optional[StructuredRecord]:
    """Structured view of a lab result, located via its sample's location code."""
    mapping = find_standard_parameter(result.test_code, "LIMS")
    if mapping is None:
        return None

    # Results are placed in the process at collection, not analysis, time
    timestamp = sample.collection_time if sample else result.analysis_date
    equipment = find_equipment_by_raw_id("lims", sample.sample_point) if sample else None
    return _record(
        "LIMS",
        result.test_code,
        timestamp,
        result.value,
        mapping,
        equipment,
        get_process_state_at_time(timestamp, batch_start),
        result.specification_min,
        result.specification_max,
        result.status == "Pass",
    )


def group_tags_by_parameter(points: Iterable[DCSDataPoint]) -> Dict[str, List[str]]:
    """Distinct raw tags seen per standard parameter id."""
    grouped: Dict[str, List[str]] = {}
    for point in points:
        mapping = find_standard_parameter(point.tag_id, "DCS")
        if mapping is None:
            continue
        tags = grouped.setdefault(mapping.standard_parameter.standard_id, [])
        if point.tag_id not in tags:
            tags.append(point.tag_id)
    return grouped


# =============================================================================
# Before / after examples
# =============================================================================


def get_transformation_examples(batch: CompleteBatch) -> List[Dict[str, Any]]:
    """Side-by-side raw and structured records drawn from the batch itself."""
    examples: List[Dict[str, Any]] = []
    points = batch.dcs.data_points

    temp = next((p for p in points if p.tag_id == "BR001_PV_TEMP"), None)
    if temp:
        examples.append({
            "title": "Temperature Data Point",
            "raw": {"system": "DCS", **temp.to_dict()},
            "structured": contextualize_dcs_point(temp, batch.start_time).to_dict(),
            "problems": [
                "No equipment context",
                "Cryptic tag name",
                "No process state",
                "No spec limits",
            ],
        })

    vcd = next((r for r in batch.lims.in_process_results if r.test_code == "VCD-TRYPAN"), None)
    if vcd:
        sample = batch.lims.get_sample(vcd.sample_id)
        raw = {"system": "LIMS", **vcd.to_dict()}
        raw["location_code"] = sample.sample_point if sample else None
        examples.append({
            "title": "LIMS Test Result",
            "raw": raw,
            "structured": contextualize_lims_result(vcd, sample, batch.start_time).to_dict(),
            "problems": [
                "Location code doesn't match DCS/eBR",
                "No link to process phase",
                "Analysis date differs from sample time",
            ],
        })

    ph_points = [p for p in points if p.tag_id in ("BR001_PH_PV", "PH_AI_2001")]
    if ph_points:
        first_ts = ph_points[0].timestamp
        same_time = [p for p in ph_points if p.timestamp == first_ts]
        structured = contextualize_dcs_point(same_time[0], batch.start_time)
        examples.append({
            "title": "Multiple Tag Names → Single Parameter",
            "raw": {
                "system": "DCS",
                "tags": [{"id": p.tag_id, "value": p.value} for p in same_time],
            },
            "structured": {
                "equipment_path": structured.equipment_path,
                "equipment_class": structured.equipment_class,
                "parameter_name": structured.parameter_name,
                "standardized_id": structured.standard_id,
                "classification": structured.classification,
                "spec_range": structured.spec_range,
                "description": (
                    "All pH measurements from different DCS tags map to a single "
                    "standardized parameter"
                ),
            },
            "problems": ["Same measurement under two tag names"],
        })

    return examples
