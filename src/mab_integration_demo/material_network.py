"""Material transformation network.

Lots and intermediates of the batch, the transformations that turn one into
another, and the quality gate each transformation has to pass.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from .isa95 import BIOREACTOR_EQUIPMENT_ID, COLUMN_EQUIPMENT_ID
from .equipment_network import HARVEST_TANK_ID, POOL_TANK_ID

logger = logging.getLogger(__name__)

NETWORK_MATERIAL_TYPES = ("RawMaterial", "Intermediate", "FinalProduct", "Waste")
QUALITY_STATUSES = ("InSpec", "OutOfSpec", "Pending", "Quarantine")
TRANSFORMATION_TYPES = ("Process", "Mix", "Split", "Purify", "Formulate")
GATE_STATUSES = ("Passed", "Failed", "Pending")

FORMULATION_EQUIPMENT_ID = "SITE_A.DSP.FORMULATION.FORM-01"


@dataclass
class MaterialSpec:
    parameter: str
    value: float
    unit: str
    spec: str
    result: str  # Pass, Fail

    def to_dict(self) -> Dict[str, Any]:
        return {
            "parameter": self.parameter,
            "value": self.value,
            "unit": self.unit,
            "spec": self.spec,
            "result": self.result,
        }


@dataclass
class MaterialLot:
    """A material in the network, with its current quality disposition."""

    id: str
    material_code: str
    material_name: str
    material_type: str
    quantity: float
    unit: str
    quality_status: str
    location: str
    lot_number: Optional[str] = None
    specifications: List[MaterialSpec] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "material_code": self.material_code,
            "material_name": self.material_name,
            "material_type": self.material_type,
            "lot_number": self.lot_number,
            "quantity": self.quantity,
            "unit": self.unit,
            "quality_status": self.quality_status,
            "location": self.location,
            "specifications": [s.to_dict() for s in self.specifications],
        }


@dataclass
class QualityGate:
    required: bool
    status: str
    results: List[Dict[str, str]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"required": self.required, "status": self.status, "results": self.results}


@dataclass
class MaterialTransformation:
    transformation_id: str
    transformation_type: str
    input_materials: List[str]
    output_materials: List[str]
    equipment_id: str
    process_id: str
    timestamp: datetime
    yield_percentage: Optional[float] = None
    quality_gate: Optional[QualityGate] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "transformation_id": self.transformation_id,
            "transformation_type": self.transformation_type,
            "input_materials": list(self.input_materials),
            "output_materials": list(self.output_materials),
            "equipment_id": self.equipment_id,
            "process_id": self.process_id,
            "timestamp": self.timestamp.isoformat() + "Z",
            "yield_percentage": self.yield_percentage,
            "quality_gate": self.quality_gate.to_dict() if self.quality_gate else None,
        }


# =============================================================================
# Network definition
# =============================================================================


def get_material_nodes() -> List[MaterialLot]:
    return [
        # Raw materials
        MaterialLot(
            "MAT_MEDIA_001", "MED-CHO-001", "CHO Basal Medium", "RawMaterial", 1500, "L",
            "InSpec", "Raw Material Storage", "LOT-847261",
            [
                MaterialSpec("pH", 7.2, "pH", "7.0-7.4", "Pass"),
                MaterialSpec("Osmolality", 295, "mOsm/kg", "280-310", "Pass"),
            ],
        ),
        MaterialLot(
            "MAT_SEED_001", "SEED-CHO-001", "CHO Seed Culture", "Intermediate", 150, "L",
            "InSpec", "Seed Bioreactor", "SEED-2024-0341",
            [
                MaterialSpec("Viability", 95, "percent", ">90%", "Pass"),
                MaterialSpec("VCD", 5.2, "E6 cells/mL", ">3.0", "Pass"),
            ],
        ),
        MaterialLot(
            "MAT_FEED_001", "FEED-GLU-01", "Glucose Feed Solution", "RawMaterial", 100, "L",
            "InSpec", "Feed Tank 1", "LOT-938271",
        ),
        # Intermediates
        MaterialLot(
            "MAT_CULTURE_001", "CULTURE-B2024-0342", "Production Culture", "Intermediate",
            1820, "L", "InSpec", BIOREACTOR_EQUIPMENT_ID, "B-2024-0342-CULTURE",
            [
                MaterialSpec("Viability", 88, "percent", ">80%", "Pass"),
                MaterialSpec("VCD", 12.5, "E6 cells/mL", ">8.0", "Pass"),
                MaterialSpec("Titer", 2.8, "g/L", ">1.5", "Pass"),
            ],
        ),
        MaterialLot(
            "MAT_HARVEST_001", "HCCCF-001", "Harvested Cell Culture Fluid", "Intermediate",
            1820, "L", "InSpec", HARVEST_TANK_ID, "B-2024-0342-HCCCF",
            [
                MaterialSpec("Bioburden", 2, "CFU/mL", "<10", "Pass"),
                MaterialSpec("Protein", 3.2, "g/L", ">2.0", "Pass"),
            ],
        ),
        MaterialLot(
            "MAT_POOL_001", "mAb-2847-POOL", "Purified mAb Pool", "Intermediate", 45, "L",
            "Pending", POOL_TANK_ID, "B-2024-0342-POOL-001",
            [
                MaterialSpec("Purity", 97.2, "percent", ">95%", "Pass"),
                MaterialSpec("Aggregates", 1.8, "percent", "<3.0%", "Pass"),
                MaterialSpec("Endotoxin", 0.02, "EU/mL", "<0.5", "Pass"),
            ],
        ),
        # Drug substance, not yet made
        MaterialLot(
            "MAT_FINAL_001", "mAb-2847-DS", "mAb-2847 Drug Substance", "FinalProduct", 40, "L",
            "Pending", "Final Storage", "B-2024-0342-DS",
        ),
        MaterialLot(
            "MAT_WASTE_001", "WASTE-CELLS", "Spent Cell Mass", "Waste", 1775, "L",
            "InSpec", "Waste Processing",
        ),
    ]


def get_material_transformations() -> List[MaterialTransformation]:
    return [
        MaterialTransformation(
            "TRANS_001", "Process",
            ["MAT_MEDIA_001", "MAT_SEED_001", "MAT_FEED_001"], ["MAT_CULTURE_001"],
            BIOREACTOR_EQUIPMENT_ID, "UP_CULTURE", datetime(2024, 3, 15, 10, 0), 98,
            QualityGate(True, "Passed", [
                {"test": "Viability", "result": "Pass"},
                {"test": "Titer", "result": "Pass"},
            ]),
        ),
        MaterialTransformation(
            "TRANS_002", "Split",
            ["MAT_CULTURE_001"], ["MAT_HARVEST_001", "MAT_WASTE_001"],
            BIOREACTOR_EQUIPMENT_ID, "UP_HARVEST", datetime(2024, 3, 19, 18, 0), 100,
            QualityGate(True, "Passed", [
                {"test": "Bioburden", "result": "Pass"},
                {"test": "Cell Debris", "result": "Pass"},
            ]),
        ),
        MaterialTransformation(
            "TRANS_003", "Purify",
            ["MAT_HARVEST_001"], ["MAT_POOL_001"],
            COLUMN_EQUIPMENT_ID, "UP_CHROM", datetime(2024, 3, 20, 6, 0), 85,
            QualityGate(True, "Pending", [
                {"test": "Purity", "result": "Pass"},
                {"test": "Aggregates", "result": "Pass"},
                {"test": "Endotoxin", "result": "Pending"},
            ]),
        ),
        MaterialTransformation(
            "TRANS_004", "Formulate",
            ["MAT_POOL_001"], ["MAT_FINAL_001"],
            FORMULATION_EQUIPMENT_ID, "UP_FORMULATION", datetime(2024, 3, 21, 14, 0), 95,
            QualityGate(True, "Pending"),
        ),
    ]


def get_material_node(material_id: str) -> Optional[MaterialLot]:
    return next((m for m in get_material_nodes() if m.id == material_id), None)


# =============================================================================
# Queries
# =============================================================================


def trace_material_genealogy(material_id: str) -> Dict[str, List[Any]]:
    """Direct ancestors and descendants of a material, one transformation deep.

    Returns lists under "ancestors", "descendants" and "transformations". A
    transformation that both consumes and produces the material appears twice.
    """
    materials = {m.id: m for m in get_material_nodes()}
    ancestors: List[MaterialLot] = []
    descendants: List[MaterialLot] = []
    related: List[MaterialTransformation] = []

    for trans in get_material_transformations():
        if material_id in trans.input_materials:
            related.append(trans)
            descendants.extend(materials[i] for i in trans.output_materials if i in materials)
        if material_id in trans.output_materials:
            related.append(trans)
            ancestors.extend(materials[i] for i in trans.input_materials if i in materials)

    return {"ancestors": ancestors, "descendants": descendants, "transformations": related}


def find_materials_by_quality_status(status: str) -> List[MaterialLot]:
    return [m for m in get_material_nodes() if m.quality_status == status]


def find_materials_by_type(material_type: str) -> List[MaterialLot]:
    return [m for m in get_material_nodes() if m.material_type == material_type]


def get_materials_at_location(location: str) -> List[MaterialLot]:
    """Materials whose location contains the given text."""
    return [m for m in get_material_nodes() if location in m.location]


def get_quality_gate_status() -> Dict[str, int]:
    gates = [t.quality_gate for t in get_material_transformations() if t.quality_gate]
    return {
        "total": sum(1 for g in gates if g.required),
        "passed": sum(1 for g in gates if g.status == "Passed"),
        "failed": sum(1 for g in gates if g.status == "Failed"),
        "pending": sum(1 for g in gates if g.status == "Pending"),
    }


def build_material_flow_graph() -> Dict[str, Any]:
    """Nodes plus one edge per (input, output) pair of every transformation."""
    edges = [
        {"from": src, "to": dst, "transformation": trans}
        for trans in get_material_transformations()
        for src in trans.input_materials
        for dst in trans.output_materials
    ]
    return {"nodes": get_material_nodes(), "edges": edges}


def calculate_overall_yield(from_material_id: str, to_material_id: str) -> float:
    """Product of transformation yields walking forward from one material to another.

    The walk advances a frontier one transformation at a time and stops once
    the target is in the frontier, or when nothing is left to expand. Every
    transformation consuming a frontier material contributes its yield, so
    side branches reached before the target are counted too.
    """
    transformations = get_material_transformations()
    total_yield = 100.0
    frontier = [from_material_id]
    visited = set()

    while frontier and to_material_id not in frontier:
        next_frontier: List[str] = []
        for material_id in frontier:
            if material_id in visited:
                continue
            visited.add(material_id)
            for trans in transformations:
                if material_id in trans.input_materials:
                    if trans.yield_percentage:
                        total_yield *= trans.yield_percentage / 100
                    next_frontier.extend(trans.output_materials)
        frontier = next_frontier

    if to_material_id not in frontier:
        logger.debug(f"No transformation path from {from_material_id} to {to_material_id}")

    return round(total_yield, 1)
