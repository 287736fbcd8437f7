"""Material flow tracking with balances and genealogy."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, FrozenSet, List, Optional

from .isa95 import BIOREACTOR_EQUIPMENT_ID, COLUMN_EQUIPMENT_ID

MATERIAL_TYPES = ("RawMaterial", "Intermediate", "FinalProduct", "Consumable", "Buffer")
FLOW_TYPES = ("Input", "Output", "Transfer", "Consumption")

HARVEST_TANK = "HARVEST_TANK_001"
POOL_TANK = "POOL_TANK_001"

BALANCE_TOLERANCE = 0.05

_CULTURE = "PROC_mAb_2847_PROD.UP_FED_BATCH_CULTURE"
_CHROM = "PROC_mAb_2847_PROD.UP_PROTEIN_A_CHROM"


class MaterialNotFoundError(LookupError):
    """Raised when a genealogy is requested for a material with no flows."""


@dataclass
class Material:
    material_id: str
    material_code: str
    material_name: str
    material_type: str
    quantity: float
    unit: str
    lot_number: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "material_id": self.material_id,
            "material_code": self.material_code,
            "material_name": self.material_name,
            "material_type": self.material_type,
            "lot_number": self.lot_number,
            "quantity": self.quantity,
            "unit": self.unit,
        }


@dataclass
class MaterialFlow:
    """Movement of a material into, out of or between equipment."""

    flow_id: str
    to_equipment: str
    material: Material
    flow_type: str
    timestamp: datetime
    from_equipment: Optional[str] = None
    flow_rate: Optional[float] = None
    flow_rate_unit: Optional[str] = None
    phase_context: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "flow_id": self.flow_id,
            "from_equipment": self.from_equipment,
            "to_equipment": self.to_equipment,
            "material": self.material.to_dict(),
            "flow_type": self.flow_type,
            "timestamp": self.timestamp.isoformat() + "Z",
            "flow_rate": self.flow_rate,
            "flow_rate_unit": self.flow_rate_unit,
            "phase_context": self.phase_context,
        }


@dataclass
class MaterialBalance:
    equipment_id: str
    timestamp: datetime
    inputs: List[MaterialFlow]
    outputs: List[MaterialFlow]
    accumulation: float
    unit: str
    balance_status: str  # Balanced, Unbalanced, Pending

    @property
    def total_input(self) -> float:
        return sum(f.material.quantity for f in self.inputs)

    @property
    def total_output(self) -> float:
        return sum(f.material.quantity for f in self.outputs)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "equipment_id": self.equipment_id,
            "timestamp": self.timestamp.isoformat() + "Z",
            "inputs": [f.to_dict() for f in self.inputs],
            "outputs": [f.to_dict() for f in self.outputs],
            "total_input": self.total_input,
            "total_output": self.total_output,
            "accumulation": self.accumulation,
            "unit": self.unit,
            "balance_status": self.balance_status,
        }


@dataclass
class MaterialNode:
    """A material in a genealogy tree, with the materials it was made from."""

    material: Material
    source_equipment: str
    timestamp: datetime
    process_phase: Optional[str] = None
    parents: List["MaterialNode"] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "material": self.material.to_dict(),
            "source_equipment": self.source_equipment,
            "process_phase": self.process_phase,
            "timestamp": self.timestamp.isoformat() + "Z",
            "parents": [p.to_dict() for p in self.parents],
        }


@dataclass
class MaterialGenealogy:
    final_product: Material
    genealogy_tree: List[MaterialNode]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "final_product": self.final_product.to_dict(),
            "genealogy_tree": [n.to_dict() for n in self.genealogy_tree],
        }


# =============================================================================
# Flow generation
# =============================================================================


def generate_material_flows(batch_id: str, batch_start: datetime) -> List[MaterialFlow]:
    """All material movements for one batch, in time order."""
    flows: List[MaterialFlow] = []

    def add(hours: float, material: Material, flow_type: str, to_equipment: str,
            phase_context: str, from_equipment: Optional[str] = None,
            flow_rate: Optional[float] = None) -> None:
        flows.append(
            MaterialFlow(
                flow_id=f"FLOW-{len(flows) + 1}",
                from_equipment=from_equipment,
                to_equipment=to_equipment,
                material=material,
                flow_type=flow_type,
                timestamp=batch_start + timedelta(hours=hours),
                flow_rate=flow_rate,
                flow_rate_unit="L/hr" if flow_rate is not None else None,
                phase_context=phase_context,
            )
        )

    # Inoculation
    add(4, Material("MAT-001", "MED-CHO-001", "CHO Basal Medium", "RawMaterial", 1500, "L",
                    "LOT-847261"),
        "Input", BIOREACTOR_EQUIPMENT_ID, f"{_CULTURE}.OP_INOCULATION.PH_MEDIA_ADD")
    add(4.5, Material("MAT-002", "MED-SUP-042", "Growth Supplement", "RawMaterial", 50, "L",
                      "LOT-293841"),
        "Input", BIOREACTOR_EQUIPMENT_ID, f"{_CULTURE}.OP_INOCULATION.PH_MEDIA_ADD")
    add(5, Material("MAT-003", "SEED-CHO-001", "CHO Seed Culture", "Intermediate", 150, "L",
                    "SEED-2024-0341"),
        "Input", BIOREACTOR_EQUIPMENT_ID, f"{_CULTURE}.OP_INOCULATION.PH_SEED_TRANSFER")

    # Glucose feeds
    for idx, hour in enumerate([28, 40, 52, 64, 76]):
        phase = ("OP_EXPONENTIAL_GROWTH.PH_FEED_INITIATION" if hour < 33
                 else "OP_PRODUCTION_PHASE.PH_FED_BATCH_PRODUCTION")
        add(hour, Material(f"MAT-FEED-{idx + 1}", "FEED-GLU-01", "Glucose Feed Solution",
                           "RawMaterial", 20, "L", f"LOT-{938271 + idx}"),
            "Input", BIOREACTOR_EQUIPMENT_ID, f"{_CULTURE}.{phase}", flow_rate=0.5)

    # Harvest out of the bioreactor
    harvest = Material("MAT-HARVEST-001", "HCCCF-001", "Harvested Cell Culture Fluid",
                       "Intermediate", 1820, "L", f"{batch_id}-HCCCF")
    add(91, harvest, "Output", HARVEST_TANK,
        "PROC_mAb_2847_PROD.UP_HARVEST.OP_TRANSFER.PH_HARVEST_TRANSFER",
        from_equipment=BIOREACTOR_EQUIPMENT_ID, flow_rate=100)

    # Protein A capture
    add(96, Material("MAT-BUF-001", "BUF-PBS-7.2", "Equilibration Buffer - PBS pH 7.2",
                     "Buffer", 100, "L", "LOT-BUF-847261"),
        "Input", COLUMN_EQUIPMENT_ID, f"{_CHROM}.OP_COLUMN_PREP.PH_EQUILIBRATION")
    add(97, harvest, "Input", COLUMN_EQUIPMENT_ID, f"{_CHROM}.OP_LOAD.PH_LOAD",
        from_equipment=HARVEST_TANK, flow_rate=80)
    add(100, Material("MAT-BUF-002", "BUF-WASH-01", "Wash Buffer", "Buffer", 200, "L",
                      "LOT-BUF-847262"),
        "Input", COLUMN_EQUIPMENT_ID, f"{_CHROM}.OP_WASH.PH_WASH_1")
    add(103, Material("MAT-PURIFIED-001", "mAb-2847-POOL", "Purified mAb-2847 Pool",
                      "Intermediate", 45, "L", f"{batch_id}-POOL-001"),
        "Output", POOL_TANK, f"{_CHROM}.OP_ELUTION.PH_ELUTION",
        from_equipment=COLUMN_EQUIPMENT_ID, flow_rate=15)

    return flows


# =============================================================================
# Balances, genealogy, summaries
# =============================================================================


def calculate_material_balance(
    equipment_id: str, flows: List[MaterialFlow], timestamp: datetime
) -> MaterialBalance:
    """Inputs versus outputs for one piece of equipment up to timestamp."""
    inputs = [f for f in flows if f.to_equipment == equipment_id and f.timestamp <= timestamp]
    outputs = [f for f in flows if f.from_equipment == equipment_id and f.timestamp <= timestamp]

    total_input = sum(f.material.quantity for f in inputs)
    total_output = sum(f.material.quantity for f in outputs)
    accumulation = total_input - total_output

    if not outputs:
        status = "Pending"
    elif total_input and abs(accumulation) / total_input < BALANCE_TOLERANCE:
        status = "Balanced"
    else:
        status = "Unbalanced"

    return MaterialBalance(
        equipment_id=equipment_id,
        timestamp=timestamp,
        inputs=inputs,
        outputs=outputs,
        accumulation=accumulation,
        unit="L",
        balance_status=status,
    )


def _build_node(
    material_id: str, flows: List[MaterialFlow], seen: FrozenSet[str]
) -> Optional[MaterialNode]:
    flow = next((f for f in flows if f.material.material_id == material_id), None)
    if flow is None:
        return None

    node = MaterialNode(
        material=flow.material,
        source_equipment=flow.from_equipment or flow.to_equipment,
        process_phase=flow.phase_context,
        timestamp=flow.timestamp,
    )

    # Parents are whatever went into the producing equipment beforehand
    if flow.from_equipment:
        seen = seen | {material_id}
        for parent_flow in flows:
            if (
                parent_flow.to_equipment == flow.from_equipment
                and parent_flow.timestamp < flow.timestamp
                and parent_flow.material.material_id not in seen
            ):
                parent = _build_node(parent_flow.material.material_id, flows, seen)
                if parent:
                    node.parents.append(parent)

    return node


def build_material_genealogy(material_id: str, flows: List[MaterialFlow]) -> MaterialGenealogy:
    """Tree of everything that went into a material.

    Raises MaterialNotFoundError if no flow carries the material.
    """
    product_flow = next((f for f in flows if f.material.material_id == material_id), None)
    if product_flow is None:
        raise MaterialNotFoundError(f"Final product not found: {material_id}")

    root = _build_node(material_id, flows, frozenset())
    return MaterialGenealogy(
        final_product=product_flow.material,
        genealogy_tree=[root] if root else [],
    )


def get_material_flow_summary(flows: List[MaterialFlow]) -> Dict[str, Any]:
    """Total input and output volumes, overall and per equipment."""
    total_inputs = 0.0
    total_outputs = 0.0
    equipment_summary: Dict[str, Dict[str, float]] = {}

    for flow in flows:
        if flow.flow_type == "Input":
            total_inputs += flow.material.quantity
            entry = equipment_summary.setdefault(flow.to_equipment, {"inputs": 0, "outputs": 0})
            entry["inputs"] += flow.material.quantity
        elif flow.flow_type == "Output":
            total_outputs += flow.material.quantity
            if flow.from_equipment:
                entry = equipment_summary.setdefault(
                    flow.from_equipment, {"inputs": 0, "outputs": 0}
                )
                entry["outputs"] += flow.material.quantity

    return {
        "total_inputs": total_inputs,
        "total_outputs": total_outputs,
        "equipment_summary": equipment_summary,
    }
