"""ISA-88 process model.

Procedure > UnitProcedure > Operation > Phase for the mAb-2847 recipe, and
the mapping from a point in time to the phase that was executing.
"""

import bisect
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from .isa95 import BIOREACTOR_EQUIPMENT_ID, COLUMN_EQUIPMENT_ID

PROCESS_LEVELS = ("Procedure", "UnitProcedure", "Operation", "Phase")

PROCEDURE_ID = "PROC_mAb_2847_PROD"
PROCEDURE_NAME = "mAb-2847 Production Procedure"


@dataclass
class ProcessNode:
    """A node of the ISA-88 procedural hierarchy."""

    level: str
    id: str
    name: str
    description: str
    equipment_id: Optional[str] = None
    expected_duration: Optional[Tuple[float, float]] = None  # (min, max) hours
    children: List["ProcessNode"] = field(default_factory=list)

    def find(self, node_id: str) -> Optional["ProcessNode"]:
        if self.id == node_id:
            return self
        for child in self.children:
            found = child.find(node_id)
            if found:
                return found
        return None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "level": self.level,
            "id": self.id,
            "name": self.name,
            "description": self.description,
        }
        if self.equipment_id:
            data["equipment_id"] = self.equipment_id
        if self.expected_duration:
            data["expected_duration"] = {
                "min": self.expected_duration[0],
                "max": self.expected_duration[1],
                "unit": "hours",
            }
        if self.children:
            data["children"] = [c.to_dict() for c in self.children]
        return data


@dataclass
class ProcessStateContext:
    """Where in the recipe a timestamp falls."""

    timestamp: datetime
    current_procedure: str
    current_unit_procedure: str
    current_operation: str
    current_phase: str
    full_context: str
    equipment_id: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat() + "Z",
            "current_procedure": self.current_procedure,
            "current_unit_procedure": self.current_unit_procedure,
            "current_operation": self.current_operation,
            "current_phase": self.current_phase,
            "full_context": self.full_context,
            "equipment_id": self.equipment_id,
        }


# =============================================================================
# Recipe definition
# =============================================================================

# (id, name, description, equipment, (min_h, max_h), operations)
# operations: (id, name, description, phases); phases: (id, name, description)
_RECIPE = [
    ("UP_BIOREACTOR_PREP", "Bioreactor Preparation", "Vessel preparation and sterilization",
     BIOREACTOR_EQUIPMENT_ID, (3, 5), [
         ("OP_CIP", "Clean-In-Place", "Automated cleaning cycle", [
             ("PH_CIP_RINSE", "Pre-Rinse", "Initial water rinse"),
             ("PH_CIP_CAUSTIC", "Caustic Wash", "Hot caustic cleaning"),
             ("PH_CIP_FINAL_RINSE", "Final Rinse", "WFI final rinse"),
         ]),
         ("OP_SIP", "Steam-In-Place", "Steam sterilization", [
             ("PH_SIP_HEATUP", "Heat Up", "Temperature ramp"),
             ("PH_SIP_HOLD", "Sterilization Hold", "Hold at sterilization temperature"),
         ]),
     ]),
    ("UP_FED_BATCH_CULTURE", "Fed-Batch Cell Culture",
     "Mammalian cell culture for antibody production", BIOREACTOR_EQUIPMENT_ID, (80, 100), [
         ("OP_INOCULATION", "Inoculation", "Media addition and seed culture transfer", [
             ("PH_MEDIA_ADD", "Media Addition", "Base media and supplement addition"),
             ("PH_SEED_TRANSFER", "Seed Transfer", "Inoculation with seed culture"),
             ("PH_INOC_EQUILIBRATION", "Equilibration", "Temperature and pH stabilization"),
         ]),
         ("OP_EXPONENTIAL_GROWTH", "Exponential Growth Phase", "Cell proliferation phase", [
             ("PH_LAG_PHASE", "Lag Phase", "Initial adaptation period"),
             ("PH_LOG_GROWTH", "Logarithmic Growth", "Exponential cell division"),
             ("PH_FEED_INITIATION", "Feed Initiation", "Start of nutrient feeding"),
         ]),
         ("OP_PRODUCTION_PHASE", "Production Phase",
          "Stationary phase with product accumulation", [
              ("PH_TEMP_SHIFT", "Temperature Shift", "Reduce temperature to enhance productivity"),
              ("PH_FED_BATCH_PRODUCTION", "Fed-Batch Production",
               "Continuous feeding with product accumulation"),
              ("PH_LATE_PRODUCTION", "Late Production", "Final production period"),
          ]),
         ("OP_HARVEST_PREP", "Harvest Preparation", "Prepare culture for harvest", [
             ("PH_FEED_STOP", "Feed Termination", "Stop all feeding"),
             ("PH_COOL_DOWN", "Cool Down", "Reduce temperature for harvest"),
         ]),
     ]),
    ("UP_HARVEST", "Cell Harvest", "Separate cells from culture broth",
     BIOREACTOR_EQUIPMENT_ID, (6, 10), [
         ("OP_TRANSFER", "Culture Transfer", "Transfer to harvest vessel", [
             ("PH_HARVEST_TRANSFER", "Transfer to Harvest", "Pump culture to harvest system"),
         ]),
     ]),
    ("UP_PROTEIN_A_CHROM", "Protein A Chromatography", "Affinity capture of monoclonal antibody",
     COLUMN_EQUIPMENT_ID, (4, 8), [
         ("OP_COLUMN_PREP", "Column Preparation", "Equilibrate column with binding buffer", [
             ("PH_SANITIZATION", "Column Sanitization", "NaOH sanitization"),
             ("PH_EQUILIBRATION", "Equilibration", "Equilibrate with binding buffer"),
         ]),
         ("OP_LOAD", "Load Phase", "Load clarified harvest onto column", [
             ("PH_LOAD", "Product Load", "Load harvested material"),
         ]),
         ("OP_WASH", "Wash Phase", "Remove unbound impurities", [
             ("PH_WASH_1", "Wash Step 1", "Initial wash"),
             ("PH_WASH_2", "Wash Step 2", "High salt wash"),
         ]),
         ("OP_ELUTION", "Elution", "Elute bound antibody", [
             ("PH_ELUTION", "Product Elution", "Low pH elution"),
             ("PH_STRIP", "Strip", "Remove remaining bound material"),
         ]),
     ]),
]

# Phase active until each elapsed-hour boundary; the last entry runs open-ended.
_PHASE_WINDOWS: List[Tuple[float, str, str, str]] = [
    (1, "UP_BIOREACTOR_PREP", "OP_CIP", "PH_CIP_RINSE"),
    (4, "UP_BIOREACTOR_PREP", "OP_SIP", "PH_SIP_HOLD"),
    (5, "UP_FED_BATCH_CULTURE", "OP_INOCULATION", "PH_MEDIA_ADD"),
    (7, "UP_FED_BATCH_CULTURE", "OP_INOCULATION", "PH_SEED_TRANSFER"),
    (12, "UP_FED_BATCH_CULTURE", "OP_EXPONENTIAL_GROWTH", "PH_LAG_PHASE"),
    (24, "UP_FED_BATCH_CULTURE", "OP_EXPONENTIAL_GROWTH", "PH_LOG_GROWTH"),
    (31, "UP_FED_BATCH_CULTURE", "OP_EXPONENTIAL_GROWTH", "PH_FEED_INITIATION"),
    (33, "UP_FED_BATCH_CULTURE", "OP_PRODUCTION_PHASE", "PH_TEMP_SHIFT"),
    (84, "UP_FED_BATCH_CULTURE", "OP_PRODUCTION_PHASE", "PH_FED_BATCH_PRODUCTION"),
    (87, "UP_FED_BATCH_CULTURE", "OP_HARVEST_PREP", "PH_COOL_DOWN"),
    (95, "UP_HARVEST", "OP_TRANSFER", "PH_HARVEST_TRANSFER"),
    (97, "UP_PROTEIN_A_CHROM", "OP_COLUMN_PREP", "PH_EQUILIBRATION"),
    (100, "UP_PROTEIN_A_CHROM", "OP_LOAD", "PH_LOAD"),
    (101, "UP_PROTEIN_A_CHROM", "OP_WASH", "PH_WASH_1"),
    (float("inf"), "UP_PROTEIN_A_CHROM", "OP_ELUTION", "PH_ELUTION"),
]
_WINDOW_ENDS = [w[0] for w in _PHASE_WINDOWS]

TIMELINE_CHECKPOINTS = [0, 1, 4, 5, 7, 12, 24, 31, 33, 84, 87, 95, 97, 100, 101, 103]


def get_process_hierarchy() -> ProcessNode:
    """The master recipe procedure with all unit procedures."""
    procedure = ProcessNode(
        level="Procedure",
        id=PROCEDURE_ID,
        name=PROCEDURE_NAME,
        description="Complete production procedure for monoclonal antibody mAb-2847",
    )
    for up_id, up_name, up_desc, equipment_id, duration, operations in _RECIPE:
        unit_procedure = ProcessNode("UnitProcedure", up_id, up_name, up_desc,
                                     equipment_id=equipment_id, expected_duration=duration)
        for op_id, op_name, op_desc, phases in operations:
            operation = ProcessNode("Operation", op_id, op_name, op_desc)
            operation.children = [
                ProcessNode("Phase", ph_id, ph_name, ph_desc)
                for ph_id, ph_name, ph_desc in phases
            ]
            unit_procedure.children.append(operation)
        procedure.children.append(unit_procedure)
    return procedure


# =============================================================================
# Time contextualization
# =============================================================================


def get_process_state_at_time(
    timestamp: datetime, batch_start: datetime
) -> Optional[ProcessStateContext]:
    """Phase executing at timestamp, or None before the batch started."""
    elapsed_hours = (timestamp - batch_start).total_seconds() / 3600
    if elapsed_hours < 0:
        return None

    _, up_id, op_id, ph_id = _PHASE_WINDOWS[bisect.bisect_right(_WINDOW_ENDS, elapsed_hours)]
    hierarchy = get_process_hierarchy()
    unit_procedure = hierarchy.find(up_id)
    operation = unit_procedure.find(op_id)
    phase = operation.find(ph_id)

    return ProcessStateContext(
        timestamp=timestamp,
        current_procedure=hierarchy.name,
        current_unit_procedure=unit_procedure.name,
        current_operation=operation.name,
        current_phase=phase.name,
        full_context=".".join([hierarchy.id, up_id, op_id, ph_id]),
        equipment_id=unit_procedure.equipment_id,
    )


def get_phase_timeline(batch_start: datetime, duration_hours: float) -> List[ProcessStateContext]:
    """Process state at each phase transition within the batch duration."""
    timeline = []
    for hour in TIMELINE_CHECKPOINTS:
        if hour > duration_hours:
            continue
        state = get_process_state_at_time(batch_start + timedelta(hours=hour), batch_start)
        if state:
            timeline.append(state)
    return timeline
