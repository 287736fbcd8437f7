"""Process hierarchy network.

Live view of the recipe as executed: each process node carries its status,
its equipment, the processes it depends on and expected versus actual
duration.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .isa95 import BIOREACTOR_EQUIPMENT_ID, COLUMN_EQUIPMENT_ID


class ProcessStatus(Enum):
    """Execution state of a process node."""

    NOT_STARTED = "NotStarted"
    RUNNING = "Running"
    COMPLETE = "Complete"
    PAUSED = "Paused"
    FAILED = "Failed"


@dataclass
class ProcessNode:
    id: str
    name: str
    level: str
    status: ProcessStatus
    expected_duration: float  # hours
    actual_duration: Optional[float] = None
    parent_id: Optional[str] = None
    equipment_id: Optional[str] = None
    dependencies: List[str] = field(default_factory=list)
    critical_step: bool = False
    qc_required: bool = False

    @property
    def duration(self) -> float:
        """Actual duration when recorded, otherwise the expected one."""
        return self.actual_duration or self.expected_duration

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "level": self.level,
            "parent_id": self.parent_id,
            "equipment_id": self.equipment_id,
            "status": self.status.value,
            "dependencies": list(self.dependencies),
            "duration": {
                "expected": self.expected_duration,
                "actual": self.actual_duration,
                "unit": "hours",
            },
            "metadata": {
                "critical_step": self.critical_step,
                "qc_required": self.qc_required,
            },
        }


@dataclass
class ProcessConnection:
    from_id: str
    to_id: str
    connection_type: str  # Sequence, Parallel, Conditional, Hierarchy

    def to_dict(self) -> Dict[str, Any]:
        return {"from": self.from_id, "to": self.to_id, "connection_type": self.connection_type}


def get_process_network() -> List[ProcessNode]:
    br, chr_ = BIOREACTOR_EQUIPMENT_ID, COLUMN_EQUIPMENT_ID
    done, running, pending = (
        ProcessStatus.COMPLETE, ProcessStatus.RUNNING, ProcessStatus.NOT_STARTED
    )

    return [
        ProcessNode("PROC_mAb_2847", "mAb-2847 Production", "Procedure", running, 105),
        # Unit procedures
        ProcessNode("UP_PREP", "Bioreactor Preparation", "UnitProcedure", done, 4, 4.2,
                    parent_id="PROC_mAb_2847", equipment_id=br, critical_step=True),
        ProcessNode("UP_CULTURE", "Fed-Batch Cell Culture", "UnitProcedure", running, 84, 82,
                    parent_id="PROC_mAb_2847", equipment_id=br, dependencies=["UP_PREP"],
                    critical_step=True, qc_required=True),
        ProcessNode("UP_HARVEST", "Cell Harvest", "UnitProcedure", pending, 8,
                    parent_id="PROC_mAb_2847", equipment_id=br, dependencies=["UP_CULTURE"]),
        ProcessNode("UP_CHROM", "Protein A Chromatography", "UnitProcedure", pending, 6,
                    parent_id="PROC_mAb_2847", equipment_id=chr_, dependencies=["UP_HARVEST"],
                    critical_step=True),
        # Culture operations
        ProcessNode("OP_INOC", "Inoculation", "Operation", done, 3, 2.8,
                    parent_id="UP_CULTURE", equipment_id=br),
        ProcessNode("OP_GROWTH", "Exponential Growth", "Operation", done, 24, 23.5,
                    parent_id="UP_CULTURE", equipment_id=br, dependencies=["OP_INOC"]),
        ProcessNode("OP_PROD", "Production Phase", "Operation", running, 60, 58,
                    parent_id="UP_CULTURE", equipment_id=br, dependencies=["OP_GROWTH"],
                    qc_required=True),
        # Production phases
        ProcessNode("PH_TEMP_SHIFT", "Temperature Shift", "Phase", done, 2, 1.8,
                    parent_id="OP_PROD", equipment_id=br, critical_step=True),
        ProcessNode("PH_FED_BATCH", "Fed-Batch Production", "Phase", running, 51, 50,
                    parent_id="OP_PROD", equipment_id=br, dependencies=["PH_TEMP_SHIFT"]),
        # Chromatography operations
        ProcessNode("OP_CHR_PREP", "Column Preparation", "Operation", pending, 1,
                    parent_id="UP_CHROM", equipment_id=chr_),
        ProcessNode("OP_CHR_LOAD", "Load Phase", "Operation", pending, 3,
                    parent_id="UP_CHROM", equipment_id=chr_, dependencies=["OP_CHR_PREP"]),
        ProcessNode("OP_CHR_ELUTION", "Elution", "Operation", pending, 2,
                    parent_id="UP_CHROM", equipment_id=chr_, dependencies=["OP_CHR_LOAD"],
                    critical_step=True, qc_required=True),
    ]


def get_process_connections() -> List[ProcessConnection]:
    """Hierarchy edges parent -> child, then sequence edges dependency -> process."""
    processes = get_process_network()
    connections = [
        ProcessConnection(p.parent_id, p.id, "Hierarchy") for p in processes if p.parent_id
    ]
    connections.extend(
        ProcessConnection(dep, p.id, "Sequence") for p in processes for dep in p.dependencies
    )
    return connections


def get_process(process_id: str) -> Optional[ProcessNode]:
    return next((p for p in get_process_network() if p.id == process_id), None)


def get_processes_by_equipment(equipment_id: str) -> List[ProcessNode]:
    return [p for p in get_process_network() if p.equipment_id == equipment_id]


def get_processes_by_status(status: ProcessStatus) -> List[ProcessNode]:
    return [p for p in get_process_network() if p.status == status]


def get_critical_processes() -> List[ProcessNode]:
    return [p for p in get_process_network() if p.critical_step]


def get_process_children(process_id: str) -> List[ProcessNode]:
    return [p for p in get_process_network() if p.parent_id == process_id]


def get_process_path(process_id: str) -> List[ProcessNode]:
    """Ancestors of a process, root first, ending with the process itself."""
    by_id = {p.id: p for p in get_process_network()}
    path: List[ProcessNode] = []
    current = by_id.get(process_id)
    while current:
        path.insert(0, current)
        current = by_id.get(current.parent_id) if current.parent_id else None
    return path


def get_process_timeline() -> List[Dict[str, Any]]:
    """Gantt rows for unit procedures and operations.

    Rows are laid end to end; only complete or running processes advance the
    clock, so pending work is drawn from the current position.
    """
    current_time = 0.0
    timeline = []

    for proc in get_process_network():
        if proc.level not in ("UnitProcedure", "Operation"):
            continue
        start = current_time
        end = start + proc.duration
        if proc.status in (ProcessStatus.COMPLETE, ProcessStatus.RUNNING):
            current_time = end
        timeline.append({
            "process_id": proc.id,
            "process_name": proc.name,
            "start_time": start,
            "end_time": end,
            "status": proc.status.value,
        })

    return timeline


def is_process_ready(process_id: str) -> bool:
    """True when the process has not started and all dependencies are complete."""
    by_id = {p.id: p for p in get_process_network()}
    proc = by_id.get(process_id)
    if proc is None or proc.status != ProcessStatus.NOT_STARTED:
        return False

    return all(
        dep in by_id and by_id[dep].status == ProcessStatus.COMPLETE
        for dep in proc.dependencies
    )
