"""Equipment relationship network.

Equipment class taxonomy, equipment instances across sites, and the typed
connections between them (physical flow, process sequence, same class).
"""

from collections import deque
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .isa95 import BIOREACTOR_EQUIPMENT_ID, COLUMN_EQUIPMENT_ID

CONNECTION_TYPES = ("PhysicalFlow", "ProcessSequence", "SameClass", "Hierarchy", "Utility")
EQUIPMENT_STATUSES = ("Running", "Idle", "Maintenance", "Offline")

SITE_B_BIOREACTOR_ID = "SITE_B.USP.BR_CELL_2.BR_UNIT_3002.BR-3002-B"
PARALLEL_COLUMN_ID = "SITE_A.DSP.CHR_CELL_1.CHR_UNIT_A02.CHR-A-02"
HARVEST_TANK_ID = "SITE_A.STORAGE.TANK_001"
POOL_TANK_ID = "SITE_A.STORAGE.TANK_002"


@dataclass
class EquipmentNode:
    id: str
    name: str
    equipment_class: str
    site: str
    area: str
    status: str
    current_process: Optional[str] = None
    metadata: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "equipment_class": self.equipment_class,
            "site": self.site,
            "area": self.area,
            "status": self.status,
            "current_process": self.current_process,
            "metadata": self.metadata,
        }


@dataclass
class EquipmentConnection:
    from_id: str
    to_id: str
    connection_type: str
    label: str = ""
    metadata: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "from": self.from_id,
            "to": self.to_id,
            "connection_type": self.connection_type,
            "label": self.label,
            "metadata": self.metadata,
        }


@dataclass
class EquipmentClass:
    """A class in the equipment taxonomy with its direct instances."""

    class_name: str
    description: str
    parent_class: Optional[str] = None
    instances: List[EquipmentNode] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "class_name": self.class_name,
            "parent_class": self.parent_class,
            "description": self.description,
            "instances": [i.to_dict() for i in self.instances],
        }


# =============================================================================
# Network definition
# =============================================================================


def _bioreactor_meta() -> Dict[str, str]:
    return {"capacity": "2000L", "manufacturer": "Cytiva", "model": "Xcellerex XDR-2000"}


def _column_meta() -> Dict[str, str]:
    return {"capacity": "20L", "manufacturer": "GE Healthcare", "model": "AKTA Ready"}


def get_equipment_class_hierarchy() -> List[EquipmentClass]:
    return [
        EquipmentClass("Manufacturing_Equipment", "Root class for all manufacturing equipment"),
        EquipmentClass("USP_Equipment", "Upstream processing equipment",
                       "Manufacturing_Equipment"),
        EquipmentClass("Cell_Culture_Equipment", "Equipment for mammalian cell culture",
                       "USP_Equipment"),
        EquipmentClass(
            "USP_Bioreactor", "Bioreactor systems for cell culture", "Cell_Culture_Equipment",
            [
                EquipmentNode(BIOREACTOR_EQUIPMENT_ID, "BR-2001-A", "USP_Bioreactor", "Site_A",
                              "USP", "Running", "Fed-Batch Production", _bioreactor_meta()),
                EquipmentNode(SITE_B_BIOREACTOR_ID, "BR-3002-B", "USP_Bioreactor", "Site_B",
                              "USP", "Idle", metadata=_bioreactor_meta()),
            ],
        ),
        EquipmentClass("DSP_Equipment", "Downstream processing equipment",
                       "Manufacturing_Equipment"),
        EquipmentClass("Chromatography_Equipment", "Chromatography systems for purification",
                       "DSP_Equipment"),
        EquipmentClass(
            "DSP_Chromatography", "Affinity chromatography systems", "Chromatography_Equipment",
            [
                EquipmentNode(COLUMN_EQUIPMENT_ID, "CHR-A-01", "DSP_Chromatography", "Site_A",
                              "DSP", "Running", "Protein A Load", _column_meta()),
                EquipmentNode(PARALLEL_COLUMN_ID, "CHR-A-02", "DSP_Chromatography", "Site_A",
                              "DSP", "Maintenance", metadata=_column_meta()),
            ],
        ),
        EquipmentClass("Storage_Equipment", "Storage and hold vessels",
                       "Manufacturing_Equipment"),
        EquipmentClass(
            "Storage_Tank", "Intermediate storage tanks", "Storage_Equipment",
            [
                EquipmentNode(HARVEST_TANK_ID, "Harvest Tank 001", "Storage_Tank", "Site_A",
                              "Storage", "Running", metadata={"capacity": "3000L"}),
                EquipmentNode(POOL_TANK_ID, "Pool Tank 002", "Storage_Tank", "Site_A",
                              "Storage", "Idle", metadata={"capacity": "500L"}),
            ],
        ),
    ]


def get_all_equipment_nodes() -> List[EquipmentNode]:
    return [node for cls in get_equipment_class_hierarchy() for node in cls.instances]


def get_equipment_node(equipment_id: str) -> Optional[EquipmentNode]:
    return next((n for n in get_all_equipment_nodes() if n.id == equipment_id), None)


def get_equipment_connections() -> List[EquipmentConnection]:
    def flow(rate, material):
        return {"flow_rate": rate, "material": material, "direction": "unidirectional"}

    return [
        EquipmentConnection(BIOREACTOR_EQUIPMENT_ID, HARVEST_TANK_ID, "PhysicalFlow",
                            "Harvest Transfer", flow("100 L/hr", "Cell Culture Broth")),
        EquipmentConnection(HARVEST_TANK_ID, COLUMN_EQUIPMENT_ID, "PhysicalFlow",
                            "Column Load", flow("80 L/hr", "Clarified Harvest")),
        EquipmentConnection(COLUMN_EQUIPMENT_ID, POOL_TANK_ID, "PhysicalFlow",
                            "Elution Pool", flow("15 L/hr", "Purified mAb")),
        EquipmentConnection(BIOREACTOR_EQUIPMENT_ID, COLUMN_EQUIPMENT_ID, "ProcessSequence",
                            "USP → DSP"),
        EquipmentConnection(BIOREACTOR_EQUIPMENT_ID, SITE_B_BIOREACTOR_ID, "SameClass",
                            "Same Equipment Class", {"direction": "bidirectional"}),
        EquipmentConnection(COLUMN_EQUIPMENT_ID, PARALLEL_COLUMN_ID, "SameClass",
                            "Parallel Units", {"direction": "bidirectional"}),
    ]


# =============================================================================
# Queries
# =============================================================================


def find_equipment_by_class(class_name: str) -> List[EquipmentNode]:
    """Direct instances of a class (subclasses are not included)."""
    cls = next((c for c in get_equipment_class_hierarchy() if c.class_name == class_name), None)
    return list(cls.instances) if cls else []


def find_equipment_by_status(status: str) -> List[EquipmentNode]:
    return [n for n in get_all_equipment_nodes() if n.status == status]


def find_equipment_in_process(process_name: str) -> List[EquipmentNode]:
    needle = process_name.lower()
    return [
        n for n in get_all_equipment_nodes()
        if n.current_process and needle in n.current_process.lower()
    ]


def get_equipment_path(from_id: str, to_id: str) -> List[EquipmentNode]:
    """Shortest chain of equipment along physical flow connections.

    Returns an empty list when to_id cannot be reached from from_id.
    """
    nodes = {n.id: n for n in get_all_equipment_nodes()}
    flows = [c for c in get_equipment_connections() if c.connection_type == "PhysicalFlow"]

    queue = deque([[from_id]])
    visited = set()
    while queue:
        path = queue.popleft()
        current = path[-1]
        if current == to_id:
            return [nodes[i] for i in path if i in nodes]
        if current in visited:
            continue
        visited.add(current)
        for conn in flows:
            if conn.from_id == current:
                queue.append(path + [conn.to_id])

    return []


def get_connected_equipment(equipment_id: str) -> Dict[str, List[EquipmentNode]]:
    """Upstream and downstream neighbours by physical flow, plus same-class peers."""
    nodes = {n.id: n for n in get_all_equipment_nodes()}
    upstream: List[EquipmentNode] = []
    downstream: List[EquipmentNode] = []
    same_class: List[EquipmentNode] = []

    for conn in get_equipment_connections():
        if conn.connection_type == "PhysicalFlow":
            if conn.to_id == equipment_id and conn.from_id in nodes:
                upstream.append(nodes[conn.from_id])
            if conn.from_id == equipment_id and conn.to_id in nodes:
                downstream.append(nodes[conn.to_id])
        elif conn.connection_type == "SameClass" and equipment_id in (conn.from_id, conn.to_id):
            other = conn.to_id if conn.from_id == equipment_id else conn.from_id
            if other in nodes:
                same_class.append(nodes[other])

    return {"upstream": upstream, "downstream": downstream, "same_class": same_class}


def _class_path(class_name: str, classes: Dict[str, EquipmentClass]) -> List[str]:
    path = [class_name]
    current = classes.get(class_name)
    while current and current.parent_class:
        path.insert(0, current.parent_class)
        current = classes.get(current.parent_class)
    return path


def build_equipment_class_tree() -> Dict[str, Any]:
    """Nested {class_name: {"info": ..., "children": {...}}} taxonomy."""
    hierarchy = get_equipment_class_hierarchy()
    classes = {c.class_name: c for c in hierarchy}
    tree: Dict[str, Any] = {}

    for cls in hierarchy:
        current = tree
        for name in _class_path(cls.class_name, classes):
            if name not in current:
                current[name] = {"info": classes[name].to_dict(), "children": {}}
            current = current[name]["children"]

    return tree
