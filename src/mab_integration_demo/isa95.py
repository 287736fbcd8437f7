"""ISA-95 equipment hierarchy.

Site > Area > ProcessCell > Unit > EquipmentModule for the two pieces of
equipment the demo batch runs on, plus the mappings from each plant system's
raw identifiers to the standardized equipment.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional

EQUIPMENT_LEVELS = ("Site", "Area", "ProcessCell", "Unit", "EquipmentModule")
EQUIPMENT_CLASSES = (
    "USP_Bioreactor",
    "DSP_Chromatography",
    "Storage_Tank",
    "Filter",
    "Mixer",
    "CIP_System",
)

BIOREACTOR_EQUIPMENT_ID = "SITE_A.USP.BR_CELL_1.BR_UNIT_2001.BR-2001-A"
COLUMN_EQUIPMENT_ID = "SITE_A.DSP.CHR_CELL_1.CHR_UNIT_A01.CHR-A-01"


@dataclass
class EquipmentNode:
    """A node of the ISA-95 equipment hierarchy."""

    id: str
    level: str
    name: str
    description: str
    parent_id: Optional[str] = None
    equipment_class: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    raw_mappings: Dict[str, Any] = field(default_factory=dict)
    children: List["EquipmentNode"] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "level": self.level,
            "name": self.name,
            "description": self.description,
            "parent_id": self.parent_id,
        }
        if self.equipment_class:
            data["equipment_class"] = self.equipment_class
        if self.metadata:
            data["metadata"] = self.metadata
        if self.raw_mappings:
            data["raw_mappings"] = self.raw_mappings
        data["children"] = [c.to_dict() for c in self.children]
        return data


@dataclass
class EquipmentInstance:
    """Flattened equipment record with every raw id that refers to it."""

    equipment_id: str
    equipment_class: str
    full_path: str
    standardized_name: str
    dcs_tags: List[str]
    ebr_id: str
    lims_locations: List[str]

    @property
    def short_id(self) -> str:
        return self.equipment_id.rsplit(".", 1)[-1]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "equipment_id": self.equipment_id,
            "equipment_class": self.equipment_class,
            "full_path": self.full_path,
            "standardized_name": self.standardized_name,
            "raw_system_ids": {
                "dcs": list(self.dcs_tags),
                "ebr": self.ebr_id,
                "lims": list(self.lims_locations),
            },
        }


# =============================================================================
# Hierarchy
# =============================================================================


def _chain(ids_and_names, leaf: EquipmentNode) -> List[EquipmentNode]:
    """Build a single-branch Area > ProcessCell > Unit > module chain."""
    nodes = []
    parent_id = "SITE_A"
    for (node_id, level, name, description) in ids_and_names:
        nodes.append(EquipmentNode(node_id, level, name, description, parent_id=parent_id))
        parent_id = node_id
    leaf.parent_id = parent_id
    for outer, inner in zip(nodes, nodes[1:] + [leaf]):
        outer.children.append(inner)
    return nodes


def get_equipment_hierarchy() -> EquipmentNode:
    """Full hierarchy for Manufacturing Site A."""
    bioreactor = EquipmentNode(
        id=BIOREACTOR_EQUIPMENT_ID,
        level="EquipmentModule",
        name="BR-2001-A",
        description="2000L Single-Use Bioreactor",
        equipment_class="USP_Bioreactor",
        metadata={
            "manufacturer": "Cytiva",
            "model": "Xcellerex XDR-2000",
            "serial_number": "XDR2K-2024-0847",
            "install_date": "2023-01-15",
            "capacity": {"value": 2000, "unit": "L"},
            "working_volume": {"min": 1400, "max": 1800, "unit": "L"},
        },
        raw_mappings={
            "dcs_prefix": [
                "BR001_", "REACTOR_1_", "BR001", "TI_2001", "PH_AI_2001", "DO_2001",
                "LI_2001", "O2_FLOW_FI_2001", "CO2_FLOW_2001", "FEED_FLOW_2001",
            ],
            "ebr_equipment_id": "BR-2001-A",
            "lims_location_codes": [
                "LOC-B7-R2001", "AREA-USP-BR01", "BLDG7-SUITE2-BR-A",
                "SP-R2001-TOP", "PORT-BR01-MID", "SAMPLE-USP-01",
            ],
        },
    )
    column = EquipmentNode(
        id=COLUMN_EQUIPMENT_ID,
        level="EquipmentModule",
        name="CHR-A-01",
        description="Protein A Chromatography Column",
        equipment_class="DSP_Chromatography",
        metadata={
            "manufacturer": "GE Healthcare",
            "model": "AKTA Ready",
            "serial_number": "AKTA-2023-1247",
            "install_date": "2023-03-20",
            "capacity": {"value": 20, "unit": "L"},
        },
        raw_mappings={
            "dcs_prefix": ["CHR_A_", "COLUMN_01_"],
            "ebr_equipment_id": "CHR-A-01",
            "lims_location_codes": [
                "CHR-B7-PA01", "DSP-AREA-PROTA", "BLDG7-CHR-SUITE1",
                "TANK-DSP-01", "HT-PROTA-OUT", "VESSEL-CHR-POOL",
            ],
        },
    )

    usp = _chain(
        [
            ("SITE_A.USP", "Area", "Upstream Processing",
             "Cell culture and fermentation area"),
            ("SITE_A.USP.BR_CELL_1", "ProcessCell", "Bioreactor Cell 1",
             "Fed-batch bioreactor production cell"),
            ("SITE_A.USP.BR_CELL_1.BR_UNIT_2001", "Unit", "Bioreactor Unit 2001",
             "2000L single-use bioreactor system"),
        ],
        bioreactor,
    )
    dsp = _chain(
        [
            ("SITE_A.DSP", "Area", "Downstream Processing",
             "Purification and formulation area"),
            ("SITE_A.DSP.CHR_CELL_1", "ProcessCell", "Chromatography Cell 1",
             "Protein A capture chromatography"),
            ("SITE_A.DSP.CHR_CELL_1.CHR_UNIT_A01", "Unit", "Chromatography Unit A01",
             "Automated protein A purification system"),
        ],
        column,
    )

    return EquipmentNode(
        id="SITE_A",
        level="Site",
        name="Manufacturing Site A",
        description="Biologics Manufacturing Facility - Building 7",
        children=[usp[0], dsp[0]],
    )


def iter_hierarchy(node: EquipmentNode) -> Iterator[EquipmentNode]:
    """Depth-first walk of a hierarchy, parents before children."""
    yield node
    for child in node.children:
        yield from iter_hierarchy(child)


def get_equipment_path(
    node: EquipmentNode, target_id: str, path: Optional[List[str]] = None
) -> Optional[List[str]]:
    """Names from the root down to target_id, or None when absent."""
    current = (path or []) + [node.name]
    if node.id == target_id:
        return current

    for child in node.children:
        result = get_equipment_path(child, target_id, current)
        if result:
            return result
    return None


# =============================================================================
# Instances and raw-id lookup
# =============================================================================


def get_equipment_instances() -> List[EquipmentInstance]:
    return [
        EquipmentInstance(
            equipment_id=BIOREACTOR_EQUIPMENT_ID,
            equipment_class="USP_Bioreactor",
            full_path="Site_A.USP.BR_Cell_1.BR_Unit_2001.BR-2001-A",
            standardized_name="Bioreactor BR-2001-A",
            dcs_tags=[
                "BR001_PV_TEMP", "BR001_STIR_PV", "BR001_DO_MEAS", "BR001_PH_PV",
                "BR001_LVL_PERCENT", "REACTOR_1_AGIT_SPEED", "REACTOR_1_TEMP_AI",
                "TI_2001_JACKET", "PH_AI_2001", "DO_2001_PV", "LI_2001_VESSEL",
                "O2_FLOW_FI_2001", "CO2_FLOW_2001", "FEED_FLOW_2001",
            ],
            ebr_id="BR-2001-A",
            lims_locations=[
                "LOC-B7-R2001", "AREA-USP-BR01", "BLDG7-SUITE2-BR-A",
                "SP-R2001-TOP", "PORT-BR01-MID", "SAMPLE-USP-01",
            ],
        ),
        EquipmentInstance(
            equipment_id=COLUMN_EQUIPMENT_ID,
            equipment_class="DSP_Chromatography",
            full_path="Site_A.DSP.CHR_Cell_1.CHR_Unit_A01.CHR-A-01",
            standardized_name="Chromatography CHR-A-01",
            dcs_tags=["CHR_A_PRESS_01", "CHR_A_FLOW_FI", "COLUMN_01_PI"],
            ebr_id="CHR-A-01",
            lims_locations=[
                "CHR-B7-PA01", "DSP-AREA-PROTA", "BLDG7-CHR-SUITE1",
                "TANK-DSP-01", "HT-PROTA-OUT", "VESSEL-CHR-POOL",
            ],
        ),
    ]


def get_equipment_by_id(equipment_id: str) -> Optional[EquipmentInstance]:
    return next(
        (e for e in get_equipment_instances() if e.equipment_id == equipment_id), None
    )


def _dcs_matches(instance: EquipmentInstance, raw_id: str) -> bool:
    # Tag embedded in a longer id, or a tag sharing the id's leading token
    prefix = raw_id.split("_")[0]
    return any(tag in raw_id or prefix in tag for tag in instance.dcs_tags)


def find_equipment_by_raw_id(system: str, raw_id: str) -> Optional[EquipmentInstance]:
    """Resolve a raw DCS tag, eBR equipment id or LIMS location code.

    DCS tags fall back to a loose prefix match so derived tags (e.g. a
    tag with an extra suffix) still resolve. Unknown systems and empty ids
    resolve to None.
    """
    if not raw_id:
        return None

    system = system.lower()
    instances = get_equipment_instances()

    if system == "dcs":
        exact = next((i for i in instances if raw_id in i.dcs_tags), None)
        if exact:
            return exact
        return next((i for i in instances if _dcs_matches(i, raw_id)), None)

    if system == "ebr":
        return next((i for i in instances if i.ebr_id == raw_id), None)

    if system == "lims":
        return next((i for i in instances if raw_id in i.lims_locations), None)

    return None
