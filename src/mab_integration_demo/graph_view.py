"""Knowledge graph layout for the browser.

Places the equipment, material and process networks on a fixed three-lane
layout (equipment above, materials along the middle, processes below) and
types each edge so the page can colour it. Also renders the Mermaid
process-flow diagram.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .equipment_network import (
    HARVEST_TANK_ID,
    PARALLEL_COLUMN_ID,
    POOL_TANK_ID,
    SITE_B_BIOREACTOR_ID,
    get_all_equipment_nodes,
)
from .isa95 import BIOREACTOR_EQUIPMENT_ID, COLUMN_EQUIPMENT_ID
from .material_network import get_material_nodes
from .process_network import get_process_network

EQUIPMENT_LANE_Y = 200
MATERIAL_LANE_Y = 350
PROCESS_LANE_Y = 500

STAGES = [
    {"name": "UPSTREAM", "x": 280, "color": "#dbeafe"},
    {"name": "MIDSTREAM", "x": 680, "color": "#e0e7ff"},
    {"name": "DOWNSTREAM", "x": 910, "color": "#f3e8ff"},
    {"name": "DRUG SUBSTANCE", "x": 1120, "color": "#fce7f3"},
]

EDGE_COLORS = {
    "physicalFlow": "#10b981",
    "materialTransform": "#a855f7",
    "processUses": "#3b82f6",
    "sameClass": "#f97316",
}

# (id, label, x, stage)
MATERIAL_BACKBONE = [
    ("MAT_MEDIA_001", "CHO Medium", 120, "Upstream"),
    ("MAT_SEED_001", "Seed Culture", 280, "Upstream"),
    ("MAT_CULTURE_001", "Production Culture", 480, "Upstream"),
    ("MAT_HARVEST_001", "Harvested HCCF", 680, "Midstream"),
    ("MAT_POOL_001", "Purified mAb Pool", 920, "Downstream"),
    ("MAT_FINAL_001", "Drug Substance", 1120, "Drug Substance"),
]

# (id, label, x, stage, display class, parallel unit)
EQUIPMENT_LAYOUT = [
    (BIOREACTOR_EQUIPMENT_ID, "BR-2001-A", 380, "Upstream", "Bioreactor", False),
    (SITE_B_BIOREACTOR_ID, "BR-3002-B (Site B)", 540, "Upstream", "Bioreactor", True),
    (HARVEST_TANK_ID, "TK-001 (Harvest)", 680, "Midstream", "Storage Tank", False),
    (COLUMN_EQUIPMENT_ID, "CHR-A-01", 840, "Downstream", "Protein A", False),
    (PARALLEL_COLUMN_ID, "CHR-A-02", 980, "Downstream", "Protein A", True),
    (POOL_TANK_ID, "TK-002 (Pool)", 1120, "Drug Substance", "Storage Tank", False),
]

PROCESS_LAYOUT = [
    ("UP_PREP", "Preparation", 280, "Upstream"),
    ("UP_CULTURE", "Fed-Batch Culture", 480, "Upstream"),
    ("UP_HARVEST", "Harvest", 680, "Midstream"),
    ("UP_CHROM", "Protein A Capture", 910, "Downstream"),
]

MATERIAL_TRANSFORMS = [
    ("UP_PREP", "MAT_SEED_001"),
    ("UP_CULTURE", "MAT_CULTURE_001"),
    ("UP_HARVEST", "MAT_HARVEST_001"),
    ("UP_CHROM", "MAT_POOL_001"),
]

PROCESS_EQUIPMENT_LINKS = [
    ("UP_PREP", BIOREACTOR_EQUIPMENT_ID),
    ("UP_CULTURE", BIOREACTOR_EQUIPMENT_ID),
    ("UP_HARVEST", HARVEST_TANK_ID),
    ("UP_CHROM", COLUMN_EQUIPMENT_ID),
]

SAME_CLASS_LINKS = [
    (COLUMN_EQUIPMENT_ID, PARALLEL_COLUMN_ID),
    (BIOREACTOR_EQUIPMENT_ID, SITE_B_BIOREACTOR_ID),
]


@dataclass
class GraphNode:
    id: str
    label: str
    node_type: str  # equipment, process, material
    x: int
    y: int
    radius: int
    color: str
    stage: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    is_parallel: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "label": self.label,
            "type": self.node_type,
            "x": self.x,
            "y": self.y,
            "radius": self.radius,
            "color": self.color,
            "stage": self.stage,
            "is_parallel": self.is_parallel,
            "metadata": self.metadata,
        }


@dataclass
class GraphEdge:
    source: str
    target: str
    edge_type: str

    @property
    def color(self) -> str:
        return EDGE_COLORS[self.edge_type]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": self.source,
            "target": self.target,
            "type": self.edge_type,
            "color": self.color,
        }


def material_color(quality_status: str) -> str:
    if quality_status == "InSpec":
        return "#8b5cf6"
    if quality_status == "Pending":
        return "#eab308"
    return "#ef4444"


def equipment_color(status: str) -> str:
    if status == "Running":
        return "#10b981"
    if status == "Idle":
        return "#6b7280"
    return "#f59e0b"


def process_color(status: str) -> str:
    if status == "Running":
        return "#3b82f6"
    if status == "Complete":
        return "#10b981"
    return "#9ca3af"


def _material_nodes() -> List[GraphNode]:
    materials = {m.id: m for m in get_material_nodes()}
    return [
        GraphNode(
            id=mid,
            label=label,
            node_type="material",
            x=x,
            y=MATERIAL_LANE_Y,
            radius=24,
            color=material_color(materials[mid].quality_status),
            stage=stage,
            metadata=materials[mid].to_dict(),
        )
        for mid, label, x, stage in MATERIAL_BACKBONE
        if mid in materials
    ]


def _equipment_nodes() -> List[GraphNode]:
    equipment = {e.id: e for e in get_all_equipment_nodes()}
    nodes = []
    for eid, label, x, stage, display_class, parallel in EQUIPMENT_LAYOUT:
        if eid not in equipment:
            continue
        metadata = equipment[eid].to_dict()
        metadata["display_class"] = display_class
        nodes.append(
            GraphNode(
                id=eid,
                label=label,
                node_type="equipment",
                x=x,
                y=EQUIPMENT_LANE_Y,
                radius=16 if parallel else 20,
                color=equipment_color(equipment[eid].status),
                stage=stage,
                metadata=metadata,
                is_parallel=parallel,
            )
        )
    return nodes


def _process_nodes() -> List[GraphNode]:
    processes = {p.id: p for p in get_process_network()}
    return [
        GraphNode(
            id=pid,
            label=label,
            node_type="process",
            x=x,
            y=PROCESS_LANE_Y,
            radius=18,
            color=process_color(processes[pid].status.value),
            stage=stage,
            metadata=processes[pid].to_dict(),
        )
        for pid, label, x, stage in PROCESS_LAYOUT
        if pid in processes
    ]


def build_knowledge_graph(
    show_equipment: bool = True,
    show_process: bool = True,
    show_material: bool = True,
) -> Dict[str, Any]:
    """Positioned nodes and typed edges for the visible node types.

    Edges are kept only when both endpoints are visible.
    """
    nodes: List[GraphNode] = []
    if show_material:
        nodes.extend(_material_nodes())
    if show_equipment:
        nodes.extend(_equipment_nodes())
    if show_process:
        nodes.extend(_process_nodes())

    visible = {n.id for n in nodes}
    candidates = [
        GraphEdge(src[0], dst[0], "physicalFlow")
        for src, dst in zip(MATERIAL_BACKBONE, MATERIAL_BACKBONE[1:])
    ]
    candidates += [GraphEdge(p, m, "materialTransform") for p, m in MATERIAL_TRANSFORMS]
    candidates += [GraphEdge(p, e, "processUses") for p, e in PROCESS_EQUIPMENT_LINKS]
    candidates += [GraphEdge(a, b, "sameClass") for a, b in SAME_CLASS_LINKS]
    edges = [e for e in candidates if e.source in visible and e.target in visible]

    return {
        "nodes": [n.to_dict() for n in nodes],
        "edges": [e.to_dict() for e in edges],
        "stages": STAGES,
        "lanes": {
            "equipment": EQUIPMENT_LANE_Y,
            "material": MATERIAL_LANE_Y,
            "process": PROCESS_LANE_Y,
        },
    }


def find_graph_node(graph: Dict[str, Any], node_id: str) -> Optional[Dict[str, Any]]:
    return next((n for n in graph["nodes"] if n["id"] == node_id), None)


# =============================================================================
# Mermaid process flow
# =============================================================================

PROCESS_FLOW_MERMAID = """flowchart LR
  %% Classes
  classDef equip fill:#2ecc71,stroke:#1e824c,color:#000;
  classDef proc  fill:#3498db,stroke:#1f5f8b,color:#000;
  classDef mat   fill:#9b59b6,stroke:#5e3370,color:#fff;
  classDef alt   fill:#bdc3c7,stroke:#7f8c8d,color:#000,stroke-dasharray: 5 5;

  subgraph UPSTREAM
    direction LR
    CHO[CHO Medium]:::mat
    Prep[Preparation]:::proc
    Seed[Seed Culture]:::proc
    BR[BR-2001-A Bioreactor]:::equip
    Fed[Fed-Batch Culture]:::proc
    HCCF[Harvested HCCF]:::mat
    Harv[Harvest]:::proc

    CHO --> Seed --> Prep --> BR --> Fed --> Harv --> HCCF
  end

  subgraph DOWNSTREAM
    direction LR
    ProtA[Protein A Capture]:::proc
    CHR[CHR-A-01 Column]:::equip
    Pool[Purified mAb Pool]:::mat

    HCCF --> ProtA --> CHR --> Pool
  end

  subgraph DRUG_SUBSTANCE [Drug Substance]
    direction LR
    TK[TK-002 Bulk Storage]:::equip
    DS[Drug Substance]:::mat

    Pool --> TK --> DS
  end

  %% Alternate units, off the main flow
  BR_alt[BR-3002-B Site B]:::alt
  CHR_alt[CHR-A-02 alt]:::alt

  BR -.-> BR_alt
  CHR -.-> CHR_alt
"""


def process_flow_mermaid() -> str:
    return PROCESS_FLOW_MERMAID
