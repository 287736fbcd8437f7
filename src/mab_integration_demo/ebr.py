"""Electronic batch record (eBR) export generator.

Produces the record a Syncade-style MES keeps for a batch: phases with
process parameters, operator signatures and comments, and material
additions with lot numbers. Exported as XML.
"""

import logging
import random
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple
from xml.sax.saxutils import escape, quoteattr

logger = logging.getLogger(__name__)

EBR_SYSTEM = "Syncade_MES_v8.2"
EBR_FORMAT_VERSION = "2.1"

PRODUCT_CODE = "mAb-2847"
PRODUCT_NAME = "Monoclonal Antibody Alpha-2847"
RECIPE_VERSION = "R-mAb-2847-v3.2"
SITE_NAME = "Manufacturing Site A - Building 7"
BATCH_SIZE_L = 1500

BIOREACTOR_ID = "BR-2001-A"
COLUMN_ID = "CHR-A-01"

OPERATORS = [
    ("OP-1247", "Sarah Chen"),
    ("OP-2891", "Michael Rodriguez"),
    ("OP-1653", "Jessica Kumar"),
]

COMMENTS = [
    "Inoculation completed successfully",
    "pH control stable throughout phase",
    "Slight foaming observed, antifoam added",
    "Temperature within acceptable range",
    "Sampling completed for QC analysis",
]

ENTRY_TYPES = ("signature", "verification", "deviation", "comment")

MATERIALS: Dict[str, List[Tuple[str, str, float, str]]] = {
    "media": [
        ("MED-CHO-001", "CHO Basal Medium", 1500, "L"),
        ("MED-SUP-042", "Growth Supplement", 50, "L"),
    ],
    "feed": [
        ("FEED-GLU-01", "Glucose Feed Solution", 100, "L"),
        ("FEED-AA-MIX", "Amino Acid Concentrate", 25, "L"),
    ],
    "buffer": [
        ("BUF-PBS-7.2", "Phosphate Buffered Saline pH 7.2", 500, "L"),
        ("BUF-TRIS-01", "Tris-HCl Buffer", 200, "L"),
    ],
    "reagent": [
        ("REG-PROTA-01", "Protein A Resin", 20, "L"),
        ("REG-NAOH-2M", "Sodium Hydroxide 2M", 50, "L"),
    ],
}


# =============================================================================
# Record types
# =============================================================================


@dataclass
class OperatorEntry:
    """Signature, verification, deviation or free-text comment."""

    timestamp: datetime
    operator_id: str
    operator_name: str
    entry_type: str
    value: Optional[str] = None  # free text, comments only

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat() + "Z",
            "operator_id": self.operator_id,
            "operator_name": self.operator_name,
            "entry_type": self.entry_type,
            "value": self.value,
        }


@dataclass
class MaterialAddition:
    """Material charged into a phase, with second-person verification."""

    timestamp: datetime
    material_id: str
    material_name: str
    lot_number: str
    quantity: float
    unit: str
    added_by: str
    verified_by: str
    verification_time: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat() + "Z",
            "material_id": self.material_id,
            "material_name": self.material_name,
            "lot_number": self.lot_number,
            "quantity": self.quantity,
            "unit": self.unit,
            "added_by": self.added_by,
            "verified_by": self.verified_by,
            "verification_time": self.verification_time.isoformat() + "Z",
        }


@dataclass
class ProcessParameter:
    """Recorded parameter with its acceptance limits."""

    name: str
    actual_value: float
    unit: str
    set_point: Optional[float] = None
    lower_limit: Optional[float] = None
    upper_limit: Optional[float] = None

    @property
    def in_spec(self) -> bool:
        if self.lower_limit is not None and self.actual_value < self.lower_limit:
            return False
        if self.upper_limit is not None and self.actual_value > self.upper_limit:
            return False
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "set_point": self.set_point,
            "actual_value": self.actual_value,
            "unit": self.unit,
            "lower_limit": self.lower_limit,
            "upper_limit": self.upper_limit,
            "in_spec": self.in_spec,
        }


@dataclass
class BatchPhase:
    """One executed phase of the master recipe."""

    phase_id: str
    phase_name: str
    start_time: datetime
    end_time: datetime
    equipment_id: str
    status: str = "Completed"
    parameters: List[ProcessParameter] = field(default_factory=list)
    material_additions: List[MaterialAddition] = field(default_factory=list)
    operator_entries: List[OperatorEntry] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "phase_id": self.phase_id,
            "phase_name": self.phase_name,
            "start_time": self.start_time.isoformat() + "Z",
            "end_time": self.end_time.isoformat() + "Z",
            "status": self.status,
            "equipment_id": self.equipment_id,
            "parameters": [p.to_dict() for p in self.parameters],
            "material_additions": [m.to_dict() for m in self.material_additions],
            "operator_entries": [e.to_dict() for e in self.operator_entries],
        }


@dataclass
class EBRExport:
    """Complete batch record as exported from the MES."""

    batch_id: str
    product_code: str
    product_name: str
    recipe_version: str
    manufacturing_site: str
    start_date: datetime
    end_date: datetime
    batch_size: float
    batch_size_unit: str
    status: str
    phases: List[BatchPhase] = field(default_factory=list)
    export_date: datetime = field(default_factory=datetime.now)

    @property
    def entry_count(self) -> int:
        """Individual records held in the export."""
        return sum(
            1 + len(p.parameters) + len(p.material_additions) + len(p.operator_entries)
            for p in self.phases
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "batch_id": self.batch_id,
            "product_code": self.product_code,
            "product_name": self.product_name,
            "recipe_version": self.recipe_version,
            "manufacturing_site": self.manufacturing_site,
            "start_date": self.start_date.isoformat() + "Z",
            "end_date": self.end_date.isoformat() + "Z",
            "batch_size": self.batch_size,
            "batch_size_unit": self.batch_size_unit,
            "status": self.status,
            "phases": [p.to_dict() for p in self.phases],
            "metadata": {
                "export_date": self.export_date.isoformat() + "Z",
                "export_system": EBR_SYSTEM,
                "format_version": EBR_FORMAT_VERSION,
            },
        }


# =============================================================================
# Recipe phase templates
# =============================================================================

# Parameter tuples are (name, set_point, actual, unit, lower, upper)
# Hour offsets are relative to the phase start.

PHASE_TEMPLATES: List[Dict[str, Any]] = [
    {
        "phase_id": "PREP-001",
        "phase_name": "Bioreactor Preparation & CIP",
        "equipment_id": BIOREACTOR_ID,
        "offset_hours": 0,
        "duration_hours": 4,
        "parameters": [
            ("CIP Temperature", 80, 79.8, "degC", 78, 82),
            ("CIP Duration", 60, 62, "minutes", 60, 90),
        ],
        "materials": [],
        "entries": [(0, "signature"), (2, "verification")],
    },
    {
        "phase_id": "INOC-001",
        "phase_name": "Media Addition and Inoculation",
        "equipment_id": BIOREACTOR_ID,
        "offset_hours": 4,
        "duration_hours": 3,
        "parameters": [
            ("Working Volume", 1500, 1487, "L", 1450, 1550),
            ("Inoculation Density", 0.3, 0.28, "E6 cells/mL", 0.2, 0.4),
            ("Temperature Set Point", 37.0, 37.1, "degC", 36.5, 37.5),
        ],
        "materials": [(0, "media"), (0.5, "media")],
        "entries": [(0, "signature"), (1.5, "comment"), (3, "verification")],
    },
    {
        "phase_id": "GROW-001",
        "phase_name": "Exponential Growth Phase",
        "equipment_id": BIOREACTOR_ID,
        "offset_hours": 7,
        "duration_hours": 24,
        "parameters": [
            ("pH Control", 7.1, 7.08, "pH", 7.0, 7.2),
            ("DO Control", 35, 34.2, "percent", 30, 40),
            ("Agitation", 50, 49.8, "RPM", 45, 55),
        ],
        "materials": [(6, "feed"), (12, "feed")],
        "entries": [(0, "signature"), (8, "comment"), (16, "comment")],
    },
    {
        "phase_id": "PROD-001",
        "phase_name": "Production Phase",
        "equipment_id": BIOREACTOR_ID,
        "offset_hours": 31,
        "duration_hours": 60,
        "parameters": [
            ("Temperature Shift", 33.0, 33.2, "degC", 32.5, 33.5),
            ("Feed Rate", 15, 14.8, "L/day", 12, 18),
        ],
        "materials": [(12, "feed"), (24, "feed"), (36, "feed"), (48, "feed")],
        "entries": [(0, "signature"), (24, "comment")],
    },
    {
        "phase_id": "HARV-001",
        "phase_name": "Harvest and Transfer to Purification",
        "equipment_id": BIOREACTOR_ID,
        "offset_hours": 91,
        "duration_hours": 8,
        "parameters": [
            ("Final Volume", None, 1820, "L", 1700, 1900),
            ("Harvest Temperature", 4, 4.2, "degC", 2, 8),
        ],
        "materials": [],
        "entries": [(0, "signature"), (4, "comment"), (8, "verification")],
    },
    {
        # Purification starts 12h after harvest begins
        "phase_id": "CHR-PROTA-001",
        "phase_name": "Protein A Affinity Chromatography",
        "equipment_id": COLUMN_ID,
        "offset_hours": 103,
        "duration_hours": 6,
        "parameters": [
            ("Load Flow Rate", 80, 78.5, "L/hr", 70, 90),
            ("Max Pressure", None, 2.2, "bar", None, 2.5),
            ("Column Bed Height", 20, 19.8, "cm", 19, 21),
        ],
        "materials": [(0, "buffer"), (1, "buffer"), (3, "reagent")],
        "entries": [(0, "signature"), (3, "comment"), (6, "verification")],
    },
]


# =============================================================================
# Generation
# =============================================================================


def generate_operator_entry(
    timestamp: datetime,
    entry_type: str,
    rng: Optional[random.Random] = None,
) -> OperatorEntry:
    """Create an operator entry; comments get one of the canned texts."""
    rng = rng or random
    operator_id, operator_name = rng.choice(OPERATORS)
    value = rng.choice(COMMENTS) if entry_type == "comment" else None

    return OperatorEntry(
        timestamp=timestamp,
        operator_id=operator_id,
        operator_name=operator_name,
        entry_type=entry_type,
        value=value,
    )


def generate_material_addition(
    timestamp: datetime,
    material_type: str,
    rng: Optional[random.Random] = None,
) -> MaterialAddition:
    """Charge a random material of the given type."""
    rng = rng or random
    material_id, material_name, quantity, unit = rng.choice(MATERIALS[material_type])

    return MaterialAddition(
        timestamp=timestamp,
        material_id=material_id,
        material_name=material_name,
        lot_number=f"LOT-{rng.randint(100000, 999999)}",
        quantity=quantity,
        unit=unit,
        added_by="OP-1247",
        verified_by="OP-2891",
        verification_time=timestamp + timedelta(minutes=5),
    )


def _build_phase(
    template: Dict[str, Any],
    batch_start: datetime,
    rng: Optional[random.Random],
) -> BatchPhase:
    start = batch_start + timedelta(hours=template["offset_hours"])
    end = start + timedelta(hours=template["duration_hours"])

    parameters = [
        ProcessParameter(
            name=name,
            set_point=set_point,
            actual_value=actual,
            unit=unit,
            lower_limit=lower,
            upper_limit=upper,
        )
        for name, set_point, actual, unit, lower, upper in template["parameters"]
    ]
    materials = [
        generate_material_addition(start + timedelta(hours=offset), material_type, rng)
        for offset, material_type in template["materials"]
    ]
    entries = [
        generate_operator_entry(start + timedelta(hours=offset), entry_type, rng)
        for offset, entry_type in template["entries"]
    ]

    return BatchPhase(
        phase_id=template["phase_id"],
        phase_name=template["phase_name"],
        start_time=start,
        end_time=end,
        equipment_id=template["equipment_id"],
        parameters=parameters,
        material_additions=materials,
        operator_entries=entries,
    )


def generate_ebr_export(
    batch_id: str,
    start_time: datetime,
    rng: Optional[random.Random] = None,
) -> EBRExport:
    """Generate the full batch record for a batch started at start_time."""
    phases = [_build_phase(t, start_time, rng) for t in PHASE_TEMPLATES]

    export = EBRExport(
        batch_id=batch_id,
        product_code=PRODUCT_CODE,
        product_name=PRODUCT_NAME,
        recipe_version=RECIPE_VERSION,
        manufacturing_site=SITE_NAME,
        start_date=start_time,
        end_date=phases[-1].end_time,
        batch_size=BATCH_SIZE_L,
        batch_size_unit="L",
        status="Completed",
        phases=phases,
        export_date=datetime.now().replace(microsecond=0),
    )
    logger.debug(f"Generated eBR for {batch_id} with {len(phases)} phases")
    return export


# =============================================================================
# Formatting
# =============================================================================


def format_ebr_as_xml(export: EBRExport) -> str:
    """Render the batch record as the MES XML export."""
    lines = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        "<BatchRecord>",
        f"  <BatchID>{escape(export.batch_id)}</BatchID>",
        f"  <ProductCode>{escape(export.product_code)}</ProductCode>",
        f"  <ProductName>{escape(export.product_name)}</ProductName>",
        f"  <RecipeVersion>{escape(export.recipe_version)}</RecipeVersion>",
        f"  <Site>{escape(export.manufacturing_site)}</Site>",
        f"  <StartDate>{export.start_date.isoformat()}Z</StartDate>",
        f"  <EndDate>{export.end_date.isoformat()}Z</EndDate>",
        f"  <Status>{escape(export.status)}</Status>",
        "  <Phases>",
    ]

    for phase in export.phases:
        lines.extend(
            [
                f"    <Phase id={quoteattr(phase.phase_id)}>",
                f"      <Name>{escape(phase.phase_name)}</Name>",
                f"      <Equipment>{escape(phase.equipment_id)}</Equipment>",
                f"      <StartTime>{phase.start_time.isoformat()}Z</StartTime>",
                f"      <EndTime>{phase.end_time.isoformat()}Z</EndTime>",
                f"      <Status>{escape(phase.status)}</Status>",
                "      <Parameters>",
            ]
        )
        for param in phase.parameters:
            lines.append(
                f"        <Parameter name={quoteattr(param.name)} unit={quoteattr(param.unit)}>"
            )
            if param.set_point is not None:
                lines.append(f"          <SetPoint>{param.set_point}</SetPoint>")
            lines.append(f"          <ActualValue>{param.actual_value}</ActualValue>")
            lines.append(f"          <InSpec>{str(param.in_spec).lower()}</InSpec>")
            lines.append("        </Parameter>")
        lines.extend(["      </Parameters>", "    </Phase>"])

    lines.extend(["  </Phases>", "</BatchRecord>"])
    return "\n".join(lines)
