"""DCS historian export generator.

Mimics a DeltaV historian CSV export for one production bioreactor and the
Protein A column. Tag names are deliberately inconsistent: the same physical
measurement shows up under several tags with different naming conventions,
which is what the structured layer later untangles.
"""

import logging
import math
import random
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

DCS_SYSTEM = "DeltaV_Historian_Site_A"
DCS_SITE = "MFG-01"


# =============================================================================
# Tag definitions
# =============================================================================


@dataclass(frozen=True)
class TagDefinition:
    """Operating envelope and behaviour of one historian tag."""

    min: float
    max: float
    unit: str
    pattern: str  # stable, controlled, variable, step_change, slow_rise

    @property
    def range(self) -> float:
        return self.max - self.min

    @property
    def midpoint(self) -> float:
        return (self.min + self.max) / 2


TAG_DEFINITIONS: Dict[str, TagDefinition] = {
    # Temperature, three conventions for the same vessel
    "BR001_PV_TEMP": TagDefinition(36.5, 37.2, "degC", "stable"),
    "REACTOR_1_TEMP_AI": TagDefinition(36.5, 37.2, "degC", "stable"),
    "TI_2001_JACKET": TagDefinition(35.0, 38.0, "degC", "variable"),
    # Agitation
    "REACTOR_1_AGIT_SPEED": TagDefinition(45, 55, "RPM", "stable"),
    "BR001_STIR_PV": TagDefinition(45, 55, "RPM", "stable"),
    # Dissolved oxygen
    "DO_2001_PV": TagDefinition(30, 40, "percent", "controlled"),
    "BR001_DO_MEAS": TagDefinition(30, 40, "percent", "controlled"),
    # pH
    "PH_AI_2001": TagDefinition(7.0, 7.2, "pH", "stable"),
    "BR001_PH_PV": TagDefinition(7.0, 7.2, "pH", "stable"),
    # Chromatography
    "CHR_A_PRESS_01": TagDefinition(0.5, 2.5, "bar", "step_change"),
    "COLUMN_01_PI": TagDefinition(0.5, 2.5, "bar", "step_change"),
    "CHR_A_FLOW_FI": TagDefinition(0, 100, "L/hr", "step_change"),
    # Feed and level
    "FEED_FLOW_2001": TagDefinition(0, 50, "L/hr", "variable"),
    "BR001_LVL_PERCENT": TagDefinition(45, 95, "percent", "slow_rise"),
    "LI_2001_VESSEL": TagDefinition(45, 95, "percent", "slow_rise"),
    # Gas flows
    "O2_FLOW_FI_2001": TagDefinition(0.2, 2.0, "SLPM", "controlled"),
    "CO2_FLOW_2001": TagDefinition(0, 0.5, "SLPM", "variable"),
}

QUALITY_FLAGS = ("GOOD", "UNCERTAIN", "BAD")


# =============================================================================
# Export records
# =============================================================================


@dataclass
class DCSDataPoint:
    """One historian sample."""

    timestamp: datetime
    tag_id: str
    value: float
    quality: str
    unit: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat() + "Z",
            "tag_id": self.tag_id,
            "value": self.value,
            "quality": self.quality,
            "unit": self.unit,
        }


@dataclass
class DCSExport:
    """A full historian export for one time window."""

    system: str
    site: str
    export_date: datetime
    data_points: List[DCSDataPoint] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "system": self.system,
            "site": self.site,
            "export_date": self.export_date.isoformat() + "Z",
            "data_points": [p.to_dict() for p in self.data_points],
        }


# =============================================================================
# Value generation
# =============================================================================


def get_batch_phase(hours_elapsed: float) -> str:
    """Coarse culture phase used to shape tag behaviour."""
    if hours_elapsed < 4:
        return "inoculation"
    if hours_elapsed < 24:
        return "growth"
    if hours_elapsed < 84:
        return "production"
    return "harvest"


def generate_value(
    tag: TagDefinition,
    timestamp: datetime,
    phase: str,
    hours_elapsed: float,
    rng: Optional[random.Random] = None,
) -> float:
    """Generate a realistic value for a tag at a point in the batch."""
    rng = rng or random
    noise = rng.random() - 0.5

    if tag.pattern == "stable":
        return tag.midpoint + noise * tag.range * 0.1

    if tag.pattern == "controlled":
        # Slow oscillation around the set point
        epoch_hours = timestamp.replace(tzinfo=timezone.utc).timestamp() / 3600
        oscillation = math.sin(epoch_hours) * tag.range * 0.2
        return tag.midpoint + noise * tag.range * 0.15 + oscillation

    if tag.pattern == "variable":
        return tag.min + (noise + 0.5) * tag.range

    if tag.pattern == "step_change":
        level = 0.8 if phase == "production" else 0.3
        return tag.min + tag.range * level + noise * tag.range * 0.1

    if tag.pattern == "slow_rise":
        progress = min(hours_elapsed / 72, 1)
        return tag.min + tag.range * progress + noise * tag.range * 0.05

    return tag.midpoint


def get_quality_flag(rng: Optional[random.Random] = None) -> str:
    """Historian quality code; mostly GOOD."""
    r = (rng or random).random()
    if r > 0.98:
        return "BAD"
    if r > 0.95:
        return "UNCERTAIN"
    return "GOOD"


def generate_dcs_export(
    start_time: datetime,
    duration_hours: float = 96,
    interval_seconds: int = 30,
    rng: Optional[random.Random] = None,
) -> DCSExport:
    """Generate a historian export covering the batch window.

    One point is produced per tag per interval, so a full 105 hour batch at
    30 s sampling yields over 200k points.
    """
    if interval_seconds <= 0:
        raise ValueError("interval_seconds must be positive")

    rng = rng or random
    total_samples = int(duration_hours * 3600 / interval_seconds)
    data_points: List[DCSDataPoint] = []

    for i in range(total_samples):
        timestamp = start_time + timedelta(seconds=i * interval_seconds)
        hours_elapsed = i * interval_seconds / 3600
        phase = get_batch_phase(hours_elapsed)

        for tag_id, tag in TAG_DEFINITIONS.items():
            value = generate_value(tag, timestamp, phase, hours_elapsed, rng)
            data_points.append(
                DCSDataPoint(
                    timestamp=timestamp,
                    tag_id=tag_id,
                    value=round(value, 3),
                    quality=get_quality_flag(rng),
                    unit=tag.unit,
                )
            )

    logger.debug(f"Generated {len(data_points)} DCS points over {duration_hours}h")

    return DCSExport(
        system=DCS_SYSTEM,
        site=DCS_SITE,
        export_date=datetime.now().replace(microsecond=0),
        data_points=data_points,
    )


# =============================================================================
# Formatting
# =============================================================================


def format_dcs_as_csv(export: DCSExport) -> str:
    """Render the export the way the historian writes it to disk."""
    lines = [
        "# DCS Historian Export",
        f"# System: {export.system}",
        f"# Site: {export.site}",
        f"# Export Date: {export.export_date.isoformat()}Z",
        "Timestamp,TagID,Value,Quality",
    ]
    for point in export.data_points:
        lines.append(
            f"{point.timestamp.isoformat()}Z,{point.tag_id},{point.value},{point.quality}"
        )
    return "\n".join(lines)


def get_dcs_sample(export: DCSExport, sample_size: int = 100) -> DCSExport:
    """Copy of the export keeping only the first points."""
    return DCSExport(
        system=export.system,
        site=export.site,
        export_date=export.export_date,
        data_points=export.data_points[:sample_size],
    )
