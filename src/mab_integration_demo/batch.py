"""Complete batch assembly and the simulated export catalog.

Ties the three system generators to one batch so the DCS, eBR and LIMS
exports describe the same run, and exposes the file listing shown in the
raw-data view.
"""

import logging
import math
import random
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from .config import SAMPLE_BATCH_ID, SAMPLE_BATCH_START
from .dcs import DCSExport, generate_dcs_export, get_dcs_sample
from .ebr import EBRExport, generate_ebr_export
from .lims import LIMSExport, generate_lims_export

logger = logging.getLogger(__name__)

DEFAULT_DURATION_HOURS = 105
DEFAULT_DCS_INTERVAL_S = 30
PREVIEW_DCS_POINTS = 100
EXPORT_VIEW_DCS_POINTS = 500
ROWS_PER_PAGE = 50

SYSTEMS = ("DCS", "eBR", "LIMS")


@dataclass
class CompleteBatch:
    """One batch as seen by all three plant systems."""

    batch_id: str
    start_time: datetime
    end_time: datetime
    dcs: DCSExport
    ebr: EBRExport
    lims: LIMSExport

    def to_dict(self) -> Dict[str, Any]:
        return {
            "batch_id": self.batch_id,
            "start_time": self.start_time.isoformat() + "Z",
            "end_time": self.end_time.isoformat() + "Z",
            "dcs": self.dcs.to_dict(),
            "ebr": self.ebr.to_dict(),
            "lims": self.lims.to_dict(),
        }

    def summary(self) -> Dict[str, Any]:
        """Record counts per system, for status output."""
        return {
            "batch_id": self.batch_id,
            "start_time": self.start_time.isoformat() + "Z",
            "end_time": self.end_time.isoformat() + "Z",
            "dcs_points": len(self.dcs.data_points),
            "ebr_phases": len(self.ebr.phases),
            "lims_samples": len(self.lims.samples),
            "lims_results": len(self.lims.all_results),
        }


def generate_complete_batch(
    batch_id: Optional[str] = None,
    start_time: Optional[datetime] = None,
    duration_hours: float = DEFAULT_DURATION_HOURS,
    dcs_interval_seconds: int = DEFAULT_DCS_INTERVAL_S,
    seed: Optional[int] = None,
) -> CompleteBatch:
    """Generate a coordinated DCS/eBR/LIMS data set for one batch.

    Passing a seed makes every random draw reproducible; without one the
    module-level generator is used.
    """
    rng = random.Random(seed) if seed is not None else random
    batch_id = batch_id or f"B-2024-{rng.randint(1000, 9999)}"
    start_time = start_time or SAMPLE_BATCH_START
    end_time = start_time + timedelta(hours=duration_hours)

    logger.info(f"Generating batch {batch_id} ({duration_hours}h from {start_time.isoformat()}Z)")

    dcs = generate_dcs_export(start_time, duration_hours, dcs_interval_seconds, rng)
    ebr = generate_ebr_export(batch_id, start_time, rng)
    lims = generate_lims_export(batch_id, start_time, end_time, rng)

    return CompleteBatch(
        batch_id=batch_id,
        start_time=start_time,
        end_time=end_time,
        dcs=dcs,
        ebr=ebr,
        lims=lims,
    )


def get_sample_batch_data(seed: Optional[int] = None, **kwargs) -> CompleteBatch:
    """The demo batch used across every view."""
    return generate_complete_batch(
        batch_id=SAMPLE_BATCH_ID, start_time=SAMPLE_BATCH_START, seed=seed, **kwargs
    )


def get_sample_batch_preview(seed: Optional[int] = None, **kwargs) -> CompleteBatch:
    """Sample batch with the DCS export trimmed for display."""
    batch = get_sample_batch_data(seed=seed, **kwargs)
    batch.dcs = get_dcs_sample(batch.dcs, PREVIEW_DCS_POINTS)
    return batch


# =============================================================================
# Export catalog
# =============================================================================


@dataclass
class ExportFile:
    """A file as it would sit on the shared drive after export."""

    id: str
    system: str
    filename: str
    exported_at: str
    format: str
    size: str
    records: int
    description: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "system": self.system,
            "filename": self.filename,
            "exported_at": self.exported_at,
            "format": self.format,
            "size": self.size,
            "records": self.records,
            "description": self.description,
        }


# Maps LIMS export ids to the result list each file holds
LIMS_EXPORT_RESULTS = {
    "lims-001": "in_process",
    "lims-002": "analytical",
    "lims-003": "microbiology",
}


def get_export_catalog(
    batch_id: str = SAMPLE_BATCH_ID, system: Optional[str] = None
) -> List[ExportFile]:
    """List the exports available for a batch, optionally for one system."""
    catalog = [
        ExportFile(
            id="dcs-001",
            system="DCS",
            filename="DeltaV_Historian_Export_2024-03-15_BR2001.csv",
            exported_at="2024-03-15 14:23:11",
            format="CSV",
            size="45.2 MB",
            records=276480,
            description="Historian time series, 17 tags at 30 s",
        ),
        ExportFile(
            id="ebr-001",
            system="eBR",
            filename=f"Syncade_BatchRecord_{batch_id}.xml",
            exported_at="2024-03-19 09:15:42",
            format="XML",
            size="2.8 MB",
            records=847,
            description="Executed batch record with signatures",
        ),
        ExportFile(
            id="lims-001",
            system="LIMS",
            filename=f"LIMS_InProcess_Results_{batch_id}.csv",
            exported_at="2024-03-20 16:47:23",
            format="CSV",
            size="124 KB",
            records=42,
            description="In-process cell counts, metabolites and titer",
        ),
        ExportFile(
            id="lims-002",
            system="LIMS",
            filename=f"LIMS_Analytical_Results_{batch_id}.csv",
            exported_at="2024-03-22 11:22:09",
            format="CSV",
            size="18 KB",
            records=8,
            description="Final product purity and aggregates",
        ),
        ExportFile(
            id="lims-003",
            system="LIMS",
            filename=f"LIMS_Microbiology_Results_{batch_id}.csv",
            exported_at="2024-03-25 14:33:51",
            format="CSV",
            size="12 KB",
            records=6,
            description="Bioburden and endotoxin",
        ),
    ]

    if system and system.lower() != "all":
        catalog = [f for f in catalog if f.system.lower() == system.lower()]
    return catalog


def get_export_file(export_id: str, batch_id: str = SAMPLE_BATCH_ID) -> Optional[ExportFile]:
    return next((f for f in get_export_catalog(batch_id) if f.id == export_id), None)


def get_export_data(batch: CompleteBatch, export_id: str) -> Optional[Dict[str, Any]]:
    """Contents shown when an export file is opened in the viewer."""
    if export_id == "dcs-001":
        return get_dcs_sample(batch.dcs, EXPORT_VIEW_DCS_POINTS).to_dict()

    if export_id == "ebr-001":
        return batch.ebr.to_dict()

    if export_id in LIMS_EXPORT_RESULTS:
        return batch.lims.to_dict(result_type=LIMS_EXPORT_RESULTS[export_id])

    return None


def get_export_rows(batch: CompleteBatch, export_id: str) -> Optional[List[Dict[str, Any]]]:
    """Flat rows of an export for the tabular viewer."""
    if export_id == "dcs-001":
        return [p.to_dict() for p in batch.dcs.data_points[:EXPORT_VIEW_DCS_POINTS]]

    if export_id == "ebr-001":
        rows = []
        for phase in batch.ebr.phases:
            for param in phase.parameters:
                row = {"phase_id": phase.phase_id, "phase_name": phase.phase_name,
                       "equipment_id": phase.equipment_id}
                row.update(param.to_dict())
                rows.append(row)
        return rows

    if export_id in LIMS_EXPORT_RESULTS:
        return [r.to_dict() for r in batch.lims.results_for(LIMS_EXPORT_RESULTS[export_id])]

    return None


def paginate(rows: List[Any], page: int = 1, per_page: int = ROWS_PER_PAGE) -> Dict[str, Any]:
    """Slice rows for one table page; out-of-range pages are clamped."""
    total_pages = max(1, math.ceil(len(rows) / per_page))
    page = min(max(1, page), total_pages)
    start = (page - 1) * per_page

    return {
        "page": page,
        "per_page": per_page,
        "total_pages": total_pages,
        "total_rows": len(rows),
        "rows": rows[start:start + per_page],
    }
