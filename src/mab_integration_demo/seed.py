"""Populate the dashboard database with a synthetic batch.

Rows are derived from the same generators that produce the raw exports, so
the live dashboard and the export views describe one and the same batch.
"""

import logging
import re
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from faker import Faker
from sqlalchemy import delete, select
from sqlalchemy.engine import Connection, Engine

from .batch import DEFAULT_DURATION_HOURS, CompleteBatch, generate_complete_batch
from .config import SAMPLE_BATCH_ID, SAMPLE_BATCH_START
from .database import (
    create_schema,
    dcs_data,
    equipment,
    lims_samples,
    lims_test_results,
    mes_batch_records,
    mes_process_steps,
    pi_calculated_data,
)
from .dcs import DCS_SYSTEM
from .ebr import BIOREACTOR_ID, COLUMN_ID, PRODUCT_CODE
from .equipment_network import get_all_equipment_nodes
from .process_network import ProcessStatus, get_process_network, get_process_timeline

logger = logging.getLogger(__name__)

fake = Faker()

SEED_DCS_INTERVAL_S = 600
TARGET_YIELD_KG = 2.5
PI_AVERAGE_TAGS = {
    "BR001_PV_TEMP": "BR001_TEMP_1H_AVG",
    "BR001_PH_PV": "BR001_PH_1H_AVG",
    "DO_2001_PV": "BR001_DO_1H_AVG",
}
BATCH_STATUS_BY_PROCESS = {
    ProcessStatus.RUNNING: "In Progress",
    ProcessStatus.COMPLETE: "Complete",
    ProcessStatus.NOT_STARTED: "Scheduled",
}


def _site_code(site: str, default_site_id: str) -> str:
    """Map network site names (Site_A, Site_B) onto short site ids (STA, STB)."""
    if site == "Site_A":
        return default_site_id
    return "ST" + site.rsplit("_", 1)[-1]


def _split_capacity(capacity: Optional[str]) -> Tuple[Optional[float], Optional[str]]:
    match = re.match(r"^\s*([\d.]+)\s*(\S*)$", capacity or "")
    if not match:
        return None, None
    return float(match.group(1)), match.group(2) or None


def build_batch_record(batch: CompleteBatch, site_id: str) -> Dict[str, Any]:
    procedure = get_process_network()[0]
    return {
        "batch_id": batch.batch_id,
        "product_code": PRODUCT_CODE,
        "batch_status": BATCH_STATUS_BY_PROCESS.get(procedure.status, procedure.status.value),
        "start_time": batch.start_time,
        "end_time": None if procedure.status == ProcessStatus.RUNNING else batch.end_time,
        "total_yield_kg": round(fake.pyfloat(min_value=2.2, max_value=2.9), 2),
        "target_yield_kg": TARGET_YIELD_KG,
        "operator": fake.name(),
        "equipment_train": f"{BIOREACTOR_ID} → TK-001 → {COLUMN_ID}",
        "site_id": site_id,
    }


def build_dcs_rows(batch: CompleteBatch) -> List[Dict[str, Any]]:
    return [
        {
            "batch_id": batch.batch_id,
            "tag_name": p.tag_id,
            "timestamp": p.timestamp,
            "value": p.value,
            "unit": p.unit,
            "quality": p.quality,
            "system_source": DCS_SYSTEM,
        }
        for p in batch.dcs.data_points
    ]


def build_lims_rows(batch: CompleteBatch):
    """Sample rows (first occurrence of each id) and their result rows."""
    unique: Dict[str, Any] = {}
    for sample in batch.lims.samples:
        unique.setdefault(sample.sample_id, sample)
    samples = [
        {
            "sample_id": s.sample_id,
            "batch_id": batch.batch_id,
            "sample_type": s.sample_type,
            "collection_time": s.collection_time,
            "status": s.status,
        }
        for s in unique.values()
    ]
    results = [
        {
            "sample_id": r.sample_id,
            "test_name": r.test_name,
            "result_value": r.value,
            "result_unit": r.unit,
            "result_status": r.status,
            "specification_min": r.specification_min,
            "specification_max": r.specification_max,
        }
        for r in batch.lims.all_results
    ]
    return samples, results


def build_process_step_rows(batch: CompleteBatch) -> List[Dict[str, Any]]:
    """Unit procedures and operations laid out on the batch clock."""
    processes = {p.id: p for p in get_process_network()}
    rows = []
    for entry in get_process_timeline():
        proc = processes[entry["process_id"]]
        started = proc.status != ProcessStatus.NOT_STARTED
        rows.append({
            "batch_id": batch.batch_id,
            "step_name": proc.name,
            "step_type": proc.level,
            "equipment_id": proc.equipment_id,
            "start_time": (
                batch.start_time + timedelta(hours=entry["start_time"]) if started else None
            ),
            "end_time": (
                batch.start_time + timedelta(hours=entry["end_time"])
                if proc.status == ProcessStatus.COMPLETE else None
            ),
            "duration_hours": proc.actual_duration,
            "status": proc.status.value,
            "critical_step": proc.critical_step,
            "qc_required": proc.qc_required,
        })
    return rows


def build_equipment_rows(site_id: str) -> List[Dict[str, Any]]:
    rows = []
    for node in get_all_equipment_nodes():
        value, unit = _split_capacity(node.metadata.get("capacity"))
        rows.append({
            "equipment_id": node.id,
            "equipment_name": node.name,
            "equipment_type": node.equipment_class,
            "status": node.status,
            "site_id": _site_code(node.site, site_id),
            "capacity_value": value,
            "capacity_unit": unit,
        })
    return rows


def build_pi_rows(batch: CompleteBatch) -> List[Dict[str, Any]]:
    """Hourly averages of key bioreactor tags, plus integral viable cell density."""
    buckets: Dict[tuple, List[float]] = {}
    units: Dict[str, str] = {}
    for point in batch.dcs.data_points:
        if point.tag_id not in PI_AVERAGE_TAGS:
            continue
        hour = point.timestamp.replace(minute=0, second=0, microsecond=0)
        buckets.setdefault((point.tag_id, hour), []).append(point.value)
        units[point.tag_id] = point.unit

    rows = [
        {
            "batch_id": batch.batch_id,
            "calculated_tag": PI_AVERAGE_TAGS[tag],
            "timestamp": hour,
            "value": round(sum(values) / len(values), 3),
            "unit": units[tag],
            "calculation_type": "Average",
        }
        for (tag, hour), values in sorted(buckets.items(), key=lambda kv: (kv[0][1], kv[0][0]))
    ]

    # Trapezoidal IVCD over the in-process VCD results
    vcd = sorted(
        (
            (batch.lims.get_sample(r.sample_id).collection_time, r.value)
            for r in batch.lims.in_process_results
            if r.test_code == "VCD-TRYPAN" and batch.lims.get_sample(r.sample_id)
        ),
        key=lambda item: item[0],
    )
    ivcd = 0.0
    for (t0, v0), (t1, v1) in zip(vcd, vcd[1:]):
        days = (t1 - t0).total_seconds() / 86400
        ivcd += (v0 + v1) / 2 * days
        rows.append({
            "batch_id": batch.batch_id,
            "calculated_tag": "BR001_IVCD",
            "timestamp": t1,
            "value": round(ivcd, 3),
            "unit": "E6 cells·day/mL",
            "calculation_type": "Integral",
        })

    return rows


def _clear_batch(conn: Connection, batch_id: str, equipment_ids: List[str]) -> None:
    sample_ids = select(lims_samples.c.sample_id).where(lims_samples.c.batch_id == batch_id)
    conn.execute(delete(lims_test_results).where(lims_test_results.c.sample_id.in_(sample_ids)))
    for table in (lims_samples, dcs_data, mes_process_steps, pi_calculated_data,
                  mes_batch_records):
        conn.execute(delete(table).where(table.c.batch_id == batch_id))
    # By id, so rows seeded under another site id are replaced too
    conn.execute(delete(equipment).where(equipment.c.equipment_id.in_(equipment_ids)))


def seed_database(
    engine: Engine,
    batch_id: str = SAMPLE_BATCH_ID,
    site_id: str = "STA",
    seed: Optional[int] = None,
    dcs_interval_seconds: int = SEED_DCS_INTERVAL_S,
    batch: Optional[CompleteBatch] = None,
    start_time: datetime = SAMPLE_BATCH_START,
    duration_hours: float = DEFAULT_DURATION_HOURS,
) -> Dict[str, int]:
    """Create the schema and (re)load one batch.

    Existing rows for the batch and its equipment are replaced, so running
    this twice leaves the same row counts. A pre-built batch takes precedence
    over batch_id, start_time and duration_hours. Returns the number of rows
    written per table.
    """
    if seed is not None:
        Faker.seed(seed)
    if batch is None:
        batch = generate_complete_batch(
            batch_id=batch_id,
            start_time=start_time,
            duration_hours=duration_hours,
            dcs_interval_seconds=dcs_interval_seconds,
            seed=seed,
        )
    batch_id = batch.batch_id

    create_schema(engine)

    samples, results = build_lims_rows(batch)
    equipment_rows = build_equipment_rows(site_id)
    tables = [
        (mes_batch_records, [build_batch_record(batch, site_id)]),
        (dcs_data, build_dcs_rows(batch)),
        (lims_samples, samples),
        (lims_test_results, results),
        (mes_process_steps, build_process_step_rows(batch)),
        (equipment, equipment_rows),
        (pi_calculated_data, build_pi_rows(batch)),
    ]

    counts: Dict[str, int] = {}
    with engine.begin() as conn:
        _clear_batch(conn, batch_id, [r["equipment_id"] for r in equipment_rows])
        for table, rows in tables:
            if rows:
                conn.execute(table.insert(), rows)
            counts[table.name] = len(rows)

    logger.info(f"Seeded batch {batch_id}: " + ", ".join(f"{k}={v}" for k, v in counts.items()))
    return counts
