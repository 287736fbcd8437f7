"""Relational store behind the live batch dashboard.

Defines the MES/DCS/LIMS/PI tables with SQLAlchemy Core and a small read-only
repository that assembles the dashboard payload for one batch.
"""

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    create_engine,
    select,
)
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

from .config import DatabaseConfig

logger = logging.getLogger(__name__)

DCS_ROW_LIMIT = 50
IN_MEMORY_URLS = ("sqlite://", "sqlite:///:memory:")

metadata = MetaData()

mes_batch_records = Table(
    "mes_batch_records", metadata,
    Column("batch_id", String, primary_key=True),
    Column("product_code", String, nullable=False),
    Column("batch_status", String, nullable=False),
    Column("start_time", DateTime, nullable=False),
    Column("end_time", DateTime),
    Column("total_yield_kg", Float),
    Column("target_yield_kg", Float),
    Column("operator", String),
    Column("equipment_train", String),
    Column("site_id", String),
)

dcs_data = Table(
    "dcs_data", metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("batch_id", String, nullable=False, index=True),
    Column("tag_name", String, nullable=False),
    Column("timestamp", DateTime, nullable=False),
    Column("value", Float),
    Column("unit", String),
    Column("quality", String),
    Column("system_source", String),
)

lims_samples = Table(
    "lims_samples", metadata,
    Column("sample_id", String, primary_key=True),
    Column("batch_id", String, nullable=False, index=True),
    Column("sample_type", String),
    Column("collection_time", DateTime),
    Column("status", String),
)

lims_test_results = Table(
    "lims_test_results", metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("sample_id", String, ForeignKey("lims_samples.sample_id"), nullable=False),
    Column("test_name", String, nullable=False),
    Column("result_value", Float),
    Column("result_unit", String),
    Column("result_status", String),
    Column("specification_min", Float),
    Column("specification_max", Float),
)

mes_process_steps = Table(
    "mes_process_steps", metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("batch_id", String, nullable=False, index=True),
    Column("step_name", String, nullable=False),
    Column("step_type", String),
    Column("equipment_id", String),
    Column("start_time", DateTime),
    Column("end_time", DateTime),
    Column("duration_hours", Float),
    Column("status", String),
    Column("critical_step", Boolean, default=False),
    Column("qc_required", Boolean, default=False),
)

equipment = Table(
    "equipment", metadata,
    Column("equipment_id", String, primary_key=True),
    Column("equipment_name", String, nullable=False),
    Column("equipment_type", String),
    Column("status", String),
    Column("site_id", String, index=True),
    Column("capacity_value", Float),
    Column("capacity_unit", String),
)

pi_calculated_data = Table(
    "pi_calculated_data", metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("batch_id", String, nullable=False, index=True),
    Column("calculated_tag", String, nullable=False),
    Column("timestamp", DateTime),
    Column("value", Float),
    Column("unit", String),
    Column("calculation_type", String),
)


def create_db_engine(config: Optional[DatabaseConfig] = None) -> Engine:
    config = config or DatabaseConfig()
    logger.info(f"Connecting to database: {config.url}")
    if config.url in IN_MEMORY_URLS:
        # One shared connection so every thread sees the same in-memory db
        return create_engine(
            config.url,
            echo=config.echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(config.url, echo=config.echo)


def create_schema(engine: Engine) -> None:
    metadata.create_all(engine)


def _jsonable(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    return value


def _rows(result) -> List[Dict[str, Any]]:
    return [{k: _jsonable(v) for k, v in row.items()} for row in result.mappings()]


class BatchDataRepository:
    """Read-only queries for the live dashboard.

    SQLAlchemy errors propagate to the caller; the HTTP layer decides how to
    report them.
    """

    def __init__(self, engine: Engine):
        self.engine = engine

    def fetch_batch_data(self, batch_id: str, site_id: str) -> Dict[str, Any]:
        """Batch header plus DCS, LIMS, process, equipment and PI rows.

        ``batch`` is None when no batch record exists; the other lists are
        then simply empty.
        """
        with self.engine.connect() as conn:
            batch = _rows(conn.execute(
                select(
                    mes_batch_records.c.batch_id,
                    mes_batch_records.c.product_code,
                    mes_batch_records.c.batch_status,
                    mes_batch_records.c.start_time,
                    mes_batch_records.c.end_time,
                    mes_batch_records.c.total_yield_kg,
                    mes_batch_records.c.target_yield_kg,
                    mes_batch_records.c.operator,
                    mes_batch_records.c.equipment_train,
                ).where(mes_batch_records.c.batch_id == batch_id)
            ))

            dcs_rows = _rows(conn.execute(
                select(
                    dcs_data.c.tag_name,
                    dcs_data.c.timestamp,
                    dcs_data.c.value,
                    dcs_data.c.unit,
                    dcs_data.c.quality,
                    dcs_data.c.system_source,
                )
                .where(dcs_data.c.batch_id == batch_id)
                .order_by(dcs_data.c.timestamp.desc())
                .limit(DCS_ROW_LIMIT)
            ))

            s, t = lims_samples, lims_test_results
            lims_rows = _rows(conn.execute(
                select(
                    s.c.sample_id,
                    s.c.sample_type,
                    s.c.collection_time,
                    s.c.status,
                    t.c.test_name,
                    t.c.result_value,
                    t.c.result_unit,
                    t.c.result_status,
                    t.c.specification_min,
                    t.c.specification_max,
                )
                .select_from(s.outerjoin(t, s.c.sample_id == t.c.sample_id))
                .where(s.c.batch_id == batch_id)
                .order_by(s.c.collection_time.desc(), t.c.test_name)
            ))

            step_rows = _rows(conn.execute(
                select(
                    mes_process_steps.c.step_name,
                    mes_process_steps.c.step_type,
                    mes_process_steps.c.equipment_id,
                    mes_process_steps.c.start_time,
                    mes_process_steps.c.end_time,
                    mes_process_steps.c.duration_hours,
                    mes_process_steps.c.status,
                    mes_process_steps.c.critical_step,
                    mes_process_steps.c.qc_required,
                )
                .where(mes_process_steps.c.batch_id == batch_id)
                .order_by(mes_process_steps.c.start_time)
            ))

            equipment_rows = _rows(conn.execute(
                select(
                    equipment.c.equipment_id,
                    equipment.c.equipment_name,
                    equipment.c.equipment_type,
                    equipment.c.status,
                    equipment.c.site_id,
                    equipment.c.capacity_value,
                    equipment.c.capacity_unit,
                )
                .where(equipment.c.site_id == site_id)
                .order_by(equipment.c.equipment_type)
            ))

            pi_rows = _rows(conn.execute(
                select(
                    pi_calculated_data.c.calculated_tag,
                    pi_calculated_data.c.timestamp,
                    pi_calculated_data.c.value,
                    pi_calculated_data.c.unit,
                    pi_calculated_data.c.calculation_type,
                )
                .where(pi_calculated_data.c.batch_id == batch_id)
                .order_by(pi_calculated_data.c.timestamp.desc())
            ))

        logger.debug(
            f"Batch {batch_id}: {len(dcs_rows)} DCS rows, {len(lims_rows)} LIMS rows, "
            f"{len(step_rows)} steps, {len(equipment_rows)} equipment, {len(pi_rows)} PI rows"
        )

        return {
            "success": True,
            "batch": batch[0] if batch else None,
            "dcsData": dcs_rows,
            "limsResults": lims_rows,
            "processSteps": step_rows,
            "equipment": equipment_rows,
            "piData": pi_rows,
            "timestamp": datetime.now().isoformat() + "Z",
        }
