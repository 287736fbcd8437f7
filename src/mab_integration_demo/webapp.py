"""FastAPI application serving the three demo phases.

HTML pages:
    /                   Phase selector (?phase=raw|structured|knowledge)
    /raw/{export_id}    One export as a paginated table or raw text
    /dashboard          Live batch dashboard backed by the database

JSON API:
    /api/batch-data                 Database-backed batch payload
    /api/batch/preview              Batch summary with a DCS sample
    /api/exports[/{id}[/rows|/download]]
    /api/structured/*               ISA-95, ISA-88, materials, parameters, comparison
    /api/knowledge/*                Graph, networks, process flow, queries
    /health
"""

import logging
import threading
from datetime import timedelta
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.responses import HTMLResponse, JSONResponse, Response
from fastapi.templating import Jinja2Templates
from sqlalchemy.exc import SQLAlchemyError

from . import __version__
from .batch import (
    CompleteBatch,
    generate_complete_batch,
    get_export_catalog,
    get_export_data,
    get_export_file,
    get_export_rows,
    LIMS_EXPORT_RESULTS,
    paginate,
    PREVIEW_DCS_POINTS,
)
from .config import Config
from .contextualize import get_transformation_examples
from .database import BatchDataRepository, create_db_engine
from .dcs import format_dcs_as_csv, get_dcs_sample
from .ebr import format_ebr_as_xml
from .equipment_network import (
    build_equipment_class_tree,
    get_all_equipment_nodes,
    get_equipment_connections,
)
from .graph_view import build_knowledge_graph, process_flow_mermaid
from .harmonization import (
    get_all_standard_parameters,
    get_parameter_mappings,
    group_parameters_by_category,
)
from .isa88 import get_phase_timeline, get_process_hierarchy
from .isa95 import (
    BIOREACTOR_EQUIPMENT_ID,
    COLUMN_EQUIPMENT_ID,
    get_equipment_hierarchy,
    get_equipment_instances,
)
from .lims import format_lims_as_csv
from .material_flow import (
    build_material_genealogy,
    calculate_material_balance,
    generate_material_flows,
    get_material_flow_summary,
)
from .material_network import (
    calculate_overall_yield,
    get_material_nodes,
    get_material_transformations,
    get_quality_gate_status,
)
from .phases import DemoPhase, get_next_phase, get_previous_phase, get_sections_for_phase
from .process_network import get_process_connections, get_process_network, get_process_timeline
from .queries import execute_query, get_available_queries, parse_query_type

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).parent / "templates"
PURIFIED_POOL_ID = "MAT-PURIFIED-001"


def create_app(config: Optional[Config] = None) -> FastAPI:
    """Build the application for one configuration.

    The synthetic batch is generated on first use and reused for every
    request; the database engine is created up front but only touched by the
    live dashboard endpoint.
    """
    config = config or Config.default()
    app = FastAPI(
        title="mAb Data Integration Demo",
        description="Raw exports, ISA-95/ISA-88 structure and a knowledge graph for one batch",
        version=__version__,
    )
    templates = Jinja2Templates(directory=str(TEMPLATES_DIR))

    app.state.config = config
    app.state.engine = create_db_engine(config.database)
    app.state.batch = None
    batch_lock = threading.Lock()

    def get_batch() -> CompleteBatch:
        with batch_lock:
            if app.state.batch is None:
                app.state.batch = generate_complete_batch(
                    batch_id=config.batch.batch_id,
                    start_time=config.batch.start_time,
                    duration_hours=config.batch.duration_hours,
                    dcs_interval_seconds=config.batch.dcs_interval_s,
                    seed=config.batch.random_seed,
                )
                logger.info(f"Batch ready: {app.state.batch.summary()}")
            return app.state.batch

    def require_export(export_id: str):
        export = get_export_file(export_id, config.batch.batch_id)
        if export is None:
            raise HTTPException(status_code=404, detail=f"Export {export_id} not found")
        return export

    # =========================================================================
    # Pages
    # =========================================================================

    @app.get("/", response_class=HTMLResponse, include_in_schema=False)
    def index(request: Request, phase: Optional[str] = None):
        try:
            current = DemoPhase.from_slug(phase or config.batch.initial_phase)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

        return templates.TemplateResponse(
            request,
            "index.html",
            {
                "phase": current,
                "phases": list(DemoPhase),
                "sections": get_sections_for_phase(current),
                "previous_phase": get_previous_phase(current),
                "next_phase": get_next_phase(current),
                "batch_id": config.batch.batch_id,
                "version": __version__,
            },
        )

    @app.get("/raw/{export_id}", response_class=HTMLResponse, include_in_schema=False)
    def raw_export(
        request: Request,
        export_id: str,
        page: int = Query(1, ge=1),
        view: str = Query("table", pattern="^(table|raw)$"),
    ):
        export = require_export(export_id)
        batch = get_batch()
        rows = get_export_rows(batch, export_id) or []
        return templates.TemplateResponse(
            request,
            "raw.html",
            {
                "export": export,
                "view": view,
                "table": paginate(rows, page),
                "columns": list(rows[0].keys()) if rows else [],
                "raw_text": _export_text(batch, export_id, preview=True) if view == "raw" else "",
            },
        )

    @app.get("/dashboard", response_class=HTMLResponse, include_in_schema=False)
    def dashboard(request: Request):
        return templates.TemplateResponse(
            request,
            "dashboard.html",
            {
                "batch_id": config.batch.batch_id,
                "refresh_interval_ms": config.server.refresh_interval_s * 1000,
            },
        )

    # =========================================================================
    # Raw data API
    # =========================================================================

    @app.get("/api/batch-data")
    def batch_data():
        repo = BatchDataRepository(app.state.engine)
        try:
            return repo.fetch_batch_data(config.batch.batch_id, config.batch.site_id)
        except SQLAlchemyError:
            logger.exception("Database error while fetching batch data")
            return JSONResponse(
                status_code=500,
                content={"success": False, "error": "Failed to fetch batch data"},
            )

    @app.get("/api/batch/preview")
    def batch_preview():
        batch = get_batch()
        return {
            "summary": batch.summary(),
            "dcs": get_dcs_sample(batch.dcs, PREVIEW_DCS_POINTS).to_dict(),
            "ebr_phases": [p.phase_name for p in batch.ebr.phases],
            "lims_samples": [s.to_dict() for s in batch.lims.samples],
        }

    @app.get("/api/exports")
    def list_exports(system: Optional[str] = None):
        return {
            "batch_id": config.batch.batch_id,
            "exports": [f.to_dict() for f in get_export_catalog(config.batch.batch_id, system)],
        }

    @app.get("/api/exports/{export_id}")
    def export_detail(export_id: str):
        export = require_export(export_id)
        return {"file": export.to_dict(), "data": get_export_data(get_batch(), export_id)}

    @app.get("/api/exports/{export_id}/rows")
    def export_rows(export_id: str, page: int = Query(1, ge=1)):
        require_export(export_id)
        return paginate(get_export_rows(get_batch(), export_id) or [], page)

    @app.get("/api/exports/{export_id}/download")
    def export_download(export_id: str):
        export = require_export(export_id)
        media_type = "application/xml" if export.format == "XML" else "text/csv"
        return Response(
            content=_export_text(get_batch(), export_id),
            media_type=media_type,
            headers={"Content-Disposition": f'attachment; filename="{export.filename}"'},
        )

    # =========================================================================
    # Structured data API
    # =========================================================================

    @app.get("/api/structured/equipment")
    def structured_equipment():
        return {
            "hierarchy": get_equipment_hierarchy().to_dict(),
            "instances": [i.to_dict() for i in get_equipment_instances()],
        }

    @app.get("/api/structured/process")
    def structured_process():
        batch = get_batch()
        duration = (batch.end_time - batch.start_time).total_seconds() / 3600
        return {
            "hierarchy": get_process_hierarchy().to_dict(),
            "timeline": [s.to_dict() for s in get_phase_timeline(batch.start_time, duration)],
        }

    @app.get("/api/structured/materials")
    def structured_materials():
        batch = get_batch()
        flows = generate_material_flows(batch.batch_id, batch.start_time)
        at_end = batch.start_time + timedelta(hours=config.batch.duration_hours)
        return {
            "flows": [f.to_dict() for f in flows],
            "balances": [
                calculate_material_balance(eid, flows, at_end).to_dict()
                for eid in (BIOREACTOR_EQUIPMENT_ID, COLUMN_EQUIPMENT_ID)
            ],
            "genealogy": build_material_genealogy(PURIFIED_POOL_ID, flows).to_dict(),
            "summary": get_material_flow_summary(flows),
        }

    @app.get("/api/structured/parameters")
    def structured_parameters():
        return {
            "parameters": [p.to_dict() for p in get_all_standard_parameters()],
            "mappings": [m.to_dict() for m in get_parameter_mappings()],
            "by_category": {
                category: [p.standard_id for p in params]
                for category, params in group_parameters_by_category().items()
            },
        }

    @app.get("/api/structured/comparison")
    def structured_comparison():
        return {"examples": get_transformation_examples(get_batch())}

    # =========================================================================
    # Knowledge graph API
    # =========================================================================

    @app.get("/api/knowledge/graph")
    def knowledge_graph(equipment: bool = True, process: bool = True, material: bool = True):
        return build_knowledge_graph(
            show_equipment=equipment, show_process=process, show_material=material
        )

    @app.get("/api/knowledge/equipment")
    def knowledge_equipment():
        return {
            "nodes": [n.to_dict() for n in get_all_equipment_nodes()],
            "connections": [c.to_dict() for c in get_equipment_connections()],
            "class_tree": build_equipment_class_tree(),
        }

    @app.get("/api/knowledge/process")
    def knowledge_process():
        return {
            "nodes": [p.to_dict() for p in get_process_network()],
            "connections": [c.to_dict() for c in get_process_connections()],
            "timeline": get_process_timeline(),
        }

    @app.get("/api/knowledge/materials")
    def knowledge_materials():
        nodes = get_material_nodes()
        return {
            "nodes": [m.to_dict() for m in nodes],
            "transformations": [t.to_dict() for t in get_material_transformations()],
            "quality_gates": get_quality_gate_status(),
            "overall_yield": calculate_overall_yield(nodes[0].id, "MAT_FINAL_001"),
        }

    @app.get("/api/knowledge/flow")
    def knowledge_flow():
        return {"mermaid": process_flow_mermaid()}

    @app.get("/api/knowledge/queries")
    def knowledge_queries():
        return {"queries": get_available_queries()}

    @app.get("/api/knowledge/queries/{query_type}")
    def run_query(
        query_type: str,
        batch_id: Optional[str] = None,
        material_id: Optional[str] = None,
    ):
        if parse_query_type(query_type) is None:
            raise HTTPException(status_code=404, detail=f"Unknown query type: {query_type}")
        params = {"batch_id": batch_id, "material_id": material_id}
        return execute_query(query_type, params).to_dict()

    @app.get("/health")
    def health():
        return {"status": "ok", "version": __version__, "batch_id": config.batch.batch_id}

    return app


def _export_text(batch: CompleteBatch, export_id: str, preview: bool = False) -> str:
    """File contents for an export as the source system writes it."""
    if export_id == "dcs-001":
        dcs = get_dcs_sample(batch.dcs, PREVIEW_DCS_POINTS) if preview else batch.dcs
        return format_dcs_as_csv(dcs)
    if export_id == "ebr-001":
        return format_ebr_as_xml(batch.ebr)
    return format_lims_as_csv(batch.lims, LIMS_EXPORT_RESULTS[export_id])
