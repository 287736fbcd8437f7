"""Command-line interface for the mAb Data Integration Demo."""

import json
import logging
import sys
from pathlib import Path
from typing import Optional

import click

from .batch import LIMS_EXPORT_RESULTS, generate_complete_batch, get_export_catalog
from .config import Config
from .database import create_db_engine
from .dcs import format_dcs_as_csv
from .ebr import format_ebr_as_xml
from .equipment_network import get_all_equipment_nodes
from .lims import format_lims_as_csv
from .material_network import get_material_nodes
from .phases import DemoPhase, get_sections_for_phase
from .process_network import get_process_network
from .queries import execute_query, get_available_queries, parse_query_type
from .seed import seed_database

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

config_option = click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(path_type=Path),
    default=None,
    help="YAML config file (default: environment variables)",
)


def _load_config(config_path: Optional[Path]) -> Config:
    if config_path is not None:
        return Config.from_yaml(config_path)
    return Config.from_env()


@click.group()
@click.version_option(version="0.1.0")
def main():
    """mAb Data Integration Demo - from siloed exports to a knowledge graph.

    Walks one monoclonal antibody batch through three views of the same data:

    \b
      1: Raw data - DCS historian CSV, eBR XML and LIMS CSV exports
      2: Structured - ISA-95 equipment, ISA-88 process, harmonized parameters
      3: Knowledge graph - equipment, process and material networks + queries
    """
    pass


@main.command()
@config_option
@click.option("--host", "-h", default=None, help="Bind address (overrides config)")
@click.option("--port", "-p", type=int, default=None, help="Port (overrides config)")
@click.option(
    "--seed-db",
    is_flag=True,
    default=False,
    help="Seed the database with the sample batch before serving",
)
def serve(config_path, host, port, seed_db):
    """Start the web application."""
    import uvicorn

    from .webapp import create_app

    cfg = _load_config(config_path)
    if host:
        cfg.server.host = host
    if port:
        cfg.server.port = port

    app = create_app(cfg)
    if seed_db:
        seed_database(
            app.state.engine,
            batch_id=cfg.batch.batch_id,
            site_id=cfg.batch.site_id,
            seed=cfg.batch.random_seed,
            start_time=cfg.batch.start_time,
            duration_hours=cfg.batch.duration_hours,
        )

    logger.info(f"Serving on http://{cfg.server.host}:{cfg.server.port}")
    uvicorn.run(app, host=cfg.server.host, port=cfg.server.port)


@main.command()
@click.option(
    "--output",
    "-o",
    type=click.Path(path_type=Path),
    default=Path("config"),
    help="Output directory for config files",
)
def init(output):
    """Generate a sample configuration file.

    Creates config.yaml with default database, server and batch settings.
    """
    output.mkdir(parents=True, exist_ok=True)

    cfg = Config.default()
    config_path = output / "config.yaml"
    cfg.to_yaml(config_path)

    click.echo(f"Created: {config_path}")
    click.echo()
    click.echo("Edit the config file to customize:")
    click.echo("  - Database URL for the live dashboard")
    click.echo("  - Server host, port and refresh interval")
    click.echo("  - Batch id, start time, duration and random seed")
    click.echo()
    click.echo(f"Run with: mab-demo serve --config {config_path}")


@main.command("seed-db")
@config_option
@click.option("--database-url", default=None, help="SQLAlchemy URL (overrides config)")
@click.option("--seed", type=int, default=None, help="Random seed (overrides config)")
def seed_db(config_path, database_url, seed):
    """Create the dashboard tables and load the sample batch.

    Safe to re-run: existing rows for the batch are replaced.
    """
    cfg = _load_config(config_path)
    if database_url:
        cfg.database.url = database_url

    engine = create_db_engine(cfg.database)
    counts = seed_database(
        engine,
        batch_id=cfg.batch.batch_id,
        site_id=cfg.batch.site_id,
        seed=seed if seed is not None else cfg.batch.random_seed,
        start_time=cfg.batch.start_time,
        duration_hours=cfg.batch.duration_hours,
    )

    click.echo(f"Seeded batch {cfg.batch.batch_id} into {cfg.database.url}")
    for table, count in counts.items():
        click.echo(f"  {table}: {count}")


@main.command()
@config_option
@click.option(
    "--output",
    "-o",
    type=click.Path(path_type=Path),
    default=Path("exports"),
    help="Directory to write the export files to",
)
@click.option(
    "--dcs-interval",
    type=click.IntRange(min=1),
    default=None,
    help="DCS sampling interval in seconds (overrides config)",
)
def export(config_path, output, dcs_interval):
    """Write the raw DCS, eBR and LIMS export files for the batch."""
    cfg = _load_config(config_path)
    batch = generate_complete_batch(
        batch_id=cfg.batch.batch_id,
        start_time=cfg.batch.start_time,
        duration_hours=cfg.batch.duration_hours,
        dcs_interval_seconds=dcs_interval or cfg.batch.dcs_interval_s,
        seed=cfg.batch.random_seed,
    )

    output.mkdir(parents=True, exist_ok=True)
    for export_file in get_export_catalog(batch.batch_id):
        if export_file.id == "dcs-001":
            content = format_dcs_as_csv(batch.dcs)
        elif export_file.id == "ebr-001":
            content = format_ebr_as_xml(batch.ebr)
        else:
            content = format_lims_as_csv(batch.lims, LIMS_EXPORT_RESULTS[export_file.id])

        path = output / export_file.filename
        path.write_text(content, encoding="utf-8")
        click.echo(f"Wrote {export_file.system:<5} {path}")


@main.command()
@click.argument("query_type", required=False)
@click.option("--batch-id", default=None, help="Batch id for trace_batch")
@click.option("--material-id", default=None, help="Material id for material_genealogy")
def query(query_type, batch_id, material_id):
    """Run a knowledge-graph query and print the result as JSON.

    Without QUERY_TYPE, lists the available queries.
    """
    if not query_type:
        for q in get_available_queries():
            params = f" [{', '.join(q['params'])}]" if q["params"] else ""
            click.echo(f"{q['id']:<25} {q['description']}{params}")
        return

    if parse_query_type(query_type) is None:
        click.echo(f"Error: unknown query type '{query_type}'", err=True)
        sys.exit(1)

    result = execute_query(query_type, {"batch_id": batch_id, "material_id": material_id})
    click.echo(json.dumps(result.to_dict(), indent=2, default=str))


@main.command()
@config_option
def status(config_path):
    """Show demo configuration and what each phase contains."""
    cfg = _load_config(config_path)

    click.echo("mAb Data Integration Demo")
    click.echo("=" * 40)
    click.echo()
    click.echo(f"Batch:     {cfg.batch.batch_id} (site {cfg.batch.site_id})")
    click.echo(f"Start:     {cfg.batch.start_time.isoformat()}Z, {cfg.batch.duration_hours}h")
    click.echo(f"DCS rate:  every {cfg.batch.dcs_interval_s}s")
    click.echo(f"Seed:      {cfg.batch.random_seed}")
    click.echo(f"Database:  {cfg.database.url}")
    click.echo(f"Server:    http://{cfg.server.host}:{cfg.server.port}")
    click.echo()

    click.echo("Phases:")
    for phase in DemoPhase:
        sections = ", ".join(s.title for s in get_sections_for_phase(phase))
        click.echo(f"  {phase.value}: {phase.title} ({sections})")
    click.echo()

    click.echo("Exports:")
    for export_file in get_export_catalog(cfg.batch.batch_id):
        click.echo(f"  {export_file.id:<9} {export_file.system:<5} {export_file.filename}")
    click.echo()

    click.echo("Knowledge graph:")
    click.echo(f"  Equipment nodes: {len(get_all_equipment_nodes())}")
    click.echo(f"  Process nodes:   {len(get_process_network())}")
    click.echo(f"  Material nodes:  {len(get_material_nodes())}")


if __name__ == "__main__":
    main()
