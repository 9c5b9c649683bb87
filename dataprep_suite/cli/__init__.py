"""
Command Line Interface for the Data Preparedness Suite.
"""

import asyncio
import json
from typing import Optional

import typer
import uvicorn
from rich import print as rprint
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..config import get_settings
from ..db.base import get_session_local, init_database
from ..errors import DataPrepError
from ..services.catalog import CatalogService
from ..services.data_sources import DataSourceService
from ..services.query_context import QueryContextService
from ..services.synthetic import SyntheticDataService

app = typer.Typer(help="Data Preparedness Suite - catalog, classify and synthesize data")
console = Console()


def _session():
    return get_session_local()()


@app.command()
def serve(
    port: Optional[int] = typer.Option(None, help="Port to run the API server on"),
    host: Optional[str] = typer.Option(None, help="Host to bind the server to"),
    reload: bool = typer.Option(False, help="Reload on code changes"),
):
    """Run the API server."""
    settings = get_settings()
    host = host or settings.api_host
    port = port or settings.api_port
    rprint(Panel.fit(f"Starting Data Preparedness Suite on http://{host}:{port}", style="bold blue"))
    uvicorn.run("dataprep_suite.main:app", host=host, port=port, reload=reload)


@app.command()
def init_db():
    """Create all database tables."""
    asyncio.run(init_database())
    console.print("✅ Database initialized")


@app.command()
def seed_catalog():
    """Seed the standard catalog categories and fields."""
    db = _session()
    try:
        result = CatalogService(db).initialize_standard_catalog()
    finally:
        db.close()
    console.print(
        f"✅ Created {result['categories_created']} categories and "
        f"{result['fields_created']} fields"
    )


@app.command()
def sources(
    type: Optional[str] = typer.Option(None, help="Only sources of this type"),
    limit: int = typer.Option(50, help="Maximum number of sources"),
):
    """List data sources."""
    db = _session()
    try:
        items = DataSourceService(db).list(source_type=type, limit=limit)

        if not items:
            console.print("No data sources found")
            return

        table = Table(title="Data Sources", show_header=True, header_style="bold magenta")
        table.add_column("ID", style="cyan")
        table.add_column("Name")
        table.add_column("Type", style="green")
        table.add_column("Records", justify="right")
        table.add_column("Keywords")

        for source in items:
            keywords = ", ".join((source.ai_keywords or [])[:5])
            table.add_row(source.id, source.name, source.type, str(source.record_count), keywords)
    finally:
        db.close()

    console.print(table)


@app.command()
def generate(dataset_id: str = typer.Argument(..., help="Synthetic dataset ID")):
    """Generate a synthetic dataset."""
    db = _session()
    try:
        job = SyntheticDataService(db).generate(dataset_id)
    except DataPrepError as e:
        console.print(f"❌ {e.message}")
        raise typer.Exit(code=1)
    finally:
        db.close()

    if job.status != "completed":
        console.print(f"❌ Generation failed: {job.error_message}")
        raise typer.Exit(code=1)
    console.print(f"✅ Generated {job.records_generated} records (job {job.id})")


@app.command()
def ask(
    question: str = typer.Argument(..., help="Natural-language question"),
    max_tokens: Optional[int] = typer.Option(None, help="Prompt size limit in tokens"),
    as_json: bool = typer.Option(False, "--json", help="Print the full result as JSON"),
):
    """Show the catalog context relevant to a question."""
    db = _session()
    try:
        result = QueryContextService(db).ask(question, max_tokens=max_tokens)
    finally:
        db.close()

    if as_json:
        console.print_json(json.dumps(result, default=str))
        return

    console.print(f"Keywords: {', '.join(result['keywords']) or '-'}")
    names = {s["id"]: s["name"] for s in result["context"]["data_sources"]}
    recommended = [names.get(i, i) for i in result["recommended_sources"]]
    console.print(f"Recommended sources: {', '.join(recommended) or '-'}")
    console.print(Panel(result["prompt"], title="Context", style="dim"))


@app.command()
def version():
    """Show version information."""
    from .. import __version__

    rprint(Panel.fit(f"Data Preparedness Suite v{__version__}", style="bold green"))


def main():
    """Main CLI entry point."""
    app()


if __name__ == "__main__":
    main()
