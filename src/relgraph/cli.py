"""Record graph CLI.

Creates tables from a schema document, saves nested record payloads and reads
records back with their relationships hydrated.
"""

import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional, TypeVar

import structlog
import typer
from pydantic import ValidationError

from relgraph.exceptions import RelgraphError
from relgraph.models.entries import EntriesParams
from relgraph.services.entries import EntriesService
from relgraph.services.factory import create_entries_service
from relgraph.services.schema_registry import SchemaRegistry

T = TypeVar("T")

structlog.configure(
    processors=[
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer(),
    ],
    logger_factory=lambda name: structlog.PrintLogger(file=sys.stderr),
    wrapper_class=structlog.BoundLogger,
    context_class=dict,
    cache_logger_on_first_use=False,
)

logger = structlog.get_logger(__name__)

app = typer.Typer(
    name="relgraph",
    help="""Save nested record graphs to a relational database and read them back.

Examples:

  # Create tables described by a schema document
  uv run relgraph init --schema schema.json --db data.db

  # Save a record with embedded relationships
  uv run relgraph save people '{"name": "Alice", "tags": [{"data": {"label": "vip"}}]}'

  # Read it back with relationships hydrated
  uv run relgraph get people 1""",
    rich_markup_mode="markdown",
)

DbOption = typer.Option(
    Path("relgraph.db"),
    "--db",
    envvar="RELGRAPH_DB",
    help="SQLite database file",
)
SchemaOption = typer.Option(
    Path("schema.json"),
    "--schema",
    envvar="RELGRAPH_SCHEMA",
    help="JSON schema document describing the tables",
)
ActorOption = typer.Option(
    None,
    "--actor",
    envvar="RELGRAPH_ACTOR",
    help="User id recorded on activity entries",
)


def _load_registry(schema_path: Path) -> SchemaRegistry:
    if not schema_path.exists():
        logger.error("schema_not_found", schema=str(schema_path))
        typer.echo(f"Schema document not found: {schema_path}")
        raise typer.Exit(1)
    try:
        return SchemaRegistry.from_file(schema_path)
    except ValidationError as e:
        logger.error("schema_invalid", schema=str(schema_path), error=str(e))
        typer.echo(f"Invalid schema document: {schema_path}")
        raise typer.Exit(1)


def _run(
    db_path: Path,
    registry: SchemaRegistry,
    actor: Optional[str],
    operation: Callable[[EntriesService], Awaitable[T]],
) -> T:
    async def run_operation() -> T:
        service = create_entries_service(db_path=db_path, registry=registry, actor_id=actor)
        try:
            return await operation(service)
        finally:
            await service.row_store.engine.dispose()

    try:
        return asyncio.run(run_operation())
    except RelgraphError as e:
        logger.error("operation_failed", error=str(e))
        typer.echo(f"Error: {e}")
        raise typer.Exit(1)


def _parse_payload(payload: str) -> Any:
    if payload.startswith("@"):
        try:
            payload = Path(payload[1:]).read_text(encoding="utf-8")
        except OSError as e:
            typer.echo(f"Cannot read payload file: {e}")
            raise typer.Exit(1)
    try:
        return json.loads(payload)
    except json.JSONDecodeError as e:
        typer.echo(f"Payload is not valid JSON: {e}")
        raise typer.Exit(1)


def _echo_json(value: Any) -> None:
    typer.echo(json.dumps(value, indent=2, default=str))


@app.command()
def init(
    db: Path = DbOption,
    schema: Path = SchemaOption,
) -> None:
    """Create the tables described by the schema document and the activity table."""
    registry = _load_registry(schema)
    _run(db, registry, None, lambda service: service.initialize_schema(registry.tables))
    typer.echo(f"Initialized {len(registry.tables)} tables in {db}")


@app.command()
def save(
    table: str = typer.Argument(..., help="Table to save into"),
    payload: str = typer.Argument(..., help="JSON record (or list of records), or @path to a JSON file"),
    db: Path = DbOption,
    schema: Path = SchemaOption,
    actor: Optional[str] = ActorOption,
) -> None:
    """Save a nested record payload, cascading into related tables."""
    registry = _load_registry(schema)
    data = _parse_payload(payload)
    if not isinstance(data, (dict, list)):
        typer.echo("Payload must be a JSON object or a list of objects")
        raise typer.Exit(1)

    rows = _run(db, registry, actor, lambda service: service.update_collection(table, data))
    logger.info("records_saved", table=table, count=len(rows))
    _echo_json([row.to_dict() for row in rows])


@app.command()
def get(
    table: str = typer.Argument(..., help="Table to read from"),
    row_id: int = typer.Argument(..., help="Primary key of the record"),
    db: Path = DbOption,
    schema: Path = SchemaOption,
    actor: Optional[str] = ActorOption,
) -> None:
    """Show one record with its relationships hydrated."""
    registry = _load_registry(schema)
    record = _run(db, registry, actor, lambda service: service.get_entry(table, row_id))
    if record is None:
        typer.echo(f"No record {row_id} in {table}")
        raise typer.Exit(1)
    _echo_json(record)


@app.command(name="list")
def list_entries(
    table: str = typer.Argument(..., help="Table to list"),
    search: Optional[str] = typer.Option(None, "--search", "-s", help="Case-insensitive text to match"),
    limit: int = typer.Option(500, "--limit", "-n", help="Records per page"),
    page: int = typer.Option(0, "--page", "-p", help="Zero-based page number"),
    order_by: str = typer.Option("id", "--order-by", help="Column to order by"),
    ascending: bool = typer.Option(False, "--asc", help="Order ascending instead of descending"),
    db: Path = DbOption,
    schema: Path = SchemaOption,
    actor: Optional[str] = ActorOption,
) -> None:
    """List records of a table with their to-one relationships hydrated."""
    registry = _load_registry(schema)
    params = EntriesParams(
        search=search,
        per_page=limit,
        current_page=page,
        order_by=order_by,
        order_direction="ASC" if ascending else "DESC",
    )
    result = _run(db, registry, actor, lambda service: service.get_entries(table, params))
    _echo_json(result.model_dump())


@app.command()
def version() -> None:
    """Show version information."""
    from relgraph import __version__

    typer.echo(f"relgraph {__version__}")
