"""Command line interface for the AgroStock service."""

from __future__ import annotations

import logging
from typing import Optional

import typer
import uvicorn

from .core.config import Settings, get_settings
from .core.logging import setup_logging
from .db.session import init_db as create_tables
from .db.session import session_scope
from .services.inventory_repository import InventoryRepository
from .services.stock_movement import StockMovementEngine

app = typer.Typer(help="Manage and run the AgroStock warehouse service.")
logger = logging.getLogger("agrostock.cli")


def _print_header(title: str) -> None:
    typer.secho(title, bold=True, fg=typer.colors.CYAN)


def _resolve_settings() -> Settings:
    settings = get_settings()
    setup_logging()
    create_tables()
    return settings


@app.command()
def run(
    host: Optional[str] = typer.Option(None, help="Hostname to bind"),
    port: Optional[int] = typer.Option(None, help="Port to expose"),
    reload: Optional[bool] = typer.Option(None, help="Enable auto-reload"),
    log_level: Optional[str] = typer.Option(None, help="Uvicorn log level"),
) -> None:
    """Start the FastAPI service using Uvicorn."""

    settings = _resolve_settings()

    uvicorn.run(
        "agrostock.main:create_application",
        host=host or settings.host,
        port=port or settings.port,
        reload=settings.reload if reload is None else reload,
        log_level=(log_level or settings.log_level).lower(),
        factory=True,
    )


@app.command()
def init_db() -> None:
    """Create the database tables."""

    settings = _resolve_settings()
    typer.echo(f"Database initialised at {settings.database_url}")


@app.command()
def show_config() -> None:
    """Print the effective settings."""

    settings = get_settings()
    _print_header("Effective settings")
    for key, value in settings.model_dump().items():
        typer.echo(f"{key}: {value}")


@app.command("low-stock")
def low_stock(
    warehouse_id: Optional[str] = typer.Option(None, "--warehouse-id", help="Limit the report to one warehouse"),
) -> None:
    """List inventory records at or below their reorder level."""

    _resolve_settings()
    with session_scope() as session:
        records = InventoryRepository(session).low_stock(warehouse_id)
        if not records:
            typer.echo("No records at or below their reorder level.")
            return
        _print_header("Low stock")
        for record in records:
            logger.warning(
                "Low stock: product %s%s in warehouse %s has %d (reorder level %d)",
                record.product_id,
                f" variant {record.variant_id}" if record.variant_id else "",
                record.warehouse_id,
                record.stock_quantity,
                record.reorder_level,
            )
            typer.echo(
                f"- {record.warehouse_id} | {record.product_id} {record.variant_id or '-'} | "
                f"stock={record.stock_quantity} reorder_level={record.reorder_level}"
            )


@app.command("recompute-aggregates")
def recompute_aggregates() -> None:
    """Rebuild product stock totals and warehouse occupancy from inventory records."""

    _resolve_settings()
    with session_scope() as session:
        products, warehouses = StockMovementEngine(session).rebuild_aggregates()
    typer.secho(f"Recomputed {products} product(s) and {warehouses} warehouse(s)", fg=typer.colors.GREEN)


def main() -> None:
    """Entry-point for console scripts."""

    app()


if __name__ == "__main__":  # pragma: no cover
    main()
