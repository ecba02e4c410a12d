from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich import print

from .config import AppConfig
from .errors import EvaluationServiceError
from .logging_utils import setup_logging

app = typer.Typer(help="controlwatch evaluation service CLI")


def _load_config(config: Optional[Path]) -> AppConfig:
    if config is not None:
        return AppConfig.load(config)
    return AppConfig.from_env()


@app.command()
def init_config(out: Path = typer.Option("config.yaml", help="Output config path")):
    """Create a starter config file."""
    out_path = Path(out)
    if out_path.exists():
        print(f"[red]{out_path} already exists")
        raise typer.Exit(code=1)
    AppConfig().save(out_path)
    print(f"[green]Wrote config template to {out_path}")


@app.command()
def init_db(
    config: Optional[Path] = typer.Option(None, exists=True, help="Path to config.yaml"),
    database_url: Optional[str] = typer.Option(None, help="Database URL (overrides config)"),
):
    """Create the evaluation result tables."""
    from .db import init_db as init_db_fn

    url = database_url or _load_config(config).database_url
    init_db_fn(url, create_tables=True)
    print(f"[green]Database initialized at {url}")


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", help="Bind address"),
    port: int = typer.Option(8000, help="Port"),
    reload: bool = typer.Option(False, help="Reload on code changes"),
):
    """Run the REST API (uses CONTROLWATCH_CONFIG, default config.yaml)."""
    import uvicorn

    uvicorn.run("controlwatch.api.app:app", host=host, port=port, reload=reload, log_level="info")


@app.command()
def results(
    config: Optional[Path] = typer.Option(None, exists=True, help="Path to config.yaml"),
    target_id: Optional[str] = typer.Option(None, help="Only results of this cloud service"),
    catalog_id: Optional[str] = typer.Option(None, help="Only results of this catalog"),
    control_id: Optional[str] = typer.Option(None, help="Only results of this control"),
    sub_controls: Optional[str] = typer.Option(None, help="Only results of sub-controls of this control"),
    parents_only: bool = typer.Option(False, help="Only results of top-level controls"),
    latest: bool = typer.Option(False, help="Only the latest result per control"),
    page_size: int = typer.Option(0, help="Results per page (0 = default)"),
    page_token: str = typer.Option("", help="Token of the page to show"),
):
    """Show stored evaluation results."""
    from rich.console import Console
    from rich.table import Table

    from .evaluation import EvaluationService

    cfg = _load_config(config)
    setup_logging(cfg.logging.level, json=cfg.logging.json_output)
    console = Console()

    service = EvaluationService(cfg, start_scheduler=False)
    flt = {
        "target_id": target_id,
        "catalog_id": catalog_id,
        "control_id": control_id,
        "sub_controls": sub_controls,
        "parents_only": parents_only,
    }
    try:
        resp = service.list_evaluation_results(
            {
                "filter": {k: v for k, v in flt.items() if v is not None},
                "latest_by_control_id": latest,
                "page_size": page_size,
                "page_token": page_token,
            }
        )
    except EvaluationServiceError as e:
        console.print(f"[red]Listing results failed:[/red] {e}")
        raise typer.Exit(code=1)

    if not resp.results:
        console.print("[yellow]No evaluation results[/yellow]")
        return

    status_colors = {
        "COMPLIANT": "green",
        "COMPLIANT_MANUALLY": "green",
        "NOT_COMPLIANT": "red",
        "NOT_COMPLIANT_MANUALLY": "red",
        "PENDING": "yellow",
    }
    table = Table(title="Evaluation Results")
    table.add_column("Timestamp")
    table.add_column("Cloud Service")
    table.add_column("Catalog")
    table.add_column("Control", style="cyan")
    table.add_column("Parent")
    table.add_column("Status")
    table.add_column("Failing")

    for r in resp.results:
        color = status_colors.get(r.status.value, "white")
        table.add_row(
            r.timestamp.isoformat() if r.timestamp else "",
            r.target_id,
            r.control_catalog_id,
            f"{r.control_category_name}/{r.control_id}",
            r.parent_control_id or "",
            f"[{color}]{r.status.value}[/{color}]",
            str(len(r.failing_assessment_result_ids)),
        )
    console.print(table)
    if resp.next_page_token:
        console.print(f"Next page: --page-token {resp.next_page_token}")


if __name__ == "__main__":
    app()
