"""Command-line triggers for grant verification using Typer and Rich."""

import asyncio
import sys
from datetime import timedelta
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from grantflow import __version__
from grantflow.config.logging import get_logger
from grantflow.config.settings import settings
from grantflow.exceptions import GrantFlowError, GrantNotFoundError

# Initialize CLI app
app = typer.Typer(
    help="GrantFlow verification CLI - re-check grants for continued validity",
    add_completion=False,
)

console = Console()

logger = get_logger("cli")

STATUS_STYLES = {
    "verified": "green",
    "partially_verified": "yellow",
    "outdated": "magenta",
    "unreachable": "red",
    "disputed": "red",
    "unverified": "dim",
}


def _fail(message: str) -> None:
    console.print(f"\n[red]✗[/red] {message}")
    raise typer.Exit(1)


@app.command()
def status() -> None:
    """
    Display configuration and store status.

    Shows which grant store is in use, model configuration and the
    verification schedule parameters.
    """
    from grantflow.pipeline import build_store

    logger.info("Displaying system status")

    table = Table(title="GrantFlow Verification Status", show_header=True, header_style="bold magenta")
    table.add_column("Component", style="cyan", width=20)
    table.add_column("Status", style="green", width=16)
    table.add_column("Details", style="yellow")

    python_version = f"Python {sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}"
    table.add_row("Environment", "✓ Ready", python_version)

    api_status = "✓ Configured" if settings.gemini_api_key else "⚠ Not Configured"
    api_details = f"{settings.gemini_model} (RPM: {settings.max_rpm}, TPM: {settings.max_tpm:,})"
    table.add_row("Gemini API", api_status, api_details)

    async def _ping() -> bool:
        store = build_store(settings)
        try:
            return await store.ping()
        finally:
            close = getattr(store, "close", None)
            if close is not None:
                await close()

    reachable = asyncio.run(_ping())
    store_name = "Supabase" if settings.supabase_configured else "In-memory"
    store_details = settings.supabase_url if settings.supabase_configured else (settings.store_path or "memory only")
    table.add_row(
        "Grant Store",
        f"✓ {store_name}" if reachable else f"✗ {store_name}",
        store_details,
    )

    schedule = (
        f"Budget {settings.batch_budget_seconds:.0f}s, delay {settings.inter_call_delay_seconds}s, "
        f"freshness {settings.freshness_window_days}d"
    )
    table.add_row("Batch", "✓ Active", schedule)

    triggers = "✓ Secured" if settings.cron_secret and settings.app_password else "⚠ Open"
    if settings.dev_mode:
        triggers = "⚠ Dev mode"
    table.add_row("Triggers", triggers, "CRON_SECRET / APP_PASSWORD")

    log_details = f"Level: {settings.log_level}, Format: {settings.log_format}"
    table.add_row("Logging", "✓ Active", log_details)

    console.print(table)


@app.command()
def candidates() -> None:
    """List grants that would be verified by the next batch run."""
    from grantflow.agents.verification import CandidateSelector
    from grantflow.pipeline import build_store

    store = build_store(settings)
    selector = CandidateSelector(store, timedelta(days=settings.freshness_window_days))
    try:
        selected = asyncio.run(selector.select())
    except GrantFlowError as e:
        logger.error(f"Candidate selection failed: {e}")
        _fail(str(e))
        return

    table = Table(title=f"Verification Candidates ({len(selected)})", header_style="bold magenta")
    table.add_column("Grant ID", style="cyan")
    table.add_column("Pipeline", justify="center")
    table.add_column("Stale", justify="center")
    for grant_id in selected.ordered():
        table.add_row(
            grant_id,
            "✓" if grant_id in selected.pipeline_ids else "",
            "✓" if grant_id in selected.stale_ids else "",
        )
    console.print(table)
    for warning in selected.warnings:
        console.print(f"[yellow]⚠[/yellow] {warning}")


@app.command("verify-grant")
def verify_grant(
    grant_id: str = typer.Argument(..., help="Grant to verify"),
) -> None:
    """
    Verify a single grant now and record the result.

    Args:
        grant_id: Grant identifier
    """
    from grantflow.pipeline import build_components

    logger.info(f"Verifying grant {grant_id}")

    async def _run():
        components = build_components(settings)
        try:
            return await components.verifier.verify(grant_id)
        finally:
            await components.close()

    try:
        record = asyncio.run(_run())
    except GrantNotFoundError:
        _fail(f"Grant not found: {grant_id}")
        return
    except GrantFlowError as e:
        logger.error(f"Verification failed: {e}")
        _fail(str(e))
        return

    style = STATUS_STYLES.get(record.status.value, "white")
    lines = [
        f"[bold]Status:[/bold] [{style}]{record.status.value}[/{style}]",
        f"[bold]Confidence:[/bold] {record.confidence}/100",
        f"[bold]Checks:[/bold] {record.checks_passed}/{record.checks_total} passed",
        f"[dim]Completed in {record.duration_ms} ms[/dim]",
    ]
    console.print(Panel("\n".join(lines), title=f"Grant {grant_id}", border_style=style))

    if record.issues:
        table = Table(title="Issues", header_style="bold magenta")
        table.add_column("Type", style="cyan", width=10)
        table.add_column("Severity", width=10)
        table.add_column("Message")
        for issue in record.issues:
            table.add_row(issue.type, issue.severity, issue.message)
        console.print(table)


@app.command("verify-all")
def verify_all(
    budget: Optional[float] = typer.Option(
        None, "--budget", help="Wall-clock budget in seconds (default from settings)"
    ),
) -> None:
    """
    Re-verify every pipeline or stale grant within a time budget.

    Args:
        budget: Wall-clock budget in seconds
    """
    from grantflow.pipeline import VerificationBudget, build_components

    seconds = budget if budget is not None else settings.batch_budget_seconds
    logger.info(f"Starting batch verification (budget {seconds:.0f}s)")

    async def _run():
        components = build_components(settings)
        try:
            return await components.orchestrator.run(VerificationBudget(seconds))
        finally:
            await components.close()

    try:
        summary = asyncio.run(_run())
    except GrantFlowError as e:
        logger.error(f"Batch verification failed: {e}")
        _fail(str(e))
        return

    if summary.message:
        console.print(f"[dim]{summary.message}[/dim]")

    table = Table(title="Batch Verification", header_style="bold magenta")
    table.add_column("Grant ID", style="cyan")
    table.add_column("Status")
    table.add_column("Confidence", justify="right")
    table.add_column("Checks", justify="center")
    table.add_column("Detail")
    for item in summary.results:
        if item.is_timeout:
            table.add_row("[yellow]TIMEOUT[/yellow]", "", "", "", item.message or "")
        elif item.failed:
            table.add_row(item.grant_id, "[red]failed[/red]", "", "", item.error or "")
        else:
            style = STATUS_STYLES.get(item.status or "", "white")
            table.add_row(
                item.grant_id,
                f"[{style}]{item.status}[/{style}]",
                str(item.confidence),
                item.checks or "",
                f"{item.issues} issue(s)",
            )
    if summary.results:
        console.print(table)

    for warning in summary.warnings:
        console.print(f"[yellow]⚠[/yellow] {warning}")

    console.print(
        f"\n[green]✓[/green] {summary.state.value}: "
        f"{summary.verified} verified, {summary.failed} failed of {summary.total_queued} queued "
        f"(pipeline {summary.pipeline_grants}, stale {summary.stale_grants}) "
        f"in {summary.duration_ms / 1000:.1f}s"
    )


@app.command()
def version() -> None:
    """Display version information."""
    console.print("[bold]GrantFlow Verification[/bold]")
    console.print(f"Version: {__version__}")


if __name__ == "__main__":
    app()
