"""
CLI interface for Focus Coach.

Provides command-line access to budget, activity and feedback functionality.
"""

import asyncio
import sys
from typing import Any, Awaitable, Callable, Optional

import typer
from rich.console import Console
from rich.table import Table

from focus_coach.app import CoachApp
from focus_coach.config.loader import AppConfig, load_settings_file
from focus_coach.core.coaching import MANUAL
from focus_coach.demo.seed_demo_data import seed_demo_data
from focus_coach.logging_config import setup_logging
from focus_coach.storage.db import DEFAULT_DB_PATH
from focus_coach.storage.repository import CoachRepository, initialize_schema

app = typer.Typer()
console = Console()

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1


def _db_path(ctx: typer.Context) -> str:
    return (ctx.obj or {}).get("db_path", DEFAULT_DB_PATH)


def _build_coach(db_path: str) -> CoachApp:
    """Wire the app, exiting with a message when stored settings are invalid."""
    try:
        return CoachApp(db_path)
    except ValueError as e:
        console.print(f"[red]Invalid settings:[/] {e}")
        sys.exit(EXIT_CODE_FAIL)


def _with_coach(db_path: str, action: Callable[[CoachApp], Awaitable[Any]]) -> Any:
    """Build the app, run one async action against it and shut it down."""
    coach = _build_coach(db_path)

    async def runner():
        try:
            return await action(coach)
        finally:
            await coach.stop()

    return asyncio.run(runner())


def _format_currency(amount: float) -> str:
    """Format currency with sign and thousands separators."""
    sign = "-" if amount < 0 else ""
    return f"{sign}${abs(amount):,.2f}"


def _format_duration(seconds: float) -> str:
    hours, remainder = divmod(int(seconds), 3600)
    minutes = remainder // 60
    return f"{hours}h {minutes:02d}m"


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    db: str = typer.Option(DEFAULT_DB_PATH, "--db", help="Path to the SQLite database"),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Logging level (default: INFO)")
):
    """Focus Coach CLI."""
    setup_logging(level=log_level)
    ctx.obj = {"db_path": db}
    if ctx.invoked_subcommand is None:
        console.print("Focus Coach - Use --help to see available commands")


@app.command()
def init(
    ctx: typer.Context,
    config: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="YAML file with settings to apply"
    )
):
    """Initialize the database and optionally apply a settings file."""
    db_path = _db_path(ctx)
    try:
        initialize_schema(db_path)
        if config:
            repository = CoachRepository(db_path)
            settings = load_settings_file(config)
            for key, value in settings.items():
                repository.set_setting(key, value)
            console.print(f"[green]✓[/] Applied {len(settings)} settings from {config}")
        console.print("[green]✓[/] Database initialized successfully")
        sys.exit(EXIT_CODE_PASS)
    except Exception as e:
        console.print(f"[red]Error initializing database:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


@app.command()
def status(ctx: typer.Context):
    """Show the decoded configuration."""
    repository = CoachRepository(_db_path(ctx))
    repository.initialize()
    try:
        config = AppConfig.from_settings(repository.get_settings())
    except ValueError as e:
        console.print(f"[red]Invalid settings:[/] {e}")
        sys.exit(EXIT_CODE_FAIL)

    table = Table(title="Focus Coach configuration")
    table.add_column("Setting")
    table.add_column("Value")
    table.add_row("Default provider", config.providers.default_provider)
    table.add_row("Monthly budget", _format_currency(config.budget.monthly_limit))
    table.add_row("Budget warnings", "on" if config.budget.warnings_enabled else "off")
    table.add_row("Warning threshold", f"{config.budget.warning_threshold_percent:.0f}%")
    table.add_row("Automatic feedback", "on" if config.feedback.enabled else "off")
    table.add_row("Feedback per day", str(config.feedback.frequency))
    table.add_row("Personality", config.feedback.personality)
    table.add_row("OpenAI key", "set" if config.providers.openai_api_key else "missing")
    table.add_row("Claude key", "set" if config.providers.claude_api_key else "missing")
    console.print(table)


@app.command()
def budget(ctx: typer.Context):
    """Show month-to-date LLM spend against the monthly budget."""
    snapshot = _with_coach(_db_path(ctx), lambda coach: coach.gateway.check_budget())

    console.print("\n[bold]LLM Budget[/bold]")
    console.print("-" * 40)
    console.print(f"Monthly budget: {_format_currency(snapshot.limit)}")
    console.print(f"Spent this month: {_format_currency(snapshot.spend)}")
    console.print(f"Remaining: {_format_currency(snapshot.remaining)}")
    console.print(f"Used: {snapshot.percent_used:,.1f}%")
    if snapshot.over_budget:
        console.print("[bold red]Over budget[/]")
    elif snapshot.should_warn:
        console.print("[bold yellow]Approaching budget limit[/]")


@app.command()
def usage(ctx: typer.Context):
    """Show this month's usage per provider and model."""
    rows = _with_coach(_db_path(ctx), lambda coach: coach.accountant.monthly_breakdown())
    if not rows:
        console.print("\n[bold yellow]No LLM usage recorded this month[/]")
        return

    table = Table(title="LLM usage this month")
    for column in ("Provider", "Model", "Requests", "Input tokens", "Output tokens", "Cost"):
        table.add_column(column)
    for row in rows:
        table.add_row(
            str(row["provider"]),
            str(row["model"]),
            str(row["request_count"]),
            f"{row['input_tokens']:,}",
            f"{row['output_tokens']:,}",
            f"${row['total_cost']:,.4f}",
        )
    console.print(table)


@app.command()
def stats(ctx: typer.Context):
    """Show today's activity by application and category."""
    today = _with_coach(_db_path(ctx), lambda coach: coach.sampler.get_today_stats())
    if not today.sessions:
        console.print("\n[bold yellow]No activity recorded today[/]")
        return

    console.print(f"\nActive time: {_format_duration(today.total_time)}")
    console.print(f"Average productivity: {today.avg_productivity:.0f}%")

    table = Table(title="Applications")
    for column in ("App", "Time", "Sessions", "Productivity"):
        table.add_column(column)
    for app_name, totals in today.top_apps(limit=len(today.app_breakdown)):
        table.add_row(app_name, _format_duration(totals.time), str(totals.sessions), f"{totals.productivity:.0f}%")
    console.print(table)

    table = Table(title="Categories")
    for column in ("Category", "Time", "Productivity"):
        table.add_column(column)
    for category, totals in sorted(today.category_breakdown.items(), key=lambda item: -item[1].time):
        table.add_row(category, _format_duration(totals.time), f"{totals.productivity:.0f}%")
    console.print(table)


@app.command()
def feedback(ctx: typer.Context):
    """Generate feedback on today's progress now."""
    result = _with_coach(_db_path(ctx), lambda coach: coach.scheduler.generate_feedback(MANUAL))
    if not result.success:
        console.print(f"[red]Could not generate feedback:[/] {result.error}")
        sys.exit(EXIT_CODE_FAIL)

    entry = result.entry
    console.print(f"\n{entry.content}\n")
    console.print(
        f"[dim]#{entry.id} · mood {entry.mood_score:.0f} · productivity {entry.productivity_score:.0f}[/]"
    )


@app.command()
def history(
    ctx: typer.Context,
    limit: int = typer.Option(10, "--limit", "-n", help="Number of entries to show")
):
    """List recent feedback, newest first."""
    entries = _with_coach(_db_path(ctx), lambda coach: coach.scheduler.get_recent_feedback(limit))
    if not entries:
        console.print("\n[dim]No feedback yet.[/]")
        return

    table = Table(title="Recent feedback")
    for column in ("ID", "When", "Trigger", "Mood", "Rating", "Feedback"):
        table.add_column(column)
    for entry in entries:
        table.add_row(
            str(entry.id),
            entry.timestamp.strftime("%Y-%m-%d %H:%M"),
            entry.trigger_kind,
            f"{entry.mood_score:.0f}",
            str(entry.user_rating) if entry.user_rating is not None else "-",
            entry.content,
        )
    console.print(table)


@app.command()
def rate(ctx: typer.Context, feedback_id: int, rating: int):
    """Rate a feedback entry from 1 to 5."""
    ok = _with_coach(_db_path(ctx), lambda coach: coach.scheduler.rate_feedback(feedback_id, rating))
    if not ok:
        console.print(f"[red]Could not rate feedback #{feedback_id}[/] (unknown id or rating outside 1-5)")
        sys.exit(EXIT_CODE_FAIL)
    console.print(f"[green]✓[/] Rated feedback #{feedback_id}: {rating}")


@app.command()
def models(ctx: typer.Context):
    """List models installed on the local inference server."""
    available = _with_coach(_db_path(ctx), lambda coach: coach.gateway.list_local_models())
    if not available:
        console.print("[yellow]No local models found.[/] Is the local inference server running?")
        return
    for model in available:
        console.print(f"- {model.get('name', model)}")


@app.command("seed-demo")
def seed_demo(ctx: typer.Context):
    """Insert sample tasks, habits, activity and usage for trying the CLI."""
    seed_demo_data(_db_path(ctx))
    console.print("[green]✓[/] Demo data inserted")


@app.command()
def run(ctx: typer.Context):
    """Run activity monitoring and scheduled feedback until interrupted."""
    coach = _build_coach(_db_path(ctx))
    console.print("[green]✓[/] Focus coach running. Press Ctrl+C to stop.")
    try:
        asyncio.run(coach.run())
    except KeyboardInterrupt:
        console.print("\nStopped.")


if __name__ == "__main__":
    app()
