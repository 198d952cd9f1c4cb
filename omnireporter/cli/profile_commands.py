"""Profile CLI commands."""

from __future__ import annotations

import typer
from rich.console import Console
from rich.table import Table

from omnireporter.config.profiles import ProfileManager
from omnireporter.config.reporter_config import ReporterConfig
from omnireporter.exceptions import ProfileAlreadyExist, ProfileNotFound

profile_app = typer.Typer(help="Manage reporter profiles.")
console = Console()


def _mask(secret: str | None) -> str:
    if not secret:
        return "-"
    return f"{'*' * 8}{secret[-4:]}" if len(secret) > 4 else "*" * 8


def _print_profile(name: str, reporter_config: ReporterConfig) -> None:
    table = Table(title=f"Profile: {name}")
    table.add_column("Field", style="bold")
    table.add_column("Value")
    for field_name, value in reporter_config.model_dump().items():
        shown = _mask(value) if field_name == "api_key" else str(value or "-")
        table.add_row(field_name, shown)
    console.print(table)


@profile_app.command("create")
def create_profile(
    name: str = typer.Argument(..., help="Name of the profile."),
    base_url: str | None = typer.Option(None, "--base-url", help="API base URL."),
    project_id: str | None = typer.Option(None, "--project-id", help="Project id."),
    api_key: str | None = typer.Option(None, "--api-key", help="Project API key."),
    environment: str | None = typer.Option(
        None, "--environment", help="Default environment label."
    ),
) -> None:
    """Create a profile."""
    try:
        reporter_config = ProfileManager().create_profile(
            name,
            {
                "base_url": base_url,
                "project_id": project_id,
                "api_key": api_key,
                "environment": environment,
            },
        )
    except ProfileAlreadyExist as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from exc
    _print_profile(name, reporter_config)


@profile_app.command("update")
def update_profile(
    name: str = typer.Argument(..., help="Name of the profile."),
    base_url: str | None = typer.Option(None, "--base-url", help="API base URL."),
    project_id: str | None = typer.Option(None, "--project-id", help="Project id."),
    api_key: str | None = typer.Option(None, "--api-key", help="Project API key."),
    environment: str | None = typer.Option(
        None, "--environment", help="Default environment label."
    ),
) -> None:
    """Update fields of an existing profile."""
    try:
        reporter_config = ProfileManager().update_profile(
            name,
            {
                "base_url": base_url,
                "project_id": project_id,
                "api_key": api_key,
                "environment": environment,
            },
        )
    except ProfileNotFound as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from exc
    _print_profile(name, reporter_config)


@profile_app.command("list")
def list_profiles() -> None:
    """List the stored profiles."""
    names = ProfileManager().list_profiles()
    if not names:
        typer.echo("No profiles found.")
        return
    for name in names:
        typer.echo(name)


@profile_app.command("show")
def show_profile(name: str = typer.Argument(..., help="Name of the profile.")) -> None:
    """Show a profile with its API key masked."""
    try:
        reporter_config = ProfileManager().get_profile(name)
    except ProfileNotFound as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from exc
    _print_profile(name, reporter_config)
