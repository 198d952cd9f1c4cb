"""Omni reporter CLI entry point."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path

import typer
from pydantic import ValidationError
from rich.console import Console

from omnireporter import __version__
from omnireporter.cli.profile_commands import profile_app
from omnireporter.config.config_manager import ConfigManager
from omnireporter.config.profiles import ProfileManager
from omnireporter.config.reporter_config import ReporterConfig
from omnireporter.exceptions import ConfigurationError, OmniReporterError
from omnireporter.models import (
    ArtifactDescriptor,
    ArtifactKind,
    BuildHandle,
    TestCaseRecord,
    TestCaseResult,
)
from omnireporter.orchestrator import Orchestrator

app = typer.Typer(add_completion=False, help="Omni dashboard reporter.")
build_app = typer.Typer(help="Start and complete dashboard builds.")
console = Console()

CONFIG_ERROR_EXIT_CODE = 2


def _version_callback(value: bool) -> bool:
    if value:
        typer.echo(__version__)
        raise typer.Exit()
    return value


@app.callback()
def callback(
    ctx: typer.Context,
    profile: str | None = typer.Option(
        None, "--profile", "-p", help="Reporter profile to load settings from."
    ),
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        help="Show the omnireporter version and exit.",
        callback=_version_callback,
        is_eager=True,
        is_flag=True,
    ),
) -> None:
    """Handle global CLI options."""
    ctx.obj = {"profile": profile}


def _resolve_config(ctx: typer.Context, environment: str | None) -> ReporterConfig:
    """Resolve a complete configuration or exit with the configuration code."""
    profile = (ctx.obj or {}).get("profile")
    try:
        reporter_config = ConfigManager(
            ProfileManager(), profile=profile
        ).resolve_effective_config({"environment": environment})
        reporter_config.require_complete()
    except ConfigurationError as exc:
        typer.echo(f"Configuration error: {exc}", err=True)
        raise typer.Exit(code=CONFIG_ERROR_EXIT_CODE) from exc
    return reporter_config


def _parse_artifacts(values: list[str], kind: ArtifactKind) -> list[ArtifactDescriptor]:
    """Turn ``NAME=PATH`` options into artifact descriptors."""
    artifacts = []
    for value in values:
        name, sep, path = value.partition("=")
        if not sep or not name or not path:
            raise typer.BadParameter(
                f"Expected NAME=PATH, got {value!r}", param_hint=f"--{kind.value}"
            )
        artifacts.append(ArtifactDescriptor(name=name, path=path, kind=kind))
    return artifacts


def _load_record(record_path: Path) -> TestCaseRecord:
    try:
        return TestCaseRecord.model_validate(json.loads(record_path.read_text()))
    except (OSError, ValueError, ValidationError) as exc:
        typer.echo(f"Invalid test case record {record_path}: {exc}", err=True)
        raise typer.Exit(code=1) from exc


async def _start_build(
    reporter_config: ReporterConfig, environment: str | None
) -> BuildHandle:
    async with Orchestrator(reporter_config) as orchestrator:
        return await orchestrator.begin_build(environment)


async def _complete_build(
    reporter_config: ReporterConfig,
    build_id: str,
    status: str,
    duration: int,
    environment: str | None,
) -> BuildHandle | None:
    async with Orchestrator(reporter_config) as orchestrator:
        build = orchestrator.attach_build(build_id, environment)
        return await orchestrator.end_build(build, status, duration, environment)


async def _submit(
    reporter_config: ReporterConfig,
    build_id: str,
    record: TestCaseRecord,
    artifacts: list[ArtifactDescriptor],
) -> TestCaseResult:
    async with Orchestrator(reporter_config) as orchestrator:
        build = orchestrator.attach_build(build_id)
        return await orchestrator.submit_test_case(build, record, artifacts)


@build_app.command("start")
def start_build(
    ctx: typer.Context,
    environment: str | None = typer.Option(
        None, "--environment", "-e", help="Environment label of the build."
    ),
) -> None:
    """Start a build and print its id."""
    reporter_config = _resolve_config(ctx, environment)
    try:
        build = asyncio.run(_start_build(reporter_config, environment))
    except OmniReporterError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    typer.echo(build.build_id)


@build_app.command("complete")
def complete_build(
    ctx: typer.Context,
    build_id: str = typer.Argument(..., help="Id of the build to complete."),
    status: str = typer.Option("passed", "--status", "-s", help="Run status."),
    duration: int = typer.Option(
        0, "--duration", "-d", min=0, help="Run duration in milliseconds."
    ),
    environment: str | None = typer.Option(
        None, "--environment", "-e", help="Environment label of the build."
    ),
) -> None:
    """Complete a build started earlier."""
    reporter_config = _resolve_config(ctx, environment)
    try:
        completed = asyncio.run(
            _complete_build(reporter_config, build_id, status, duration, environment)
        )
    except OmniReporterError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    if completed is None:
        typer.echo(f"Build {build_id} could not be completed.", err=True)
        raise typer.Exit(code=1)
    console.print(f"[green]Build {completed.build_id} completed[/green]")


@app.command("submit")
def submit(
    ctx: typer.Context,
    build_id: str = typer.Argument(..., help="Id of the build to report into."),
    record_path: Path = typer.Argument(
        ..., help="JSON file holding the test case record."
    ),
    screenshot: list[str] = typer.Option(
        [], "--screenshot", help="Screenshot to upload, as NAME=PATH."
    ),
    trace: list[str] = typer.Option(
        [], "--trace", help="Trace to upload, as NAME=PATH."
    ),
) -> None:
    """Submit one test case and upload its artifacts."""
    artifacts = _parse_artifacts(screenshot, ArtifactKind.SCREENSHOT)
    artifacts += _parse_artifacts(trace, ArtifactKind.TRACE)
    record = _load_record(record_path)
    reporter_config = _resolve_config(ctx, None)

    try:
        result = asyncio.run(_submit(reporter_config, build_id, record, artifacts))
    except OmniReporterError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    console.print(f"[green]Test case uploaded:[/green] {result.name}")
    for name in result.uploaded:
        console.print(f"  uploaded {name}")
    for name in result.missing:
        console.print(f"  [yellow]no local file for {name}[/yellow]")


app.add_typer(build_app, name="build")
app.add_typer(profile_app, name="profile")


def main() -> None:
    """CLI entrypoint for the omnireporter command."""
    logging.basicConfig(
        level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
    app()


if __name__ == "__main__":
    main()
