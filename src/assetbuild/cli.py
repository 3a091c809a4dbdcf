"""
Command line interface for the asset build pipeline.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from . import __version__
from .config import DEFAULT_CONFIG_NAME, BuildConfig, ConfigError, get_environment, load_config
from .emit import BuildMode, EmissionError, clean_stale_outputs
from .manifest import ManifestError, load_manifest
from .pipeline import BuildError, BuildReport, clean_pattern, execute_build, watch_build

console = Console()
app = typer.Typer(help="Build fingerprinted static assets from templates, scripts and stylesheets.")
logger = logging.getLogger(__name__)

LOG_LEVELS = ["critical", "error", "warning", "info", "debug"]


def _configure_logging(level_name: str) -> None:
    env_override = get_environment().log_level
    level_str = (env_override or level_name or "info").upper()
    if level_str not in {lvl.upper() for lvl in LOG_LEVELS}:
        level_str = "INFO"
    logging.basicConfig(
        level=getattr(logging, level_str, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    logger.debug("Logging configured at %s", level_str)


def _resolve_config_path(value: Optional[Path]) -> Path:
    """Fall back to ASSETBUILD_CONFIG, then ./assetbuild.toml; ensure the file exists."""
    if value is None:
        value = Path(get_environment().config or DEFAULT_CONFIG_NAME)
    resolved = value.expanduser().resolve()
    if not resolved.exists():
        raise typer.BadParameter(f"No config file found at {resolved}")
    if not resolved.is_file():
        raise typer.BadParameter(f"Config path must be a file, got directory: {resolved}")
    return resolved


def _resolve_mode(value: Optional[BuildMode]) -> BuildMode:
    if value is not None:
        return value
    env_mode = get_environment().mode
    if not env_mode:
        return BuildMode.DEVELOPMENT
    try:
        return BuildMode(env_mode.strip().lower())
    except ValueError as exc:
        raise typer.BadParameter(
            f"ASSETBUILD_MODE must be 'development' or 'production', got '{env_mode}'"
        ) from exc


def _load_config_or_exit(path: Path) -> BuildConfig:
    try:
        return load_config(path)
    except ConfigError as exc:
        console.print(f"[bold red]Configuration error:[/] {escape(str(exc))}")
        raise typer.Exit(code=1) from exc


def _print_build_report(report: BuildReport, config: BuildConfig) -> None:
    summary = Table(title="Build Summary")
    summary.add_column("Key")
    summary.add_column("Value", overflow="fold")
    summary.add_row("Config hash", config.hash[:12])
    for key, value in report.summary_rows():
        summary.add_row(key, value)
    console.print(summary)

    assets = Table(title="Emitted Assets")
    assets.add_column("Logical name")
    assets.add_column("Resolved path", overflow="fold")
    for asset in report.assets:
        assets.add_row(asset.logical_name, asset.resolved_path)
    console.print(assets)

    for name, error in report.template_errors.items():
        console.print(f"[bold yellow]Template error in entry '{name}':[/] {escape(str(error))}")


ConfigOption = typer.Option(
    None,
    "--config",
    "-c",
    help=f"Path to the build file (defaults to $ASSETBUILD_CONFIG or ./{DEFAULT_CONFIG_NAME}).",
    callback=_resolve_config_path,
)
ModeOption = typer.Option(
    None,
    "--mode",
    "-m",
    help="Build mode (development, production); defaults to $ASSETBUILD_MODE or development.",
    case_sensitive=False,
)


@app.callback(invoke_without_command=True)
def _root_command(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        help="Show assetbuild version and exit.",
        is_flag=True,
    ),
    log_level: str = typer.Option(
        "info",
        "--log-level",
        help="Logging level (critical, error, warning, info, debug).",
        show_default=True,
        case_sensitive=False,
    ),
) -> None:
    """
    Default command when no subcommand is selected.
    """
    _configure_logging(log_level)

    if version:
        console.print(f"[bold green]assetbuild[/] {__version__}")
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        console.print(
            "[bold yellow]assetbuild[/] is ready. Run [cyan]assetbuild build --config assetbuild.toml[/] "
            "to compile your assets.",
        )


@app.command()
def build(
    config: Optional[Path] = ConfigOption,
    mode: Optional[BuildMode] = ModeOption,
    use_manifest: bool = typer.Option(
        True,
        "--manifest/--no-manifest",
        help="Resolve template asset names through the previous production manifest.",
    ),
    clean: Optional[bool] = typer.Option(
        None,
        "--clean/--no-clean",
        help="Remove stale fingerprinted files after a production build (default from the build file).",
        show_default=False,
    ),
    workers: Optional[int] = typer.Option(
        None,
        "--workers",
        "-w",
        min=1,
        help="Number of threads compiling entries in parallel.",
    ),
    strict: bool = typer.Option(
        False,
        "--strict",
        help="Exit with an error status when any template failed to render.",
    ),
) -> None:
    """
    Compile every entry, emit outputs and write the manifest.
    """
    build_mode = _resolve_mode(mode)
    logger.info("Loading configuration from %s", config)
    build_config = _load_config_or_exit(config)

    try:
        report = execute_build(
            build_config,
            build_mode,
            use_manifest=use_manifest,
            clean=clean,
            max_workers=workers,
        )
    except (ManifestError, BuildError, EmissionError) as exc:
        console.print(f"[bold red]Build failed:[/] {escape(str(exc))}")
        raise typer.Exit(code=1) from exc

    _print_build_report(report, build_config)
    if report.template_errors:
        if strict:
            console.print("[bold red]Template errors present; failing because of --strict.[/]")
            raise typer.Exit(code=1)
        console.print("[bold yellow]Build completed with template errors.[/]")
        return
    console.print("[bold green]Build completed.[/]")


@app.command()
def watch(
    config: Optional[Path] = ConfigOption,
    mode: Optional[BuildMode] = ModeOption,
    use_manifest: bool = typer.Option(
        True,
        "--manifest/--no-manifest",
        help="Resolve template asset names through the previous production manifest.",
    ),
    interval: float = typer.Option(
        1.0,
        "--interval",
        "-i",
        min=0.05,
        help="Seconds between checks for changed sources and fragments.",
    ),
) -> None:
    """
    Build, then rebuild whenever a source, fragment or the build file changes.
    """
    build_mode = _resolve_mode(mode)
    _load_config_or_exit(config)
    console.print(f"[yellow]Watching in {build_mode.value} mode; press Ctrl+C to stop.[/]")

    def _announce(report: BuildReport) -> None:
        status = "[bold yellow]with template errors[/]" if report.template_errors else "[bold green]ok[/]"
        console.print(f"Built {len(report.assets)} asset(s) {status}")
        for name, error in report.template_errors.items():
            console.print(f"  • {name}: {escape(str(error))}")

    try:
        watch_build(config, build_mode, use_manifest=use_manifest, interval=interval, on_build=_announce)
    except ConfigError as exc:
        console.print(f"[bold red]Configuration error:[/] {escape(str(exc))}")
        raise typer.Exit(code=1) from exc
    except KeyboardInterrupt:
        console.print("[bold blue]Stopped watching.[/]")


@app.command()
def clean(
    config: Optional[Path] = ConfigOption,
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="List stale files without deleting them.",
    ),
) -> None:
    """
    Remove fingerprinted files the current manifest no longer references.
    """
    build_config = _load_config_or_exit(config)
    try:
        manifest = load_manifest(build_config.manifest_path)
    except ManifestError as exc:
        console.print(f"[bold red]Manifest error:[/] {escape(str(exc))}")
        raise typer.Exit(code=1) from exc
    if not len(manifest):
        console.print(
            f"[bold yellow]No manifest entries at {build_config.manifest_path}; "
            "run a production build first. Nothing removed.[/]"
        )
        return

    report = clean_stale_outputs(
        build_config.output_root,
        manifest.entries.values(),
        dry_run=dry_run,
        pattern=clean_pattern(build_config),
    )
    table = Table(title="Clean Summary (dry run)" if dry_run else "Clean Summary")
    table.add_column("Key")
    table.add_column("Value", overflow="fold")
    for key, value in report.summary_rows():
        table.add_row(key, value)
    console.print(table)
    for path in report.removed:
        console.print(f"- {path.name}")


@app.command()
def resolve(
    names: List[str] = typer.Argument(..., help="Logical asset names, e.g. app.js."),
    config: Optional[Path] = ConfigOption,
) -> None:
    """
    Show what templates would embed for logical asset names.
    """
    build_config = _load_config_or_exit(config)
    try:
        manifest = load_manifest(build_config.manifest_path)
    except ManifestError as exc:
        console.print(f"[bold red]Manifest error:[/] {escape(str(exc))}")
        raise typer.Exit(code=1) from exc

    table = Table(title="Asset Resolution")
    table.add_column("Logical name")
    table.add_column("Resolved path", overflow="fold")
    table.add_column("In manifest")
    for name in names:
        table.add_row(name, manifest.resolve(name), "yes" if name in manifest else "no")
    console.print(table)


def main() -> None:
    """
    Entry-point used by the console script defined in pyproject.toml.
    """
    app()
