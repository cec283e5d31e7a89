"""
Recipe Control Plane — CLI entrypoint.

Usage:
    python -m recipeplane.main --help
    python -m recipeplane.main config check
    python -m recipeplane.main recipes list
    python -m recipeplane.main web --port 8000
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import click

from recipeplane import __version__
from recipeplane.core.observability.logging_config import setup_logging


@click.group()
@click.version_option(version=__version__, prog_name="recipeplane")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to recipes.yml (default: auto-detect).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """Recipe Control Plane — install and revert plugin recipes."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    if debug:
        level = "DEBUG"
    elif verbose:
        level = "INFO"
    elif quiet:
        level = "ERROR"
    else:
        level = os.environ.get("RCP_LOG_LEVEL", "WARNING")

    setup_logging(
        level=level,
        log_file=os.environ.get("RCP_LOG_FILE"),
        log_file_level=os.environ.get("RCP_LOG_FILE_LEVEL"),
        quiet_third_party=not debug,
    )


@cli.group()
def config() -> None:
    """Configuration commands."""


@config.command("check")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def config_check(ctx: click.Context, as_json: bool) -> None:
    """Validate recipes.yml."""
    from recipeplane.core.config.loader import ConfigError, load_config

    try:
        cfg = load_config(ctx.obj.get("config_path"))
    except ConfigError as e:
        if as_json:
            click.echo(json.dumps({"valid": False, "errors": [str(e)]}, indent=2))
        else:
            click.secho("❌ Configuration errors:", fg="red", bold=True)
            click.echo(f"   • {e}")
            click.echo()
        sys.exit(1)

    if as_json:
        click.echo(json.dumps({
            "valid": True,
            "name": cfg.name,
            "recipes": [r.id for r in cfg.recipes],
            "state_dir": cfg.state_dir,
            "plugins_dir": cfg.plugins_dir,
        }, indent=2))
        return

    click.secho("✅ Configuration is valid", fg="green", bold=True)
    click.echo(f"   Instance: {cfg.name}")
    click.echo(f"   Recipes:  {len(cfg.recipes)}")
    click.echo(f"   State:    {cfg.state_dir}")
    click.echo()


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def health(ctx: click.Context, as_json: bool) -> None:
    """Show system health — registry, executions, state directory."""
    from recipeplane.core.config.loader import ConfigError, load_config
    from recipeplane.core.engine.service import RecipeExecutionService
    from recipeplane.core.observability.health import check_system_health

    try:
        cfg = load_config(ctx.obj.get("config_path"))
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)

    service = RecipeExecutionService.from_config(cfg)
    system_health = check_system_health(service, state_dir=Path(cfg.state_dir))

    if as_json:
        click.echo(json.dumps(system_health.to_dict(), indent=2))
        return

    status_icons = {
        "healthy": ("💚", "green"),
        "degraded": ("🟡", "yellow"),
        "unhealthy": ("🔴", "red"),
        "unknown": ("❔", "white"),
    }
    icon, color = status_icons.get(system_health.status, ("❔", "white"))

    click.echo()
    click.secho(f"{icon} System Health: {system_health.status.upper()}", fg=color, bold=True)
    click.echo(f"   {system_health.timestamp}")
    click.echo()

    for component in system_health.components:
        c_icon, c_color = status_icons.get(component.status, ("❔", "white"))
        click.secho(f"   {c_icon} {component.name}", fg=c_color, bold=True)
        click.echo(f"      {component.message}")

        if ctx.obj.get("verbose") and component.details:
            for key, val in component.details.items():
                click.echo(f"      {key}: {val}")

    click.echo()


@cli.command()
@click.option("--host", default="127.0.0.1", help="Bind address.")
@click.option("--port", "-p", default=8000, type=int, help="Port number.")
@click.pass_context
def web(ctx: click.Context, host: str, port: int) -> None:
    """Start the recipe HTTP API."""
    from recipeplane.core.config.loader import ConfigError
    from recipeplane.ui.web.server import create_app, run_server

    try:
        app = create_app(config_path=ctx.obj.get("config_path"))
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)

    debug = ctx.obj.get("debug", False)

    click.echo()
    click.secho("⚡ Recipe Control Plane — HTTP API", bold=True)
    click.echo(f"   API: http://{host}:{port}/api/recipes")
    if debug:
        click.secho("   Logging: DEBUG (all output)", fg="yellow")
    click.echo()

    run_server(app, host=host, port=port, debug=debug)


# ── Register sub-command groups from recipeplane/ui/cli/ ──────────

from recipeplane.ui.cli.recipes import recipes  # noqa: E402

cli.add_command(recipes)


if __name__ == "__main__":
    cli()
