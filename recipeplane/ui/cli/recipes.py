"""
CLI commands for recipes.

Thin wrappers around RecipeExecutionService: build the service from
recipes.yml, call it, render the result. Install and uninstall wait
for the background execution so the process does not exit mid-run.
"""

from __future__ import annotations

import json
import sys

import click

from recipeplane.core.models.execution import ExecutionRecord, ExecutionStatus
from recipeplane.core.models.recipe import RecipeDTO
from recipeplane.core.models.step import StepDTO

_STATUS_COLORS = {
    "applied": "green",
    "succeeded": "green",
    "reverted": "cyan",
    "partial": "yellow",
    "in_progress": "yellow",
    "cancelled": "yellow",
    "failed": "red",
    "timed_out": "red",
}


def _service(ctx: click.Context):  # type: ignore[no-untyped-def]
    """Build the execution service from the configured recipes.yml."""
    from recipeplane.core.config.loader import ConfigError, load_config
    from recipeplane.core.engine.service import RecipeExecutionService

    try:
        config = load_config(ctx.obj.get("config_path"))
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)
    return RecipeExecutionService.from_config(config)


def _fail(message: str) -> None:
    click.secho(f"❌ {message}", fg="red")
    sys.exit(1)


def _echo_recipe(dto: RecipeDTO) -> None:
    color = _STATUS_COLORS.get(dto.status, "white")
    click.secho(f"\n📦 {dto.name} ", fg="cyan", bold=True, nl=False)
    click.echo(f"({dto.id}) — ", nl=False)
    click.secho(str(dto.status), fg=color)
    if dto.meta.summary:
        click.echo(f"   {dto.meta.summary}")
    click.echo()
    for i, step in enumerate(dto.steps):
        _echo_step(i, step)
    click.echo()


def _echo_step(index: int, step: StepDTO) -> None:
    code = step.status.code
    color = _STATUS_COLORS.get(code, "white")
    click.echo(f"   {index}. {step.name} [{step.type}] ", nl=False)
    click.secho(str(code), fg=color)
    if step.status.message:
        click.echo(f"      │ {step.status.message}")


def _echo_execution(record: ExecutionRecord) -> None:
    for outcome in sorted(record.outcomes, key=lambda o: o.index):
        if outcome.ok:
            click.secho(f"   ✓ {outcome.index}. {outcome.name}", fg="green", nl=False)
            click.echo(f" ({outcome.duration_ms}ms)")
        elif outcome.failed:
            click.secho(f"   ✗ {outcome.index}. {outcome.name}", fg="red")
            if outcome.error:
                click.echo(f"     │ {outcome.error}")
        else:
            click.secho(f"   ⊘ {outcome.index}. {outcome.name} ", fg="yellow", nl=False)
            click.echo(f"({outcome.message})")

    click.echo()
    color = _STATUS_COLORS.get(record.status, "white")
    click.secho(
        f"   Result: {record.status} — {record.succeeded}/{len(record.outcomes)} steps ok",
        fg=color,
        bold=True,
    )
    click.echo()


@click.group("recipes")
def recipes() -> None:
    """Plugin recipes — list, install, uninstall, step control."""


@recipes.command("list")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def list_cmd(ctx: click.Context, as_json: bool) -> None:
    """List all recipes."""
    dtos = _service(ctx).list_recipes()

    if as_json:
        click.echo(json.dumps([d.model_dump(mode="json") for d in dtos], indent=2))
        return

    if not dtos:
        click.echo("No recipes configured.")
        return

    click.echo()
    for dto in dtos:
        color = _STATUS_COLORS.get(dto.status, "white")
        click.secho(f"   • {dto.id}", bold=True, nl=False)
        click.echo(f"  {dto.name} ({len(dto.steps)} steps) ", nl=False)
        click.secho(str(dto.status), fg=color)
    click.echo()


@recipes.command("show")
@click.argument("recipe_id")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def show_cmd(ctx: click.Context, recipe_id: str, as_json: bool) -> None:
    """Show one recipe and its steps."""
    from recipeplane.core.errors import RecipeError

    try:
        dto = _service(ctx).get_recipe(recipe_id)
    except RecipeError as e:
        _fail(e.message)
        return

    if as_json:
        click.echo(json.dumps(dto.model_dump(mode="json"), indent=2))
        return
    _echo_recipe(dto)


def _execute(ctx: click.Context, recipe_id: str, operation: str, as_json: bool, timeout: float | None) -> None:
    from recipeplane.core.errors import RecipeError

    service = _service(ctx)
    try:
        if operation == "install":
            service.install(recipe_id)
        else:
            service.uninstall(recipe_id)
        record = service.wait(recipe_id, timeout=timeout)
    except RecipeError as e:
        _fail(e.message)
        return

    if record is None:
        _fail(f"No execution recorded for '{recipe_id}'")
        return
    if not record.status.finished:
        service.cancel(recipe_id)
        record = service.wait(recipe_id) or record

    if as_json:
        click.echo(json.dumps(record.model_dump(mode="json"), indent=2))
    else:
        click.secho(f"\n⚡ {operation} — {recipe_id}", fg="cyan", bold=True)
        click.echo(f"   Execution: {record.execution_id}")
        click.echo()
        _echo_execution(record)

    if record.status != ExecutionStatus.SUCCEEDED:
        sys.exit(1)


@recipes.command("install")
@click.argument("recipe_id")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option("--timeout", type=float, default=None, help="Seconds to wait before cancelling.")
@click.pass_context
def install_cmd(ctx: click.Context, recipe_id: str, as_json: bool, timeout: float | None) -> None:
    """Apply every step of a recipe, in order."""
    _execute(ctx, recipe_id, "install", as_json, timeout)


@recipes.command("uninstall")
@click.argument("recipe_id")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option("--timeout", type=float, default=None, help="Seconds to wait before cancelling.")
@click.pass_context
def uninstall_cmd(ctx: click.Context, recipe_id: str, as_json: bool, timeout: float | None) -> None:
    """Revert every step of a recipe, last step first."""
    _execute(ctx, recipe_id, "uninstall", as_json, timeout)


def _single(ctx: click.Context, recipe_id: str, index: int, action: str, as_json: bool) -> None:
    from recipeplane.core.errors import RecipeError

    service = _service(ctx)
    try:
        if action == "apply":
            dto = service.apply_step(recipe_id, index)
        else:
            dto = service.revert_step(recipe_id, index)
    except RecipeError as e:
        _fail(e.message)
        return

    if as_json:
        click.echo(json.dumps(dto.model_dump(mode="json"), indent=2))
        return
    click.echo()
    _echo_step(index, dto)
    click.echo()


@recipes.command("apply-step")
@click.argument("recipe_id")
@click.argument("step_number", type=int)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def apply_step_cmd(ctx: click.Context, recipe_id: str, step_number: int, as_json: bool) -> None:
    """Apply a single step (0-based)."""
    _single(ctx, recipe_id, step_number, "apply", as_json)


@recipes.command("revert-step")
@click.argument("recipe_id")
@click.argument("step_number", type=int)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def revert_step_cmd(ctx: click.Context, recipe_id: str, step_number: int, as_json: bool) -> None:
    """Revert a single step (0-based)."""
    _single(ctx, recipe_id, step_number, "revert", as_json)
