"""
Recipe routes — list, inspect, install, uninstall, and step control.

All endpoints return JSON under the /api/ prefix. Recipe errors are
turned into ``{"error": ...}`` responses by a single error handler.
"""

from __future__ import annotations

import logging
import re

from flask import Blueprint, jsonify

from recipeplane.core.errors import BadRequestError, ExecutionNotFound, RecipeError
from recipeplane.ui.web.server import get_service

logger = logging.getLogger(__name__)

recipes_bp = Blueprint("recipes", __name__)

_STEP_NUMBER_RE = re.compile(r"-?[0-9]+")


@recipes_bp.errorhandler(RecipeError)
def _recipe_error(e: RecipeError):  # type: ignore[no-untyped-def]
    if e.status_code >= 500:
        logger.error("Recipe request failed: %s", e.message)
    return jsonify(e.to_dict()), e.status_code


def parse_step_number(raw: str) -> int:
    """Parse the ``stepNumber`` path segment.

    Raises:
        BadRequestError: If the segment is not an integer.
    """
    if not _STEP_NUMBER_RE.fullmatch(raw):
        raise BadRequestError(f"The step number needs to be a number, got '{raw}'")
    return int(raw)


# ── Recipes ──────────────────────────────────────────────────────────


@recipes_bp.route("/recipes")
def list_recipes():  # type: ignore[no-untyped-def]
    """All recipes."""
    return jsonify([d.model_dump(mode="json") for d in get_service().list_recipes()])


@recipes_bp.route("/recipes/<recipe_id>")
def get_recipe(recipe_id: str):  # type: ignore[no-untyped-def]
    """One recipe."""
    return jsonify(get_service().get_recipe(recipe_id).model_dump(mode="json"))


@recipes_bp.route("/recipes/<recipe_id>/install", methods=["POST"])
def install_recipe(recipe_id: str):  # type: ignore[no-untyped-def]
    """Trigger an install; returns before the steps finish."""
    return jsonify(get_service().install(recipe_id).model_dump(mode="json"))


@recipes_bp.route("/recipes/<recipe_id>/uninstall", methods=["POST"])
def uninstall_recipe(recipe_id: str):  # type: ignore[no-untyped-def]
    """Trigger an uninstall; returns before the steps finish."""
    return jsonify(get_service().uninstall(recipe_id).model_dump(mode="json"))


# ── Single steps ─────────────────────────────────────────────────────


@recipes_bp.route("/recipes/<recipe_id>/steps/<step_number>/apply", methods=["POST"])
def apply_step(recipe_id: str, step_number: str):  # type: ignore[no-untyped-def]
    """Apply one step and wait for it."""
    index = parse_step_number(step_number)
    return jsonify(get_service().apply_step(recipe_id, index).model_dump(mode="json"))


@recipes_bp.route("/recipes/<recipe_id>/steps/<step_number>/revert", methods=["POST"])
def revert_step(recipe_id: str, step_number: str):  # type: ignore[no-untyped-def]
    """Revert one step and wait for it."""
    index = parse_step_number(step_number)
    return jsonify(get_service().revert_step(recipe_id, index).model_dump(mode="json"))


# ── Execution handle ─────────────────────────────────────────────────


@recipes_bp.route("/recipes/<recipe_id>/execution")
def get_execution(recipe_id: str):  # type: ignore[no-untyped-def]
    """Latest install/uninstall of a recipe."""
    record = get_service().get_execution(recipe_id)
    if record is None:
        raise ExecutionNotFound(recipe_id)
    return jsonify(record.model_dump(mode="json"))


@recipes_bp.route("/recipes/<recipe_id>/execution/cancel", methods=["POST"])
def cancel_execution(recipe_id: str):  # type: ignore[no-untyped-def]
    """Stop the running execution before its next step."""
    return jsonify({"cancelled": get_service().cancel(recipe_id)})
