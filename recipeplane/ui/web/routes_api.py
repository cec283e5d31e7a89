"""
API routes — service-level endpoints (health).
"""

from __future__ import annotations

from pathlib import Path

from flask import Blueprint, current_app, jsonify

from recipeplane.core.observability.health import check_system_health
from recipeplane.ui.web.server import get_service

api_bp = Blueprint("api", __name__)


@api_bp.route("/health")
def api_health():  # type: ignore[no-untyped-def]
    """System health status."""
    state_dir = current_app.config.get("STATE_DIR")
    health = check_system_health(
        get_service(),
        state_dir=Path(state_dir) if state_dir else None,
    )
    return jsonify(health.to_dict())
