"""
Web server — Flask app factory.

Creates the Flask application that exposes the recipe API. The
execution service is built once per app and shared by every request;
nothing is held in module-level globals.
"""

from __future__ import annotations

import logging
from pathlib import Path

from flask import Flask, current_app

from recipeplane.core.config.loader import load_config
from recipeplane.core.engine.service import RecipeExecutionService

logger = logging.getLogger(__name__)

_SERVICE_KEY = "recipeplane.service"


def create_app(
    config_path: Path | None = None,
    service: RecipeExecutionService | None = None,
    state_dir: Path | None = None,
) -> Flask:
    """Create and configure the Flask application.

    Args:
        config_path: Path to recipes.yml (searched upward if None).
            Ignored when ``service`` is given.
        service: Pre-built execution service (tests, embedding).
        state_dir: State directory reported by health checks.

    Returns:
        Configured Flask application.

    Raises:
        ConfigError: If no service is given and the config is invalid.
    """
    app = Flask(__name__)

    if service is None:
        config = load_config(config_path)
        service = RecipeExecutionService.from_config(config)
        state_dir = state_dir or Path(config.state_dir)

    app.config["CONFIG_PATH"] = str(config_path) if config_path else None
    app.config["STATE_DIR"] = str(state_dir) if state_dir else None
    app.extensions[_SERVICE_KEY] = service

    from recipeplane.ui.web.routes_api import api_bp
    from recipeplane.ui.web.routes_events import events_bp
    from recipeplane.ui.web.routes_recipes import recipes_bp

    app.register_blueprint(api_bp, url_prefix="/api")
    app.register_blueprint(recipes_bp, url_prefix="/api")
    app.register_blueprint(events_bp, url_prefix="/api")

    logger.info("Web app created (%d recipes)", len(service.provider))
    return app


def get_service() -> RecipeExecutionService:
    """The execution service of the current app."""
    return current_app.extensions[_SERVICE_KEY]


def run_server(
    app: Flask,
    host: str = "127.0.0.1",
    port: int = 8000,
    debug: bool = False,
) -> None:
    """Run the Flask development server; cancel executions on exit."""
    logger.info("Starting recipe API on %s:%d", host, port)
    try:
        app.run(host=host, port=port, debug=debug, use_reloader=False, threaded=True)
    finally:
        app.extensions[_SERVICE_KEY].shutdown()
