"""Retirement Simulation Flask Application Factory."""

import logging
from typing import Optional

from flask import Flask

from retirement_sim.config import Settings, get_global_settings
from retirement_sim.models.historical_data import load_historical_returns

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None) -> Flask:
    """Create and configure the Flask application.

    Args:
        settings: Settings to use (defaults to the global settings)

    Returns:
        Flask: Configured Flask application instance
    """
    app = Flask(__name__)

    # Configuration from Pydantic Settings
    settings = settings or get_global_settings()
    app.config["SECRET_KEY"] = settings.secret_key
    app.config["ENV"] = settings.app_env
    app.config["DEBUG"] = settings.app_env == "development"
    app.config["TESTING"] = settings.app_env == "testing"
    app.config["SETTINGS"] = settings

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger("retirement_sim").setLevel(settings.log_level)

    # Historical returns are loaded once and shared read-only by every request
    app.extensions["historical_returns"] = None
    if settings.historical_returns_path:
        app.extensions["historical_returns"] = load_historical_returns(
            settings.historical_returns_path
        )
    else:
        logger.warning(
            "HISTORICAL_RETURNS_PATH is not set; only parametric simulations are available"
        )

    # Register blueprints
    from retirement_sim.blueprints.health import health_bp
    from retirement_sim.blueprints.simulation import simulation_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(simulation_bp)

    return app
