"""Health check blueprint."""

from flask import Blueprint, Response, current_app, jsonify

health_bp = Blueprint("health", __name__)


@health_bp.route("/healthz")
def health_check() -> Response:
    """Health check endpoint.

    Returns:
        JSON response with status and whether historical data is loaded
    """
    series = current_app.extensions.get("historical_returns")
    return jsonify(
        {
            "status": "ok",
            "historical_data_loaded": series is not None,
            "historical_years": len(series) if series is not None else 0,
        }
    )
