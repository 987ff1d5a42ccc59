"""
Simulation blueprint for Monte Carlo retirement runs.

This module provides the API endpoint that accepts a portfolio snapshot,
simulation parameters and guaranteed incomes, runs the simulation
synchronously and returns the aggregate result.
"""

from typing import Any, Dict, List

from flask import Blueprint, current_app, jsonify, request
from pydantic import BaseModel, StrictBool, ValidationError

from retirement_sim.models.asset_classes import Portfolio
from retirement_sim.models.income_engine import ScheduledIncome
from retirement_sim.models.simulation.config import SimulationParameters
from retirement_sim.models.simulation.errors import ConfigurationError
from retirement_sim.models.simulation.result import SimulationResult
from retirement_sim.services.orchestration_service import MonteCarloOrchestrator

simulation_bp = Blueprint("simulation", __name__, url_prefix="/api")


class ResponseOptions(BaseModel):
    """Request flags controlling the response body."""

    include_runs: StrictBool = False


def _validation_details(error: ValidationError) -> List[Dict[str, Any]]:
    """JSON-safe summary of pydantic validation errors."""
    return [
        {"loc": [str(part) for part in detail["loc"]], "msg": detail["msg"]}
        for detail in error.errors()
    ]


@simulation_bp.route("/simulations", methods=["POST"])
def run_simulation() -> Any:
    """Run a Monte Carlo simulation.

    Request body:
        portfolio: {"total_value": float, "allocation": {"weights": {...}}}
        parameters: SimulationParameters fields (num_paths defaults to settings)
        incomes: list of ScheduledIncome fields (optional)
        include_runs: whether to include per-path runs (default false)

    Returns:
        JSON response with the simulation result
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({"error": "Request body must be a JSON object"}), 400

    settings = current_app.config["SETTINGS"]
    series = current_app.extensions.get("historical_returns")

    try:
        portfolio = Portfolio.model_validate(data.get("portfolio") or {})

        parameter_data = dict(data.get("parameters") or {})
        parameter_data.setdefault("num_paths", settings.simulation_default_paths)
        parameters = SimulationParameters.model_validate(parameter_data)

        incomes = [
            ScheduledIncome.model_validate(income) for income in data.get("incomes") or []
        ]
        options = ResponseOptions(include_runs=data.get("include_runs", False))
    except ValidationError as e:
        return jsonify({"error": "Invalid request", "details": _validation_details(e)}), 400

    if parameters.sampling_mode.is_bootstrap and series is None:
        return (
            jsonify(
                {
                    "error": "No historical return data loaded",
                    "message": "Use sampling_mode 'parametric' or configure HISTORICAL_RETURNS_PATH",
                }
            ),
            409,
        )

    orchestrator = MonteCarloOrchestrator.from_settings(settings, series)

    try:
        result = orchestrator.run(portfolio, parameters, incomes)
    except ConfigurationError as e:
        return jsonify({"error": "Invalid configuration", "details": e.problems}), 400
    except Exception as e:
        current_app.logger.error(f"Error running simulation: {str(e)}")
        return jsonify({"error": "Internal server error"}), 500

    if isinstance(result, SimulationResult) and not options.include_runs:
        result = result.without_run_detail()

    return jsonify(result.model_dump(mode="json")), 200
