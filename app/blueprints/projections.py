"""
Projection blueprint for household cash-flow projections.

This module provides API endpoints for ad-hoc projections, debt schedules,
projection runs of stored households, and run status and CSV export.
"""

import json
from contextlib import contextmanager
from typing import Any, Iterator

from flask import Blueprint, Response, current_app, jsonify, request
from pydantic import ValidationError
from sqlalchemy.orm import Session

from app.database.base import get_db
from app.models.debt_amortization import DebtAmortizer
from app.models.financial_items import DebtItem
from app.models.household import Profile
from app.models.simulation.config import ProjectionConfig
from app.services.household_repository import HouseholdNotFoundError
from app.services.projection_service import ProjectionService, RunNotFoundError

projections_bp = Blueprint("projections", __name__, url_prefix="/api")


@contextmanager
def _db_session() -> Iterator[Session]:
    sessions = get_db()
    try:
        yield next(sessions)
    finally:
        sessions.close()


def _validation_response(error: ValidationError, message: str) -> Any:
    details = json.loads(error.json(include_url=False))
    return jsonify({"error": message, "details": details}), 400


def _run_payload(run: Any) -> dict:
    return {
        "run_id": run.id,
        "household_id": run.household_id,
        "status": run.status,
        "fingerprint": run.fingerprint,
        "start_year": run.start_year,
        "end_year": run.end_year,
        "summary": run.summary,
        "error_message": run.error_message,
        "created_at": run.created_at.isoformat() if run.created_at else None,
        "completed_at": run.completed_at.isoformat() if run.completed_at else None,
    }


@projections_bp.route("/projections", methods=["POST"])
def create_projection() -> Any:
    """Run a projection for an inline household description.

    Query Args:
        monthly: "true" to include monthly snapshots

    Returns:
        JSON projection result, or 400 on invalid input
    """
    try:
        data = request.get_json(silent=True) or {}
        config = ProjectionConfig.model_validate(data)
        include_monthly = request.args.get("monthly", "false").lower() == "true"

        result = ProjectionService().project(config)
        return jsonify(result.to_dict(include_monthly=include_monthly))

    except ValidationError as e:
        return _validation_response(e, "Invalid projection input")
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception as e:
        current_app.logger.error(f"Error running projection: {str(e)}")
        return jsonify({"error": "Internal server error"}), 500


@projections_bp.route("/debts/schedule", methods=["POST"])
def debt_schedule() -> Any:
    """Compute the repayment schedule of a single debt.

    Request body:
        debt: Debt item fields
        base_rate: Optional reference rate for floating debt (%)
        profile: Optional profile, needed for retirement-linked maturities
        include_payments: Whether to return every period

    Returns:
        JSON with the monthly payment and total interest
    """
    try:
        data = request.get_json(silent=True) or {}
        debt = DebtItem.model_validate(data.get("debt") or {})
        profile = (
            Profile.model_validate(data["profile"]) if data.get("profile") else None
        )
        schedule = DebtAmortizer.schedule(
            debt, base_rate=data.get("base_rate"), profile=profile
        )
        exclude = None if data.get("include_payments") else {"payments"}
        payload = schedule.model_dump(mode="json", exclude=exclude)
        payload["total_paid"] = schedule.total_paid
        return jsonify(payload)

    except ValidationError as e:
        return _validation_response(e, "Invalid debt")
    except Exception as e:
        current_app.logger.error(f"Error computing debt schedule: {str(e)}")
        return jsonify({"error": "Internal server error"}), 500


@projections_bp.route("/households/<int:household_id>/runs", methods=["POST"])
def start_run(household_id: int) -> Any:
    """Project a stored household and record the run.

    Args:
        household_id: ID of the household to project

    Returns:
        JSON response with the run and its summary
    """
    try:
        data = request.get_json(silent=True) or {}
        with _db_session() as db:
            run = ProjectionService(db=db).run_for_household(
                household_id,
                start_year=data.get("start_year"),
                start_month=data.get("start_month"),
                years=data.get("years"),
            )
            payload = _run_payload(run)
        return jsonify(payload), 201

    except HouseholdNotFoundError:
        return jsonify({"error": "Household not found"}), 404
    except ValidationError as e:
        return _validation_response(e, "Stored household is invalid")
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception as e:
        current_app.logger.error(f"Error running household {household_id}: {str(e)}")
        return jsonify({"error": "Projection failed", "message": str(e)}), 500


@projections_bp.route("/runs/<int:run_id>", methods=["GET"])
def get_run(run_id: int) -> Any:
    """Get the status and summary of a projection run."""
    try:
        with _db_session() as db:
            run = ProjectionService(db=db).get_run(run_id)
            payload = _run_payload(run)
            payload["years"] = [row.year for row in run.snapshot_rows]
        return jsonify(payload)

    except RunNotFoundError:
        return jsonify({"error": "Run not found"}), 404
    except Exception as e:
        current_app.logger.error(f"Error getting run status: {str(e)}")
        return jsonify({"error": "Internal server error"}), 500


@projections_bp.route("/runs/<int:run_id>/export.csv", methods=["GET"])
def export_run(run_id: int) -> Any:
    """Download the yearly snapshots of a run as CSV."""
    try:
        with _db_session() as db:
            text = ProjectionService(db=db).export_run_csv(run_id)
        return Response(
            text,
            mimetype="text/csv",
            headers={"Content-Disposition": f"attachment; filename=run-{run_id}.csv"},
        )

    except RunNotFoundError:
        return jsonify({"error": "Run not found"}), 404
    except Exception as e:
        current_app.logger.error(f"Error exporting run {run_id}: {str(e)}")
        return jsonify({"error": "Internal server error"}), 500
