# Overview: Flask API routes for driver-day summaries, loading and cash reconciliation; returns JSON responses.

# backend/salesops/routes/summaries.py
"""
Driver Daily Summary API Routes

DESIGN:
- Summaries are fetched-or-created per (driver, date)
- Loading is declared against a summary and frozen once the day is locked
- Reconciliation view is computed from all three logs on every request
- finalize / unlock carry the caller's role into the engine

SECURITY:
- All endpoints require authentication
- Locked days are writable only by admin / manager (enforced in services)
"""

from flask import Blueprint, request, jsonify, g

from ..domain import ReconciliationStatus
from ..validation import ValidationError, coerce_int, coerce_optional_int, coerce_date, require_payload
from ..services import summary_service, loading_service, reconciliation_service
from ..decorators import require_auth
from ..errors import SERVICE_ERRORS, error_response, server_error


summaries_bp = Blueprint("summaries", __name__, url_prefix="/api/sales-ops")


def _driver_and_date(args) -> tuple[int, object]:
    driver_id = coerce_int(args.get("driver_id"), "driver_id", minimum=1)
    sale_date = coerce_date(args.get("date") or args.get("sale_date"), "date")
    return driver_id, sale_date


# =============================================================================
# SUMMARIES
# =============================================================================

@summaries_bp.post("/summaries")
@require_auth
def get_or_create_summary_route():
    """
    Fetch-or-create the summary for a driver-day.

    Request body:
    {
        "driver_id": 3,
        "sale_date": "2025-05-30",
        "route_id": 2  (optional)
    }
    """
    try:
        data = require_payload(request.get_json(silent=True))
        driver_id, sale_date = _driver_and_date(data)
        route_id = coerce_optional_int(data.get("route_id"), "route_id", minimum=1)

        summary, created = summary_service.get_or_create_summary(
            driver_id, sale_date, route_id=route_id, user_id=g.current_user.id
        )
        return jsonify({"summary": summary.to_dict(), "created": created}), 201 if created else 200

    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        return server_error("Failed to fetch or create driver daily summary")


@summaries_bp.get("/summaries")
@require_auth
def list_summaries_route():
    try:
        driver_id = coerce_optional_int(request.args.get("driver_id"), "driver_id", minimum=1)
        raw_date = request.args.get("sale_date") or request.args.get("date")
        sale_date = coerce_date(raw_date, "sale_date") if raw_date else None

        status = None
        if request.args.get("status"):
            try:
                status = ReconciliationStatus.parse(request.args["status"])
            except ValueError as e:
                raise ValidationError(str(e))

        summaries = summary_service.list_summaries(driver_id, sale_date, status)
        return jsonify({"summaries": [s.to_dict() for s in summaries]}), 200

    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        return server_error("Failed to list driver daily summaries")


@summaries_bp.get("/summaries/<int:summary_id>")
@require_auth
def get_summary_route(summary_id: int):
    try:
        return jsonify({"summary": summary_service.get_summary(summary_id).to_dict()}), 200
    except SERVICE_ERRORS as e:
        return error_response(e)


# =============================================================================
# LOADING
# =============================================================================

@summaries_bp.get("/loading")
@require_auth
def get_loading_route():
    """Fetch-or-create the loading batch for ?driver_id=&date= (&route_id=)."""
    try:
        driver_id, sale_date = _driver_and_date(request.args)
        route_id = coerce_optional_int(request.args.get("route_id"), "route_id", minimum=1)

        summary, batch = loading_service.get_or_create_batch(
            driver_id, sale_date, route_id=route_id, user_id=g.current_user.id
        )
        return jsonify({"summary": summary.to_dict(), "loading_batch": batch.to_dict()}), 200

    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        return server_error("Failed to fetch loading batch")


@summaries_bp.put("/summaries/<int:summary_id>/loading")
@require_auth
def declare_loading_route(summary_id: int):
    """
    Declare (replace) the day's loaded quantities.

    Request body:
    {
        "items": [{"product_id": 1, "quantity_loaded": 40}, ...],
        "notes": "optional"
    }
    """
    try:
        batch = loading_service.declare_loading(
            summary_id,
            request.get_json(silent=True),
            role=g.current_user.role,
            user_id=g.current_user.id,
        )
        return jsonify({"loading_batch": batch.to_dict()}), 200

    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        return server_error("Failed to declare loading")


# =============================================================================
# RECONCILIATION
# =============================================================================

@summaries_bp.get("/reconciliation")
@require_auth
def reconciliation_view_route():
    """
    Summary plus per-product loaded / sold / returned / loss rows.

    Query: ?driver_id=3&date=2025-05-30
    """
    try:
        driver_id, sale_date = _driver_and_date(request.args)
        return jsonify(summary_service.reconciliation_view(driver_id, sale_date)), 200

    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        return server_error("Failed to build reconciliation view")


@summaries_bp.get("/summaries/<int:summary_id>/reconcile/preview")
@require_auth
def reconcile_preview_route(summary_id: int):
    try:
        result = reconciliation_service.preview(summary_id, request.args.get("cash_collected_cents"))
        return jsonify(result), 200
    except SERVICE_ERRORS as e:
        return error_response(e)


@summaries_bp.put("/summaries/<int:summary_id>/reconcile")
@require_auth
def finalize_route(summary_id: int):
    """
    Record counted cash and a status.

    Request body:
    {
        "cash_collected_cents": 95000,
        "reconciliation_status": "Cash Short",
        "reconciliation_notes": "optional",
        "version_id": 4  (optional; 409 if the day changed since it was loaded)
    }
    """
    try:
        data = require_payload(request.get_json(silent=True))
        summary = reconciliation_service.finalize(
            summary_id,
            data.get("cash_collected_cents"),
            data.get("reconciliation_status"),
            data.get("reconciliation_notes"),
            role=g.current_user.role,
            actor_id=g.current_user.id,
            expected_version=coerce_optional_int(data.get("version_id"), "version_id", minimum=1),
        )
        suggested = reconciliation_service.suggest_status(summary.cash_difference_cents)
        return jsonify({"summary": summary.to_dict(), "suggested_status": suggested.value}), 200

    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        return server_error("Failed to finalize reconciliation")


@summaries_bp.post("/summaries/<int:summary_id>/unlock")
@require_auth
def unlock_route(summary_id: int):
    try:
        data = request.get_json(silent=True) or {}
        summary = reconciliation_service.unlock(
            summary_id,
            role=g.current_user.role,
            actor_id=g.current_user.id,
            note=data.get("note"),
        )
        return jsonify({"summary": summary.to_dict()}), 200

    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        return server_error("Failed to unlock driver day")


@summaries_bp.get("/summaries/<int:summary_id>/events")
@require_auth
def list_events_route(summary_id: int):
    try:
        events = reconciliation_service.list_events(summary_id)
        return jsonify({"events": [e.to_dict() for e in events]}), 200
    except SERVICE_ERRORS as e:
        return error_response(e)
