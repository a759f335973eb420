# Overview: Flask API routes for end-of-shift returns and loss reasons; returns JSON responses.

from flask import Blueprint, request, jsonify, g

from ..validation import require_payload
from ..services import return_service
from ..decorators import require_auth
from ..errors import SERVICE_ERRORS, error_response, server_error


returns_bp = Blueprint("returns", __name__, url_prefix="/api/sales-ops")


@returns_bp.get("/summaries/<int:summary_id>/returns")
@require_auth
def list_returns_route(summary_id: int):
    try:
        returns = return_service.list_returns(summary_id)
        return jsonify({"returns": [r.to_dict() for r in returns]}), 200
    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        return server_error("Failed to list returns")


@returns_bp.put("/summaries/<int:summary_id>/returns")
@require_auth
def save_returns_route(summary_id: int):
    """
    Replace the day's returns.

    Request body:
    {
        "returns": [
            {"product_id": 1, "quantity_returned": 4, "loss_reason_id": 2},
            {"product_id": 3, "quantity_returned": 1, "custom_reason_for_loss": "Bag split"}
        ]
    }
    """
    try:
        data = require_payload(request.get_json(silent=True))
        returns = return_service.save_returns(
            summary_id,
            data.get("returns"),
            role=g.current_user.role,
            user_id=g.current_user.id,
        )
        return jsonify({"returns": [r.to_dict() for r in returns]}), 200

    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        return server_error("Failed to save returns")


@returns_bp.get("/loss-reasons")
@require_auth
def list_loss_reasons_route():
    include_inactive = request.args.get("include_inactive", "").lower() in ("1", "true", "yes")
    reasons = return_service.list_loss_reasons(include_inactive=include_inactive)
    return jsonify({"loss_reasons": [r.to_dict() for r in reasons]}), 200
