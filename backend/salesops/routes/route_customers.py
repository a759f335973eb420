# Overview: Flask API routes for route customer membership and stop order; returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..validation import coerce_int, require_payload, ValidationError
from ..services import route_service
from ..decorators import require_auth
from ..errors import SERVICE_ERRORS, error_response, server_error


route_customers_bp = Blueprint("route_customers", __name__, url_prefix="/api/sales-ops/routes")


def _payload(route_id: int, assignments) -> dict:
    return {
        "route_id": route_id,
        "customers": [a.to_dict() for a in assignments],
        "debounce_seconds": current_app.config["ROUTE_ORDER_DEBOUNCE_SECONDS"],
    }


@route_customers_bp.get("/<int:route_id>/customers")
@require_auth
def list_route_customers_route(route_id: int):
    try:
        return jsonify(_payload(route_id, route_service.list_route_customers(route_id))), 200
    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        return server_error("Failed to list route customers")


@route_customers_bp.post("/<int:route_id>/customers")
@require_auth
def add_route_customer_route(route_id: int):
    """Append a customer to the end of the route. Body: {"customer_id": 7}"""
    try:
        data = require_payload(request.get_json(silent=True))
        customer_id = coerce_int(data.get("customer_id"), "customer_id", minimum=1)
        assignments = route_service.add_customer(route_id, customer_id, user_id=g.current_user.id)
        return jsonify(_payload(route_id, assignments)), 200

    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        return server_error("Failed to add customer to route")


@route_customers_bp.delete("/<int:route_id>/customers/<int:customer_id>")
@require_auth
def remove_route_customer_route(route_id: int, customer_id: int):
    try:
        assignments = route_service.remove_customer(route_id, customer_id)
        return jsonify(_payload(route_id, assignments)), 200

    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        return server_error("Failed to remove customer from route")


@route_customers_bp.put("/<int:route_id>/customer-order")
@require_auth
def reorder_route_customers_route(route_id: int):
    """
    Persist a new stop order.

    Request body:
    {
        "customer_ids": [12, 4, 9]   (exactly the route's current customers)
    }
    """
    try:
        data = require_payload(request.get_json(silent=True))
        raw_ids = data.get("customer_ids")
        if not isinstance(raw_ids, list):
            raise ValidationError("customer_ids must be an array")
        customer_ids = [coerce_int(cid, "customer_ids[]", minimum=1) for cid in raw_ids]

        assignments = route_service.reorder(route_id, customer_ids)
        return jsonify(_payload(route_id, assignments)), 200

    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        return server_error("Failed to reorder route customers")
