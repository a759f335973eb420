# Overview: Flask API routes for customer-specific product prices; returns JSON responses.

from flask import Blueprint, request, jsonify, g

from ..validation import require_payload, coerce_date
from ..services import pricing_service
from ..decorators import require_auth, require_role
from ..errors import SERVICE_ERRORS, error_response, server_error


pricing_bp = Blueprint("pricing", __name__, url_prefix="/api/sales-ops/customers")

# Office clerks read negotiated prices; setting them is a management decision
PRICE_SETTER_ROLES = ("admin", "manager", "area_manager")


@pricing_bp.get("/<int:customer_id>/prices")
@require_auth
def list_customer_prices_route(customer_id: int):
    """Prices in force for a customer on ?as_of=YYYY-MM-DD (default: today)."""
    try:
        raw = request.args.get("as_of")
        as_of = coerce_date(raw, "as_of") if raw else None
        prices = pricing_service.list_customer_prices(customer_id, as_of)
        return jsonify({
            "customer_id": customer_id,
            "as_of": (as_of or pricing_service.business_today()).isoformat(),
            "prices": [p.to_dict() for p in prices],
        }), 200

    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        return server_error("Failed to list customer prices")


@pricing_bp.put("/<int:customer_id>/prices/<int:product_id>")
@require_auth
@require_role(*PRICE_SETTER_ROLES)
def set_customer_price_route(customer_id: int, product_id: int):
    """
    Set a customer's price for one product.

    Request body:
    {
        "unit_price_cents": 450,
        "effective_date": "2026-10-19",   (optional, default today)
        "reason": "Volume agreement"      (optional)
    }
    """
    try:
        data = require_payload(request.get_json(silent=True))
        raw_date = data.get("effective_date")
        effective_date = coerce_date(raw_date, "effective_date") if raw_date else None

        price = pricing_service.set_customer_price(
            customer_id,
            product_id,
            data.get("unit_price_cents"),
            effective_date=effective_date,
            reason=data.get("reason"),
            user_id=g.current_user.id,
        )
        return jsonify({"price": price.to_dict()}), 200

    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        return server_error("Failed to set customer price")
