# Overview: Flask API routes for driver sales entry; parses input and returns JSON responses.

# backend/salesops/routes/sales.py
"""
Driver Sales API Routes

DESIGN:
- POST /sales/batch commits a whole grid at once; the server accepts or
  rejects it as a whole
- POST /sales, PUT /sales/<id>, DELETE /sales/<id> serve the single-sale
  editor; PUT updates in place
- Every response that changes sales carries the refreshed summary
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..validation import coerce_int, require_payload
from ..services import sales_entry_service, summary_service
from ..decorators import require_auth
from ..errors import SERVICE_ERRORS, error_response, server_error


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales-ops")


@sales_bp.get("/summaries/<int:summary_id>/sales")
@require_auth
def list_sales_route(summary_id: int):
    try:
        sales = sales_entry_service.list_sales(summary_id)
        return jsonify({"sales": [s.to_dict() for s in sales]}), 200
    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        return server_error("Failed to list driver sales")


@sales_bp.post("/sales/batch")
@require_auth
def commit_batch_route():
    """
    Commit all grid rows of a driver-day in one transaction.

    Request body:
    {
        "driver_daily_summary_id": 5,
        "sales_data": [
            {
                "customer_id": 12,
                "payment_type": "Cash",
                "notes": "",
                "items": [{"product_id": 1, "quantity_sold": 3, "unit_price_cents": 2500}]
            }
        ]
    }
    """
    try:
        data = require_payload(request.get_json(silent=True))
        summary_id = coerce_int(data.get("driver_daily_summary_id"), "driver_daily_summary_id", minimum=1)

        result = sales_entry_service.commit_batch(
            summary_id,
            data.get("sales_data"),
            role=g.current_user.role,
            user_id=g.current_user.id,
        )
        summary = summary_service.get_summary(summary_id)
        return jsonify({
            "summary": summary.to_dict(),
            "processed_sales": result.processed_sales,
            "total_amount_cents": result.total_amount_cents,
            "sales": [s.to_dict() for s in result.sales],
        }), 201

    except SERVICE_ERRORS as e:
        current_app.logger.info("Batch sales rejected: %s", e)
        return error_response(e)
    except Exception:
        return server_error("Failed to commit batch sales")


@sales_bp.post("/sales")
@require_auth
def create_sale_route():
    try:
        data = require_payload(request.get_json(silent=True))
        summary_id = coerce_int(data.get("driver_daily_summary_id"), "driver_daily_summary_id", minimum=1)

        sale = sales_entry_service.create_sale(
            summary_id, data, role=g.current_user.role, user_id=g.current_user.id
        )
        summary = summary_service.get_summary(summary_id)
        return jsonify({"sale": sale.to_dict(), "summary": summary.to_dict()}), 201

    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        return server_error("Failed to create driver sale")


@sales_bp.put("/sales/<int:sale_id>")
@require_auth
def update_sale_route(sale_id: int):
    try:
        sale = sales_entry_service.update_sale(
            sale_id,
            request.get_json(silent=True),
            role=g.current_user.role,
            user_id=g.current_user.id,
        )
        summary = summary_service.get_summary(sale.driver_daily_summary_id)
        return jsonify({"sale": sale.to_dict(), "summary": summary.to_dict()}), 200

    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        return server_error("Failed to update driver sale")


@sales_bp.delete("/sales/<int:sale_id>")
@require_auth
def delete_sale_route(sale_id: int):
    try:
        summary_id = sales_entry_service.delete_sale(sale_id, role=g.current_user.role)
        summary = summary_service.get_summary(summary_id)
        return jsonify({"deleted_sale_id": sale_id, "summary": summary.to_dict()}), 200

    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        return server_error("Failed to delete driver sale")
