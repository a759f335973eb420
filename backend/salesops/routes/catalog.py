# Overview: Read-only Flask API routes for the customer, product, driver and route lists the sales screens need.

from flask import Blueprint, request, jsonify

from ..extensions import db
from ..models import Customer, Product, Driver, DeliveryRoute
from ..decorators import require_auth


catalog_bp = Blueprint("catalog", __name__, url_prefix="/api/sales-ops")

CUSTOMER_SEARCH_LIMIT = 50


@catalog_bp.get("/customers")
@require_auth
def search_customers_route():
    """
    Active customers, optionally filtered by ?search= (name or phone).

    Ranking for the editor's fuzzy picker happens client-side.
    """
    term = (request.args.get("search") or "").strip()
    query = db.session.query(Customer).filter(Customer.is_active.is_(True))
    if term:
        pattern = f"%{term}%"
        query = query.filter(db.or_(Customer.customer_name.ilike(pattern), Customer.phone.ilike(pattern)))

    customers = query.order_by(Customer.customer_name.asc()).limit(CUSTOMER_SEARCH_LIMIT).all()
    return jsonify({"customers": [c.to_dict() for c in customers]}), 200


@catalog_bp.get("/products")
@require_auth
def list_products_route():
    products = (
        db.session.query(Product)
        .filter(Product.is_active.is_(True))
        .order_by(Product.id.asc())
        .all()
    )
    return jsonify({"products": [p.to_dict() for p in products]}), 200


@catalog_bp.get("/drivers")
@require_auth
def list_drivers_route():
    drivers = (
        db.session.query(Driver)
        .filter(Driver.is_active.is_(True))
        .order_by(Driver.first_name.asc(), Driver.id.asc())
        .all()
    )
    return jsonify({"drivers": [d.to_dict() for d in drivers]}), 200


@catalog_bp.get("/routes")
@require_auth
def list_routes_route():
    routes = (
        db.session.query(DeliveryRoute)
        .filter(DeliveryRoute.is_active.is_(True))
        .order_by(DeliveryRoute.route_name.asc())
        .all()
    )
    return jsonify({"routes": [r.to_dict() for r in routes]}), 200
