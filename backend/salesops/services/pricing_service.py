# Overview: Service-layer operations for customer-specific product pricing.

"""
Customer Pricing Service

WHY: Some customers buy at a negotiated price. When a sale line arrives
without an explicit unit price the server prices it at the customer's price
in force on the trading day, and only then at the catalog default.

RULES:
- The price in force on a day is the row with the latest effective_date on
  or before that day
- Setting a price for a date that already has one updates it in place
- Prices are integer cents, never negative
"""

from __future__ import annotations

from datetime import date

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import Customer, CustomerPrice, Product
from ..validation import ValidationError, NotFoundError, coerce_price_cents, clean_text
from salesops.time_utils import utcnow, local_business_date
from .concurrency import run_with_retry


def business_today() -> date:
    return local_business_date(utcnow(), current_app.config["SALESOPS_TIMEZONE"])


def _get_customer(customer_id: int) -> Customer:
    customer = db.session.get(Customer, customer_id)
    if not customer:
        raise NotFoundError("Customer not found")
    return customer


def _prices_in_force(customer_ids, product_ids, as_of: date) -> list[CustomerPrice]:
    """Latest row on or before as_of per (customer, product)."""
    latest = (
        db.session.query(
            CustomerPrice.customer_id,
            CustomerPrice.product_id,
            func.max(CustomerPrice.effective_date).label("effective_date"),
        )
        .filter(CustomerPrice.effective_date <= as_of)
        .group_by(CustomerPrice.customer_id, CustomerPrice.product_id)
    )
    if customer_ids is not None:
        latest = latest.filter(CustomerPrice.customer_id.in_(customer_ids))
    if product_ids is not None:
        latest = latest.filter(CustomerPrice.product_id.in_(product_ids))
    latest = latest.subquery()

    return (
        db.session.query(CustomerPrice)
        .join(
            latest,
            (CustomerPrice.customer_id == latest.c.customer_id)
            & (CustomerPrice.product_id == latest.c.product_id)
            & (CustomerPrice.effective_date == latest.c.effective_date),
        )
        .order_by(CustomerPrice.customer_id, CustomerPrice.product_id)
        .all()
    )


def price_map(customer_ids, product_ids, as_of: date) -> dict[tuple[int, int], int]:
    """{(customer_id, product_id): unit_price_cents} for the prices in force on as_of."""
    customer_ids = {cid for cid in customer_ids if cid is not None}
    product_ids = set(product_ids)
    if not customer_ids or not product_ids:
        return {}
    return {
        (p.customer_id, p.product_id): p.unit_price_cents
        for p in _prices_in_force(customer_ids, product_ids, as_of)
    }


def list_customer_prices(customer_id: int, as_of: date | None = None) -> list[CustomerPrice]:
    _get_customer(customer_id)
    return _prices_in_force([customer_id], None, as_of or business_today())


def set_customer_price(
    customer_id: int,
    product_id: int,
    unit_price_cents,
    *,
    effective_date: date | None = None,
    reason=None,
    user_id: int | None = None,
) -> CustomerPrice:
    price = coerce_price_cents(unit_price_cents, "unit_price_cents")
    reason = clean_text(reason, "reason")

    def _op():
        _get_customer(customer_id)
        product = db.session.get(Product, product_id)
        if not product:
            raise NotFoundError("Product not found")
        if not product.is_active:
            raise ValidationError(f"Product {product_id} is inactive")

        day = effective_date or business_today()
        row = (
            db.session.query(CustomerPrice)
            .filter_by(customer_id=customer_id, product_id=product_id, effective_date=day)
            .first()
        )
        if row is None:
            row = CustomerPrice(customer_id=customer_id, product_id=product_id, effective_date=day)
            db.session.add(row)
        row.unit_price_cents = price
        row.reason = reason
        row.set_by_user_id = user_id
        db.session.commit()

        current_app.logger.info(
            "Customer price set: customer=%s product=%s price_cents=%s effective=%s user=%s",
            customer_id, product_id, price, day.isoformat(), user_id,
        )
        return row

    return run_with_retry(_op)
