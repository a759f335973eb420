# Overview: Service-layer operations for end-of-shift product returns and loss reasons.

"""
Product Return Service

WHY: Stock that comes back at shift end is the third input to the per-product
loss figure. Returns are keyed in as one list per driver-day.

DESIGN:
- save_returns replaces the day's returns as a batch (all-or-nothing)
- A row carries either a catalog loss reason or a free-text reason, not both
- Rows with quantity 0 are dropped; negative quantities are rejected
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import ProductReturn, Product, LossReason
from ..validation import ValidationError, require_payload, coerce_int, coerce_optional_int, clean_text, MAX_QUANTITY
from . import summary_service
from .permission_service import ensure_editable
from .concurrency import run_with_retry


def list_loss_reasons(include_inactive: bool = False) -> list[LossReason]:
    query = db.session.query(LossReason)
    if not include_inactive:
        query = query.filter(LossReason.is_active.is_(True))
    return query.order_by(LossReason.reason_description.asc()).all()


def list_returns(summary_id: int) -> list[ProductReturn]:
    summary_service.get_summary(summary_id)
    return (
        db.session.query(ProductReturn)
        .filter_by(driver_daily_summary_id=summary_id)
        .order_by(ProductReturn.product_id)
        .all()
    )


def parse_returns(raw_rows) -> list[dict]:
    if not isinstance(raw_rows, list):
        raise ValidationError("returns must be an array")

    parsed: list[dict] = []
    seen: set[int] = set()
    for i, raw in enumerate(raw_rows):
        raw = require_payload(raw)
        position = f"Return {i + 1}"

        product_id = coerce_int(raw.get("product_id"), f"{position}: product_id", minimum=1)
        quantity = coerce_int(
            raw.get("quantity_returned"), f"{position}: quantity_returned", minimum=0, maximum=MAX_QUANTITY
        )
        if quantity == 0:
            continue

        if product_id in seen:
            raise ValidationError(f"{position}: product {product_id} is listed more than once")
        seen.add(product_id)

        loss_reason_id = coerce_optional_int(raw.get("loss_reason_id"), f"{position}: loss_reason_id", minimum=1)
        custom_reason = clean_text(raw.get("custom_reason_for_loss"), f"{position}: custom_reason_for_loss", max_length=255)
        if loss_reason_id is not None and custom_reason is not None:
            raise ValidationError(f"{position}: choose a loss reason or type one, not both")

        parsed.append({
            "product_id": product_id,
            "quantity_returned": quantity,
            "loss_reason_id": loss_reason_id,
            "custom_reason_for_loss": custom_reason,
        })
    return parsed


def save_returns(summary_id: int, raw_rows, *, role: str | None, user_id: int | None = None) -> list[ProductReturn]:
    """Replace all returns of a driver-day with the given rows."""
    rows = parse_returns(raw_rows)

    product_ids = {row["product_id"] for row in rows}
    if product_ids:
        found = {p.id for p in db.session.query(Product).filter(Product.id.in_(product_ids)).all()}
        missing = sorted(product_ids - found)
        if missing:
            raise ValidationError(f"Unknown products: {missing}")

    reason_ids = {row["loss_reason_id"] for row in rows if row["loss_reason_id"] is not None}
    if reason_ids:
        found = {r.id for r in db.session.query(LossReason).filter(LossReason.id.in_(reason_ids)).all()}
        missing = sorted(reason_ids - found)
        if missing:
            raise ValidationError(f"Unknown loss reasons: {missing}")

    def _op():
        summary = summary_service.get_summary(summary_id, for_update=True)
        ensure_editable(summary, role, action="change the returns")

        db.session.query(ProductReturn).filter_by(driver_daily_summary_id=summary_id).delete(
            synchronize_session="fetch"
        )
        db.session.flush()

        for row in rows:
            db.session.add(ProductReturn(
                driver_daily_summary_id=summary_id,
                logged_by_user_id=user_id,
                **row,
            ))
        db.session.commit()

        current_app.logger.info(
            "Returns saved: summary=%s rows=%s units=%s user=%s",
            summary_id, len(rows), sum(r["quantity_returned"] for r in rows), user_id,
        )
        return list_returns(summary_id)

    return run_with_retry(_op)
