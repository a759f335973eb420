# Overview: Service-layer operations for the shift-start loading batch of a driver-day.

"""
Loading Batch Service

WHY: The quantity of each product placed on the vehicle is the starting
point of every inventory-loss figure. It is declared once at shift start.

DESIGN PRINCIPLES:
- Fetching the batch for (driver, date) creates the summary and an empty
  batch if either is missing
- Declaring items replaces the whole item list
- Frozen once the day leaves Pending, unless an admin or manager unlocked it
"""

from __future__ import annotations

import uuid
from datetime import date

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import LoadingBatch, LoadingBatchItem, Product, DriverDailySummary
from ..validation import ValidationError, require_payload, coerce_int, coerce_quantity, clean_text
from salesops.time_utils import utcnow
from . import summary_service
from .permission_service import ensure_editable
from .concurrency import run_with_retry


def _batch_for_summary(summary_id: int) -> LoadingBatch | None:
    return db.session.query(LoadingBatch).filter_by(driver_daily_summary_id=summary_id).first()


def ensure_batch(summary: DriverDailySummary) -> LoadingBatch:
    batch = _batch_for_summary(summary.id)
    if batch:
        return batch

    batch = LoadingBatch(driver_daily_summary_id=summary.id, batch_uuid=str(uuid.uuid4()))
    db.session.add(batch)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        batch = _batch_for_summary(summary.id)
        if not batch:
            raise
    return batch


def get_or_create_batch(
    driver_id: int,
    sale_date: date,
    route_id: int | None = None,
    user_id: int | None = None,
) -> tuple[DriverDailySummary, LoadingBatch]:
    """Fetch-or-create the loading batch (and its summary) for a driver-day."""
    summary, _ = summary_service.get_or_create_summary(driver_id, sale_date, route_id=route_id, user_id=user_id)
    return summary, ensure_batch(summary)


def parse_items(raw_items) -> list[tuple[int, int]]:
    if not isinstance(raw_items, list):
        raise ValidationError("items must be an array")

    parsed: list[tuple[int, int]] = []
    seen: set[int] = set()
    for i, raw in enumerate(raw_items):
        raw = require_payload(raw)
        position = f"Item {i + 1}"
        product_id = coerce_int(raw.get("product_id"), f"{position}: product_id", minimum=1)
        quantity = coerce_quantity(raw.get("quantity_loaded"), f"{position}: quantity_loaded")
        if product_id in seen:
            raise ValidationError(f"{position}: product {product_id} is already loaded")
        seen.add(product_id)
        parsed.append((product_id, quantity))
    return parsed


def declare_loading(summary_id: int, data, *, role: str | None, user_id: int | None = None) -> LoadingBatch:
    """
    Replace the loaded quantities of a driver-day.

    An empty item list is allowed and clears the load.
    """
    data = require_payload(data)
    items = parse_items(data.get("items"))
    notes = clean_text(data.get("notes"), "notes")

    product_ids = [product_id for product_id, _ in items]
    if product_ids:
        found = {p.id for p in db.session.query(Product).filter(Product.id.in_(product_ids)).all()}
        missing = sorted(set(product_ids) - found)
        if missing:
            raise ValidationError(f"Unknown products: {missing}")

    def _op():
        summary = summary_service.get_summary(summary_id, for_update=True)
        ensure_editable(summary, role, action="change the loading")
        batch = ensure_batch(summary)

        batch.items.clear()
        db.session.flush()
        for product_id, quantity in items:
            batch.items.append(LoadingBatchItem(product_id=product_id, quantity_loaded=quantity))

        batch.notes = notes
        batch.load_timestamp = utcnow()
        batch.declared_by_user_id = user_id
        db.session.commit()

        current_app.logger.info(
            "Loading declared: summary=%s products=%s units=%s user=%s",
            summary_id, len(items), sum(q for _, q in items), user_id,
        )
        return batch

    return run_with_retry(_op)
