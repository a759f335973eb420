# Overview: Service-layer operations for driver daily summaries; bridges stored logs and the pure aggregator.

"""
Driver Daily Summary Service

WHY: Every driver-day has exactly one summary row. Loading, sales and
returns all hang off it, and its stored totals are a cache of what the
aggregator derives from those logs.

DESIGN:
- get_or_create_summary is idempotent per (driver, date)
- Stored totals are refreshed in the same transaction as every sales change
- The reconciliation view is computed only after all three logs are loaded
"""

from __future__ import annotations

from datetime import date

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import (
    DriverDailySummary,
    Driver,
    DeliveryRoute,
    DriverSale,
    LoadingBatch,
    ProductReturn,
    Product,
)
from ..domain import ReconciliationStatus
from ..validation import ValidationError, NotFoundError
from .aggregation import (
    DailyAggregate,
    LoadedLine,
    ReturnedLine,
    SaleSnapshot,
    SoldLine,
    aggregate,
)
from .concurrency import lock_for_update


def get_summary(summary_id: int, *, for_update: bool = False) -> DriverDailySummary:
    query = db.session.query(DriverDailySummary).filter_by(id=summary_id)
    if for_update:
        query = lock_for_update(query)
    summary = query.first()
    if not summary:
        raise NotFoundError("Driver daily summary not found")
    return summary


def find_summary(driver_id: int, sale_date: date) -> DriverDailySummary | None:
    return db.session.query(DriverDailySummary).filter_by(
        driver_id=driver_id,
        sale_date=sale_date,
    ).first()


def get_or_create_summary(
    driver_id: int,
    sale_date: date,
    route_id: int | None = None,
    user_id: int | None = None,
) -> tuple[DriverDailySummary, bool]:
    """
    Fetch the summary for (driver, date), creating it if missing.

    Returns (summary, created). A route given for an existing summary that
    has none yet is attached; an existing route is never silently replaced.
    """
    driver = db.session.get(Driver, driver_id)
    if not driver:
        raise ValidationError(f"Driver {driver_id} does not exist")

    if route_id is not None and not db.session.get(DeliveryRoute, route_id):
        raise ValidationError(f"Route {route_id} does not exist")

    summary = find_summary(driver_id, sale_date)
    if summary:
        if route_id is not None and summary.route_id is None:
            summary.route_id = route_id
            db.session.commit()
        return summary, False

    if not driver.is_active:
        raise ValidationError(f"Driver {driver_id} is inactive")

    summary = DriverDailySummary(
        driver_id=driver_id,
        sale_date=sale_date,
        route_id=route_id,
        reconciliation_status=ReconciliationStatus.PENDING.value,
        created_by_user_id=user_id,
    )
    db.session.add(summary)
    try:
        db.session.commit()
    except IntegrityError:
        # Another request created the same driver-day first
        db.session.rollback()
        summary = find_summary(driver_id, sale_date)
        if not summary:
            raise
        return summary, False

    return summary, True


def list_summaries(
    driver_id: int | None = None,
    sale_date: date | None = None,
    status: ReconciliationStatus | None = None,
) -> list[DriverDailySummary]:
    query = db.session.query(DriverDailySummary)
    if driver_id is not None:
        query = query.filter_by(driver_id=driver_id)
    if sale_date is not None:
        query = query.filter_by(sale_date=sale_date)
    if status is not None:
        query = query.filter_by(reconciliation_status=status.value)
    return query.order_by(
        DriverDailySummary.sale_date.desc(),
        DriverDailySummary.driver_id.asc(),
        DriverDailySummary.id.asc(),
    ).all()


# =============================================================================
# AGGREGATION INPUTS
# =============================================================================

def sale_snapshot(sale: DriverSale) -> SaleSnapshot:
    return SaleSnapshot(
        payment_type=sale.payment_type,
        items=tuple(
            SoldLine(
                product_id=item.product_id,
                quantity=item.quantity_sold,
                unit_price_cents=item.unit_price_cents,
                transaction_type=item.transaction_type,
            )
            for item in sale.items
        ),
    )


def load_sources(summary_id: int) -> tuple[list[LoadedLine], list[SaleSnapshot], list[ReturnedLine]]:
    """Resolve all three logs of a driver-day before anything is computed."""
    batch = db.session.query(LoadingBatch).filter_by(driver_daily_summary_id=summary_id).first()
    loading = [
        LoadedLine(product_id=item.product_id, quantity_loaded=item.quantity_loaded)
        for item in (batch.items if batch else [])
    ]

    sales = [
        sale_snapshot(sale)
        for sale in db.session.query(DriverSale)
        .filter_by(driver_daily_summary_id=summary_id)
        .order_by(DriverSale.id)
        .all()
    ]

    returns = [
        ReturnedLine(product_id=row.product_id, quantity_returned=row.quantity_returned)
        for row in db.session.query(ProductReturn)
        .filter_by(driver_daily_summary_id=summary_id)
        .order_by(ProductReturn.product_id)
        .all()
    ]
    return loading, sales, returns


def compute_aggregate(summary_id: int) -> DailyAggregate:
    loading, sales, returns = load_sources(summary_id)
    return aggregate(loading, sales, returns)


def refresh_totals(summary: DriverDailySummary) -> DailyAggregate:
    """
    Recompute and store the summary's sales totals from its source logs.

    Does not commit; callers refresh inside their own transaction.
    """
    db.session.flush()
    result = compute_aggregate(summary.id)
    summary.total_cash_sales_value_cents = result.totals.cash_cents
    summary.total_new_credit_sales_value_cents = result.totals.credit_cents
    summary.total_other_payment_sales_value_cents = result.totals.other_cents
    return result


def reconciliation_view(driver_id: int, sale_date: date) -> dict:
    """
    Summary plus per-product reconciliation rows for one driver-day.

    Raises NotFoundError when no sales, loading or returns have started the
    day yet.
    """
    summary = find_summary(driver_id, sale_date)
    if not summary:
        raise NotFoundError(
            "No sales summary found for this driver on this date. "
            "Please complete loading, sales or returns entry first."
        )

    result = compute_aggregate(summary.id)
    product_ids = [row.product_id for row in result.rows]
    names = {
        product.id: product.product_name
        for product in db.session.query(Product).filter(Product.id.in_(product_ids)).all()
    } if product_ids else {}

    batch = db.session.query(LoadingBatch).filter_by(driver_daily_summary_id=summary.id).first()
    total_loaded = sum(item.quantity_loaded for item in batch.items) if batch else 0

    summary_dict = summary.to_dict()
    summary_dict["total_products_loaded"] = total_loaded
    summary_dict["expected_cash_cents"] = result.totals.cash_cents

    return {
        "summary": summary_dict,
        "totals": {
            "cash_cents": result.totals.cash_cents,
            "credit_cents": result.totals.credit_cents,
            "other_cents": result.totals.other_cents,
        },
        "product_reconciliation": [row.to_dict(names) for row in result.rows],
        "anomaly_count": len(result.anomalies),
    }
