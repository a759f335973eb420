# Overview: Service-layer operations for driver sales entry; batch grid commits and single-sale corrections.

"""
Driver Sales Entry Service

WHY: Office staff key in a driver's day of sales either all at once from the
route grid or one sale at a time. Both paths write the same records and both
keep the day's stored totals equal to what the aggregator derives.

DESIGN PRINCIPLES:
- A batch commit is all-or-nothing: any invalid row rejects the whole batch
- Record totals are always computed here, never accepted from the client
- Every write refreshes the summary totals in the same transaction
- Writes against a locked day require an admin or manager role
"""

from __future__ import annotations

from dataclasses import dataclass, field

from flask import current_app

from ..extensions import db
from ..models import DriverSale, DriverSaleItem, Customer, Product, RouteAssignment
from ..domain import EntryMode, PaymentType, TransactionType
from ..validation import (
    ValidationError,
    NotFoundError,
    require_payload,
    coerce_int,
    coerce_optional_int,
    coerce_quantity,
    coerce_price_cents,
    clean_text,
)
from . import summary_service, pricing_service
from .permission_service import ensure_editable
from .concurrency import run_with_retry


@dataclass
class SaleItemInput:
    product_id: int
    quantity: int
    unit_price_cents: int | None
    transaction_type: TransactionType = TransactionType.SALE


@dataclass
class SaleInput:
    customer_id: int | None
    customer_name_override: str | None
    payment_type: PaymentType
    notes: str | None
    items: list[SaleItemInput] = field(default_factory=list)


@dataclass
class BatchResult:
    summary_id: int
    sales: list[DriverSale]
    total_amount_cents: int

    @property
    def processed_sales(self) -> int:
        return len(self.sales)


# =============================================================================
# PAYLOAD PARSING
# =============================================================================

def parse_item(data, *, position: str) -> SaleItemInput:
    data = require_payload(data)
    if data.get("product_id") in (None, ""):
        raise ValidationError(f"{position}: product is required")

    try:
        transaction_type = TransactionType.parse(data.get("transaction_type"))
    except ValueError as exc:
        raise ValidationError(f"{position}: {exc}")

    price = data.get("unit_price_cents")
    return SaleItemInput(
        product_id=coerce_int(data.get("product_id"), f"{position}: product_id", minimum=1),
        quantity=coerce_quantity(data.get("quantity_sold", data.get("quantity")), f"{position}: quantity"),
        unit_price_cents=None if price in (None, "") else coerce_price_cents(price, f"{position}: unit_price_cents"),
        transaction_type=transaction_type,
    )


def parse_sale(data, *, label: str = "Sale", require_registered_customer: bool = False) -> SaleInput:
    """
    Validate one sale payload.

    Exactly one of customer_id / customer_name_override, at least one item,
    no product twice in the same sale.
    """
    data = require_payload(data)

    customer_id = coerce_optional_int(data.get("customer_id"), f"{label}: customer_id", minimum=1)
    override = clean_text(data.get("customer_name_override"), f"{label}: customer_name_override", max_length=255)

    if customer_id is not None and override is not None:
        raise ValidationError(f"{label}: choose a registered customer or type a name, not both")
    if customer_id is None and override is None:
        raise ValidationError(f"{label}: a customer is required")
    if require_registered_customer and customer_id is None:
        raise ValidationError(f"{label}: customer_id is required")

    try:
        payment_type = PaymentType.parse(data.get("payment_type") or PaymentType.CASH.value)
    except ValueError as exc:
        raise ValidationError(f"{label}: {exc}")

    raw_items = data.get("items")
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError(f"{label}: at least one item is required")

    items = [parse_item(item, position=f"{label} item {i + 1}") for i, item in enumerate(raw_items)]

    seen: set[int] = set()
    for item in items:
        if item.product_id in seen:
            raise ValidationError(f"{label}: product {item.product_id} appears more than once")
        seen.add(item.product_id)

    return SaleInput(
        customer_id=customer_id,
        customer_name_override=override,
        payment_type=payment_type,
        notes=clean_text(data.get("notes"), f"{label}: notes"),
        items=items,
    )


# =============================================================================
# HELPERS
# =============================================================================

def _resolve_products(sales: list[SaleInput]) -> dict[int, Product]:
    product_ids = {item.product_id for sale in sales for item in sale.items}
    products = {
        p.id: p for p in db.session.query(Product).filter(Product.id.in_(product_ids)).all()
    } if product_ids else {}

    missing = sorted(product_ids - set(products))
    if missing:
        raise ValidationError(f"Unknown products: {missing}")
    inactive = sorted(pid for pid, p in products.items() if not p.is_active)
    if inactive:
        raise ValidationError(f"Inactive products: {inactive}")
    return products


def _check_customers(sales: list[SaleInput]) -> None:
    customer_ids = {s.customer_id for s in sales if s.customer_id is not None}
    if not customer_ids:
        return
    found = {
        c.id: c for c in db.session.query(Customer).filter(Customer.id.in_(customer_ids)).all()
    }
    missing = sorted(customer_ids - set(found))
    if missing:
        raise ValidationError(f"Unknown customers: {missing}")
    inactive = sorted(cid for cid, c in found.items() if not c.is_active)
    if inactive:
        raise ValidationError(f"Inactive customers: {inactive}")


def _prices_for(sales: list[SaleInput], sale_date) -> dict[tuple[int, int], int]:
    return pricing_service.price_map(
        [s.customer_id for s in sales],
        [item.product_id for s in sales for item in s.items],
        sale_date,
    )


def _build_items(
    sale_input: SaleInput,
    products: dict[int, Product],
    customer_prices: dict[tuple[int, int], int],
) -> list[DriverSaleItem]:
    """Lines without a unit price take the customer's price, then the catalog default."""
    items = []
    for item in sale_input.items:
        unit_price = item.unit_price_cents
        if unit_price is None:
            unit_price = customer_prices.get((sale_input.customer_id, item.product_id))
        if unit_price is None:
            unit_price = products[item.product_id].default_unit_price_cents or 0
        line_total = item.quantity * unit_price if item.transaction_type.is_billable else 0
        items.append(DriverSaleItem(
            product_id=item.product_id,
            quantity_sold=item.quantity,
            unit_price_cents=unit_price,
            transaction_type=item.transaction_type.value,
            line_total_cents=line_total,
        ))
    return items


def _apply(
    sale: DriverSale,
    sale_input: SaleInput,
    products: dict[int, Product],
    customer_prices: dict[tuple[int, int], int],
) -> None:
    sale.customer_id = sale_input.customer_id
    sale.customer_name_override = sale_input.customer_name_override
    sale.payment_type = sale_input.payment_type.value
    sale.notes = sale_input.notes
    items = _build_items(sale_input, products, customer_prices)
    sale.items.extend(items)
    sale.total_sale_amount_cents = sum(i.line_total_cents for i in items)


def get_sale(sale_id: int) -> DriverSale:
    sale = db.session.get(DriverSale, sale_id)
    if not sale:
        raise NotFoundError("Sale not found")
    return sale


def list_sales(summary_id: int) -> list[DriverSale]:
    summary_service.get_summary(summary_id)
    return (
        db.session.query(DriverSale)
        .filter_by(driver_daily_summary_id=summary_id)
        .order_by(DriverSale.id)
        .all()
    )


# =============================================================================
# BATCH (GRID) COMMIT
# =============================================================================

def commit_batch(summary_id: int, sales_data, *, role: str | None, user_id: int | None = None) -> BatchResult:
    """
    Replace the grid-managed sales of a driver-day with one batch.

    Only sales the grid itself created (entry_mode "grid") for customers on
    the summary's route or in the batch are replaced. Sales logged through
    the single-sale editor are never touched, even for route customers, so a
    customer may carry a grid sale and separate editor corrections.

    The whole batch is validated before anything is written; one bad row
    rejects everything.
    """
    if not isinstance(sales_data, list):
        raise ValidationError("sales_data must be an array")
    if not sales_data:
        raise ValidationError("At least one sale record is required")

    parsed = [
        parse_sale(row, label=f"Row {i + 1}", require_registered_customer=True)
        for i, row in enumerate(sales_data)
    ]

    batch_customers = [s.customer_id for s in parsed]
    duplicates = sorted({cid for cid in batch_customers if batch_customers.count(cid) > 1})
    if duplicates:
        raise ValidationError(f"Customers appear in more than one row: {duplicates}")

    def _op():
        summary = summary_service.get_summary(summary_id, for_update=True)
        ensure_editable(summary, role, action="change sales")

        _check_customers(parsed)
        products = _resolve_products(parsed)
        customer_prices = _prices_for(parsed, summary.sale_date)

        scope = set(batch_customers)
        if summary.route_id is not None:
            scope.update(
                a.customer_id
                for a in db.session.query(RouteAssignment).filter_by(route_id=summary.route_id).all()
            )

        existing = (
            db.session.query(DriverSale)
            .filter(
                DriverSale.driver_daily_summary_id == summary_id,
                DriverSale.customer_id.in_(scope),
                DriverSale.entry_mode == EntryMode.GRID.value,
            )
            .all()
        )
        for sale in existing:
            db.session.delete(sale)
        db.session.flush()

        created = []
        for sale_input in parsed:
            sale = DriverSale(
                driver_daily_summary_id=summary_id,
                logged_by_user_id=user_id,
                entry_mode=EntryMode.GRID.value,
            )
            _apply(sale, sale_input, products, customer_prices)
            db.session.add(sale)
            created.append(sale)

        if summary.route_id is not None:
            assignments = db.session.query(RouteAssignment).filter(
                RouteAssignment.route_id == summary.route_id,
                RouteAssignment.customer_id.in_(batch_customers),
            ).all()
            for assignment in assignments:
                assignment.last_sale_date = summary.sale_date
                assignment.total_sales_count = (assignment.total_sales_count or 0) + 1

        summary_service.refresh_totals(summary)
        db.session.commit()

        total = sum(s.total_sale_amount_cents for s in created)
        current_app.logger.info(
            "Batch sales saved: summary=%s sales=%s total_cents=%s user=%s",
            summary_id, len(created), total, user_id,
        )
        return BatchResult(summary_id=summary_id, sales=created, total_amount_cents=total)

    return run_with_retry(_op)


# =============================================================================
# SINGLE SALE (EDITOR)
# =============================================================================

def create_sale(summary_id: int, data, *, role: str | None, user_id: int | None = None) -> DriverSale:
    sale_input = parse_sale(data)

    def _op():
        summary = summary_service.get_summary(summary_id, for_update=True)
        ensure_editable(summary, role, action="add a sale")
        _check_customers([sale_input])
        products = _resolve_products([sale_input])

        sale = DriverSale(
            driver_daily_summary_id=summary_id,
            logged_by_user_id=user_id,
            entry_mode=EntryMode.EDITOR.value,
        )
        _apply(sale, sale_input, products, _prices_for([sale_input], summary.sale_date))
        db.session.add(sale)

        summary_service.refresh_totals(summary)
        db.session.commit()
        return sale

    return run_with_retry(_op)


def update_sale(sale_id: int, data, *, role: str | None, user_id: int | None = None) -> DriverSale:
    """
    Update a sale in place: identity, payment, notes and the full item list.

    The sale keeps its id; items are replaced, never appended to.
    """
    sale_input = parse_sale(data)

    def _op():
        sale = get_sale(sale_id)
        summary = summary_service.get_summary(sale.driver_daily_summary_id, for_update=True)
        ensure_editable(summary, role, action="change a sale")
        _check_customers([sale_input])
        products = _resolve_products([sale_input])

        sale.items.clear()
        db.session.flush()
        _apply(sale, sale_input, products, _prices_for([sale_input], summary.sale_date))
        sale.logged_by_user_id = user_id or sale.logged_by_user_id

        summary_service.refresh_totals(summary)
        db.session.commit()
        return sale

    return run_with_retry(_op)


def delete_sale(sale_id: int, *, role: str | None) -> int:
    """Delete a sale and its items; returns the summary id it belonged to."""
    def _op():
        sale = get_sale(sale_id)
        summary = summary_service.get_summary(sale.driver_daily_summary_id, for_update=True)
        ensure_editable(summary, role, action="delete a sale")

        db.session.delete(sale)
        summary_service.refresh_totals(summary)
        db.session.commit()
        return summary.id

    return run_with_retry(_op)
