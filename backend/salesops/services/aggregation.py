# Overview: Pure driver-day aggregation over already-resolved loading, sales and returns.

"""
Driver Daily Summary Aggregator

WHY: The cash totals and per-product loss figures office staff reconcile
against must be re-derivable from the three source logs at any moment
before the day is locked.

DESIGN PRINCIPLES:
- No database, network or clock access: inputs in, figures out
- Same inputs always produce the same outputs (rows sorted by product id)
- Anomalies (negative loss, stock sold or returned that was never loaded)
  are flagged on the row, never raised and never clamped
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Mapping

from ..domain import PaymentType, TransactionType


@dataclass(frozen=True)
class LoadedLine:
    product_id: int
    quantity_loaded: int


@dataclass(frozen=True)
class SoldLine:
    product_id: int
    quantity: int
    unit_price_cents: int
    transaction_type: TransactionType = TransactionType.SALE

    @property
    def line_total_cents(self) -> int:
        if not TransactionType.parse(self.transaction_type).is_billable:
            return 0
        return self.quantity * self.unit_price_cents


@dataclass(frozen=True)
class SaleSnapshot:
    payment_type: str
    items: tuple[SoldLine, ...] = ()

    @property
    def total_cents(self) -> int:
        return sale_total_cents(self.items)


@dataclass(frozen=True)
class ReturnedLine:
    product_id: int
    quantity_returned: int


@dataclass(frozen=True)
class SalesTotals:
    cash_cents: int = 0
    credit_cents: int = 0
    other_cents: int = 0

    @property
    def grand_total_cents(self) -> int:
        return self.cash_cents + self.credit_cents + self.other_cents


@dataclass(frozen=True)
class ProductReconciliationRow:
    product_id: int
    loaded: int
    sold: int
    returned: int

    @property
    def loss(self) -> int:
        return self.loaded - self.sold - self.returned

    @property
    def negative_loss(self) -> bool:
        return self.loss < 0

    @property
    def unloaded_movement(self) -> bool:
        return self.loaded == 0 and (self.sold > 0 or self.returned > 0)

    @property
    def is_anomalous(self) -> bool:
        return self.negative_loss or self.unloaded_movement

    def to_dict(self, product_names: Mapping[int, str] | None = None) -> dict:
        return {
            "product_id": self.product_id,
            "product_name": (product_names or {}).get(self.product_id),
            "loaded": self.loaded,
            "sold": self.sold,
            "returned": self.returned,
            "loss": self.loss,
            "negative_loss": self.negative_loss,
            "unloaded_movement": self.unloaded_movement,
        }


@dataclass(frozen=True)
class DailyAggregate:
    totals: SalesTotals
    rows: tuple[ProductReconciliationRow, ...] = field(default_factory=tuple)

    def row_for(self, product_id: int) -> ProductReconciliationRow | None:
        for row in self.rows:
            if row.product_id == product_id:
                return row
        return None

    @property
    def anomalies(self) -> tuple[ProductReconciliationRow, ...]:
        return tuple(row for row in self.rows if row.is_anomalous)

    @property
    def total_loss(self) -> int:
        return sum(row.loss for row in self.rows)


def sale_total_cents(items: Iterable[SoldLine]) -> int:
    """Record total: sum of quantity x unit price over billable lines."""
    return sum(item.line_total_cents for item in items)


def _payment_bucket(payment_type) -> str:
    try:
        parsed = PaymentType.parse(payment_type)
    except ValueError:
        return "other"
    if parsed is PaymentType.CASH:
        return "cash"
    if parsed is PaymentType.CREDIT:
        return "credit"
    return "other"


def sales_totals(sales: Iterable[SaleSnapshot]) -> SalesTotals:
    buckets = {"cash": 0, "credit": 0, "other": 0}
    for sale in sales:
        buckets[_payment_bucket(sale.payment_type)] += sale.total_cents
    return SalesTotals(
        cash_cents=buckets["cash"],
        credit_cents=buckets["credit"],
        other_cents=buckets["other"],
    )


def product_rows(
    loading: Iterable[LoadedLine],
    sales: Iterable[SaleSnapshot],
    returns: Iterable[ReturnedLine],
) -> tuple[ProductReconciliationRow, ...]:
    loaded: dict[int, int] = {}
    sold: dict[int, int] = {}
    returned: dict[int, int] = {}

    for line in loading:
        loaded[line.product_id] = loaded.get(line.product_id, 0) + line.quantity_loaded
    for sale in sales:
        for item in sale.items:
            sold[item.product_id] = sold.get(item.product_id, 0) + item.quantity
    for line in returns:
        returned[line.product_id] = returned.get(line.product_id, 0) + line.quantity_returned

    product_ids = sorted(set(loaded) | set(sold) | set(returned))
    return tuple(
        ProductReconciliationRow(
            product_id=product_id,
            loaded=loaded.get(product_id, 0),
            sold=sold.get(product_id, 0),
            returned=returned.get(product_id, 0),
        )
        for product_id in product_ids
        if loaded.get(product_id, 0) or sold.get(product_id, 0) or returned.get(product_id, 0)
    )


def aggregate(
    loading: Iterable[LoadedLine],
    sales: Iterable[SaleSnapshot],
    returns: Iterable[ReturnedLine],
) -> DailyAggregate:
    """
    Combine one driver-day's three logs into totals and loss rows.

    All three inputs must already be fully resolved; callers never pass a
    partially fetched log.
    """
    sales = tuple(sales)
    return DailyAggregate(
        totals=sales_totals(sales),
        rows=product_rows(tuple(loading), sales, tuple(returns)),
    )
