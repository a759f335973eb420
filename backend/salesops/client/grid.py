# Overview: Batch sales ledger grid; customers x products staging buffer committed as one batch.

"""
Batch Sales Ledger Grid

One staging row per customer on the route, one cell per product. Row order
is always the sequencer's order; moving a row goes through the sequencer.

A cell without its own price shows the customer's negotiated price for the
day (load_customer_prices), then the catalog default.

The grid owns only the sales it created (entry_mode "grid"). Sales logged
through the single-sale editor are neither pre-filled nor replaced.

commit_batch:
1. drop cells with quantity <= 0
2. drop rows left with no cells
3. nothing left -> ValidationError("no sales entered"), no request sent
4. otherwise one request; the server accepts or rejects the whole batch

The staging buffer is never cleared by a failed commit.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from ..domain import EntryMode, PaymentType, TransactionType
from .errors import ValidationError
from .sequencer import RouteSequencer

logger = logging.getLogger(__name__)


@dataclass
class GridCell:
    quantity: int = 0
    unit_price_cents: int | None = None
    transaction_type: TransactionType = TransactionType.SALE


@dataclass
class GridRow:
    customer_id: int
    customer_name: str | None = None
    payment_type: PaymentType = PaymentType.CASH
    notes: str = ""
    cells: dict[int, GridCell] = field(default_factory=dict)

    def cell(self, product_id: int) -> GridCell:
        if product_id not in self.cells:
            self.cells[product_id] = GridCell()
        return self.cells[product_id]


def _whole_number(value, field_name: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a whole number")
    if value is None or value == "":
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    raise ValidationError(f"{field_name} must be a whole number")


class SalesLedgerGrid:
    def __init__(self, api, summary: dict, products: list[dict], sequencer: RouteSequencer):
        self.api = api
        self.summary = summary
        self.sequencer = sequencer
        self.products = {p["id"]: p for p in products}
        self.product_order = [p["id"] for p in products]
        self._rows: dict[int, GridRow] = {}
        self.customer_prices: dict[int, dict[int, int]] = {}
        self.last_result: dict | None = None

    @property
    def summary_id(self) -> int:
        return self.summary["id"]

    # =========================================================================
    # ROWS
    # =========================================================================

    def _row(self, customer_id: int) -> GridRow:
        if customer_id not in self.sequencer.order:
            raise ValidationError(f"Customer {customer_id} is not on this route")
        row = self._rows.get(customer_id)
        if row is None:
            info = self.sequencer.customers.get(customer_id, {})
            row = GridRow(customer_id=customer_id, customer_name=info.get("customer_name"))
            self._rows[customer_id] = row
        return row

    @property
    def rows(self) -> list[GridRow]:
        """Rows in the route's current stop order."""
        return [self._row(customer_id) for customer_id in self.sequencer.order]

    def move_row(self, customer_id: int, new_index: int) -> tuple[int, ...]:
        return self.sequencer.move(customer_id, new_index)

    async def add_customer(self, customer_id: int) -> GridRow:
        await self.sequencer.add(customer_id)
        return self._row(customer_id)

    async def remove_customer(self, customer_id: int) -> None:
        await self.sequencer.remove(customer_id)
        self._rows.pop(customer_id, None)

    # =========================================================================
    # CELLS
    # =========================================================================

    def _check_product(self, product_id: int) -> None:
        if product_id not in self.products:
            raise ValidationError(f"Unknown product {product_id}")

    def set_quantity(self, customer_id: int, product_id: int, quantity) -> None:
        self._check_product(product_id)
        self._row(customer_id).cell(product_id).quantity = _whole_number(quantity, "Quantity")

    def set_unit_price(self, customer_id: int, product_id: int, unit_price_cents) -> None:
        self._check_product(product_id)
        if unit_price_cents is None or unit_price_cents == "":
            self._row(customer_id).cell(product_id).unit_price_cents = None
            return
        price = _whole_number(unit_price_cents, "Unit price")
        if price < 0:
            raise ValidationError("Unit price cannot be negative")
        self._row(customer_id).cell(product_id).unit_price_cents = price

    def set_transaction_type(self, customer_id: int, product_id: int, transaction_type) -> None:
        self._check_product(product_id)
        try:
            parsed = TransactionType.parse(transaction_type)
        except ValueError as exc:
            raise ValidationError(str(exc))
        self._row(customer_id).cell(product_id).transaction_type = parsed

    def set_payment_type(self, customer_id: int, payment_type) -> None:
        try:
            parsed = PaymentType.parse(payment_type)
        except ValueError as exc:
            raise ValidationError(str(exc))
        self._row(customer_id).payment_type = parsed

    def set_notes(self, customer_id: int, notes: str | None) -> None:
        self._row(customer_id).notes = notes or ""

    async def load_customer_prices(self) -> dict[int, dict[int, int]]:
        """Fetch the prices in force on the summary's day for every row customer."""
        customer_ids = list(self.sequencer.order)
        results = await asyncio.gather(
            *(self.api.get_customer_prices(cid, as_of=self.summary.get("sale_date")) for cid in customer_ids),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException):
                raise result
        self.customer_prices = {
            cid: {p["product_id"]: p["unit_price_cents"] for p in prices}
            for cid, prices in zip(customer_ids, results)
        }
        return self.customer_prices

    def unit_price(self, cell: GridCell, product_id: int, customer_id: int | None = None) -> int:
        if cell.unit_price_cents is not None:
            return cell.unit_price_cents
        negotiated = self.customer_prices.get(customer_id, {}).get(product_id)
        if negotiated is not None:
            return negotiated
        return self.products[product_id].get("default_unit_price_cents") or 0

    def row_total_cents(self, customer_id: int) -> int:
        row = self._row(customer_id)
        return sum(
            cell.quantity * self.unit_price(cell, product_id, customer_id)
            for product_id, cell in row.cells.items()
            if cell.quantity > 0 and cell.transaction_type.is_billable
        )

    def grand_total_cents(self) -> int:
        return sum(self.row_total_cents(row.customer_id) for row in self.rows)

    # =========================================================================
    # LOAD / COMMIT
    # =========================================================================

    def load_existing(self, sales: list[dict]) -> None:
        """Pre-fill cells from the grid's own sales already saved for the day."""
        for sale in sales:
            if sale.get("entry_mode") != EntryMode.GRID.value:
                continue
            customer_id = sale.get("customer_id")
            if customer_id is None or customer_id not in self.sequencer.order:
                continue
            row = self._row(customer_id)
            row.payment_type = PaymentType.parse(sale.get("payment_type") or PaymentType.CASH.value)
            row.notes = sale.get("notes") or ""
            for item in sale.get("items", []):
                if item["product_id"] not in self.products:
                    continue
                row.cells[item["product_id"]] = GridCell(
                    quantity=item["quantity_sold"],
                    unit_price_cents=item.get("unit_price_cents"),
                    transaction_type=TransactionType.parse(item.get("transaction_type")),
                )

    def build_batch(self) -> list[dict]:
        batch = []
        for row in self.rows:
            items = [
                {
                    "product_id": product_id,
                    "quantity_sold": cell.quantity,
                    "unit_price_cents": self.unit_price(cell, product_id, row.customer_id),
                    "transaction_type": cell.transaction_type.value,
                }
                for product_id in self.product_order
                for cell in [row.cells.get(product_id)]
                if cell is not None and cell.quantity > 0
            ]
            if not items:
                continue
            batch.append({
                "customer_id": row.customer_id,
                "payment_type": row.payment_type.value,
                "notes": row.notes.strip() or None,
                "items": items,
            })
        return batch

    async def commit_batch(self) -> dict:
        batch = self.build_batch()
        if not batch:
            raise ValidationError("no sales entered")

        await self.sequencer.flush()
        result = await self.api.commit_batch(self.summary_id, batch)
        self.last_result = result
        if isinstance(result.get("summary"), dict):
            self.summary = result["summary"]
        logger.info("Committed %s grid rows for summary %s", len(batch), self.summary_id)
        return result
