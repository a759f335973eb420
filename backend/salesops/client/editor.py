# Overview: Single-sale editor buffer (create or edit one sale).

"""
Single-Sale Editor

Customer identity is either a registered customer or a free-text name,
never both: selecting a registered customer clears the typed name, typing
a non-blank name clears the selected customer.

Modes:
- create: submit creates a new sale on the summary
- edit:   load(sale) pre-populates every line; submit updates in place

A failed submit leaves the buffer untouched.
"""

from __future__ import annotations

import difflib
import logging
from dataclasses import dataclass

from ..domain import PaymentType, TransactionType
from .errors import ValidationError

logger = logging.getLogger(__name__)

MIN_MATCH_RATIO = 0.4


@dataclass
class EditorLine:
    product_id: int | None = None
    quantity: int = 1
    unit_price_cents: int | None = None
    transaction_type: TransactionType = TransactionType.SALE


class SaleEditor:
    def __init__(self, api, summary_id: int, products: list[dict], customers: list[dict] = ()):
        self.api = api
        self.summary_id = summary_id
        self.products = {p["id"]: p for p in products}
        self.customers = list(customers)
        self.clear()

    # =========================================================================
    # MODE
    # =========================================================================

    @property
    def mode(self) -> str:
        return "edit" if self.sale_id is not None else "create"

    def clear(self) -> None:
        """Reset to an empty create-mode buffer."""
        self.sale_id: int | None = None
        self.customer_id: int | None = None
        self.customer_name_override: str | None = None
        self.customer_prices: dict[int, int] = {}
        self.payment_type = PaymentType.CASH
        self.notes = ""
        self.lines: list[EditorLine] = []

    def load(self, sale: dict) -> None:
        self.clear()
        self.sale_id = sale["id"]
        self.customer_id = sale.get("customer_id")
        self.customer_name_override = sale.get("customer_name_override")
        self.payment_type = PaymentType.parse(sale.get("payment_type") or PaymentType.CASH.value)
        self.notes = sale.get("notes") or ""
        self.lines = [
            EditorLine(
                product_id=item["product_id"],
                quantity=item["quantity_sold"],
                unit_price_cents=item.get("unit_price_cents"),
                transaction_type=TransactionType.parse(item.get("transaction_type")),
            )
            for item in sale.get("items", [])
        ]

    # =========================================================================
    # CUSTOMER
    # =========================================================================

    def select_customer(self, customer_id: int | None) -> None:
        if customer_id != self.customer_id:
            self.customer_prices = {}
        self.customer_id = customer_id
        if customer_id is not None:
            self.customer_name_override = None

    def set_customer_name_override(self, name: str | None) -> None:
        name = (name or "").strip()
        if name:
            self.customer_name_override = name
            self.customer_id = None
            self.customer_prices = {}
        else:
            self.customer_name_override = None

    async def load_customer_prices(self, as_of: str | None = None) -> dict[int, int]:
        """Negotiated prices of the selected customer; lines without a price use them."""
        if self.customer_id is None:
            self.customer_prices = {}
            return self.customer_prices
        customer_id = self.customer_id
        prices = await self.api.get_customer_prices(customer_id, as_of=as_of)
        if self.customer_id == customer_id:
            self.customer_prices = {p["product_id"]: p["unit_price_cents"] for p in prices}
        return self.customer_prices

    def search_customers(self, term: str, limit: int = 10) -> list[dict]:
        """Registered customers ranked by how closely their name matches term."""
        term = (term or "").strip().lower()
        if not term:
            return self.customers[:limit]

        scored = []
        for customer in self.customers:
            name = (customer.get("customer_name") or "").lower()
            ratio = difflib.SequenceMatcher(None, term, name).ratio()
            if term in name:
                ratio += 1.0
            if ratio >= MIN_MATCH_RATIO:
                scored.append((ratio, customer))
        scored.sort(key=lambda pair: (-pair[0], pair[1].get("customer_name") or ""))
        return [customer for _, customer in scored[:limit]]

    def set_payment_type(self, payment_type) -> None:
        try:
            self.payment_type = PaymentType.parse(payment_type)
        except ValueError as exc:
            raise ValidationError(str(exc))

    # =========================================================================
    # LINES
    # =========================================================================

    def _line(self, index: int) -> EditorLine:
        if not 0 <= index < len(self.lines):
            raise ValidationError(f"No line {index}")
        return self.lines[index]

    def add_line(self, product_id: int | None = None, quantity: int = 1, unit_price_cents: int | None = None) -> int:
        self.lines.append(EditorLine())
        index = len(self.lines) - 1
        if product_id is not None:
            self.update_line(index, product_id=product_id)
        self.update_line(index, quantity=quantity, unit_price_cents=unit_price_cents)
        return index

    def update_line(self, index: int, **changes) -> EditorLine:
        line = self._line(index)
        if "product_id" in changes:
            product_id = changes["product_id"]
            if product_id is not None:
                if product_id not in self.products:
                    raise ValidationError(f"Unknown product {product_id}")
                if product_id in self._used_products(exclude=index):
                    raise ValidationError("Product is already on another line")
            line.product_id = product_id
        if "quantity" in changes:
            line.quantity = changes["quantity"]
        if "unit_price_cents" in changes:
            line.unit_price_cents = changes["unit_price_cents"]
        if "transaction_type" in changes:
            try:
                line.transaction_type = TransactionType.parse(changes["transaction_type"])
            except ValueError as exc:
                raise ValidationError(str(exc))
        return line

    def remove_line(self, index: int) -> None:
        self._line(index)
        del self.lines[index]

    def _used_products(self, exclude: int | None = None) -> set[int]:
        return {
            line.product_id
            for i, line in enumerate(self.lines)
            if i != exclude and line.product_id is not None
        }

    def candidate_products(self, index: int) -> list[dict]:
        """Products line `index` may pick: everything not used on another line."""
        used = self._used_products(exclude=index)
        return [p for pid, p in self.products.items() if pid not in used]

    def _price(self, line: EditorLine) -> int:
        if line.unit_price_cents is not None:
            return line.unit_price_cents
        if line.product_id in self.customer_prices:
            return self.customer_prices[line.product_id]
        return self.products[line.product_id].get("default_unit_price_cents") or 0

    def total_cents(self) -> int:
        return sum(
            line.quantity * self._price(line)
            for line in self.lines
            if line.product_id is not None
            and isinstance(line.quantity, int)
            and line.transaction_type.is_billable
        )

    # =========================================================================
    # SUBMIT
    # =========================================================================

    def validate(self) -> dict:
        """Return the request payload, or raise ValidationError before any call."""
        if self.customer_id is None and not self.customer_name_override:
            raise ValidationError("Select a customer or enter a customer name")
        if self.customer_id is not None and self.customer_name_override:
            raise ValidationError("A sale has either a registered customer or a typed name, not both")
        if not self.lines:
            raise ValidationError("Add at least one item")

        items = []
        for n, line in enumerate(self.lines, start=1):
            if line.product_id is None:
                raise ValidationError(f"Line {n}: product is required")
            if isinstance(line.quantity, bool) or not isinstance(line.quantity, int) or line.quantity <= 0:
                raise ValidationError(f"Line {n}: quantity must be a whole number greater than 0")
            price = self._price(line)
            if isinstance(price, bool) or not isinstance(price, int) or price < 0:
                raise ValidationError(f"Line {n}: unit price must be 0 or more")
            items.append({
                "product_id": line.product_id,
                "quantity_sold": line.quantity,
                "unit_price_cents": price,
                "transaction_type": line.transaction_type.value,
            })

        return {
            "customer_id": self.customer_id,
            "customer_name_override": self.customer_name_override,
            "payment_type": self.payment_type.value,
            "notes": self.notes.strip() or None,
            "items": items,
        }

    async def submit(self) -> dict:
        payload = self.validate()
        if self.sale_id is None:
            result = await self.api.create_sale(self.summary_id, payload)
        else:
            result = await self.api.update_sale(self.sale_id, payload)
        logger.info("Saved sale %s on summary %s", result.get("sale", {}).get("id"), self.summary_id)
        self.clear()
        return result

    async def delete(self) -> dict:
        if self.sale_id is None:
            raise ValidationError("Nothing to delete; the editor is not editing a saved sale")
        result = await self.api.delete_sale(self.sale_id)
        self.clear()
        return result
