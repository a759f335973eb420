# Overview: Operator-side cash reconciliation screen state.

"""
Reconciliation View

select(driver_id, sale_date) sets the selection key. refresh() fetches the
reconciliation view and the product catalog concurrently, then the day's
sales (which need the summary id). A response that arrives after the
selection changed is dropped, and nothing of a refresh is kept unless every
fetch succeeded.

Cash, status and notes are local drafts until finalize() succeeds.
"""

from __future__ import annotations

import asyncio
import logging

from ..domain import ReconciliationStatus, suggest_status
from .errors import ValidationError

logger = logging.getLogger(__name__)


class ReconciliationView:
    def __init__(self, api):
        self.api = api
        self.selection: tuple[int, str] | None = None
        self._reset()

    def _reset(self) -> None:
        self.summary: dict | None = None
        self.product_rows: list[dict] = []
        self.products: list[dict] = []
        self.sales: list[dict] = []
        self.clear_drafts()

    def clear_drafts(self) -> None:
        self.cash_collected_cents: int | None = None
        self.status: ReconciliationStatus | None = None
        self.notes: str | None = None

    def select(self, driver_id: int, sale_date: str) -> None:
        self.selection = (driver_id, sale_date)
        self._reset()

    # =========================================================================
    # FETCH
    # =========================================================================

    async def refresh(self) -> bool:
        """
        Load the selected driver-day.

        Returns False when the selection changed while the requests were in
        flight; in that case nothing is applied. Any fetch error propagates and
        also leaves the current state untouched.
        """
        if self.selection is None:
            raise ValidationError("Select a driver and a date first")
        key = self.selection
        driver_id, sale_date = key

        # Both fetches are always awaited to completion before any failure is raised
        results = await asyncio.gather(
            self.api.get_reconciliation(driver_id, sale_date),
            self.api.list_products(),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException):
                raise result
        view, products = results
        if key != self.selection:
            logger.debug("Dropping reconciliation response for stale selection %s", key)
            return False

        sales = await self.api.list_sales(view["summary"]["id"])
        if key != self.selection:
            logger.debug("Dropping sales response for stale selection %s", key)
            return False

        self.summary = view["summary"]
        self.product_rows = view["product_reconciliation"]
        self.products = products
        self.sales = sales
        return True

    # =========================================================================
    # DRAFTS
    # =========================================================================

    @property
    def expected_cash_cents(self) -> int:
        if self.summary is None:
            return 0
        expected = self.summary.get("expected_cash_cents")
        if expected is None:
            expected = self.summary.get("total_cash_sales_value_cents")
        return expected or 0

    @property
    def is_locked(self) -> bool:
        return bool(self.summary and self.summary.get("is_locked"))

    def set_cash_collected(self, cents) -> None:
        if isinstance(cents, bool) or not isinstance(cents, int) or cents < 0:
            raise ValidationError("Cash collected must be a whole number of cents, 0 or more")
        self.cash_collected_cents = cents

    def set_status(self, status) -> None:
        try:
            self.status = ReconciliationStatus.parse(status)
        except ValueError as exc:
            raise ValidationError(str(exc))

    def set_notes(self, notes: str | None) -> None:
        self.notes = notes

    def preview(self) -> dict:
        """Difference and suggested status for the draft cash amount."""
        if self.cash_collected_cents is None:
            return {
                "expected_cash_cents": self.expected_cash_cents,
                "cash_collected_cents": None,
                "cash_difference_cents": None,
                "suggested_status": None,
            }
        diff = self.cash_collected_cents - self.expected_cash_cents
        return {
            "expected_cash_cents": self.expected_cash_cents,
            "cash_collected_cents": self.cash_collected_cents,
            "cash_difference_cents": diff,
            "suggested_status": suggest_status(diff).value,
        }

    # =========================================================================
    # ACTIONS
    # =========================================================================

    async def finalize(self) -> dict:
        if self.summary is None:
            raise ValidationError("Load a driver-day before finalizing")
        if self.cash_collected_cents is None:
            raise ValidationError("Enter the cash collected")
        status = self.status or suggest_status(self.cash_collected_cents - self.expected_cash_cents)

        summary = await self.api.finalize(
            self.summary["id"],
            self.cash_collected_cents,
            status.value,
            self.notes,
            version_id=self.summary.get("version_id"),
        )
        self.summary = summary
        self.clear_drafts()
        logger.info("Finalized summary %s as %s", summary.get("id"), summary.get("reconciliation_status"))
        return summary

    async def unlock(self, note: str | None = None) -> dict:
        if self.summary is None:
            raise ValidationError("Load a driver-day before unlocking")
        self.summary = await self.api.unlock(self.summary["id"], note)
        return self.summary
