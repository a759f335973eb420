"""
Reconciliation view (operator side) tests.

Verifies:
- refresh() loads the view, catalog and sales for the selected driver-day
- A response for a selection that changed in flight is dropped
- A failed fetch leaves the previous state in place and never abandons its sibling fetch
- Preview difference and suggestion; finalize sends the loaded version
"""

import asyncio

import pytest

from salesops.client import ConflictOrServerError, PermissionDenied, ValidationError
from salesops.client.reconciliation_view import ReconciliationView

from conftest import run

DAY = "2026-10-19"


def _view_payload(summary_id, expected_cash=1000, version_id=3):
    return {
        "summary": {
            "id": summary_id,
            "reconciliation_status": "Pending",
            "is_locked": False,
            "total_cash_sales_value_cents": expected_cash,
            "expected_cash_cents": expected_cash,
            "version_id": version_id,
        },
        "product_reconciliation": [{"product_id": 1, "loaded": 10, "sold": 6, "returned": 6, "loss": -2}],
    }


@pytest.fixture
def api(fake_api):
    fake_api.views[(1, DAY)] = _view_payload(31)
    fake_api.views[(2, DAY)] = _view_payload(32, expected_cash=4000)
    fake_api.sales[31] = [{"id": 501, "customer_id": 11, "total_sale_amount_cents": 1000}]
    fake_api.sales[32] = []
    return fake_api


class TestRefresh:

    def test_loads_selected_day(self, api):
        view = ReconciliationView(api)
        view.select(1, DAY)
        assert run(view.refresh()) is True

        assert view.summary["id"] == 31
        assert view.product_rows[0]["loss"] == -2
        assert [p["id"] for p in view.products] == [1, 2, 3]
        assert [s["id"] for s in view.sales] == [501]
        assert api.calls_to("list_sales") == [(31,)]

    def test_refresh_needs_selection(self, api):
        with pytest.raises(ValidationError):
            run(ReconciliationView(api).refresh())

    def test_stale_response_is_dropped(self, api):
        async def scenario():
            gate = asyncio.Event()
            api.gates["get_reconciliation"] = gate
            view = ReconciliationView(api)
            view.select(1, DAY)

            task = asyncio.create_task(view.refresh())
            await asyncio.sleep(0)
            view.select(2, DAY)
            gate.set()
            return view, await task

        view, applied = run(scenario())
        assert applied is False
        assert view.summary is None
        assert view.sales == []
        assert api.calls_to("list_sales") == []

    def test_failed_fetch_keeps_previous_state(self, api):
        view = ReconciliationView(api)
        view.select(1, DAY)
        run(view.refresh())

        api.views[(1, DAY)] = _view_payload(31, expected_cash=9999)
        api.fail["list_sales"] = ConflictOrServerError("Internal server error", status=500)
        with pytest.raises(ConflictOrServerError):
            run(view.refresh())

        assert view.summary["expected_cash_cents"] == 1000
        assert [s["id"] for s in view.sales] == [501]

    def test_failed_fetch_waits_for_sibling_fetch(self, api):
        async def scenario():
            gate = asyncio.Event()
            api.gates["list_products"] = gate
            api.fail["get_reconciliation"] = ConflictOrServerError("Internal server error", status=500)
            view = ReconciliationView(api)
            view.select(1, DAY)

            task = asyncio.create_task(view.refresh())
            for _ in range(5):
                await asyncio.sleep(0)
            # The failed fetch is not raised while the catalog fetch is still running
            assert not task.done()

            gate.set()
            with pytest.raises(ConflictOrServerError):
                await task
            return view

        view = run(scenario())
        assert view.summary is None
        assert api.calls_to("list_products") == [()]
        assert api.calls_to("list_sales") == []


class TestDraftsAndFinalize:

    def _loaded(self, api):
        view = ReconciliationView(api)
        view.select(1, DAY)
        run(view.refresh())
        return view

    def test_preview(self, api):
        view = self._loaded(api)
        assert view.preview()["cash_difference_cents"] is None

        view.set_cash_collected(950)
        assert view.preview() == {
            "expected_cash_cents": 1000,
            "cash_collected_cents": 950,
            "cash_difference_cents": -50,
            "suggested_status": "Cash Short",
        }

    @pytest.mark.parametrize("cash", [-1, 9.5, "950", True])
    def test_bad_cash_draft(self, api, cash):
        view = self._loaded(api)
        with pytest.raises(ValidationError):
            view.set_cash_collected(cash)

    def test_finalize_uses_suggestion_and_version(self, api):
        view = self._loaded(api)
        view.set_cash_collected(950)
        view.set_notes("short 50")
        summary = run(view.finalize())

        assert api.calls_to("finalize") == [(31, 950, "Cash Short", "short 50", 3)]
        assert summary["is_locked"] is True
        assert view.cash_collected_cents is None
        assert view.notes is None

    def test_finalize_with_chosen_status(self, api):
        view = self._loaded(api)
        view.set_cash_collected(950)
        view.set_status("Pending Adjustment")
        run(view.finalize())
        assert api.calls_to("finalize")[0][2] == "Pending Adjustment"

    def test_finalize_needs_cash(self, api):
        view = self._loaded(api)
        with pytest.raises(ValidationError):
            run(view.finalize())
        assert api.calls_to("finalize") == []

    def test_denied_finalize_keeps_drafts(self, api):
        view = self._loaded(api)
        view.set_cash_collected(1000)
        view.set_status("Reconciled")
        api.fail["finalize"] = PermissionDenied("Day is locked", status=403)

        with pytest.raises(PermissionDenied):
            run(view.finalize())
        assert view.cash_collected_cents == 1000
        assert view.status.value == "Reconciled"
        assert view.summary["reconciliation_status"] == "Pending"

    def test_unlock(self, api):
        view = self._loaded(api)
        summary = run(view.unlock("recount"))
        assert summary["is_locked"] is False
        assert api.calls_to("unlock") == [(31, "recount")]
