"""
Driver sales entry tests.

Verifies:
- Batch commits compute record totals server-side and refresh summary totals
- One invalid row rejects the whole batch; nothing is written
- A second batch replaces the grid sales but keeps every editor sale, route customers included
- Single-sale create / update-in-place / delete keep totals in step
- Customer identity is exclusive
- Locked days reject writes from non-privileged roles
"""

import pytest

from salesops.extensions import db
from salesops.models import DriverSale, DriverSaleItem, RouteAssignment
from salesops.services import sales_entry_service, summary_service
from salesops.services.permission_service import PermissionDeniedError
from salesops.validation import ValidationError

from conftest import SALE_DATE


def _row(customer, *items, payment_type="Cash", notes=None):
    return {
        "customer_id": customer.id,
        "payment_type": payment_type,
        "notes": notes,
        "items": [
            {"product_id": product.id, "quantity_sold": qty, "unit_price_cents": price}
            for product, qty, price in items
        ],
    }


def _sale_count(summary_id):
    return db.session.query(DriverSale).filter_by(driver_daily_summary_id=summary_id).count()


# =============================================================================
# BATCH COMMIT
# =============================================================================


class TestCommitBatch:

    def test_totals_computed_server_side(self, summary, catalog):
        result = sales_entry_service.commit_batch(
            summary.id,
            [
                _row(catalog.alpha, (catalog.ice, 3, 1000), (catalog.cone, 2, 500)),
                _row(catalog.bravo, (catalog.bar, 4, 250), payment_type="Credit"),
                _row(catalog.charlie, (catalog.ice, 1, 900), payment_type="Debit"),
            ],
            role="clerk",
        )

        assert result.processed_sales == 3
        assert result.total_amount_cents == 4000 + 1000 + 900
        for sale in result.sales:
            assert sale.total_sale_amount_cents == sum(i.line_total_cents for i in sale.items)

        refreshed = summary_service.get_summary(summary.id)
        assert refreshed.total_cash_sales_value_cents == 4000
        assert refreshed.total_new_credit_sales_value_cents == 1000
        assert refreshed.total_other_payment_sales_value_cents == 900

    def test_missing_price_uses_product_default(self, summary, catalog):
        row = {"customer_id": catalog.alpha.id, "items": [{"product_id": catalog.cone.id, "quantity_sold": 2}]}
        result = sales_entry_service.commit_batch(summary.id, [row], role="clerk")

        item = result.sales[0].items[0]
        assert item.unit_price_cents == 500
        assert result.sales[0].payment_type == "Cash"

    def test_giveaway_lines_count_zero(self, summary, catalog):
        row = _row(catalog.alpha, (catalog.ice, 2, 1000))
        row["items"].append({
            "product_id": catalog.cone.id,
            "quantity_sold": 3,
            "unit_price_cents": 500,
            "transaction_type": "Giveaway",
        })
        result = sales_entry_service.commit_batch(summary.id, [row], role="clerk")
        assert result.sales[0].total_sale_amount_cents == 2000

    @pytest.mark.parametrize(
        "bad_row",
        [
            {"items": [{"product_id": 0, "quantity_sold": 1}]},
            {"items": [{"product_id": 999999, "quantity_sold": 1}]},
            {"items": [{"product_id": "ice", "quantity_sold": 0}]},
            {"items": [{"product_id": "ice", "quantity_sold": 1, "unit_price_cents": -1}]},
            {"items": [{"product_id": "ice", "quantity_sold": "1.5"}]},
            {"payment_type": "Barter", "items": [{"product_id": "ice", "quantity_sold": 1}]},
            {"items": [{"product_id": "ice", "quantity_sold": 1}, {"product_id": "ice", "quantity_sold": 2}]},
            {"items": [{"product_id": "retired", "quantity_sold": 1}]},
            {"items": []},
        ],
    )
    def test_one_bad_row_rejects_everything(self, summary, catalog, bad_row):
        first = sales_entry_service.commit_batch(
            summary.id, [_row(catalog.charlie, (catalog.bar, 1, 250))], role="clerk"
        )
        existing_ids = [s.id for s in first.sales]

        names = {"ice": catalog.ice.id, "retired": catalog.retired.id}
        bad = {"customer_id": catalog.bravo.id, **bad_row}
        bad["items"] = [
            {**item, "product_id": names.get(item["product_id"], item["product_id"])}
            for item in bad_row["items"]
        ]

        with pytest.raises(ValidationError):
            sales_entry_service.commit_batch(
                summary.id,
                [_row(catalog.alpha, (catalog.ice, 1, 1000)), bad],
                role="clerk",
            )
        db.session.rollback()

        remaining = db.session.query(DriverSale).filter_by(driver_daily_summary_id=summary.id).all()
        assert [s.id for s in remaining] == existing_ids
        assert summary_service.get_summary(summary.id).total_cash_sales_value_cents == 250

    def test_empty_batch_rejected(self, summary):
        with pytest.raises(ValidationError):
            sales_entry_service.commit_batch(summary.id, [], role="clerk")

    def test_rows_need_registered_customer(self, summary, catalog):
        row = {"customer_name_override": "Street vendor", "items": [{"product_id": catalog.ice.id, "quantity_sold": 1}]}
        with pytest.raises(ValidationError):
            sales_entry_service.commit_batch(summary.id, [row], role="clerk")

    def test_duplicate_customer_rows_rejected(self, summary, catalog):
        with pytest.raises(ValidationError):
            sales_entry_service.commit_batch(
                summary.id,
                [_row(catalog.alpha, (catalog.ice, 1, 1000)), _row(catalog.alpha, (catalog.cone, 1, 500))],
                role="clerk",
            )
        assert _sale_count(summary.id) == 0

    def test_second_batch_replaces_grid_sales_only(self, summary, catalog):
        sales_entry_service.commit_batch(
            summary.id,
            [_row(catalog.alpha, (catalog.ice, 1, 1000)), _row(catalog.bravo, (catalog.cone, 1, 500))],
            role="clerk",
        )
        ad_hoc = sales_entry_service.create_sale(
            summary.id,
            {"customer_name_override": "Market stall", "items": [{"product_id": catalog.bar.id, "quantity_sold": 2}]},
            role="clerk",
        )

        sales_entry_service.commit_batch(
            summary.id, [_row(catalog.alpha, (catalog.ice, 2, 1000))], role="clerk"
        )

        sales = sales_entry_service.list_sales(summary.id)
        by_customer = {s.customer_id: s for s in sales}
        assert set(by_customer) == {catalog.alpha.id, None}
        assert by_customer[catalog.alpha.id].total_sale_amount_cents == 2000
        assert ad_hoc.id in [s.id for s in sales]
        assert summary_service.get_summary(summary.id).total_cash_sales_value_cents == 2000 + 500

    def test_recommit_keeps_editor_sales_of_route_customers(self, summary, catalog):
        sales_entry_service.commit_batch(
            summary.id, [_row(catalog.alpha, (catalog.ice, 3, 1000))], role="clerk"
        )
        correction = sales_entry_service.create_sale(
            summary.id,
            {
                "customer_id": catalog.alpha.id,
                "payment_type": "Credit",
                "items": [{"product_id": catalog.ice.id, "quantity_sold": 2, "unit_price_cents": 1000}],
            },
            role="clerk",
        )

        # Reopen the grid from the grid sales only and commit them unchanged
        grid_rows = [
            {
                "customer_id": s.customer_id,
                "payment_type": s.payment_type,
                "items": [
                    {"product_id": i.product_id, "quantity_sold": i.quantity_sold, "unit_price_cents": i.unit_price_cents}
                    for i in s.items
                ],
            }
            for s in sales_entry_service.list_sales(summary.id)
            if s.entry_mode == "grid"
        ]
        sales_entry_service.commit_batch(summary.id, grid_rows, role="clerk")

        sales = sales_entry_service.list_sales(summary.id)
        assert sorted(s.entry_mode for s in sales) == ["editor", "grid"]
        assert correction.id in [s.id for s in sales]
        assert sum(i.quantity_sold for s in sales for i in s.items) == 5

        refreshed = summary_service.get_summary(summary.id)
        assert refreshed.total_cash_sales_value_cents == 3000
        assert refreshed.total_new_credit_sales_value_cents == 2000

    def test_sales_record_entry_mode(self, summary, catalog):
        batch = sales_entry_service.commit_batch(
            summary.id, [_row(catalog.alpha, (catalog.ice, 1, 1000))], role="clerk"
        )
        single = sales_entry_service.create_sale(
            summary.id,
            {"customer_id": catalog.bravo.id, "items": [{"product_id": catalog.cone.id, "quantity_sold": 1}]},
            role="clerk",
        )
        assert batch.sales[0].entry_mode == "grid"
        assert single.entry_mode == "editor"
        assert single.to_dict()["entry_mode"] == "editor"

    def test_updates_route_assignment_counters(self, summary, catalog):
        sales_entry_service.commit_batch(summary.id, [_row(catalog.alpha, (catalog.ice, 1, 1000))], role="clerk")
        sales_entry_service.commit_batch(summary.id, [_row(catalog.alpha, (catalog.ice, 1, 1000))], role="clerk")

        assignment = db.session.query(RouteAssignment).filter_by(
            route_id=catalog.route.id, customer_id=catalog.alpha.id
        ).one()
        assert assignment.total_sales_count == 2
        assert assignment.last_sale_date == SALE_DATE


# =============================================================================
# SINGLE SALE
# =============================================================================


class TestSingleSale:

    def test_identity_is_exclusive(self, summary, catalog):
        both = {
            "customer_id": catalog.alpha.id,
            "customer_name_override": "Someone",
            "items": [{"product_id": catalog.ice.id, "quantity_sold": 1}],
        }
        neither = {"items": [{"product_id": catalog.ice.id, "quantity_sold": 1}]}
        for payload in (both, neither):
            with pytest.raises(ValidationError):
                sales_entry_service.create_sale(summary.id, payload, role="clerk")
        assert _sale_count(summary.id) == 0

    def test_create_refreshes_totals(self, summary, catalog):
        sale = sales_entry_service.create_sale(
            summary.id,
            {"customer_id": catalog.walk_in.id, "payment_type": "Credit",
             "items": [{"product_id": catalog.ice.id, "quantity_sold": 2, "unit_price_cents": 1100}]},
            role="clerk",
        )
        assert sale.total_sale_amount_cents == 2200
        assert summary_service.get_summary(summary.id).total_new_credit_sales_value_cents == 2200

    def test_update_in_place_replaces_items(self, summary, catalog):
        sale = sales_entry_service.create_sale(
            summary.id,
            {"customer_id": catalog.alpha.id,
             "items": [{"product_id": catalog.ice.id, "quantity_sold": 1},
                       {"product_id": catalog.cone.id, "quantity_sold": 1}]},
            role="clerk",
        )
        sale_id = sale.id

        updated = sales_entry_service.update_sale(
            sale_id,
            {"customer_name_override": "Renamed buyer", "payment_type": "Cash",
             "items": [{"product_id": catalog.bar.id, "quantity_sold": 4}]},
            role="clerk",
        )

        assert updated.id == sale_id
        assert updated.customer_id is None
        assert updated.customer_name_override == "Renamed buyer"
        assert [(i.product_id, i.quantity_sold) for i in updated.items] == [(catalog.bar.id, 4)]
        assert db.session.query(DriverSaleItem).filter_by(driver_sale_id=sale_id).count() == 1
        assert _sale_count(summary.id) == 1
        assert summary_service.get_summary(summary.id).total_cash_sales_value_cents == 1000

    def test_delete_refreshes_totals(self, summary, catalog):
        sale = sales_entry_service.create_sale(
            summary.id,
            {"customer_id": catalog.alpha.id, "items": [{"product_id": catalog.ice.id, "quantity_sold": 1}]},
            role="clerk",
        )
        assert sales_entry_service.delete_sale(sale.id, role="clerk") == summary.id
        assert _sale_count(summary.id) == 0
        assert summary_service.get_summary(summary.id).total_cash_sales_value_cents == 0


# =============================================================================
# LOCKED DAYS
# =============================================================================


def _lock(summary):
    summary.reconciliation_status = "Reconciled"
    db.session.commit()


class TestLockedDay:

    def test_clerk_cannot_write(self, summary, catalog):
        sale = sales_entry_service.create_sale(
            summary.id,
            {"customer_id": catalog.alpha.id, "items": [{"product_id": catalog.ice.id, "quantity_sold": 1}]},
            role="clerk",
        )
        _lock(summary)

        with pytest.raises(PermissionDeniedError):
            sales_entry_service.commit_batch(summary.id, [_row(catalog.bravo, (catalog.ice, 1, 1000))], role="clerk")
        with pytest.raises(PermissionDeniedError):
            sales_entry_service.delete_sale(sale.id, role="clerk")
        db.session.rollback()

        assert _sale_count(summary.id) == 1

    def test_manager_can_write(self, summary, catalog):
        _lock(summary)
        sales_entry_service.commit_batch(summary.id, [_row(catalog.bravo, (catalog.ice, 1, 1000))], role="manager")
        assert _sale_count(summary.id) == 1


# =============================================================================
# API
# =============================================================================


class TestSalesApi:

    def test_batch_endpoint(self, client, summary, catalog, clerk_headers):
        resp = client.post(
            "/api/sales-ops/sales/batch",
            json={
                "driver_daily_summary_id": summary.id,
                "sales_data": [_row(catalog.alpha, (catalog.ice, 2, 1000))],
            },
            headers=clerk_headers,
        )
        assert resp.status_code == 201
        assert resp.json["processed_sales"] == 1
        assert resp.json["total_amount_cents"] == 2000
        assert resp.json["summary"]["total_cash_sales_value_cents"] == 2000

        resp = client.get(f"/api/sales-ops/summaries/{summary.id}/sales", headers=clerk_headers)
        assert resp.status_code == 200
        assert resp.json["sales"][0]["items"][0]["line_total_cents"] == 2000

    def test_batch_rejection_is_400(self, client, summary, catalog, clerk_headers):
        resp = client.post(
            "/api/sales-ops/sales/batch",
            json={
                "driver_daily_summary_id": summary.id,
                "sales_data": [{"customer_id": catalog.alpha.id, "items": [{"product_id": 999999, "quantity_sold": 1}]}],
            },
            headers=clerk_headers,
        )
        assert resp.status_code == 400
        assert resp.json["code"] == "validation_error"
        assert _sale_count(summary.id) == 0

    def test_edit_cycle(self, client, summary, catalog, clerk_headers):
        resp = client.post(
            "/api/sales-ops/sales",
            json={
                "driver_daily_summary_id": summary.id,
                "customer_name_override": "Festival stand",
                "items": [{"product_id": catalog.cone.id, "quantity_sold": 3}],
            },
            headers=clerk_headers,
        )
        assert resp.status_code == 201
        sale_id = resp.json["sale"]["id"]
        assert resp.json["summary"]["total_cash_sales_value_cents"] == 1500

        resp = client.put(
            f"/api/sales-ops/sales/{sale_id}",
            json={"customer_id": catalog.alpha.id, "items": [{"product_id": catalog.cone.id, "quantity_sold": 1}]},
            headers=clerk_headers,
        )
        assert resp.status_code == 200
        assert resp.json["sale"]["id"] == sale_id
        assert resp.json["sale"]["customer_name"] == "Alpha Mart"
        assert resp.json["summary"]["total_cash_sales_value_cents"] == 500

        resp = client.delete(f"/api/sales-ops/sales/{sale_id}", headers=clerk_headers)
        assert resp.status_code == 200
        assert resp.json["summary"]["total_cash_sales_value_cents"] == 0

        resp = client.delete(f"/api/sales-ops/sales/{sale_id}", headers=clerk_headers)
        assert resp.status_code == 404
