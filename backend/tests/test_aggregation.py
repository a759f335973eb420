"""
Driver-day aggregation tests.

Verifies:
- Record totals equal the sum of billable line totals
- Cash / credit / other buckets follow the payment type
- Loss is loaded - sold - returned and may be negative
- Anomalies are flagged, never raised
"""

from salesops.domain import TransactionType
from salesops.services.aggregation import (
    LoadedLine,
    ReturnedLine,
    SaleSnapshot,
    SoldLine,
    aggregate,
    sale_total_cents,
)


def _sale(payment_type, *lines):
    return SaleSnapshot(payment_type=payment_type, items=tuple(lines))


class TestSaleTotals:

    def test_total_is_sum_of_lines(self):
        lines = [SoldLine(1, 3, 1000), SoldLine(2, 4, 250)]
        assert sale_total_cents(lines) == 3 * 1000 + 4 * 250

    def test_giveaway_lines_carry_no_money(self):
        lines = [
            SoldLine(1, 2, 1000),
            SoldLine(2, 5, 500, TransactionType.GIVEAWAY),
            SoldLine(3, 1, 250, TransactionType.INTERNAL_USE),
        ]
        assert sale_total_cents(lines) == 2000

    def test_payment_buckets(self):
        result = aggregate(
            [],
            [
                _sale("Cash", SoldLine(1, 1, 1000)),
                _sale("Cash", SoldLine(2, 2, 500)),
                _sale("Credit", SoldLine(1, 3, 1000)),
                _sale("Debit", SoldLine(3, 4, 250)),
            ],
            [],
        )
        assert result.totals.cash_cents == 2000
        assert result.totals.credit_cents == 3000
        assert result.totals.other_cents == 1000
        assert result.totals.grand_total_cents == 6000

    def test_no_sales_means_zero_totals(self):
        result = aggregate([LoadedLine(1, 10)], [], [])
        assert result.totals.cash_cents == 0
        assert result.totals.grand_total_cents == 0


class TestProductRows:

    def test_negative_loss_is_reported_not_clamped(self):
        result = aggregate(
            [LoadedLine(1, 10)],
            [_sale("Cash", SoldLine(1, 6, 1000))],
            [ReturnedLine(1, 6)],
        )
        row = result.row_for(1)
        assert (row.loaded, row.sold, row.returned) == (10, 6, 6)
        assert row.loss == -2
        assert row.negative_loss is True
        assert row in result.anomalies

    def test_giveaway_counts_as_sold_stock(self):
        result = aggregate(
            [LoadedLine(2, 10)],
            [_sale("Cash", SoldLine(2, 4, 500, TransactionType.GIVEAWAY))],
            [ReturnedLine(2, 5)],
        )
        row = result.row_for(2)
        assert row.sold == 4
        assert row.loss == 1
        assert result.totals.cash_cents == 0

    def test_movement_without_loading_is_flagged(self):
        result = aggregate([], [_sale("Cash", SoldLine(3, 2, 250))], [])
        row = result.row_for(3)
        assert row.loaded == 0
        assert row.unloaded_movement is True
        assert row.loss == -2

    def test_rows_sorted_and_only_moving_products(self):
        result = aggregate(
            [LoadedLine(3, 5), LoadedLine(1, 5), LoadedLine(2, 0)],
            [_sale("Cash", SoldLine(1, 1, 1000))],
            [],
        )
        assert [row.product_id for row in result.rows] == [1, 3]
        assert result.row_for(2) is None

    def test_same_inputs_same_output(self):
        loading = [LoadedLine(2, 8), LoadedLine(1, 10)]
        sales = [_sale("Credit", SoldLine(1, 2, 1000)), _sale("Cash", SoldLine(2, 3, 500))]
        returns = [ReturnedLine(1, 1)]
        assert aggregate(loading, sales, returns) == aggregate(loading, sales, returns)

    def test_total_loss_sums_rows(self):
        result = aggregate(
            [LoadedLine(1, 10), LoadedLine(2, 10)],
            [_sale("Cash", SoldLine(1, 6, 1000), SoldLine(2, 9, 500))],
            [ReturnedLine(1, 6)],
        )
        assert result.total_loss == -2 + 1

    def test_to_dict_uses_product_names(self):
        result = aggregate([LoadedLine(1, 4)], [], [])
        assert result.rows[0].to_dict({1: "Ice Cream Tub"}) == {
            "product_id": 1,
            "product_name": "Ice Cream Tub",
            "loaded": 4,
            "sold": 0,
            "returned": 0,
            "loss": 4,
            "negative_loss": False,
            "unloaded_movement": False,
        }
