from __future__ import annotations

from ..extensions import db
from salesops.time_utils import to_utc_z


class DriverSale(db.Model):
    """
    One sale made by a driver to one customer on one trading day.

    WHY: Sales are logged by office staff from the driver's paperwork, either
    in bulk through the route grid or one at a time for corrections.

    INVARIANTS:
    - Exactly one of customer_id / customer_name_override is set
    - total_sale_amount_cents equals the sum of billable item totals and is
      always recomputed server-side, never accepted from a client
    - entry_mode records which screen created the sale and never changes;
      a grid commit replaces grid sales only
    """
    __tablename__ = "driver_sales"
    __table_args__ = (
        db.CheckConstraint(
            "(customer_id IS NULL) <> (customer_name_override IS NULL)",
            name="ck_driver_sales_one_customer_identity",
        ),
        db.Index("ix_driver_sales_summary", "driver_daily_summary_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    driver_daily_summary_id = db.Column(
        db.Integer, db.ForeignKey("driver_daily_summaries.id"), nullable=False
    )

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    customer_name_override = db.Column(db.String(255), nullable=True)

    payment_type = db.Column(db.String(16), nullable=False, default="Cash")
    entry_mode = db.Column(db.String(16), nullable=False, default="editor", index=True)
    notes = db.Column(db.Text, nullable=True)

    total_sale_amount_cents = db.Column(db.Integer, nullable=False, default=0)

    logged_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    summary = db.relationship("DriverDailySummary", backref=db.backref("sales", lazy=True))
    customer = db.relationship("Customer")
    items = db.relationship(
        "DriverSaleItem",
        back_populates="sale",
        cascade="all, delete-orphan",
        order_by="DriverSaleItem.id",
        lazy=True,
    )

    @property
    def customer_display_name(self) -> str | None:
        if self.customer_name_override:
            return self.customer_name_override
        return self.customer.customer_name if self.customer else None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "driver_daily_summary_id": self.driver_daily_summary_id,
            "customer_id": self.customer_id,
            "customer_name_override": self.customer_name_override,
            "customer_name": self.customer_display_name,
            "payment_type": self.payment_type,
            "entry_mode": self.entry_mode,
            "notes": self.notes,
            "total_sale_amount_cents": self.total_sale_amount_cents,
            "logged_by_user_id": self.logged_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "items": [item.to_dict() for item in self.items],
        }


class DriverSaleItem(db.Model):
    __tablename__ = "driver_sale_items"
    __table_args__ = (
        db.UniqueConstraint("driver_sale_id", "product_id", name="uq_driver_sale_items_sale_product"),
        db.CheckConstraint("quantity_sold > 0", name="ck_driver_sale_items_quantity_positive"),
        db.CheckConstraint("unit_price_cents >= 0", name="ck_driver_sale_items_price_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    driver_sale_id = db.Column(db.Integer, db.ForeignKey("driver_sales.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity_sold = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False, default=0)
    transaction_type = db.Column(db.String(16), nullable=False, default="Sale")
    line_total_cents = db.Column(db.Integer, nullable=False, default=0)

    sale = db.relationship("DriverSale", back_populates="items")
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "driver_sale_id": self.driver_sale_id,
            "product_id": self.product_id,
            "product_name": self.product.product_name if self.product else None,
            "quantity_sold": self.quantity_sold,
            "unit_price_cents": self.unit_price_cents,
            "transaction_type": self.transaction_type,
            "line_total_cents": self.line_total_cents,
        }
