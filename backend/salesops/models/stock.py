from __future__ import annotations

from ..extensions import db
from salesops.time_utils import to_utc_z


class LoadingBatch(db.Model):
    """
    Products placed on the vehicle at shift start.

    DESIGN: One batch per driver-day, created empty on first fetch and filled
    once when the load is declared. Frozen once the day leaves Pending.
    """
    __tablename__ = "loading_batches"
    __table_args__ = (
        db.UniqueConstraint("driver_daily_summary_id", name="uq_loading_batches_summary"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    driver_daily_summary_id = db.Column(
        db.Integer, db.ForeignKey("driver_daily_summaries.id"), nullable=False, index=True
    )
    batch_uuid = db.Column(db.String(36), nullable=False, unique=True)
    load_timestamp = db.Column(db.DateTime(timezone=True), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    declared_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    summary = db.relationship("DriverDailySummary", backref=db.backref("loading_batch", uselist=False, lazy=True))
    items = db.relationship(
        "LoadingBatchItem",
        back_populates="batch",
        cascade="all, delete-orphan",
        order_by="LoadingBatchItem.product_id",
        lazy=True,
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "driver_daily_summary_id": self.driver_daily_summary_id,
            "batch_uuid": self.batch_uuid,
            "load_timestamp": to_utc_z(self.load_timestamp) if self.load_timestamp else None,
            "notes": self.notes,
            "declared_by_user_id": self.declared_by_user_id,
            "items": [item.to_dict() for item in self.items],
        }


class LoadingBatchItem(db.Model):
    __tablename__ = "loading_batch_items"
    __table_args__ = (
        db.UniqueConstraint("loading_batch_id", "product_id", name="uq_loading_batch_items_product"),
        db.CheckConstraint("quantity_loaded > 0", name="ck_loading_batch_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    loading_batch_id = db.Column(db.Integer, db.ForeignKey("loading_batches.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    quantity_loaded = db.Column(db.Integer, nullable=False)

    batch = db.relationship("LoadingBatch", back_populates="items")
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product.product_name if self.product else None,
            "quantity_loaded": self.quantity_loaded,
        }


class ProductReturn(db.Model):
    """
    Stock brought back at shift end, with the reason it did not sell.

    DESIGN: The day's returns are replaced as one batch; either a catalog
    loss reason or a free-text reason may be given, not both.
    """
    __tablename__ = "product_returns"
    __table_args__ = (
        db.UniqueConstraint("driver_daily_summary_id", "product_id", name="uq_product_returns_summary_product"),
        db.CheckConstraint("quantity_returned > 0", name="ck_product_returns_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    driver_daily_summary_id = db.Column(
        db.Integer, db.ForeignKey("driver_daily_summaries.id"), nullable=False, index=True
    )
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    quantity_returned = db.Column(db.Integer, nullable=False)

    loss_reason_id = db.Column(db.Integer, db.ForeignKey("loss_reasons.id"), nullable=True)
    custom_reason_for_loss = db.Column(db.String(255), nullable=True)

    logged_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    summary = db.relationship("DriverDailySummary", backref=db.backref("returns", lazy=True))
    product = db.relationship("Product")
    loss_reason = db.relationship("LossReason")

    @property
    def reason(self) -> str | None:
        if self.loss_reason is not None:
            return self.loss_reason.reason_description
        return self.custom_reason_for_loss

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "driver_daily_summary_id": self.driver_daily_summary_id,
            "product_id": self.product_id,
            "product_name": self.product.product_name if self.product else None,
            "quantity_returned": self.quantity_returned,
            "loss_reason_id": self.loss_reason_id,
            "custom_reason_for_loss": self.custom_reason_for_loss,
            "reason": self.reason,
            "created_at": to_utc_z(self.created_at),
        }
