from __future__ import annotations

from ..extensions import db
from ..domain import ReconciliationStatus
from salesops.time_utils import to_utc_z


class DriverDailySummary(db.Model):
    """
    One driver's trading day.

    WHY: The single record that loading, sales and returns hang off, and the
    record the cash reconciliation locks.

    LIFECYCLE:
    - Pending: sales, returns and loading may change; totals are refreshed
      after every change
    - Reconciled / Cash Short / Cash Over / Pending Adjustment: locked
      (read-only) until an admin or manager unlocks it

    CONCURRENCY: version_id is bumped on every flush; a stale writer gets
    StaleDataError, and finalize can also compare an expected version.
    """
    __tablename__ = "driver_daily_summaries"
    __table_args__ = (
        db.UniqueConstraint("driver_id", "sale_date", name="uq_driver_daily_summaries_driver_date"),
        db.Index("ix_driver_daily_summaries_date_status", "sale_date", "reconciliation_status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    driver_id = db.Column(db.Integer, db.ForeignKey("drivers.id"), nullable=False, index=True)
    sale_date = db.Column(db.Date, nullable=False, index=True)
    route_id = db.Column(db.Integer, db.ForeignKey("delivery_routes.id"), nullable=True, index=True)

    # Derived from driver_sales (all amounts in cents)
    total_cash_sales_value_cents = db.Column(db.Integer, nullable=False, default=0)
    total_new_credit_sales_value_cents = db.Column(db.Integer, nullable=False, default=0)
    total_other_payment_sales_value_cents = db.Column(db.Integer, nullable=False, default=0)

    # Entered at reconciliation
    cash_collected_cents = db.Column(db.Integer, nullable=True)
    cash_difference_cents = db.Column(db.Integer, nullable=True)  # collected - expected cash

    reconciliation_status = db.Column(
        db.String(32), nullable=False, default=ReconciliationStatus.PENDING.value, index=True
    )
    reconciliation_notes = db.Column(db.Text, nullable=True)

    reconciled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    reconciled_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    # Set by unlock, cleared by the next finalize
    unlocked_at = db.Column(db.DateTime(timezone=True), nullable=True)
    unlocked_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    driver = db.relationship("Driver", backref=db.backref("daily_summaries", lazy=True))
    route = db.relationship("DeliveryRoute", backref=db.backref("daily_summaries", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def status(self) -> ReconciliationStatus:
        return ReconciliationStatus.parse(self.reconciliation_status)

    @property
    def is_locked(self) -> bool:
        return self.status.is_final and self.unlocked_at is None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "driver_id": self.driver_id,
            "driver_name": self.driver.name if self.driver else None,
            "sale_date": self.sale_date.isoformat() if self.sale_date else None,
            "route_id": self.route_id,
            "route_name": self.route.route_name if self.route else None,
            "total_cash_sales_value_cents": self.total_cash_sales_value_cents,
            "total_new_credit_sales_value_cents": self.total_new_credit_sales_value_cents,
            "total_other_payment_sales_value_cents": self.total_other_payment_sales_value_cents,
            "cash_collected_cents": self.cash_collected_cents,
            "cash_difference_cents": self.cash_difference_cents,
            "reconciliation_status": self.reconciliation_status,
            "reconciliation_notes": self.reconciliation_notes,
            "is_locked": self.is_locked,
            "reconciled_at": to_utc_z(self.reconciled_at) if self.reconciled_at else None,
            "reconciled_by_user_id": self.reconciled_by_user_id,
            "unlocked_at": to_utc_z(self.unlocked_at) if self.unlocked_at else None,
            "unlocked_by_user_id": self.unlocked_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }


class ReconciliationEvent(db.Model):
    """
    Append-only audit trail of finalize and unlock actions.

    EVENT TYPES:
    - FINALIZE: cash counted and a status recorded
    - UNLOCK: a locked day re-opened for editing
    """
    __tablename__ = "reconciliation_events"
    __table_args__ = (
        db.Index("ix_reconciliation_events_summary_occurred", "driver_daily_summary_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    driver_daily_summary_id = db.Column(
        db.Integer, db.ForeignKey("driver_daily_summaries.id"), nullable=False, index=True
    )
    event_type = db.Column(db.String(16), nullable=False)
    actor_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    actor_role = db.Column(db.String(32), nullable=True)

    from_status = db.Column(db.String(32), nullable=False)
    to_status = db.Column(db.String(32), nullable=False)

    expected_cash_cents = db.Column(db.Integer, nullable=True)
    cash_collected_cents = db.Column(db.Integer, nullable=True)
    cash_difference_cents = db.Column(db.Integer, nullable=True)
    note = db.Column(db.Text, nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    summary = db.relationship("DriverDailySummary", backref=db.backref("events", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "driver_daily_summary_id": self.driver_daily_summary_id,
            "event_type": self.event_type,
            "actor_user_id": self.actor_user_id,
            "actor_role": self.actor_role,
            "from_status": self.from_status,
            "to_status": self.to_status,
            "expected_cash_cents": self.expected_cash_cents,
            "cash_collected_cents": self.cash_collected_cents,
            "cash_difference_cents": self.cash_difference_cents,
            "note": self.note,
            "occurred_at": to_utc_z(self.occurred_at),
        }
