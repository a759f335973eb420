from __future__ import annotations

from ..extensions import db
from salesops.time_utils import to_utc_z


class RouteAssignment(db.Model):
    """
    Customer membership and stop order on a delivery route.

    WHY: The route's active assignments ordered by route_sequence are the
    ordered customer list the sales grid is built from.

    DESIGN: Assignments are deactivated, never deleted, so sales counters
    survive a customer being taken off and later put back on a route.
    """
    __tablename__ = "customer_route_assignments"
    __table_args__ = (
        db.UniqueConstraint("route_id", "customer_id", name="uq_route_assignments_route_customer"),
        db.Index("ix_route_assignments_route_active_seq", "route_id", "is_active", "route_sequence"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    route_id = db.Column(db.Integer, db.ForeignKey("delivery_routes.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)

    route_sequence = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    # Maintained by batch sales commits
    last_sale_date = db.Column(db.Date, nullable=True)
    total_sales_count = db.Column(db.Integer, nullable=False, default=0)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    route = db.relationship("DeliveryRoute", backref=db.backref("assignments", lazy=True))
    customer = db.relationship("Customer", backref=db.backref("route_assignments", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "route_id": self.route_id,
            "customer_id": self.customer_id,
            "customer_name": self.customer.customer_name if self.customer else None,
            "phone": self.customer.phone if self.customer else None,
            "address": self.customer.address if self.customer else None,
            "route_sequence": self.route_sequence,
            "is_active": self.is_active,
            "last_sale_date": self.last_sale_date.isoformat() if self.last_sale_date else None,
            "total_sales_count": self.total_sales_count,
            "updated_at": to_utc_z(self.updated_at),
        }
