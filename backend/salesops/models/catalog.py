from __future__ import annotations

from ..extensions import db
from salesops.time_utils import to_utc_z


class Driver(db.Model):
    """Delivery driver. Maintained by the fleet screens; read here."""
    __tablename__ = "drivers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    first_name = db.Column(db.String(128), nullable=False)
    last_name = db.Column(db.String(128), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    @property
    def name(self) -> str:
        return f"{self.first_name} {self.last_name or ''}".strip()

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "name": self.name,
            "phone": self.phone,
            "is_active": self.is_active,
        }


class DeliveryRoute(db.Model):
    __tablename__ = "delivery_routes"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    route_name = db.Column(db.String(128), nullable=False, unique=True)
    description = db.Column(db.Text, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "route_name": self.route_name,
            "description": self.description,
            "is_active": self.is_active,
        }


class Customer(db.Model):
    __tablename__ = "customers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    customer_name = db.Column(db.String(255), nullable=False, index=True)
    phone = db.Column(db.String(32), nullable=True)
    address = db.Column(db.Text, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_name": self.customer_name,
            "phone": self.phone,
            "address": self.address,
            "is_active": self.is_active,
        }


class Product(db.Model):
    __tablename__ = "products"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    product_name = db.Column(db.String(255), nullable=False)
    unit_of_measure = db.Column(db.String(32), nullable=True)
    default_unit_price_cents = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_name": self.product_name,
            "unit_of_measure": self.unit_of_measure,
            "default_unit_price_cents": self.default_unit_price_cents,
            "is_active": self.is_active,
        }


class LossReason(db.Model):
    """Why stock came back or went missing (melted, damaged, ...)."""
    __tablename__ = "loss_reasons"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    reason_description = db.Column(db.String(255), nullable=False, unique=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "reason_description": self.reason_description,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class CustomerPrice(db.Model):
    """
    Negotiated unit price of one product for one customer.

    Rows are never overwritten across dates: a new price gets a new
    effective_date and the price in force on a day is the row with the
    latest effective_date on or before it. Setting a price twice for the
    same date updates that row.
    """
    __tablename__ = "customer_prices"
    __table_args__ = (
        db.UniqueConstraint(
            "customer_id", "product_id", "effective_date", name="uq_customer_prices_customer_product_date"
        ),
        db.CheckConstraint("unit_price_cents >= 0", name="ck_customer_prices_price_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    effective_date = db.Column(db.Date, nullable=False)
    reason = db.Column(db.Text, nullable=True)
    set_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "product_id": self.product_id,
            "product_name": self.product.product_name if self.product else None,
            "unit_price_cents": self.unit_price_cents,
            "effective_date": self.effective_date.isoformat() if self.effective_date else None,
            "reason": self.reason,
            "set_by_user_id": self.set_by_user_id,
            "updated_at": to_utc_z(self.updated_at),
        }
