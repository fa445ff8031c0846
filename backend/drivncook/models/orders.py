from __future__ import annotations

from ..extensions import db
from drivncook.time_utils import to_utc_z


ORDER_STATUSES = {
    "DRAFT",
    "PENDING",
    "CONFIRMED",
    "IN_PREPARATION",
    "SHIPPED",
    "DELIVERED",
    "CANCELLED",
    "PAID",
}
# Orders still editable by their franchise (items, deletion)
OPEN_ORDER_STATUSES = {"DRAFT", "PENDING"}


class Order(db.Model):
    """
    Purchase request from a franchise to the central warehouses.

    total_amount_cents is a cached aggregate of its items' totals; it is
    recomputed in the same transaction as every item mutation.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_franchise_status", "franchise_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_number = db.Column(db.String(32), nullable=False, unique=True, index=True)
    franchise_id = db.Column(db.Integer, db.ForeignKey("franchises.id"), nullable=False, index=True)
    status = db.Column(db.String(16), nullable=False, default="PENDING")

    order_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    requested_delivery_date = db.Column(db.DateTime(timezone=True), nullable=True)
    actual_delivery_date = db.Column(db.DateTime(timezone=True), nullable=True)

    total_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    notes = db.Column(db.Text, nullable=True)
    is_from_drivn_cook = db.Column(db.Boolean, nullable=False, default=True)
    transmitted_attachment_urls = db.Column(db.JSON, nullable=True)

    created_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    updated_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    franchise = db.relationship("Franchise", backref=db.backref("orders", lazy=True))
    items = db.relationship(
        "OrderItem",
        backref="order",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Order id={self.id} number={self.order_number!r} status={self.status}>"

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "order_number": self.order_number,
            "franchise_id": self.franchise_id,
            "franchise": self.franchise.to_summary() if self.franchise else None,
            "status": self.status,
            "order_date": to_utc_z(self.order_date),
            "requested_delivery_date": to_utc_z(self.requested_delivery_date),
            "actual_delivery_date": to_utc_z(self.actual_delivery_date),
            "total_amount_cents": self.total_amount_cents,
            "notes": self.notes,
            "is_from_drivn_cook": self.is_from_drivn_cook,
            "transmitted_attachment_urls": self.transmitted_attachment_urls or [],
            "item_count": len(self.items),
            "created_by_id": self.created_by_id,
            "updated_by_id": self.updated_by_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class OrderItem(db.Model):
    __tablename__ = "order_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    warehouse_id = db.Column(db.Integer, db.ForeignKey("warehouses.id"), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    total_price_cents = db.Column(db.Integer, nullable=False)
    notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product")
    warehouse = db.relationship("Warehouse")

    @property
    def franchise_id(self) -> int | None:
        return self.order.franchise_id if self.order else None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "product_id": self.product_id,
            "product": {"id": self.product.id, "name": self.product.name, "sku": self.product.sku,
                        "unit": self.product.unit} if self.product else None,
            "warehouse_id": self.warehouse_id,
            "warehouse": {"id": self.warehouse.id, "name": self.warehouse.name} if self.warehouse else None,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "total_price_cents": self.total_price_cents,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }
