from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Room(db.Model):
    """A physical area of the facility where products are stored and counted."""
    __tablename__ = "rooms"
    __table_args__ = (
        db.UniqueConstraint("name", name="uq_rooms_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    description = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "created_at": to_utc_z(self.created_at),
        }


class Product(db.Model):
    """
    Product master data.

    unit_value is the price of one counting unit. Count items snapshot it
    into their stored value at write time.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("sku", name="uq_products_sku"),
        db.Index("ix_products_name", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sku = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    # "count" or "weight"
    unit_type = db.Column(db.String(16), nullable=False, default="count")
    unit_value = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "description": self.description,
            "unit_type": self.unit_type,
            "unit_value": str(self.unit_value) if self.unit_value is not None else None,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class RoomProduct(db.Model):
    """Assignment of a product to a room, with its position on the count sheet."""
    __tablename__ = "room_products"
    __table_args__ = (
        db.UniqueConstraint("room_id", "product_id", name="uq_room_products_room_product"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    room_id = db.Column(db.Integer, db.ForeignKey("rooms.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    display_order = db.Column(db.Integer, nullable=False, default=0)

    room = db.relationship("Room", backref=db.backref("room_products", lazy=True))
    product = db.relationship("Product", backref=db.backref("room_products", lazy=True))
