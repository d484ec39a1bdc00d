from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from ..time_utils import to_utc_z


QUANTITY_PLACES = Decimal("0.001")
VALUE_PLACES = Decimal("0.01")


def _fmt(amount, places: Decimal) -> str | None:
    if amount is None:
        return None
    return str(Decimal(amount).quantize(places))


class CountSession(db.Model):
    """
    A bounded unit of inventory counting work.

    LIFECYCLE:
    1. draft: created, nothing counted yet
    2. in_progress: first tally recorded (or set by a manager)
    3. completed: counting done, still correctable
    4. finalized: locked, never mutated or deleted again

    Status changes go through services.lifecycle only.
    """
    __tablename__ = "count_sessions"
    __table_args__ = (
        db.Index("ix_count_sessions_created_at", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)

    # draft, in_progress, completed, finalized
    status = db.Column(db.String(16), nullable=False, default="draft", index=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    start_time = db.Column(db.DateTime(timezone=True), nullable=True)
    end_time = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    created_by = db.relationship("User", foreign_keys=[created_by_user_id])
    items = db.relationship(
        "CountItem",
        back_populates="count_session",
        lazy=True,
        order_by="CountItem.id",
        cascade="all, delete",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "status": self.status,
            "created_by_user_id": self.created_by_user_id,
            "created_by": self.created_by.to_ref() if self.created_by else None,
            "start_time": to_utc_z(self.start_time) if self.start_time else None,
            "end_time": to_utc_z(self.end_time) if self.end_time else None,
            "created_at": to_utc_z(self.created_at),
        }


class CountItem(db.Model):
    """
    One tally of a product's quantity within a room, scoped to a session.

    value is a snapshot of quantity * product.unit_value taken at write time,
    not a live join against the product price.
    """
    __tablename__ = "count_items"
    __table_args__ = (
        # At most one ledger entry per product-in-room per session
        db.UniqueConstraint("session_id", "product_id", "room_id", name="uq_count_items_session_product_room"),
        db.Index("ix_count_items_session_counted_by", "session_id", "counted_by_user_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    session_id = db.Column(db.Integer, db.ForeignKey("count_sessions.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    room_id = db.Column(db.Integer, db.ForeignKey("rooms.id"), nullable=False)

    quantity = db.Column(db.Numeric(12, 3), nullable=False, default=0)
    value = db.Column(db.Numeric(14, 2), nullable=False, default=0)

    counted_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    counted_at = db.Column(db.DateTime(timezone=True), nullable=False)

    count_session = db.relationship("CountSession", back_populates="items")
    product = db.relationship("Product")
    room = db.relationship("Room")
    counted_by = db.relationship("User", foreign_keys=[counted_by_user_id])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "session_id": self.session_id,
            "product_id": self.product_id,
            "room_id": self.room_id,
            "quantity": _fmt(self.quantity, QUANTITY_PLACES),
            "value": _fmt(self.value, VALUE_PLACES),
            "counted_by_user_id": self.counted_by_user_id,
            "counted_at": to_utc_z(self.counted_at),
            "product": self.product.to_dict() if self.product else None,
            "room": self.room.to_dict() if self.room else None,
            "counted_by": self.counted_by.to_ref() if self.counted_by else None,
        }
