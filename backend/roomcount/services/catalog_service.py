# Overview: Read-only lookups against the room/product catalog.

from __future__ import annotations

from ..extensions import db
from ..models import Product, Room, RoomProduct


def get_product(product_id: int) -> Product | None:
    return db.session.get(Product, product_id)


def get_room(room_id: int) -> Room | None:
    return db.session.get(Room, room_id)


def list_products_for_room(room_id: int) -> list[RoomProduct]:
    """Products assigned to a room, in count-sheet order."""
    return (
        db.session.query(RoomProduct)
        .filter_by(room_id=room_id)
        .order_by(RoomProduct.display_order.asc(), RoomProduct.id.asc())
        .all()
    )
