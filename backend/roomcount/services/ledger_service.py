# Overview: Count item ledger; validates and applies batches of tallies to a session.

"""
Count item ledger.

A submission is a list of entries, each either
    {"id": <item id>, "quantity": q}                      (update)
    {"productId": p, "roomId": r, "quantity": q}          (create)

Processing is two-pass:
1. Plan: every entry is validated and resolved (item, product, room,
   uniqueness) without touching the session.
2. Apply: all planned writes plus the implicit draft -> in_progress
   transition are staged and flushed once.

Nothing is committed here; the caller commits the unit of work, so a
failure anywhere in the batch leaves the database untouched.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import CountItem, CountSession, Product, Room
from ..time_utils import utcnow
from ..validation import BadRequestError, ForbiddenError, NotFoundError, parse_id
from . import catalog_service, lifecycle
from .concurrency import run_with_retry
from .valuation import compute_value, parse_quantity
from .visibility import Caller, can_submit


DUPLICATE_ITEM_MESSAGE = "Item already exists for this product and room"


@dataclass
class PlannedUpdate:
    item: CountItem
    product: Product
    quantity: Decimal
    value: Decimal


@dataclass
class PlannedCreate:
    product: Product
    room: Room
    quantity: Decimal
    value: Decimal


def _entry_error(index: int, message: str) -> BadRequestError:
    return BadRequestError(f"Item {index}: {message}")


def _pick(entry: dict, camel: str, snake: str) -> Any:
    if camel in entry:
        return entry[camel]
    return entry.get(snake)


def _entry_value(index: int, quantity: Decimal, product: Product) -> Decimal:
    try:
        return compute_value(quantity, product.unit_value)
    except BadRequestError as exc:
        raise _entry_error(index, str(exc)) from exc


def _existing_item(session_id: int, product_id: int, room_id: int) -> CountItem | None:
    return db.session.query(CountItem).filter_by(
        session_id=session_id,
        product_id=product_id,
        room_id=room_id,
    ).first()


def _plan_entry(index: int, entry: Any, session: CountSession, seen_keys: set[tuple[int, int]]):
    if not isinstance(entry, dict):
        raise _entry_error(index, "must be an object")

    try:
        quantity = parse_quantity(entry.get("quantity"))
    except BadRequestError as exc:
        raise _entry_error(index, str(exc)) from exc

    raw_item_id = entry.get("id")
    if raw_item_id is not None:
        item_id = parse_id(raw_item_id, "item ID")
        item = db.session.get(CountItem, item_id)
        if not item or item.session_id != session.id:
            raise BadRequestError(f"Invalid item ID: {item_id}")

        product = catalog_service.get_product(item.product_id)
        if not product:
            raise BadRequestError(f"Product not found for item: {item_id}")

        return PlannedUpdate(
            item=item,
            product=product,
            quantity=quantity,
            value=_entry_value(index, quantity, product),
        )

    raw_product_id = _pick(entry, "productId", "product_id")
    raw_room_id = _pick(entry, "roomId", "room_id")
    if raw_product_id is None or raw_room_id is None:
        raise _entry_error(index, "must have either an id or both productId and roomId")

    product_id = parse_id(raw_product_id, "product ID")
    room_id = parse_id(raw_room_id, "room ID")

    product = catalog_service.get_product(product_id)
    if not product:
        raise BadRequestError(f"Product not found: {product_id}")

    room = catalog_service.get_room(room_id)
    if not room:
        raise BadRequestError(f"Room not found: {room_id}")

    key = (product_id, room_id)
    if key in seen_keys or _existing_item(session.id, product_id, room_id):
        raise BadRequestError(DUPLICATE_ITEM_MESSAGE)
    seen_keys.add(key)

    return PlannedCreate(
        product=product,
        room=room,
        quantity=quantity,
        value=_entry_value(index, quantity, product),
    )


def plan_items(session: CountSession, entries: list) -> list:
    """Validate every entry; returns planned writes in submission order."""
    seen_keys: set[tuple[int, int]] = set()
    return [_plan_entry(i, entry, session, seen_keys) for i, entry in enumerate(entries)]


def new_item(
    session: CountSession,
    product: Product,
    room: Room,
    quantity: Decimal,
    value: Decimal,
    caller: Caller,
    now: datetime,
) -> CountItem:
    item = CountItem(
        session_id=session.id,
        product_id=product.id,
        room_id=room.id,
        product=product,
        room=room,
        quantity=quantity,
        value=value,
        counted_by_user_id=caller.user_id,
        counted_at=now,
    )
    db.session.add(item)
    return item


def apply_plan(session: CountSession, plan: list, caller: Caller, now: datetime) -> list[CountItem]:
    applied: list[CountItem] = []
    for step in plan:
        if isinstance(step, PlannedUpdate):
            item = step.item
            item.quantity = step.quantity
            item.value = step.value
            item.counted_by_user_id = caller.user_id
            item.counted_at = now
        else:
            item = new_item(session, step.product, step.room, step.quantity, step.value, caller, now)
        applied.append(item)
    return applied


def flush_items() -> None:
    """
    Flush staged ledger writes.

    A unique-constraint violation here means a concurrent request created
    the same (session, product, room) triple after our plan pass.
    """
    try:
        db.session.flush()
    except IntegrityError as exc:
        db.session.rollback()
        raise BadRequestError(DUPLICATE_ITEM_MESSAGE) from exc


def seed_items(session: CountSession, room_ids: list[int], caller: Caller) -> list[CountItem]:
    """
    Create one zero-quantity item per product assigned to each room.

    Room ids must already be validated and de-duplicated.
    """
    now = utcnow()
    seen_keys: set[tuple[int, int]] = set()
    seeded: list[CountItem] = []
    zero = Decimal("0")

    for room_id in room_ids:
        for assignment in catalog_service.list_products_for_room(room_id):
            key = (assignment.product_id, assignment.room_id)
            if key in seen_keys:
                raise BadRequestError(DUPLICATE_ITEM_MESSAGE)
            seen_keys.add(key)
            seeded.append(new_item(
                session,
                assignment.product,
                assignment.room,
                zero,
                compute_value(zero, assignment.product.unit_value),
                caller,
                now,
            ))

    flush_items()
    return seeded


def submit_items(session_id: int, caller: Caller, entries: Any) -> list[CountItem]:
    """
    Apply a batch of count item creates/updates to a session.

    Args:
        session_id: Count session ID
        caller: Identity of the submitting user
        entries: List of item payloads (see module docstring)

    Returns:
        list[CountItem]: Applied items, in submission order

    Raises:
        BadRequestError: Malformed batch, invalid quantity, unknown item,
            product or room, or duplicate (product, room) pair
        NotFoundError: Session does not exist
        ConflictError: Session is finalized
        ForbiddenError: Caller may not submit to this session
    """
    if not isinstance(entries, list):
        raise BadRequestError("Items array is required")

    def _op():
        session = db.session.get(CountSession, session_id)
        if not session:
            raise NotFoundError("Count session not found")

        lifecycle.ensure_mutable(session)

        if not can_submit(caller, session):
            raise ForbiddenError("You do not have permission to update this session")

        plan = plan_items(session, entries)
        if not plan:
            return []

        now = utcnow()
        applied = apply_plan(session, plan, caller, now)
        lifecycle.apply_implicit_start(session, now)

        flush_items()
        return applied

    return run_with_retry(_op)
