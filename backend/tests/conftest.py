"""
Pytest fixtures for the room count backend tests.

Provides the app on in-memory SQLite, a per-test table wipe, users for each
role, a small catalog, and bearer-token headers.
"""

from decimal import Decimal

import pytest
from roomcount import create_app
from roomcount.extensions import db
from roomcount.models import CountItem, CountSession, Product, Room, RoomProduct, User
from roomcount.services import identity_service
from roomcount.services.visibility import Caller
from roomcount.time_utils import utcnow


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    # Clear all data but keep schema
    meta = db.metadata
    for table in reversed(meta.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()

    yield db.session

    # Cleanup after test
    db.session.rollback()


def make_user(username: str, role: str, is_active: bool = True) -> User:
    user = User(username=username, role=role, is_active=is_active)
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture(scope='function')
def admin(db_session):
    return make_user("admin", "admin")


@pytest.fixture(scope='function')
def manager(db_session):
    return make_user("manager", "manager")


@pytest.fixture(scope='function')
def alice(db_session):
    """Plain user."""
    return make_user("alice", "user")


@pytest.fixture(scope='function')
def bob(db_session):
    """Another plain user."""
    return make_user("bob", "user")


def caller_for(user: User) -> Caller:
    return Caller(user_id=user.id, role=user.role)


def auth_headers(user: User) -> dict:
    """Helper to create Authorization headers for a user."""
    _, token = identity_service.issue_token(user.id)
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def catalog(db_session):
    """
    Two rooms and three products.

    Kitchen: flour, butter
    Bar: butter
    widget (2.50) is not assigned to any room.
    """
    kitchen = Room(name="Kitchen", description="Main kitchen area")
    bar = Room(name="Bar", description="Bar and beverage area")
    flour = Product(sku="FL-001", name="Flour", unit_type="weight", unit_value=Decimal("0.45"))
    butter = Product(sku="BT-001", name="Butter", unit_type="count", unit_value=Decimal("4.25"))
    widget = Product(sku="WD-001", name="Widget", unit_type="count", unit_value=Decimal("2.50"))
    db.session.add_all([kitchen, bar, flour, butter, widget])
    db.session.flush()

    db.session.add_all([
        RoomProduct(room_id=kitchen.id, product_id=butter.id, display_order=2),
        RoomProduct(room_id=kitchen.id, product_id=flour.id, display_order=1),
        RoomProduct(room_id=bar.id, product_id=butter.id, display_order=1),
    ])
    db.session.commit()

    return {
        "kitchen": kitchen,
        "bar": bar,
        "flour": flour,
        "butter": butter,
        "widget": widget,
    }


def make_session(created_by: User, name: str = "Week 1", status: str = "draft") -> CountSession:
    """Insert a session directly, bypassing the role check on creation."""
    session = CountSession(name=name, status=status, created_by_user_id=created_by.id)
    db.session.add(session)
    db.session.commit()
    return session


def make_item(session: CountSession, product: Product, room: Room, counted_by: User,
              quantity: str = "1") -> CountItem:
    q = Decimal(quantity)
    item = CountItem(
        session_id=session.id,
        product_id=product.id,
        room_id=room.id,
        quantity=q,
        value=(q * Decimal(product.unit_value)).quantize(Decimal("0.01")),
        counted_by_user_id=counted_by.id,
        counted_at=utcnow(),
    )
    db.session.add(item)
    db.session.commit()
    return item
