"""
Count session HTTP API.

Verifies:
- Unauthenticated requests return 401
- Role gates on create / update / delete (403)
- Visibility matrix for user-role callers
- Error mapping: 400 malformed ids and bodies, 404 missing, 409 finalized
- End-to-end counting scenario
"""

import pytest

from roomcount.extensions import db
from roomcount.models import CountItem
from tests.conftest import auth_headers, make_item, make_session


BASE = "/api/count-sessions"


@pytest.fixture
def manager_headers(manager):
    return auth_headers(manager)


@pytest.fixture
def admin_headers(admin):
    return auth_headers(admin)


@pytest.fixture
def alice_headers(alice):
    return auth_headers(alice)


# =============================================================================
# UNAUTHENTICATED ACCESS - 401
# =============================================================================


class TestUnauthenticatedAccess:
    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", BASE),
            ("GET", f"{BASE}/1"),
            ("GET", f"{BASE}/1/summary"),
            ("POST", BASE),
            ("PUT", f"{BASE}/1"),
            ("DELETE", f"{BASE}/1"),
            ("POST", f"{BASE}/1/items"),
        ],
    )
    def test_requires_auth(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_garbage_token(self, client, db_session):
        resp = client.get(BASE, headers={"Authorization": "Bearer not-a-token"})
        assert resp.status_code == 401


# =============================================================================
# ROLE GATES - 403
# =============================================================================


class TestUserRoleDenied:
    def test_cannot_create(self, client, alice_headers):
        resp = client.post(BASE, json={"name": "Mine"}, headers=alice_headers)
        assert resp.status_code == 403
        assert resp.get_json()["error"] == "Permission denied"

    def test_cannot_update(self, client, alice, alice_headers):
        session = make_session(alice)
        resp = client.put(f"{BASE}/{session.id}", json={"status": "completed"}, headers=alice_headers)
        assert resp.status_code == 403

    def test_cannot_delete(self, client, alice, alice_headers):
        session = make_session(alice)
        resp = client.delete(f"{BASE}/{session.id}", headers=alice_headers)
        assert resp.status_code == 403


# =============================================================================
# VISIBILITY MATRIX
# =============================================================================


class TestVisibility:
    def test_unrelated_user_is_forbidden(self, client, manager, catalog, alice_headers):
        session = make_session(manager)

        assert client.get(f"{BASE}/{session.id}", headers=alice_headers).status_code == 403
        resp = client.post(
            f"{BASE}/{session.id}/items",
            json={"items": [{"productId": catalog["flour"].id, "roomId": catalog["kitchen"].id, "quantity": 1}]},
            headers=alice_headers,
        )
        assert resp.status_code == 403

    def test_creator_can_read_and_submit(self, client, alice, catalog, alice_headers):
        session = make_session(alice)

        assert client.get(f"{BASE}/{session.id}", headers=alice_headers).status_code == 200
        resp = client.post(
            f"{BASE}/{session.id}/items",
            json={"items": [{"productId": catalog["flour"].id, "roomId": catalog["kitchen"].id, "quantity": 1}]},
            headers=alice_headers,
        )
        assert resp.status_code == 200

    def test_counted_in_user_can_read_but_not_submit(self, client, manager, alice, catalog, alice_headers):
        session = make_session(manager)
        make_item(session, catalog["flour"], catalog["kitchen"], alice)

        resp = client.get(f"{BASE}/{session.id}", headers=alice_headers)
        assert resp.status_code == 200
        assert resp.get_json()["id"] == session.id

        resp = client.post(
            f"{BASE}/{session.id}/items",
            json={"items": [{"productId": catalog["butter"].id, "roomId": catalog["bar"].id, "quantity": 1}]},
            headers=alice_headers,
        )
        assert resp.status_code == 403

    def test_list_is_scoped(self, client, manager, alice, catalog, alice_headers, manager_headers):
        mine = make_session(alice, name="Mine")
        counted = make_session(manager, name="Counted")
        make_item(counted, catalog["flour"], catalog["kitchen"], alice)
        other = make_session(manager, name="Other")

        alice_ids = [s["id"] for s in client.get(BASE, headers=alice_headers).get_json()]
        assert alice_ids == [counted.id, mine.id]

        manager_ids = [s["id"] for s in client.get(BASE, headers=manager_headers).get_json()]
        assert manager_ids == [other.id, counted.id, mine.id]


# =============================================================================
# ERROR MAPPING
# =============================================================================


class TestErrors:
    @pytest.mark.parametrize("bad_id", ["abc", "0", "-3", "1.5", "\u00b2", "99999999999999999999999"])
    def test_malformed_id(self, client, manager_headers, bad_id):
        assert client.get(f"{BASE}/{bad_id}", headers=manager_headers).status_code == 400
        assert client.put(f"{BASE}/{bad_id}", json={}, headers=manager_headers).status_code == 400
        assert client.delete(f"{BASE}/{bad_id}", headers=manager_headers).status_code == 400
        assert client.post(f"{BASE}/{bad_id}/items", json={"items": []}, headers=manager_headers).status_code == 400

    def test_malformed_item_id_in_body(self, client, manager, manager_headers):
        session = make_session(manager)
        resp = client.post(
            f"{BASE}/{session.id}/items",
            json={"items": [{"id": "\u00b2", "quantity": 1}]},
            headers=manager_headers,
        )
        assert resp.status_code == 400
        assert resp.get_json() == {"error": "Invalid item ID"}

    def test_grouped_quantity_is_rejected(self, client, manager, catalog, manager_headers):
        session = make_session(manager)
        resp = client.post(
            f"{BASE}/{session.id}/items",
            json={"items": [{"productId": catalog["widget"].id, "roomId": catalog["kitchen"].id, "quantity": "1_0"}]},
            headers=manager_headers,
        )
        assert resp.status_code == 400
        assert "quantity must be a number" in resp.get_json()["error"]

    def test_missing_session(self, client, manager_headers):
        assert client.get(f"{BASE}/987654", headers=manager_headers).status_code == 404
        assert client.put(f"{BASE}/987654", json={"status": "completed"}, headers=manager_headers).status_code == 404
        assert client.delete(f"{BASE}/987654", headers=manager_headers).status_code == 404
        resp = client.post(f"{BASE}/987654/items", json={"items": []}, headers=manager_headers)
        assert resp.status_code == 404
        assert resp.get_json() == {"error": "Count session not found"}

    def test_missing_name(self, client, manager_headers):
        resp = client.post(BASE, json={}, headers=manager_headers)
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Session name is required"

    def test_non_json_body(self, client, manager_headers):
        resp = client.post(BASE, data="name=x", headers=manager_headers)
        assert resp.status_code == 400

    def test_items_must_be_array(self, client, manager, manager_headers):
        session = make_session(manager)
        resp = client.post(f"{BASE}/{session.id}/items", json={"items": "nope"}, headers=manager_headers)
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Items array is required"

    def test_negative_quantity(self, client, manager, catalog, manager_headers):
        session = make_session(manager)
        resp = client.post(
            f"{BASE}/{session.id}/items",
            json={"items": [{"productId": catalog["flour"].id, "roomId": catalog["kitchen"].id, "quantity": -2}]},
            headers=manager_headers,
        )
        assert resp.status_code == 400
        assert "negative" in resp.get_json()["error"]

    def test_unrecognized_status(self, client, manager, manager_headers):
        session = make_session(manager)
        resp = client.put(f"{BASE}/{session.id}", json={"status": "archived"}, headers=manager_headers)
        assert resp.status_code == 400

    def test_unexpected_failure_is_opaque(self, client, manager, manager_headers, monkeypatch):
        from roomcount.services import count_session_service

        def boom(*args, **kwargs):
            raise RuntimeError("secret database detail")

        monkeypatch.setattr(count_session_service, "list_sessions", boom)
        resp = client.get(BASE, headers=manager_headers)
        assert resp.status_code == 500
        assert resp.get_json() == {"error": "Internal server error"}


# =============================================================================
# FINALIZED SESSIONS
# =============================================================================


class TestFinalized:
    def test_every_mutation_fails_and_nothing_changes(self, client, manager, catalog, manager_headers):
        session = make_session(manager)
        item = make_item(session, catalog["flour"], catalog["kitchen"], manager, quantity="2")
        assert client.put(f"{BASE}/{session.id}", json={"status": "finalized"}, headers=manager_headers).status_code == 200

        before = client.get(f"{BASE}/{session.id}", headers=manager_headers).get_json()
        assert before["status"] == "finalized"
        assert before["end_time"] is not None

        resp = client.post(
            f"{BASE}/{session.id}/items",
            json={"items": [{"id": item.id, "quantity": 99}]},
            headers=manager_headers,
        )
        assert resp.status_code == 409

        assert client.put(f"{BASE}/{session.id}", json={"status": "draft"}, headers=manager_headers).status_code == 409
        assert client.put(f"{BASE}/{session.id}", json={"name": "Renamed"}, headers=manager_headers).status_code == 409

        resp = client.delete(f"{BASE}/{session.id}", headers=manager_headers)
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Cannot delete finalized count sessions"

        after = client.get(f"{BASE}/{session.id}", headers=manager_headers).get_json()
        assert after == before


# =============================================================================
# CREATE / DELETE
# =============================================================================


class TestCreateAndDelete:
    def test_create_with_rooms_seeds_items(self, client, catalog, manager_headers):
        resp = client.post(
            BASE,
            json={"name": "Monthly", "rooms": [catalog["kitchen"].id]},
            headers=manager_headers,
        )
        assert resp.status_code == 201
        body = resp.get_json()
        assert body["status"] == "draft"
        assert body["item_count"] == 2
        assert [i["product"]["name"] for i in body["items"]] == ["Flour", "Butter"]
        assert all(i["quantity"] == "0.000" and i["value"] == "0.00" for i in body["items"])

    def test_create_accepts_room_ids_alias(self, client, catalog, admin_headers):
        resp = client.post(BASE, json={"name": "Bar only", "roomIds": [catalog["bar"].id]}, headers=admin_headers)
        assert resp.status_code == 201
        assert resp.get_json()["item_count"] == 1

    def test_delete(self, client, manager, catalog, manager_headers):
        session = make_session(manager)
        make_item(session, catalog["flour"], catalog["kitchen"], manager)
        session_id = session.id

        resp = client.delete(f"{BASE}/{session_id}", headers=manager_headers)
        assert resp.status_code == 204
        assert client.get(f"{BASE}/{session_id}", headers=manager_headers).status_code == 404

        db.session.expire_all()
        assert db.session.query(CountItem).filter_by(session_id=session_id).count() == 0


# =============================================================================
# END-TO-END SCENARIO
# =============================================================================


def test_week_one_scenario(client, catalog, manager_headers):
    widget = catalog["widget"]  # unit value 2.50
    room = catalog["kitchen"]

    resp = client.post(BASE, json={"name": "Week 1"}, headers=manager_headers)
    assert resp.status_code == 201
    session = resp.get_json()
    assert session["status"] == "draft"
    assert session["items"] == []
    sid = session["id"]

    resp = client.post(
        f"{BASE}/{sid}/items",
        json={"items": [{"productId": widget.id, "roomId": room.id, "quantity": 10}]},
        headers=manager_headers,
    )
    assert resp.status_code == 200
    items = resp.get_json()
    assert len(items) == 1
    assert items[0]["value"] == "25.00"
    assert items[0]["product"]["id"] == widget.id
    assert items[0]["room"]["id"] == room.id
    assert items[0]["counted_by"]["username"] == "manager"
    item_id = items[0]["id"]

    started = client.get(f"{BASE}/{sid}", headers=manager_headers).get_json()
    assert started["status"] == "in_progress"
    assert started["start_time"] is not None

    resp = client.post(
        f"{BASE}/{sid}/items",
        json={"items": [{"productId": widget.id, "roomId": room.id, "quantity": 5}]},
        headers=manager_headers,
    )
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "Item already exists for this product and room"

    resp = client.post(
        f"{BASE}/{sid}/items",
        json={"items": [{"id": item_id, "quantity": 5}]},
        headers=manager_headers,
    )
    assert resp.status_code == 200
    updated = resp.get_json()[0]
    assert updated["id"] == item_id
    assert updated["value"] == "12.50"

    again = client.get(f"{BASE}/{sid}", headers=manager_headers).get_json()
    assert again["start_time"] == started["start_time"]
    assert again["item_count"] == 1

    summary = client.get(f"{BASE}/{sid}/summary", headers=manager_headers).get_json()
    assert summary["total_value"] == "12.50"

    resp = client.put(f"{BASE}/{sid}", json={"status": "finalized"}, headers=manager_headers)
    assert resp.status_code == 200
    assert resp.get_json()["status"] == "finalized"

    resp = client.post(
        f"{BASE}/{sid}/items",
        json={"items": [{"id": item_id, "quantity": 1}]},
        headers=manager_headers,
    )
    assert resp.status_code == 409


def test_health(client, db_session):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.get_json()["checks"]["database"]["status"] == "healthy"
