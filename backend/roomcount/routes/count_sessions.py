# backend/roomcount/routes/count_sessions.py
"""
Count session API routes.
"""
from flask import Blueprint, current_app, jsonify, request

from ..decorators import current_caller, require_auth, require_role
from ..extensions import db
from ..models import ROLE_ADMIN, ROLE_MANAGER
from ..services import count_session_service, ledger_service
from ..validation import CountSessionError, parse_id, require_object


count_sessions_bp = Blueprint("count_sessions", __name__, url_prefix="/api/count-sessions")


def _error(exc: CountSessionError):
    return jsonify({"error": str(exc)}), exc.status_code


def _internal_error(message: str):
    current_app.logger.exception(message)
    return jsonify({"error": "Internal server error"}), 500


@count_sessions_bp.route("", methods=["GET"])
@require_auth
def list_sessions():
    """
    List count sessions visible to the caller, most recent first.

    Admins and managers see every session; users see sessions they created
    or counted items in.

    Returns:
        200: List of sessions (with item_count)
    """
    try:
        sessions = count_session_service.list_sessions(current_caller())
        return jsonify(sessions), 200

    except CountSessionError as e:
        return _error(e)
    except Exception:
        return _internal_error("Failed to list count sessions")


@count_sessions_bp.route("/<session_id>", methods=["GET"])
@require_auth
def get_session(session_id):
    """
    Get a count session with its items.

    Returns:
        200: Session with nested items
        400: Malformed session ID
        403: Session not visible to caller
        404: Session not found
    """
    try:
        sid = parse_id(session_id, "session ID")
        session = count_session_service.get_session(sid, current_caller())
        return jsonify(count_session_service.session_detail(session)), 200

    except CountSessionError as e:
        return _error(e)
    except Exception:
        return _internal_error("Failed to load count session")


@count_sessions_bp.route("/<session_id>/summary", methods=["GET"])
@require_auth
def get_session_summary(session_id):
    """
    Totals of stored item values per room and overall.

    Returns:
        200: Summary
        400: Malformed session ID
        403: Session not visible to caller
        404: Session not found
    """
    try:
        sid = parse_id(session_id, "session ID")
        summary = count_session_service.get_session_summary(sid, current_caller())
        return jsonify(summary), 200

    except CountSessionError as e:
        return _error(e)
    except Exception:
        return _internal_error("Failed to load count session summary")


@count_sessions_bp.route("", methods=["POST"])
@require_auth
@require_role(ROLE_ADMIN, ROLE_MANAGER)
def create_session():
    """
    Create a new count session.

    Request body:
    {
        "name": str,
        "rooms": [int] (optional)  // alias: "roomIds"
    }

    Returns:
        201: Session created, with seeded items
        400: Missing name or invalid rooms
        403: Caller is not admin/manager
    """
    try:
        data = require_object(request.get_json(silent=True))
        room_ids = data.get("rooms", data.get("roomIds"))

        session = count_session_service.create_session(
            current_caller(),
            name=data.get("name"),
            room_ids=room_ids,
        )

        db.session.commit()

        current_app.logger.info(
            "Count session %s created by user %s", session.id, session.created_by_user_id
        )
        return jsonify(count_session_service.session_detail(session)), 201

    except CountSessionError as e:
        db.session.rollback()
        return _error(e)
    except Exception:
        db.session.rollback()
        return _internal_error("Failed to create count session")


@count_sessions_bp.route("/<session_id>", methods=["PUT"])
@require_auth
@require_role(ROLE_ADMIN, ROLE_MANAGER)
def update_session(session_id):
    """
    Rename a session and/or change its status.

    Request body:
    {
        "name": str (optional),
        "status": "draft" | "in_progress" | "completed" | "finalized" (optional)
    }

    Returns:
        200: Updated session
        400: Malformed ID, unknown field or unrecognized status
        403: Caller is not admin/manager
        404: Session not found
        409: Session is finalized
    """
    try:
        sid = parse_id(session_id, "session ID")
        data = require_object(request.get_json(silent=True))

        session, new_status = count_session_service.update_session(sid, current_caller(), data)

        db.session.commit()

        if new_status is not None:
            current_app.logger.info("Count session %s status -> %s", session.id, new_status.value)
        return jsonify(session.to_dict()), 200

    except CountSessionError as e:
        db.session.rollback()
        return _error(e)
    except Exception:
        db.session.rollback()
        return _internal_error("Failed to update count session")


@count_sessions_bp.route("/<session_id>", methods=["DELETE"])
@require_auth
@require_role(ROLE_ADMIN, ROLE_MANAGER)
def delete_session(session_id):
    """
    Delete a session and its items.

    Returns:
        204: Deleted
        400: Malformed ID or session is finalized
        403: Caller is not admin/manager
        404: Session not found
    """
    try:
        sid = parse_id(session_id, "session ID")
        count_session_service.delete_session(sid, current_caller())

        db.session.commit()

        current_app.logger.info("Count session %s deleted", sid)
        return "", 204

    except CountSessionError as e:
        db.session.rollback()
        return _error(e)
    except Exception:
        db.session.rollback()
        return _internal_error("Failed to delete count session")


@count_sessions_bp.route("/<session_id>/items", methods=["POST"])
@require_auth
def submit_items(session_id):
    """
    Add or update count items. The whole batch is applied or none of it.

    Request body:
    {
        "items": [
            {"id": int, "quantity": number}                          // update
            {"productId": int, "roomId": int, "quantity": number}    // create
        ]
    }

    Returns:
        200: Applied items, in submission order
        400: Malformed batch, invalid quantity, unknown item/product/room,
             duplicate product+room
        403: Caller may not submit to this session
        404: Session not found
        409: Session is finalized
    """
    try:
        sid = parse_id(session_id, "session ID")
        data = require_object(request.get_json(silent=True))

        items = ledger_service.submit_items(sid, current_caller(), data.get("items"))

        db.session.commit()

        return jsonify([item.to_dict() for item in items]), 200

    except CountSessionError as e:
        db.session.rollback()
        return _error(e)
    except Exception:
        db.session.rollback()
        return _internal_error("Failed to submit count items")
