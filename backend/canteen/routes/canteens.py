# Overview: Flask API routes for canteens and their lock state; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import ServiceError
from ..models.auth import ADMIN_ROLES
from ..services import canteen_service
from ..decorators import require_auth, require_role


canteens_bp = Blueprint("canteens", __name__, url_prefix="/api/canteens")


@canteens_bp.get("")
@require_auth
def list_canteens_route():
    """Query: include_locked (default true), type (main|sub)."""
    include_locked = request.args.get("include_locked", "true").lower() != "false"
    canteens = canteen_service.list_canteens(
        include_locked=include_locked,
        type=request.args.get("type") or None,
    )
    return jsonify({"canteens": [canteen.to_dict() for canteen in canteens]}), 200


@canteens_bp.get("/locked")
@require_auth
def list_locked_canteens_route():
    canteens = canteen_service.list_locked_canteens()
    return jsonify({"canteens": [canteen.to_dict() for canteen in canteens]}), 200


@canteens_bp.get("/<int:canteen_id>")
@require_auth
def get_canteen_route(canteen_id: int):
    try:
        canteen = canteen_service.get_canteen(canteen_id)
        return jsonify({"canteen": canteen.to_dict()}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code


@canteens_bp.post("/<int:canteen_id>/lock")
@require_auth
@require_role(*ADMIN_ROLES)
def lock_canteen_route(canteen_id: int):
    """Body: reason (optional), is_verification (optional, default false)."""
    try:
        data = request.get_json(silent=True) or {}
        is_verification = data.get("is_verification") is True
        canteen = canteen_service.lock_canteen(
            canteen_id,
            g.auth,
            reason=data.get("reason"),
            is_verification=is_verification,
        )
        message = "Canteen verified and locked successfully" if is_verification else "Canteen locked successfully"
        return jsonify({"message": message, "canteen": canteen.to_dict()}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to lock canteen")
        return jsonify({"error": "Internal server error"}), 500


@canteens_bp.post("/<int:canteen_id>/unlock")
@require_auth
@require_role(*ADMIN_ROLES)
def unlock_canteen_route(canteen_id: int):
    try:
        canteen = canteen_service.unlock_canteen(canteen_id, g.auth)
        return jsonify({"message": "Canteen unlocked successfully", "canteen": canteen.to_dict()}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to unlock canteen")
        return jsonify({"error": "Internal server error"}), 500


@canteens_bp.post("/auto-unlock")
@require_auth
@require_role(*ADMIN_ROLES)
def auto_unlock_route():
    """Manual trigger for the daily auto-unlock sweep."""
    try:
        count = canteen_service.auto_unlock_canteens()
        return jsonify({"message": "Auto-unlock completed", "unlocked_count": count}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to auto-unlock canteens")
        return jsonify({"error": "Internal server error"}), 500
