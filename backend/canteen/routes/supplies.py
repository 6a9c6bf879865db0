# Overview: Flask API routes for supply operations; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import ServiceError
from ..models.auth import ADMIN_ROLES
from ..services import supply_service
from ..decorators import require_auth, require_role
from ..validation import coerce_date, coerce_int
from canteen.time_utils import business_date


supplies_bp = Blueprint("supplies", __name__, url_prefix="/api/supplies")


@supplies_bp.post("")
@require_auth
def create_supply_route():
    """Body: from_canteen_id, to_canteen_id, items[{item_id, quantity, unit_price_cents}]."""
    try:
        data = request.get_json(silent=True) or {}
        supply = supply_service.create_supply(
            data.get("from_canteen_id"),
            data.get("to_canteen_id"),
            data.get("items", []),
            g.auth,
        )
        return jsonify({"supply": supply.to_dict()}), 201

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create supply")
        return jsonify({"error": "Internal server error"}), 500


@supplies_bp.put("/<int:supply_id>")
@require_auth
def update_supply_route(supply_id: int):
    try:
        data = request.get_json(silent=True) or {}
        supply = supply_service.update_supply(supply_id, data.get("items", []), g.auth)
        return jsonify({"supply": supply.to_dict()}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update supply")
        return jsonify({"error": "Internal server error"}), 500


@supplies_bp.delete("/<int:supply_id>/items/<int:item_id>")
@require_auth
def remove_supply_item_route(supply_id: int, item_id: int):
    try:
        supply = supply_service.remove_supply_item(supply_id, item_id, g.auth)
        return jsonify({
            "message": "Supply item removed successfully",
            "supply": supply.to_dict() if supply is not None else None,
        }), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to remove supply item")
        return jsonify({"error": "Internal server error"}), 500


@supplies_bp.post("/<int:supply_id>/lock")
@require_auth
@require_role(*ADMIN_ROLES)
def lock_supply_route(supply_id: int):
    try:
        supply = supply_service.set_supply_lock(supply_id, True, g.auth)
        return jsonify({"supply": supply.to_dict()}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to lock supply")
        return jsonify({"error": "Internal server error"}), 500


@supplies_bp.post("/<int:supply_id>/unlock")
@require_auth
@require_role(*ADMIN_ROLES)
def unlock_supply_route(supply_id: int):
    try:
        supply = supply_service.set_supply_lock(supply_id, False, g.auth)
        return jsonify({"supply": supply.to_dict()}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to unlock supply")
        return jsonify({"error": "Internal server error"}), 500


@supplies_bp.get("")
@require_auth
def list_supplies_route():
    """Query: date (YYYY-MM-DD)."""
    try:
        day = request.args.get("date")
        supplies = supply_service.list_supplies(g.auth, day=coerce_date(day, "date") if day else None)
        return jsonify({"supplies": [supply.to_dict() for supply in supplies]}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list supplies")
        return jsonify({"error": "Internal server error"}), 500


@supplies_bp.get("/<int:supply_id>")
@require_auth
def get_supply_route(supply_id: int):
    try:
        supply = supply_service.get_supply(supply_id, g.auth)
        return jsonify({"supply": supply.to_dict()}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to get supply")
        return jsonify({"error": "Internal server error"}), 500


@supplies_bp.get("/from/<int:canteen_id>")
@require_auth
def supplies_from_route(canteen_id: int):
    try:
        supplies = supply_service.list_supplies_from(canteen_id, g.auth)
        return jsonify({"supplies": [supply.to_dict() for supply in supplies]}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list outgoing supplies")
        return jsonify({"error": "Internal server error"}), 500


@supplies_bp.get("/to/<int:canteen_id>")
@require_auth
def supplies_to_route(canteen_id: int):
    try:
        supplies = supply_service.list_supplies_to(canteen_id, g.auth)
        return jsonify({"supplies": [supply.to_dict() for supply in supplies]}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list incoming supplies")
        return jsonify({"error": "Internal server error"}), 500


@supplies_bp.get("/canteen/<int:canteen_id>/item/<int:item_id>")
@require_auth
def supplies_by_item_and_month_route(canteen_id: int, item_id: int):
    """Query: year, month (default: current business month)."""
    try:
        today = business_date()
        year = request.args.get("year")
        month = request.args.get("month")
        supplies = supply_service.supplies_for_item_in_month(
            canteen_id,
            item_id,
            coerce_int(year, "year") if year else today.year,
            coerce_int(month, "month") if month else today.month,
            g.auth,
        )
        return jsonify({"supplies": supplies}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list supplies for item")
        return jsonify({"error": "Internal server error"}), 500
