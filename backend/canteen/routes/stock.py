# Overview: Flask API routes for stock operations; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, current_app

from ..errors import ServiceError
from ..services import stock_service
from ..decorators import require_auth
from ..validation import coerce_int


stock_bp = Blueprint("stock", __name__, url_prefix="/api/stock")


@stock_bp.post("")
@require_auth
def set_stock_route():
    """
    Manual stock correction: overwrite the on-hand quantity.

    Body: canteen_id, item_id, quantity, description (optional).
    """
    try:
        data = request.get_json(silent=True) or {}
        for field in ("canteen_id", "item_id", "quantity"):
            if data.get(field) is None:
                return jsonify({"error": f"{field} required", "code": "INVALID_INPUT"}), 400

        stock, history = stock_service.set_quantity(
            coerce_int(data["canteen_id"], "canteen_id"),
            coerce_int(data["item_id"], "item_id"),
            coerce_int(data["quantity"], "quantity"),
            data.get("description"),
        )
        return jsonify({"stock": stock.to_dict(), "history": history.to_dict()}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update stock")
        return jsonify({"error": "Internal server error"}), 500


@stock_bp.get("/canteen/<int:canteen_id>")
@require_auth
def canteen_stock_route(canteen_id: int):
    try:
        stocks = stock_service.list_canteen_stock(canteen_id)
        return jsonify({"stock": [stock.to_dict() for stock in stocks]}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list stock")
        return jsonify({"error": "Internal server error"}), 500


@stock_bp.get("/history/<int:canteen_id>")
@stock_bp.get("/history/<int:canteen_id>/<int:item_id>")
@require_auth
def stock_history_route(canteen_id: int, item_id: int | None = None):
    """Query: days (default 30)."""
    try:
        days = request.args.get("days")
        history = stock_service.get_stock_history(
            canteen_id,
            item_id=item_id,
            days=coerce_int(days, "days") if days else stock_service.DEFAULT_HISTORY_DAYS,
        )
        return jsonify({"history": [row.to_dict() for row in history]}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to get stock history")
        return jsonify({"error": "Internal server error"}), 500
