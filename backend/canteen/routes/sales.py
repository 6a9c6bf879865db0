# Overview: Flask API routes for sales and verification; parses input and returns JSON responses.

"""Sales API routes. Managers are scoped to their canteen by the service layer."""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import ServiceError
from ..models.auth import ADMIN_ROLES
from ..services import sales_service, verification_service
from ..decorators import require_auth, require_role
from ..validation import coerce_date, coerce_int


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("")
@require_auth
def create_or_update_sale_route():
    """
    Create today's sale for a canteen, or resubmit it.

    Body: canteen_id, items[{item_id, quantity, unit_price_cents}],
    cash_cents, online_cents, other_cents, description,
    previous_day_adjustment_cents, previous_day_reason.
    """
    try:
        data = request.get_json(silent=True) or {}
        if data.get("canteen_id") is None:
            return jsonify({"error": "canteen_id required", "code": "INVALID_INPUT"}), 400

        sale = sales_service.create_or_update_sale(
            coerce_int(data.get("canteen_id"), "canteen_id"),
            data.get("items", []),
            cash_cents=data.get("cash_cents"),
            online_cents=data.get("online_cents"),
            other_cents=data.get("other_cents"),
            description=data.get("description"),
            previous_day_adjustment_cents=data.get("previous_day_adjustment_cents"),
            previous_day_reason=data.get("previous_day_reason"),
            actor=g.auth,
        )
        return jsonify({"sale": sale.to_dict(include_items=True)}), 201

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.put("/<int:sale_id>")
@require_auth
def update_sale_route(sale_id: int):
    try:
        data = request.get_json(silent=True) or {}
        sale = sales_service.update_sale(
            sale_id,
            data.get("items", []),
            cash_cents=data.get("cash_cents"),
            online_cents=data.get("online_cents"),
            other_cents=data.get("other_cents"),
            description=data.get("description"),
            actor=g.auth,
        )
        return jsonify({"sale": sale.to_dict(include_items=True)}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.post("/<int:sale_id>/verify")
@require_auth
@require_role(*ADMIN_ROLES)
def verify_sale_route(sale_id: int):
    """Verify a sale and lock its canteen. Body: adjustment_cents, reason."""
    try:
        data = request.get_json(silent=True) or {}
        sale = verification_service.verify_sale(
            sale_id,
            data.get("adjustment_cents"),
            data.get("reason"),
            g.auth,
        )
        return jsonify({"sale": sale.to_dict(include_items=True)}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to verify sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.put("/<int:sale_id>/verify")
@require_auth
@require_role(*ADMIN_ROLES)
def update_verification_route(sale_id: int):
    try:
        data = request.get_json(silent=True) or {}
        sale = verification_service.update_verification(
            sale_id,
            data.get("adjustment_cents"),
            data.get("reason"),
            g.auth,
        )
        return jsonify({"sale": sale.to_dict(include_items=True)}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update sale verification")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("")
@require_auth
def list_sales_route():
    """Query: canteen_id, date (YYYY-MM-DD)."""
    try:
        canteen_id = request.args.get("canteen_id")
        day = request.args.get("date")
        sales = sales_service.list_sales(
            g.auth,
            canteen_id=coerce_int(canteen_id, "canteen_id") if canteen_id else None,
            day=coerce_date(day, "date") if day else None,
        )
        return jsonify({"sales": [sale.to_dict(include_items=True) for sale in sales]}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list sales")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/date-range")
@require_auth
def sales_by_date_range_route():
    """Query: start_date, end_date (inclusive), canteen_id."""
    try:
        start = request.args.get("start_date")
        end = request.args.get("end_date")
        if not start or not end:
            return jsonify({"error": "Start and end dates are required", "code": "INVALID_INPUT"}), 400

        canteen_id = request.args.get("canteen_id")
        summary = sales_service.sales_summary_by_date_range(
            coerce_date(start, "start_date"),
            coerce_date(end, "end_date"),
            g.auth,
            canteen_id=coerce_int(canteen_id, "canteen_id") if canteen_id else None,
        )
        return jsonify({"days": summary}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to summarize sales")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/<int:sale_id>")
@require_auth
def get_sale_route(sale_id: int):
    try:
        sale = sales_service.get_sale(sale_id, g.auth)
        return jsonify({"sale": sale.to_dict(include_items=True)}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to get sale")
        return jsonify({"error": "Internal server error"}), 500
