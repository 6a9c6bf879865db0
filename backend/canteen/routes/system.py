# backend/canteen/routes/system.py
"""
System health and server time endpoints.

Clients use /time to learn the server's business date instead of trusting
their own clocks.
"""

import time
from flask import Blueprint, current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Canteen, SessionToken, User
from canteen.time_utils import business_date, business_zone, to_local, to_utc_z, utcnow

system_bp = Blueprint("system", __name__, url_prefix="/api/system")


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        canteen_count = db.session.query(Canteen).count()
        user_count = db.session.query(User).count()
        locked_count = db.session.query(Canteen).filter(Canteen.is_locked.is_(True)).count()

        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "canteens": canteen_count,
                "locked_canteens": locked_count,
                "users": user_count,
            }
        }
    except SQLAlchemyError:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


def check_session_service_health() -> dict:
    start_time = time.time()
    try:
        now = utcnow()
        active_sessions = db.session.query(SessionToken).filter(
            SessionToken.revoked_at.is_(None),
            SessionToken.expires_at >= now,
        ).count()

        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {"active_sessions": active_sessions},
        }
    except SQLAlchemyError:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Session service health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Session service error"
        }


@system_bp.get("/health")
def health():
    """
    Health check endpoint.

    Returns:
    - 200: All systems healthy
    - 503: One or more systems unhealthy
    """
    start_time = time.time()

    database_health = check_database_health()
    session_health = check_session_service_health()

    unhealthy = any(check["status"] == "unhealthy" for check in (database_health, session_health))
    if unhealthy:
        db.session.rollback()

    response = {
        "status": "unhealthy" if unhealthy else "healthy",
        "timestamp": to_utc_z(utcnow()),
        "total_latency_ms": round((time.time() - start_time) * 1000, 2),
        "checks": {
            "database": database_health,
            "session_service": session_health,
        }
    }

    return response, 503 if unhealthy else 200


@system_bp.get("/time")
def server_time():
    """Server time, local business time and the current business date."""
    now = utcnow()
    return {
        "utc": to_utc_z(now),
        "local": to_local(now).replace(microsecond=0).isoformat(),
        "timezone": business_zone().key,
        "business_date": business_date(now).isoformat(),
        "business_day_start_hour": current_app.config.get("BUSINESS_DAY_START_HOUR", 2),
    }, 200
