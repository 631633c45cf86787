# backend/resellerpro/routes/system.py
"""
System health endpoint.

Checks database connectivity and that the plan catalog has been seeded.
"""

import time
from flask import Blueprint, current_app
from ..extensions import db
from ..models import Profile, SubscriptionPlan, UserSession
from resellerpro.time_utils import utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    start_time = time.time()
    try:
        accounts = db.session.query(Profile).count()
        active_sessions = db.session.query(UserSession).filter(
            UserSession.is_revoked.is_(False),
            UserSession.expires_at > utcnow(),
        ).count()
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {"accounts": accounts, "active_sessions": active_sessions},
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


def check_plan_catalog() -> dict:
    try:
        plans = db.session.query(SubscriptionPlan).filter(SubscriptionPlan.is_active.is_(True)).count()
    except Exception:
        current_app.logger.exception("Plan catalog health check failed")
        return {"status": "unhealthy", "error": "Plan catalog error"}
    if plans == 0:
        return {"status": "degraded", "warning": "No plans seeded; run `flask plans seed`"}
    return {"status": "healthy", "details": {"plans": plans}}


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: healthy or degraded
    - 503: database unreachable
    """
    start_time = time.time()
    database_health = check_database_health()
    plan_health = check_plan_catalog()

    checks = [database_health, plan_health]
    if any(c["status"] == "unhealthy" for c in checks):
        overall_status, http_status = "unhealthy", 503
    elif any(c["status"] == "degraded" for c in checks):
        overall_status, http_status = "degraded", 200
    else:
        overall_status, http_status = "healthy", 200

    return {
        "status": overall_status,
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": round((time.time() - start_time) * 1000, 2),
        "checks": {
            "database": database_health,
            "plans": plan_health,
        },
    }, http_status
