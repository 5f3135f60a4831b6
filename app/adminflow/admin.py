from datetime import datetime, time

from flask import Blueprint, current_app, g, render_template, request
from sqlalchemy import func, text

from app.adminflow.db import db_session
from app.adminflow.models import AuditEvent
from app.adminflow.modules.annual_update.service import annual_update_stats
from app.adminflow.modules.directory_sync.models import DirectorySyncRun
from app.adminflow.modules.directory_sync.service import directory_status
from app.adminflow.modules.registrations.models import STATUS_PENDING, PendingRegistration
from app.adminflow.rbac import require_permission

bp = Blueprint("admin", __name__)


@bp.get("/")
@require_permission("admin.view")
def index():
    s = db_session()
    status = {
        "env": (current_app.config.get("ENV") or "development").strip().lower(),
        "db_connected": False,
        "db_error": None,
    }

    # DB connectivity (lightweight)
    try:
        s.execute(text("SELECT 1"))
        status["db_connected"] = True
    except Exception as e:
        status["db_error"] = str(e)

    last_runs = {}
    for d in directory_status(current_app.config):
        last_runs[d["directory"]] = (
            s.query(DirectorySyncRun)
            .filter(DirectorySyncRun.directory == d["directory"])
            .order_by(DirectorySyncRun.ran_at.desc(), DirectorySyncRun.id.desc())
            .first()
        )

    pending = s.query(func.count(PendingRegistration.id)).filter(PendingRegistration.status == STATUS_PENDING).scalar() or 0

    return render_template(
        "admin/index.html",
        system_status=status,
        directories=directory_status(current_app.config),
        last_runs=last_runs,
        pending_registrations=pending,
        annual_stats=annual_update_stats(s),
    )


@bp.get("/me")
@require_permission("admin.view")
def me():
    user = getattr(g, "current_user", None)
    role_keys: list[str] = []
    perm_keys: list[str] = []
    if user:
        role_keys = sorted({r.key for r in (user.roles or [])})
        perm_keys = sorted({p.key for r in (user.roles or []) for p in (r.permissions or [])})
    return render_template("admin/me.html", user=user, role_keys=role_keys, perm_keys=perm_keys)


def _parse_date(raw: str):
    raw = (raw or "").strip()
    if not raw:
        return None
    try:
        return datetime.fromisoformat(raw).date()
    except ValueError:
        return None


@bp.get("/audit")
@require_permission("admin.view")
def audit_list():
    s = db_session()
    action = (request.args.get("action") or "").strip()
    actor = (request.args.get("actor") or "").strip()
    date_from = _parse_date(request.args.get("date_from") or "")
    date_to = _parse_date(request.args.get("date_to") or "")

    q = s.query(AuditEvent)
    if action:
        q = q.filter(AuditEvent.action.ilike(f"%{action}%"))
    if actor:
        q = q.filter(AuditEvent.actor_user_email.ilike(f"%{actor}%"))
    if date_from:
        q = q.filter(AuditEvent.created_at >= datetime.combine(date_from, time.min))
    if date_to:
        q = q.filter(AuditEvent.created_at <= datetime.combine(date_to, time.max))

    events = q.order_by(AuditEvent.created_at.desc(), AuditEvent.id.desc()).limit(200).all()
    return render_template(
        "admin/audit/list.html",
        events=events,
        action=action,
        actor=actor,
        date_from=request.args.get("date_from") or "",
        date_to=request.args.get("date_to") or "",
    )
