from __future__ import annotations

from flask import Blueprint, current_app, flash, g, redirect, render_template, request, url_for

from app.adminflow.db import db_session
from app.adminflow.models import User
from app.adminflow.modules.annual_update.models import AnnualInfoUpdateRequest
from app.adminflow.modules.annual_update.service import (
    AnnualUpdateExists,
    annual_update_stats,
    apply_info_update,
    create_annual_request,
    load_update_token,
    validate_info_update,
)
from app.adminflow.rbac import require_permission

bp = Blueprint("annual_update", __name__)


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


@bp.get("/admin/annual-update")
@require_permission("annual_update.view")
def annual_update_index():
    s = db_session()
    requests_ = s.query(AnnualInfoUpdateRequest).order_by(AnnualInfoUpdateRequest.year.desc()).limit(10).all()
    return render_template("admin/annual_update/index.html", requests=requests_, stats=annual_update_stats(s))


@bp.post("/admin/annual-update")
@require_permission("annual_update.send")
def annual_update_send():
    s = db_session()
    u = _current_user()
    try:
        req = create_annual_request(s, user=u, config=current_app.config)
        s.commit()
    except AnnualUpdateExists as e:
        s.rollback()
        flash(str(e), "warning")
        return redirect(url_for("annual_update.annual_update_index"))

    flash(f"Annual update request created and emails sent to {req.delivered_count}/{req.recipients_count} users.", "success")
    return redirect(url_for("annual_update.annual_update_index"))


def _user_from_token(s, token: str) -> User | None:
    decoded = load_update_token(str(current_app.config.get("SECRET_KEY") or ""), token)
    if not decoded:
        return None
    user = s.get(User, decoded[0])
    if not user or not user.is_active:
        return None
    return user


@bp.get("/annual-update")
def info_update_get():
    s = db_session()
    token = (request.args.get("token") or "").strip()
    user = _user_from_token(s, token)
    if not user:
        return render_template("errors/400.html", message="This update link is invalid or has expired."), 400
    return render_template("public/annual_update.html", user=user, token=token)


@bp.post("/annual-update")
def info_update_post():
    s = db_session()
    token = (request.form.get("token") or "").strip()
    user = _user_from_token(s, token)
    if not user:
        return render_template("errors/400.html", message="This update link is invalid or has expired."), 400

    payload = {"university": request.form.get("university"), "github_username": request.form.get("github_username")}
    errors = validate_info_update(payload)
    if errors:
        for e in errors:
            flash(e, "danger")
        return render_template("public/annual_update.html", user=user, token=token), 400

    apply_info_update(s, user, payload)
    s.commit()
    flash("Thanks! Your information is up to date.", "success")
    return render_template("public/annual_update_done.html", user=user)
