from __future__ import annotations

from flask import Blueprint, abort, current_app, flash, g, redirect, render_template, request, url_for
from sqlalchemy import func

from app.adminflow.db import db_session
from app.adminflow.models import User
from app.adminflow.modules.registrations.models import STATUS_PENDING, PendingRegistration
from app.adminflow.modules.registrations.service import (
    RegistrationConflict,
    RegistrationError,
    review_registration,
    submit_registration,
    validate_registration_payload,
)
from app.adminflow.rbac import require_permission

bp = Blueprint("registrations", __name__)

FORM_FIELDS = ("name", "email", "university", "preferred_username", "github_username")


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


# ---------- Public ----------
@bp.get("/register")
def register_get():
    return render_template("public/register.html", form={})


@bp.post("/register")
def register_post():
    s = db_session()
    payload = {k: (request.form.get(k) or "").strip() for k in FORM_FIELDS}

    errors = validate_registration_payload(payload)
    if errors:
        for e in errors:
            flash(e, "danger")
        return render_template("public/register.html", form=payload), 400

    try:
        submit_registration(s, payload, config=current_app.config)
        s.commit()
    except RegistrationConflict as e:
        s.rollback()
        flash(str(e), "danger")
        return render_template("public/register.html", form=payload), 409

    return render_template("public/register_submitted.html", name=payload["name"]), 201


# ---------- Admin ----------
@bp.get("/admin/registrations")
@require_permission("registrations.view")
def registrations_list():
    s = db_session()
    status_filter = (request.args.get("status") or STATUS_PENDING).strip().upper()

    q = s.query(PendingRegistration)
    if status_filter != "ALL":
        q = q.filter(PendingRegistration.status == status_filter)
    registrations = q.order_by(PendingRegistration.created_at.desc(), PendingRegistration.id.desc()).all()

    counts = dict(
        s.query(PendingRegistration.status, func.count(PendingRegistration.id))
        .group_by(PendingRegistration.status)
        .all()
    )
    return render_template(
        "admin/registrations/list.html",
        registrations=registrations,
        status_filter=status_filter,
        counts=counts,
    )


@bp.post("/admin/registrations/<int:registration_id>/review")
@require_permission("registrations.review")
def registration_review(registration_id: int):
    s = db_session()
    u = _current_user()
    reg = s.get(PendingRegistration, registration_id)
    if not reg:
        abort(404)

    try:
        review_registration(
            s,
            reg,
            status=request.form.get("status") or "",
            comments=request.form.get("comments"),
            reviewer=u,
            config=current_app.config,
        )
        s.commit()
    except RegistrationError as e:
        s.rollback()
        flash(str(e), "danger")
        return redirect(url_for("registrations.registrations_list"))

    flash(f"Registration {reg.status.lower()} successfully.", "success")
    return redirect(url_for("registrations.registrations_list"))
