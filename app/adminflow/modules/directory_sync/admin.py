from __future__ import annotations

import json

from flask import Blueprint, abort, current_app, flash, g, redirect, render_template, url_for
from sqlalchemy import func

from app.adminflow.db import db_session
from app.adminflow.models import User
from app.adminflow.modules.directory_sync.clients import DIRECTORIES
from app.adminflow.modules.directory_sync.models import DirectorySyncRun
from app.adminflow.modules.directory_sync.service import directory_status, run_directory_sync
from app.adminflow.rbac import require_permission

bp = Blueprint("directory_sync", __name__)


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


@bp.get("/directory-sync")
@require_permission("directory_sync.view")
def directory_sync_index():
    s = db_session()
    runs = s.query(DirectorySyncRun).order_by(DirectorySyncRun.ran_at.desc(), DirectorySyncRun.id.desc()).limit(20).all()
    run_count = s.query(func.count(DirectorySyncRun.id)).scalar() or 0
    return render_template(
        "admin/directory_sync/index.html",
        runs=runs,
        run_count=run_count,
        directories=directory_status(current_app.config),
    )


@bp.get("/directory-sync/runs/<int:run_id>")
@require_permission("directory_sync.view")
def directory_sync_run_detail(run_id: int):
    s = db_session()
    run = s.get(DirectorySyncRun, run_id)
    if not run:
        abort(404)
    details = json.loads(run.details_json) if run.details_json else {}
    return render_template("admin/directory_sync/run.html", run=run, details=details)


@bp.post("/directory-sync/<directory>/run")
@require_permission("directory_sync.run")
def directory_sync_run(directory: str):
    if directory not in DIRECTORIES:
        abort(404)
    s = db_session()
    u = _current_user()

    run, result = run_directory_sync(s, user=u, directory=directory, config=current_app.config)
    s.commit()

    if result.fetch_failed:
        flash(f"{directory.title()} sync aborted: directory unreachable. No members were changed.", "danger")
    elif result.failures:
        flash(
            f"{directory.title()} sync finished with errors. Added={run.added_count} removed={run.removed_count} "
            f"failed={run.failed_count}.",
            "warning",
        )
    else:
        flash(f"{directory.title()} sync completed. Added={run.added_count} removed={run.removed_count}.", "success")
    return redirect(url_for("directory_sync.directory_sync_index"))
