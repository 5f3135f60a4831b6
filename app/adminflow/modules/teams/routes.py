from __future__ import annotations

from collections import defaultdict

from flask import Blueprint, render_template, request

from app.adminflow.db import db_session
from app.adminflow.models import User

bp = Blueprint("teams", __name__)

UNAFFILIATED = "Unaffiliated"


def group_by_university(users: list[User]) -> list[tuple[str, list[User]]]:
    groups: dict[str, list[User]] = defaultdict(list)
    for u in users:
        groups[(u.university or "").strip() or UNAFFILIATED].append(u)
    return sorted(
        ((team, sorted(members, key=lambda m: m.display_name.lower())) for team, members in groups.items()),
        key=lambda item: (item[0] == UNAFFILIATED, item[0].lower()),
    )


@bp.get("/teams")
def teams_index():
    s = db_session()
    search = (request.args.get("q") or "").strip()

    q = s.query(User).filter(User.is_active.is_(True))
    if search:
        like = f"%{search}%"
        q = q.filter((User.name.ilike(like)) | (User.username.ilike(like)) | (User.university.ilike(like)))
    teams = group_by_university(q.all())
    return render_template("public/teams.html", teams=teams, search=search)
