from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import date, datetime
from typing import TYPE_CHECKING, Any

from itsdangerous import BadData, URLSafeTimedSerializer
from markupsafe import escape
from sqlalchemy import func

from app.adminflow.audit import record_event
from app.adminflow.mailer import send_email
from app.adminflow.models import User
from app.adminflow.modules.annual_update.models import AnnualInfoUpdateRequest
from app.adminflow.modules.registrations.service import GITHUB_USERNAME_RE

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

TOKEN_SALT = "annual-info-update"
TOKEN_MAX_AGE_SECONDS = 366 * 24 * 3600


class AnnualUpdateExists(RuntimeError):
    def __init__(self, existing: AnnualInfoUpdateRequest):
        super().__init__(f"Annual update request for {existing.year} already exists.")
        self.existing = existing


def _serializer(secret_key: str) -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(secret_key, salt=TOKEN_SALT)


def make_update_token(secret_key: str, user_id: int, year: int) -> str:
    return _serializer(secret_key).dumps({"uid": user_id, "year": year})


def load_update_token(secret_key: str, token: str) -> tuple[int, int] | None:
    """Return (user_id, year) for a valid token, None for tampered/expired ones."""
    try:
        data = _serializer(secret_key).loads(token, max_age=TOKEN_MAX_AGE_SECONDS)
    except BadData:
        return None
    if not isinstance(data, dict):
        return None
    try:
        return int(data["uid"]), int(data["year"])
    except (KeyError, TypeError, ValueError):
        return None


def _send_update_email(u: User, url: str, year: int, config: Mapping[str, Any]) -> bool:
    return send_email(
        u.email,
        f"Annual Information Update Request {year}",
        f"Hello {u.display_name},\n\nIt's time for our annual information update. "
        f"Please review and update your information here:\n\n{url}\n\n"
        "If you have any questions, please contact our support team.\n\nThank you,\nThe Admin Team",
        f"<h1>Annual Information Update</h1><p>Hello {escape(u.display_name)},</p>"
        "<p>It's time for our annual information update. Please review and update your information:</p>"
        f'<p><a href="{escape(url)}">Update My Information</a></p>'
        "<p>If you have any questions, please contact our support team.</p>"
        "<p>Thank you,<br>The Admin Team</p>",
        config=config,
    )


def create_annual_request(
    s: "Session",
    *,
    user: User,
    config: Mapping[str, Any],
    year: int | None = None,
) -> AnnualInfoUpdateRequest:
    """
    One request per calendar year. Emails every active user a signed update link.
    Raises AnnualUpdateExists if this year's request was already sent.
    """
    year = year or date.today().year
    existing = s.query(AnnualInfoUpdateRequest).filter(AnnualInfoUpdateRequest.year == year).one_or_none()
    if existing:
        raise AnnualUpdateExists(existing)

    active_users = s.query(User).filter(User.is_active.is_(True)).order_by(User.id.asc()).all()
    base_url = (config.get("APP_URL") or "").rstrip("/")
    secret_key = str(config.get("SECRET_KEY") or "")

    delivered = 0
    for u in active_users:
        url = f"{base_url}/annual-update?token={make_update_token(secret_key, u.id, year)}"
        if _send_update_email(u, url, year, config):
            delivered += 1

    req = AnnualInfoUpdateRequest(
        year=year,
        sent_at=datetime.utcnow(),
        recipients_count=len(active_users),
        delivered_count=delivered,
        created_by_user_id=user.id,
    )
    s.add(req)
    s.flush()
    record_event(
        s,
        actor=user,
        action="annual_update.requested",
        entity_type="AnnualInfoUpdateRequest",
        entity_id=str(req.id),
        metadata={"year": year, "recipients": len(active_users), "delivered": delivered},
    )
    logger.info("Annual update %s: emailed %d/%d active users", year, delivered, len(active_users))
    return req


def annual_update_stats(s: "Session", year: int | None = None) -> dict[str, int]:
    year = year or date.today().year
    total_active = s.query(func.count(User.id)).filter(User.is_active.is_(True)).scalar() or 0
    updated = (
        s.query(func.count(User.id))
        .filter(User.is_active.is_(True), User.last_info_update >= datetime(year, 1, 1))
        .scalar()
        or 0
    )
    return {
        "year": year,
        "total_active_users": total_active,
        "users_with_updates": updated,
        "pending_updates": total_active - updated,
        "completion_rate": round(updated / total_active * 100) if total_active else 0,
    }


def validate_info_update(payload: Mapping[str, Any]) -> list[str]:
    errors = []
    if len(str(payload.get("university") or "").strip()) < 2:
        errors.append("University name is required.")
    github = str(payload.get("github_username") or "").strip()
    if github and not GITHUB_USERNAME_RE.match(github):
        errors.append("GitHub username may only contain letters, numbers and hyphens.")
    return errors


def apply_info_update(s: "Session", user: User, payload: Mapping[str, Any]) -> User:
    changes = {}
    new_university = str(payload.get("university") or "").strip()
    if new_university != (user.university or ""):
        changes["university"] = {"old": user.university, "new": new_university}
        user.university = new_university
    new_github = str(payload.get("github_username") or "").strip() or None
    if new_github != user.github_username:
        changes["github_username"] = {"old": user.github_username, "new": new_github}
        user.github_username = new_github
    user.last_info_update = datetime.utcnow()

    record_event(
        s,
        actor=user,
        action="annual_update.confirmed",
        entity_type="User",
        entity_id=str(user.id),
        metadata={"changes": changes} if changes else None,
    )
    return user
