from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from datetime import datetime
from typing import TYPE_CHECKING, Any

from markupsafe import escape
from sqlalchemy import func

from app.adminflow.audit import record_event
from app.adminflow.mailer import send_email
from app.adminflow.models import Role, User
from app.adminflow.modules.directory_sync.clients import build_client
from app.adminflow.modules.directory_sync.clients.base import DirectoryClient
from app.adminflow.modules.registrations.models import (
    STATUS_APPROVED,
    STATUS_PENDING,
    STATUS_REJECTED,
    PendingRegistration,
)

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
GITHUB_USERNAME_RE = re.compile(r"^[A-Za-z0-9](?:[A-Za-z0-9-]{0,38})$")
REVIEW_STATUSES = (STATUS_APPROVED, STATUS_REJECTED)
MEMBER_ROLE_KEY = "member"


class RegistrationError(ValueError):
    pass


class RegistrationConflict(RegistrationError):
    pass


class RegistrationAlreadyReviewed(RegistrationError):
    pass


def _clean(payload: Mapping[str, Any], key: str) -> str:
    return str(payload.get(key) or "").strip()


def validate_registration_payload(payload: Mapping[str, Any]) -> list[str]:
    """Validate a registration form. Returns list of errors."""
    errors = []
    if len(_clean(payload, "name")) < 2:
        errors.append("Name must be at least 2 characters.")
    if not EMAIL_RE.match(_clean(payload, "email")):
        errors.append("Invalid email address.")
    if len(_clean(payload, "university")) < 2:
        errors.append("University name is required.")
    if len(_clean(payload, "preferred_username")) < 3:
        errors.append("Username must be at least 3 characters.")
    github = _clean(payload, "github_username")
    if github and not GITHUB_USERNAME_RE.match(github):
        errors.append("GitHub username may only contain letters, numbers and hyphens.")
    return errors


def _ensure_no_user_conflict(s: "Session", *, email: str, username: str) -> None:
    if s.query(User.id).filter(func.lower(User.email) == email.lower()).first():
        raise RegistrationConflict("A user with this email already exists.")
    if s.query(User.id).filter(User.username == username).first():
        raise RegistrationConflict("This username is already taken.")


def submit_registration(s: "Session", payload: Mapping[str, Any], *, config: Mapping[str, Any]) -> PendingRegistration:
    """Create a PENDING registration and notify the administrator."""
    email = _clean(payload, "email").lower()
    username = _clean(payload, "preferred_username")
    _ensure_no_user_conflict(s, email=email, username=username)

    reg = PendingRegistration(
        name=_clean(payload, "name"),
        email=email,
        university=_clean(payload, "university"),
        preferred_username=username,
        github_username=_clean(payload, "github_username") or None,
        status=STATUS_PENDING,
    )
    s.add(reg)
    s.flush()

    record_event(
        s,
        actor=None,
        action="registration.submitted",
        entity_type="PendingRegistration",
        entity_id=str(reg.id),
        metadata={"email": reg.email, "username": reg.preferred_username},
    )

    dashboard_url = f"{(config.get('APP_URL') or '').rstrip('/')}/admin/registrations"
    github_line = f"<li><strong>GitHub username:</strong> {escape(reg.github_username)}</li>" if reg.github_username else ""
    send_email(
        config.get("ADMIN_EMAIL") or "admin@example.com",
        "New User Registration Pending Approval",
        f"A new user registration from {reg.name} ({reg.email}) is pending approval. "
        f"Please log in to the admin dashboard to review: {dashboard_url}",
        f"""
        <h1>New User Registration</h1>
        <p>A new user has registered and needs approval:</p>
        <ul>
          <li><strong>Name:</strong> {escape(reg.name)}</li>
          <li><strong>Email:</strong> {escape(reg.email)}</li>
          <li><strong>University:</strong> {escape(reg.university)}</li>
          <li><strong>Preferred username:</strong> {escape(reg.preferred_username)}</li>
          {github_line}
        </ul>
        <p>Please log in to the <a href="{escape(dashboard_url)}">admin dashboard</a> to review this request.</p>
        """,
        config=config,
    )
    return reg


def _approval_email(reg: PendingRegistration, comments: str | None, config: Mapping[str, Any]) -> bool:
    comment_text = f"Comments from admin: {comments}\n\n" if comments else ""
    comment_html = f"<p><strong>Comments from admin:</strong> {escape(comments)}</p>" if comments else ""
    return send_email(
        reg.email,
        "Your Registration Has Been Approved",
        f"Hello {reg.name},\n\nWe're pleased to inform you that your registration has been approved.\n\n"
        f"{comment_text}Welcome aboard!\n\nRegards,\nThe Admin Team",
        f"<h1>Registration Approved</h1><p>Hello {escape(reg.name)},</p>"
        f"<p>We're pleased to inform you that your registration has been approved.</p>{comment_html}"
        f"<p>Welcome aboard!</p><p>Regards,<br>The Admin Team</p>",
        config=config,
    )


def _rejection_email(reg: PendingRegistration, comments: str | None, config: Mapping[str, Any]) -> bool:
    reason_text = f"Reason: {comments}\n\n" if comments else ""
    reason_html = f"<p><strong>Reason:</strong> {escape(comments)}</p>" if comments else ""
    return send_email(
        reg.email,
        "Your Registration Status",
        f"Hello {reg.name},\n\nWe regret to inform you that your registration request has been declined.\n\n"
        f"{reason_text}If you believe this was in error, please contact our support team.\n\nRegards,\nThe Admin Team",
        f"<h1>Registration Status</h1><p>Hello {escape(reg.name)},</p>"
        f"<p>We regret to inform you that your registration request has been declined.</p>{reason_html}"
        f"<p>If you believe this was in error, please contact our support team.</p>"
        f"<p>Regards,<br>The Admin Team</p>",
        config=config,
    )


def _create_member_user(s: "Session", reg: PendingRegistration) -> User:
    _ensure_no_user_conflict(s, email=reg.email, username=reg.preferred_username)
    user = User(
        email=reg.email,
        name=reg.name,
        username=reg.preferred_username,
        university=reg.university,
        github_username=reg.github_username,
        is_active=True,
    )
    member_role = s.query(Role).filter(Role.key == MEMBER_ROLE_KEY).one_or_none()
    if member_role:
        user.roles.append(member_role)
    s.add(user)
    s.flush()
    return user


def review_registration(
    s: "Session",
    reg: PendingRegistration,
    *,
    status: str,
    comments: str | None,
    reviewer: User,
    config: Mapping[str, Any],
    github_client: DirectoryClient | None = None,
) -> PendingRegistration:
    """
    Approve or reject a PENDING registration.
    Approval creates an active member User; the GitHub org add is attempted but
    its failure never blocks the approval (the next directory sync retries it).
    """
    status = (status or "").strip().upper()
    if status not in REVIEW_STATUSES:
        raise RegistrationError(f"Invalid status. Must be one of: {', '.join(REVIEW_STATUSES)}")
    if reg.status != STATUS_PENDING:
        raise RegistrationAlreadyReviewed(f"Registration already {reg.status.lower()}.")
    comments = (comments or "").strip() or None

    metadata: dict[str, Any] = {"status": status, "email": reg.email}
    if status == STATUS_APPROVED:
        user = _create_member_user(s, reg)
        reg.created_user_id = user.id
        metadata["user_id"] = user.id
        if reg.github_username:
            client = github_client or build_client("github", config)
            outcome = client.add_member(reg.github_username, {"role": "member"})
            metadata["github_added"] = outcome.ok
            if not outcome:
                logger.warning("Approved %s but GitHub add failed: %s", reg.email, outcome.reason)

    reg.status = status
    reg.comments = comments
    reg.reviewed_by_user_id = reviewer.id
    reg.reviewed_at = datetime.utcnow()

    record_event(
        s,
        actor=reviewer,
        action=f"registration.{status.lower()}",
        entity_type="PendingRegistration",
        entity_id=str(reg.id),
        reason=comments,
        metadata=metadata,
    )

    if status == STATUS_APPROVED:
        _approval_email(reg, comments, config)
    else:
        _rejection_email(reg, comments, config)
    return reg
