import sys
from pathlib import Path
import os

from werkzeug.security import generate_password_hash
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from contextlib import contextmanager

# Ensure repo root is on sys.path when running as a script.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.adminflow.models import Permission, Role, User

PERMISSIONS: tuple[tuple[str, str], ...] = (
    ("admin.view", "Admin: view shell"),
    ("registrations.view", "Registrations: view"),
    ("registrations.review", "Registrations: approve/reject"),
    ("directory_sync.view", "Directory Sync: view"),
    ("directory_sync.run", "Directory Sync: run reconciliation"),
    ("annual_update.view", "Annual Update: view"),
    ("annual_update.send", "Annual Update: send requests"),
)


@contextmanager
def _session_scope(database_url: str):
    engine = create_engine(database_url, future=True)
    sm = sessionmaker(bind=engine, class_=Session, autoflush=False, autocommit=False, expire_on_commit=False, future=True)
    s: Session = sm()
    try:
        yield s
        s.commit()
    except Exception:
        s.rollback()
        raise
    finally:
        s.close()


def seed_only(*, database_url: str | None = None) -> None:
    """
    Seed permissions/roles/admin user in an idempotent way.
    Does NOT overwrite an existing admin user's password.
    """
    admin_email = (os.environ.get("ADMIN_EMAIL") or "admin@example.com").strip().lower()
    admin_password = os.environ.get("ADMIN_PASSWORD") or "change-me"

    db_url = (database_url or os.environ.get("DATABASE_URL") or "sqlite:///adminflow.db").strip()

    with _session_scope(db_url) as s:

        def ensure_perm(key: str, name: str) -> Permission:
            p = s.query(Permission).filter(Permission.key == key).one_or_none()
            if not p:
                p = Permission(key=key, name=name)
                s.add(p)
            return p

        def ensure_role(key: str, name: str) -> Role:
            r = s.query(Role).filter(Role.key == key).one_or_none()
            if not r:
                r = Role(key=key, name=name)
                s.add(r)
            return r

        role_admin = ensure_role("admin", "Administrator")
        # Members hold no permissions; the role marks approved registrants.
        ensure_role("member", "Member")

        for key, name in PERMISSIONS:
            p = ensure_perm(key, name)
            if p not in role_admin.permissions:
                role_admin.permissions.append(p)

        user = s.query(User).filter(User.email == admin_email).one_or_none()
        if not user:
            user = User(
                email=admin_email,
                name="Administrator",
                password_hash=generate_password_hash(admin_password),
                is_active=True,
            )
            s.add(user)
        if role_admin not in user.roles:
            user.roles.append(role_admin)

    print("Initialized database (seed_only).")
    print(f"Admin email: {admin_email}")
    print("Admin password: (from ADMIN_PASSWORD)")


def main() -> None:
    seed_only(database_url=None)


if __name__ == "__main__":
    main()
