from conftest import login


def test_health_ok(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json["ok"] is True


def test_healthz(client):
    r = client.get("/healthz")
    assert r.status_code == 200
    assert r.data == b"ok"


def test_index_renders(client):
    r = client.get("/")
    assert r.status_code == 200


def test_login_and_admin_access(client):
    # Anonymous is sent to login
    r = client.get("/admin/")
    assert r.status_code == 302
    assert "/auth/login" in r.headers["Location"]

    r = login(client)
    assert r.status_code == 302

    r = client.get("/admin/")
    assert r.status_code == 200
    assert b"Directories" in r.data
    assert b"demo" in r.data


def test_bad_password_is_rejected(client):
    r = login(client, password="wrong")
    assert r.status_code == 302
    assert "/auth/login" in r.headers["Location"]
    assert client.get("/admin/").status_code == 302


def test_user_without_permission_gets_403(app, client):
    from werkzeug.security import generate_password_hash

    from app.adminflow.db import session_scope
    from app.adminflow.models import User

    with session_scope(app) as s:
        s.add(User(email="member@example.com", password_hash=generate_password_hash("pw"), is_active=True))

    login(client, email="member@example.com")
    r = client.get("/admin/directory-sync")
    assert r.status_code == 403
    assert b"directory_sync.view" in r.data


def test_post_without_csrf_is_rejected(app):
    c = app.test_client()
    r = c.post("/register", data={"name": "No Token"})
    assert r.status_code == 400
    assert b"CSRF" in r.data


def test_audit_log_lists_login(client):
    login(client)
    r = client.get("/admin/audit?action=auth.login")
    assert r.status_code == 200
    assert b"auth.login" in r.data


def test_me_page(client):
    login(client)
    r = client.get("/admin/me")
    assert r.status_code == 200
    assert b"registrations.review" in r.data


def test_unknown_page_404(client):
    assert client.get("/nope").status_code == 404
