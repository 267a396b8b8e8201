"""HTTP tests for the posts module."""
import pytest
from werkzeug.security import generate_password_hash

from app.postboard import create_app
from app.postboard.db import session_scope
from app.postboard.models import AuditEvent, Base, User
from app.postboard.modules.posts.models import PostRecord


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")

    app = create_app()
    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)

    with session_scope(app) as s:
        alice = User(name="alice", email="alice@example.com", password_hash=generate_password_hash("alicepw"), is_active=True)
        bob = User(name="bob", email="bob@example.com", password_hash=generate_password_hash("bobpw1"), is_active=True)
        s.add_all([alice, bob])
        s.flush()
        app.config["TEST_USER_IDS"] = {"alice": alice.id, "bob": bob.id}

    return app


def _login(client, name, password):
    r = client.post("/login", data={"loginname": name, "loginpassword": password})
    assert r.status_code == 200


def _csrf(client) -> dict:
    token = client.get("/csrf-token").json["csrf_token"]
    return {"X-CSRF-Token": token}


@pytest.fixture()
def alice(app):
    c = app.test_client()
    _login(c, "alice", "alicepw")
    return c


@pytest.fixture()
def bob(app):
    c = app.test_client()
    _login(c, "bob", "bobpw1")
    return c


def _create(client, title="My first post", body="Body of the first post."):
    r = client.post("/create-post", data={"title": title, "body": body}, headers=_csrf(client))
    assert r.status_code == 201, r.json
    return r.json["post"]


def test_create_post_owned_by_caller_and_audited(app, alice):
    post = _create(alice)
    assert post["user_id"] == app.config["TEST_USER_IDS"]["alice"]

    with session_scope(app) as s:
        row = s.get(PostRecord, post["id"])
        assert row.title == "My first post"
        assert row.user_id == app.config["TEST_USER_IDS"]["alice"]
        ev = s.query(AuditEvent).filter(AuditEvent.action == "post.create").one()
        assert ev.entity_id == str(post["id"])
        assert ev.actor_user_name == "alice"


def test_create_post_alias_and_json_body(alice):
    r = alice.post("/createpost", json={"title": "Posted as JSON", "body": "JSON body content"}, headers=_csrf(alice))
    assert r.status_code == 201
    assert r.json["post"]["title"] == "Posted as JSON"


def test_create_post_strips_markup(alice):
    post = _create(alice, title="Hello <script>x</script> World", body="1234567890")
    assert post["title"] == "Hello x World"


def test_create_post_requires_login(app):
    c = app.test_client()
    r = c.post("/create-post", data={"title": "Anonymous post", "body": "Anonymous body"}, headers=_csrf(c))
    assert r.status_code == 401
    assert r.json["error"] == "unauthenticated"
    with session_scope(app) as s:
        assert s.query(PostRecord).count() == 0


def test_create_post_requires_csrf(app, alice):
    r = alice.post("/create-post", data={"title": "No token here", "body": "No token body"})
    assert r.status_code == 400
    with session_scope(app) as s:
        assert s.query(PostRecord).count() == 0


def test_create_post_validation_lists_field_errors(alice):
    r = alice.post("/create-post", data={"title": "abc", "body": "short"}, headers=_csrf(alice))
    assert r.status_code == 422
    fields = {e["field"] for e in r.json["errors"]}
    assert fields == {"title", "body"}


def test_records_lists_all_posts_newest_first(app, alice, bob):
    first = _create(alice, title="Alice writes")
    second = _create(bob, title="Bob writes too")

    r = app.test_client().get("/records")
    assert r.status_code == 200
    posts = r.json["posts"]
    assert [p["id"] for p in posts] == [second["id"], first["id"]]
    assert [p["owner_name"] for p in posts] == ["bob", "alice"]


def test_home_shows_only_own_posts(app, alice, bob):
    mine = _create(alice)
    _create(bob)

    r = alice.get("/")
    assert r.json["user"]["name"] == "alice"
    assert [p["id"] for p in r.json["posts"]] == [mine["id"]]

    r = app.test_client().get("/")
    assert r.json == {"user": None, "posts": []}


def test_edit_form_is_owner_only(app, alice, bob):
    post = _create(alice)

    assert alice.get(f"/edit-post/{post['id']}").status_code == 200
    assert bob.get(f"/edit-post/{post['id']}").status_code == 403
    assert app.test_client().get(f"/edit-post/{post['id']}").status_code == 403
    assert alice.get("/edit-post/9999").status_code == 404


def test_update_by_owner_reflected_in_records(app, alice):
    post = _create(alice)
    r = alice.put(
        f"/edit-post/{post['id']}",
        data={"title": "New Title Ok", "body": "new body content"},
        headers=_csrf(alice),
    )
    assert r.status_code == 200
    assert r.json["post"]["title"] == "New Title Ok"

    listed = app.test_client().get("/records").json["posts"]
    assert listed[0]["title"] == "New Title Ok"
    assert listed[0]["body"] == "new body content"
    assert listed[0]["user_id"] == app.config["TEST_USER_IDS"]["alice"]


def test_update_by_non_owner_is_forbidden_without_effect(app, alice, bob):
    post = _create(alice)
    r = bob.put(
        f"/edit-post/{post['id']}",
        data={"title": "Hijacked title", "body": "hijacked body"},
        headers=_csrf(bob),
    )
    assert r.status_code == 403

    # Invalid payload from a non-owner is still a 403, not a validation error.
    r = bob.put(f"/edit-post/{post['id']}", data={"title": "x"}, headers=_csrf(bob))
    assert r.status_code == 403

    with session_scope(app) as s:
        row = s.get(PostRecord, post["id"])
        assert row.title == post["title"]
        assert s.query(AuditEvent).filter(AuditEvent.action == "post.update").count() == 0


def test_update_validation_error(alice):
    post = _create(alice)
    r = alice.put(f"/edit-post/{post['id']}", data={"title": "Fine title", "body": "tiny"}, headers=_csrf(alice))
    assert r.status_code == 422
    assert r.json["errors"] == [{"field": "body", "message": "Body must be at least 10 characters."}]


def test_delete_is_owner_only(app, alice, bob):
    post = _create(alice)

    assert bob.delete(f"/delete-post/{post['id']}", headers=_csrf(bob)).status_code == 403
    with session_scope(app) as s:
        assert s.get(PostRecord, post["id"]) is not None

    assert alice.delete(f"/delete-post/{post['id']}", headers=_csrf(alice)).status_code == 204
    ids = [p["id"] for p in app.test_client().get("/records").json["posts"]]
    assert post["id"] not in ids

    assert alice.delete(f"/delete-post/{post['id']}", headers=_csrf(alice)).status_code == 404


def test_tags_only_title_is_rejected_and_not_stored(app, alice):
    r = alice.post("/create-post", data={"title": "<p></p><b></b>", "body": "Body of the post."}, headers=_csrf(alice))
    assert r.status_code == 422
    assert r.json["errors"] == [{"field": "title", "message": "Title is required."}]
    with session_scope(app) as s:
        assert s.query(PostRecord).count() == 0
