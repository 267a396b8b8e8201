import pytest
from werkzeug.security import generate_password_hash

from app.postboard import create_app
from app.postboard.db import session_scope
from app.postboard.errors import NotFound
from app.postboard.models import Base, User
from app.postboard.modules.posts.store import SqlPostStore


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")

    app = create_app()
    Base.metadata.create_all(bind=app.extensions["sqlalchemy_engine"])
    return app


@pytest.fixture()
def owner_id(app):
    with session_scope(app) as s:
        u = User(name="dana", email="dana@example.com", password_hash=generate_password_hash("pw1234"), is_active=True)
        s.add(u)
        s.flush()
        return u.id


def test_insert_find_and_list(app, owner_id):
    with session_scope(app) as s:
        store = SqlPostStore(s)
        first = store.insert(title="First title", body="first body text", user_id=owner_id)
        second = store.insert(title="Second title", body="second body text", user_id=owner_id)

    with session_scope(app) as s:
        store = SqlPostStore(s)
        assert store.find(first.id) == first
        assert store.find(9999) is None

        listing = store.list_all()
        assert [item.post.id for item in listing] == [second.id, first.id]
        assert {item.owner_name for item in listing} == {"dana"}
        assert [p.id for p in store.list_by_owner(owner_id)] == [second.id, first.id]
        assert store.list_by_owner(owner_id + 1) == []


def test_update_touches_only_title_and_body(app, owner_id):
    with session_scope(app) as s:
        post = SqlPostStore(s).insert(title="Original", body="original body", user_id=owner_id)

    with session_scope(app) as s:
        updated = SqlPostStore(s).update(post.id, title="Changed title", body="changed body")

    assert updated.user_id == owner_id
    assert updated.created_at == post.created_at
    assert updated.updated_at >= post.updated_at


def test_update_and_delete_missing_raise_not_found(app):
    with session_scope(app) as s:
        store = SqlPostStore(s)
        with pytest.raises(NotFound):
            store.update(1, title="Whatever", body="whatever body")
        with pytest.raises(NotFound):
            store.delete(1)


def test_delete_is_permanent(app, owner_id):
    with session_scope(app) as s:
        post = SqlPostStore(s).insert(title="Doomed post", body="will be removed", user_id=owner_id)

    with session_scope(app) as s:
        SqlPostStore(s).delete(post.id)

    with session_scope(app) as s:
        assert SqlPostStore(s).find(post.id) is None
        assert SqlPostStore(s).list_all() == []
