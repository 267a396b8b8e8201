from __future__ import annotations

from flask import Blueprint, request

from app.postboard.access import login_required
from app.postboard.audit import record_event
from app.postboard.auth import current_identity
from app.postboard.db import db_session
from app.postboard.modules.posts.service import PostService
from app.postboard.modules.posts.store import SqlPostStore
from app.postboard.utils import request_payload

bp = Blueprint("posts", __name__)


def _service() -> PostService:
    return PostService(SqlPostStore(db_session()))


# ---------- List ----------
@bp.get("/records")
def records():
    return {"posts": [item.to_dict() for item in _service().list()]}


# ---------- Create ----------
@bp.post("/create-post")
@bp.post("/createpost")
@login_required
def create_post():
    s = db_session()
    u = current_identity()
    post = _service().create(u, request_payload(request))
    record_event(s, actor=u, action="post.create", entity_type="Post", entity_id=str(post.id), metadata={"title": post.title})
    s.commit()
    return {"message": "Post created successfully!", "post": post.to_dict()}, 201


# ---------- Edit ----------
@bp.get("/edit-post/<int:post_id>")
def edit_post_get(post_id: int):
    post = _service().get_for_edit(current_identity(), post_id)
    return {"post": post.to_dict()}


@bp.put("/edit-post/<int:post_id>")
def edit_post_put(post_id: int):
    s = db_session()
    u = current_identity()
    post = _service().update(u, post_id, request_payload(request))
    record_event(s, actor=u, action="post.update", entity_type="Post", entity_id=str(post.id), metadata={"title": post.title})
    s.commit()
    return {"message": "Post updated successfully!", "post": post.to_dict()}


# ---------- Delete ----------
@bp.delete("/delete-post/<int:post_id>")
def delete_post(post_id: int):
    s = db_session()
    u = current_identity()
    _service().delete(u, post_id)
    record_event(s, actor=u, action="post.delete", entity_type="Post", entity_id=str(post_id))
    s.commit()
    return "", 204
