from flask import Blueprint

from app.postboard.auth import current_identity
from app.postboard.db import db_session
from app.postboard.modules.posts.service import PostService
from app.postboard.modules.posts.store import SqlPostStore
from app.postboard.security import ensure_csrf_token

bp = Blueprint("routes", __name__)


@bp.get("/")
def index():
    """Home: the signed-in user's own posts, newest first (empty when anonymous)."""
    user = current_identity()
    posts = PostService(SqlPostStore(db_session())).list_for_owner(user)
    return {
        "user": {"id": user.id, "name": user.name} if user else None,
        "posts": [p.to_dict() for p in posts],
    }


@bp.get("/csrf-token")
def csrf_token():
    return {"csrf_token": ensure_csrf_token()}


@bp.get("/health")
def health():
    """Health check endpoint. Returns JSON."""
    return {"ok": True}


@bp.get("/healthz")
def healthz():
    """
    Fast liveness check for the load balancer. No DB access, minimal overhead.
    """
    return "ok", 200
