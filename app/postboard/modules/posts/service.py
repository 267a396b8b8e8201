"""
Post ownership and mutation workflow.

Every operation takes the caller explicitly (``None`` means anonymous).
Mutations run check-then-act against the store: lookup, ownership, then
validation and the write. Lookup and write are not atomic against a delete of
the same post from another request; that case surfaces as ``NotFound``.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from app.postboard.errors import FieldError, Forbidden, NotFound, Unauthenticated, ValidationError
from app.postboard.utils import check_length, clean_str, strip_markup

if TYPE_CHECKING:
    from app.postboard.models import User
    from app.postboard.modules.posts.store import Post, PostListing, PostStore

logger = logging.getLogger(__name__)

TITLE_MIN = 5
TITLE_MAX = 100
BODY_MIN = 10
UNKNOWN_OWNER = "Unknown"


def sanitize_text(value: object) -> str:
    return clean_str(strip_markup(clean_str(value)))


def validate_post_payload(payload: dict) -> list[FieldError]:
    """Validate post create/update payload, as it will be stored. Returns list of field errors."""
    errors: list[FieldError] = []
    errors += check_length(
        "title", sanitize_text(payload.get("title")), label="Title", min_len=TITLE_MIN, max_len=TITLE_MAX
    )
    errors += check_length("body", sanitize_text(payload.get("body")), label="Body", min_len=BODY_MIN)
    return errors


def clean_post_payload(payload: dict) -> tuple[str, str]:
    """Strip markup, then validate what is left. Returns (title, body) ready to persist."""
    errors = validate_post_payload(payload)
    if errors:
        raise ValidationError(errors)
    return sanitize_text(payload.get("title")), sanitize_text(payload.get("body"))


def is_owner(user: "User | None", post: "Post") -> bool:
    return user is not None and user.id == post.user_id


class PostService:
    def __init__(self, store: "PostStore") -> None:
        self.store = store

    def create(self, caller: "User | None", payload: dict) -> "Post":
        if caller is None:
            raise Unauthenticated()
        title, body = clean_post_payload(payload)
        post = self.store.insert(title=title, body=body, user_id=caller.id)
        logger.info("User %s created post %s", caller.id, post.id)
        return post

    def list(self) -> list["PostListing"]:
        from app.postboard.modules.posts.store import PostListing

        return [
            PostListing(post=item.post, owner_name=item.owner_name or UNKNOWN_OWNER)
            for item in self.store.list_all()
        ]

    def list_for_owner(self, caller: "User | None") -> list["Post"]:
        if caller is None:
            return []
        return self.store.list_by_owner(caller.id)

    def _owned(self, caller: "User | None", post_id: int, action: str) -> "Post":
        post = self.store.find(post_id)
        if post is None:
            raise NotFound()
        if not is_owner(caller, post):
            logger.warning(
                "Rejected %s of post %s by %s (owner=%s)",
                action,
                post_id,
                caller.id if caller else "anonymous",
                post.user_id,
            )
            raise Forbidden(f"Unauthorized access to {action} this post.")
        return post

    def get_for_edit(self, caller: "User | None", post_id: int) -> "Post":
        return self._owned(caller, post_id, "edit")

    def update(self, caller: "User | None", post_id: int, payload: dict) -> "Post":
        self._owned(caller, post_id, "update")
        title, body = clean_post_payload(payload)
        post = self.store.update(post_id, title=title, body=body)
        logger.info("User %s updated post %s", caller.id, post_id)  # type: ignore[union-attr]
        return post

    def delete(self, caller: "User | None", post_id: int) -> None:
        self._owned(caller, post_id, "delete")
        self.store.delete(post_id)
        logger.info("User %s deleted post %s", caller.id, post_id)  # type: ignore[union-attr]
