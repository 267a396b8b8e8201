from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import select

from app.postboard.errors import NotFound

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.postboard.modules.posts.models import PostRecord


@dataclass(frozen=True)
class Post:
    id: int
    title: str
    body: str
    user_id: int
    created_at: datetime
    updated_at: datetime

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "body": self.body,
            "user_id": self.user_id,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


@dataclass(frozen=True)
class PostListing:
    post: Post
    owner_name: str | None

    def to_dict(self) -> dict:
        d = self.post.to_dict()
        d["owner_name"] = self.owner_name
        return d


class PostStore:
    """Persistence port for posts. Implementations never commit."""

    def find(self, post_id: int) -> Post | None:
        raise NotImplementedError

    def insert(self, *, title: str, body: str, user_id: int) -> Post:
        raise NotImplementedError

    def update(self, post_id: int, *, title: str, body: str) -> Post:
        raise NotImplementedError

    def delete(self, post_id: int) -> None:
        raise NotImplementedError

    def list_all(self) -> list[PostListing]:
        """All posts, newest first."""
        raise NotImplementedError

    def list_by_owner(self, user_id: int) -> list[Post]:
        raise NotImplementedError


def _to_post(row: "PostRecord") -> Post:
    return Post(
        id=row.id,
        title=row.title,
        body=row.body,
        user_id=row.user_id,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


@dataclass(frozen=True)
class SqlPostStore(PostStore):
    session: "Session"

    def _row(self, post_id: int) -> "PostRecord | None":
        from app.postboard.modules.posts.models import PostRecord

        return self.session.get(PostRecord, post_id)

    def find(self, post_id: int) -> Post | None:
        row = self._row(post_id)
        return _to_post(row) if row else None

    def insert(self, *, title: str, body: str, user_id: int) -> Post:
        from app.postboard.modules.posts.models import PostRecord

        now = datetime.utcnow()
        row = PostRecord(title=title, body=body, user_id=user_id, created_at=now, updated_at=now)
        self.session.add(row)
        self.session.flush()
        return _to_post(row)

    def update(self, post_id: int, *, title: str, body: str) -> Post:
        row = self._row(post_id)
        if row is None:
            # Deleted by another request between lookup and write.
            raise NotFound()
        row.title = title
        row.body = body
        row.updated_at = datetime.utcnow()
        self.session.flush()
        return _to_post(row)

    def delete(self, post_id: int) -> None:
        row = self._row(post_id)
        if row is None:
            raise NotFound()
        self.session.delete(row)
        self.session.flush()

    def list_all(self) -> list[PostListing]:
        from app.postboard.modules.posts.models import PostRecord

        rows = self.session.execute(select(PostRecord).order_by(PostRecord.id.desc())).scalars().all()
        return [PostListing(post=_to_post(r), owner_name=r.owner.name if r.owner else None) for r in rows]

    def list_by_owner(self, user_id: int) -> list[Post]:
        from app.postboard.modules.posts.models import PostRecord

        rows = (
            self.session.execute(
                select(PostRecord).where(PostRecord.user_id == user_id).order_by(PostRecord.id.desc())
            )
            .scalars()
            .all()
        )
        return [_to_post(r) for r in rows]


@dataclass
class MemoryPostStore(PostStore):
    owner_names: dict[int, str] = field(default_factory=dict)
    posts: dict[int, Post] = field(default_factory=dict)
    _next_id: int = 1

    def find(self, post_id: int) -> Post | None:
        return self.posts.get(post_id)

    def insert(self, *, title: str, body: str, user_id: int) -> Post:
        now = datetime.utcnow()
        post = Post(id=self._next_id, title=title, body=body, user_id=user_id, created_at=now, updated_at=now)
        self.posts[post.id] = post
        self._next_id += 1
        return post

    def update(self, post_id: int, *, title: str, body: str) -> Post:
        current = self.posts.get(post_id)
        if current is None:
            raise NotFound()
        post = replace(current, title=title, body=body, updated_at=datetime.utcnow())
        self.posts[post_id] = post
        return post

    def delete(self, post_id: int) -> None:
        if self.posts.pop(post_id, None) is None:
            raise NotFound()

    def list_all(self) -> list[PostListing]:
        return [
            PostListing(post=p, owner_name=self.owner_names.get(p.user_id))
            for p in sorted(self.posts.values(), key=lambda p: p.id, reverse=True)
        ]

    def list_by_owner(self, user_id: int) -> list[Post]:
        return sorted((p for p in self.posts.values() if p.user_id == user_id), key=lambda p: p.id, reverse=True)
