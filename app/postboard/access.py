from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import g

from app.postboard.errors import Unauthenticated
from app.postboard.models import User


def login_required(fn: Callable[..., Any]) -> Callable[..., Any]:
    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        user: User | None = getattr(g, "current_user", None)
        if not user or not user.is_active:
            raise Unauthenticated()
        return fn(*args, **kwargs)

    return wrapped
