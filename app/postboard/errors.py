"""
Error taxonomy shared by the post service and the auth layer.

Everything here is raised below the request boundary and translated into a
JSON response by the handlers registered in ``create_app``.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass


@dataclass(frozen=True)
class FieldError:
    field: str
    message: str


class PostboardError(Exception):
    status_code = 500
    code = "error"
    default_message = "Something went wrong."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"error": self.code, "message": self.message}


class Unauthenticated(PostboardError):
    status_code = 401
    code = "unauthenticated"
    default_message = "Login required."


class InvalidCredentials(PostboardError):
    status_code = 401
    code = "invalid_credentials"
    default_message = "Invalid credentials."


class Forbidden(PostboardError):
    status_code = 403
    code = "forbidden"
    default_message = "You do not own this post."


class NotFound(PostboardError):
    status_code = 404
    code = "not_found"
    default_message = "Post not found."


class ValidationError(PostboardError):
    status_code = 422
    code = "validation_error"
    default_message = "Submitted data is invalid."

    def __init__(self, errors: list[FieldError], message: str | None = None) -> None:
        self.errors = list(errors)
        super().__init__(message)

    @property
    def fields(self) -> set[str]:
        return {e.field for e in self.errors}

    def to_dict(self) -> dict:
        d = super().to_dict()
        d["errors"] = [asdict(e) for e in self.errors]
        return d


class ConflictError(ValidationError):
    status_code = 409
    code = "conflict"
    default_message = "Already taken."


class TooManyAttempts(PostboardError):
    status_code = 429
    code = "rate_limited"
    default_message = "Too many login attempts. Please wait 5 minutes."
