from __future__ import annotations

import re

from app.postboard.errors import FieldError

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
# Unterminated comments and tags run to the end of the input.
_COMMENT_RE = re.compile(r"<!--.*?(?:-->|\Z)", re.DOTALL)
_TAG_RE = re.compile(r"<[!/?a-zA-Z][^>]*(?:>|\Z)")


def clean_str(value: object) -> str:
    """Coerce a form/JSON value to a stripped string (None -> "")."""
    if value is None:
        return ""
    return str(value).strip()


def strip_markup(value: str) -> str:
    """Remove HTML comments and tags. Entities stay encoded and whitespace is kept."""
    # Repeat until stable so "<<b>script>" cannot reassemble into a tag.
    while True:
        stripped = _TAG_RE.sub("", _COMMENT_RE.sub("", value))
        if stripped == value:
            return stripped
        value = stripped


def check_length(
    field: str,
    value: str,
    *,
    label: str,
    min_len: int | None = None,
    max_len: int | None = None,
) -> list[FieldError]:
    if not value:
        return [FieldError(field, f"{label} is required.")]
    if min_len is not None and len(value) < min_len:
        return [FieldError(field, f"{label} must be at least {min_len} characters.")]
    if max_len is not None and len(value) > max_len:
        return [FieldError(field, f"{label} may not be greater than {max_len} characters.")]
    return []


def check_email(field: str, value: str) -> list[FieldError]:
    if not value:
        return [FieldError(field, "Email is required.")]
    if not _EMAIL_RE.match(value):
        return [FieldError(field, "Email must be a valid email address.")]
    return []


def request_payload(req) -> dict:
    """Form fields, or the JSON object body for API-style requests."""
    if req.is_json:
        data = req.get_json(silent=True)
        return data if isinstance(data, dict) else {}
    return req.form.to_dict()
