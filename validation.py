"""
Form validation and sanitization for catalog entities.

Each validator takes the submitted form (a werkzeug MultiDict or a plain
dict) and returns a Draft: the trimmed, escaped and coerced field values
plus an ordered list of field errors. Validators never touch the database.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import NamedTuple

from markupsafe import escape

from data_models import BOOK_INSTANCE_STATUSES


ALPHANUMERIC = re.compile(r"^[A-Za-z0-9]+$")


class FieldError(NamedTuple):
    field: str
    msg: str


@dataclass
class Draft:
    """
    Sanitized, not yet persisted values for one entity.
    """
    values: dict
    errors: list = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def __getitem__(self, key):
        return self.values[key]

    def get(self, key, default=None):
        return self.values.get(key, default)


def _raw(form, name):
    value = form.get(name)
    if value is None:
        return ""
    return str(value)


def _as_list(form, name) -> list:
    """
    Read a multi-valued field: absent -> [], scalar -> [scalar], list -> list.
    """
    if hasattr(form, "getlist"):
        return form.getlist(name)
    value = form.get(name)
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def _clean(value: str) -> str:
    return str(escape(value))


def parse_date(date_str: str):
    """
    Parse an ISO-8601 date ('YYYY-MM-DD', or a full timestamp) into a datetime.date.

    Raises:
        ValueError: if the string is not an ISO-8601 date.
    """
    date_str = (date_str or "").strip()
    try:
        return datetime.strptime(date_str, "%Y-%m-%d").date()
    except ValueError:
        return datetime.fromisoformat(date_str).date()


def _required(form, name, errors, message, min_length=1) -> str:
    value = _raw(form, name).strip()
    if len(value) < min_length:
        errors.append(FieldError(name, message))
    return _clean(value)


def _optional_date(form, name, errors, message):
    raw = form.get(name)
    if not raw:
        return None
    try:
        return parse_date(raw)
    except ValueError:
        errors.append(FieldError(name, message))
        return None


def _name_part(form, name, errors, label, required_message) -> str:
    value = _required(form, name, errors, required_message)
    if not ALPHANUMERIC.match(value):
        errors.append(FieldError(name, f"{label} has non-alphanumeric characters"))
    return value


def validate_author(form) -> Draft:
    errors = []
    values = {
        "first_name": _name_part(form, "first_name", errors, "First name",
                                 "First name must be specified."),
        "family_name": _name_part(form, "family_name", errors, "Family name",
                                  "Family name must be specified"),
    }
    values["date_of_birth"] = _optional_date(form, "date_of_birth", errors, "Invalid date of birth")
    values["date_of_death"] = _optional_date(form, "date_of_death", errors, "Invalid date of death")
    return Draft(values, errors)


def validate_book(form) -> Draft:
    errors = []
    values = {
        "title": _required(form, "title", errors, "Title must not be empty."),
        "author": _required(form, "author", errors, "Author must not be empty."),
        "summary": _required(form, "summary", errors, "Summary must not be empty."),
        "isbn": _required(form, "isbn", errors, "ISBN must not be empty"),
        "genre": [_clean(str(g)) for g in _as_list(form, "genre")],
    }
    return Draft(values, errors)


def validate_genre(form) -> Draft:
    errors = []
    values = {
        "name": _required(form, "name", errors,
                          "genre name must contain at least 3 characters", min_length=3),
    }
    return Draft(values, errors)


def validate_bookinstance(form) -> Draft:
    errors = []
    values = {
        "book": _required(form, "book", errors, "Book must be specified"),
        "imprint": _required(form, "imprint", errors, "Imprint must be specified"),
        "status": _clean(_raw(form, "status").strip() or "Maintenance"),
    }
    if values["status"] not in BOOK_INSTANCE_STATUSES:
        errors.append(FieldError("status", "Invalid status"))
    values["due_back"] = _optional_date(form, "due_back", errors, "Invalid date")
    return Draft(values, errors)
