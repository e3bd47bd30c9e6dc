"""
Closed enumeration of tier field types.

Each member knows which storage column it routes to and how to validate
and normalise raw input before it reaches ``tier_data``:

    ft = FieldType.parse("number")
    value, text_value = ft.coerce("12.5")        # (12.5, None)
    FieldType.COLOR.coerce("#FFF")               # (None, "#ffffff")

Only ``number`` is numeric, so it alone participates in aggregation.
"""

import math
import re
from datetime import datetime
from enum import Enum
from urllib.parse import urlparse

from email_validator import EmailNotValidError, validate_email

from tierbook.core.exceptions import ValidationError
from tierbook.utils.helpers import parse_date

_COLOR_RE = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")
_PHONE_RE = re.compile(r"^[0-9+()\-.\s/]{3,40}$")
_TRUE = frozenset({"true", "1", "yes", "on", "y"})
_FALSE = frozenset({"false", "0", "no", "off", "n"})


class FieldType(Enum):
    STRING = "string"
    NUMBER = "number"
    DATE = "date"
    TIME = "time"
    DATETIME = "datetime"
    COLOR = "color"
    EMAIL = "email"
    PHONE = "phone"
    TEXTAREA = "textarea"
    CHECKBOX = "checkbox"
    DROPDOWN = "dropdown"
    URL = "url"
    CODE = "code"
    EMPLOYEE = "employee"
    MULTI_EMPLOYEE = "multi-employee"

    @classmethod
    def parse(cls, name) -> "FieldType":
        """Look up a member by its stored name; unknown names are a validation failure."""
        if isinstance(name, cls):
            return name
        try:
            return cls(str(name or "").strip().lower())
        except ValueError:
            raise ValidationError(
                f"Unknown field type: {name!r}",
                details={"field_type": f"must be one of {', '.join(cls.names())}"},
            ) from None

    @classmethod
    def names(cls) -> list[str]:
        return [m.value for m in cls]

    @property
    def is_numeric(self) -> bool:
        return self is FieldType.NUMBER

    @property
    def storage_column(self) -> str:
        return "value" if self.is_numeric else "text_value"

    @property
    def requires_options(self) -> bool:
        return self is FieldType.DROPDOWN

    def coerce(self, raw, options: list[str] | None = None) -> tuple[float | None, str | None]:
        """Validate ``raw`` and return the ``(value, text_value)`` pair to store.

        Exactly one side is populated; ``None`` or an empty string clears both.
        """
        if raw is None or (isinstance(raw, str) and not raw.strip()):
            return None, None
        try:
            normalised = _NORMALISERS[self](raw, options or [])
        except ValueError as exc:
            raise ValidationError(
                f"Invalid {self.value} value: {raw!r}",
                details={"value": str(exc)},
            ) from None
        if normalised == "":
            return None, None
        if self.is_numeric:
            return normalised, None
        return None, normalised

    def display(self, value, text_value):
        """Stored scalar for this type, reading the column the type routes to."""
        return value if self.is_numeric else text_value


def parse_options(raw) -> list[str]:
    """Dropdown options from a newline-delimited string or a list, trimmed, blanks dropped."""
    if raw is None:
        return []
    if isinstance(raw, (list, tuple)):
        items = [str(o) for o in raw if o is not None]
    else:
        items = str(raw).split("\n")
    return [o.strip() for o in items if o.strip()]


# ── Normalisers ──────────────────────────────────────────────────────────


def _number(raw, _options):
    if isinstance(raw, bool):
        raise ValueError("expected a number, got a boolean")
    try:
        if isinstance(raw, (int, float)):
            result = float(raw)
        else:
            result = float(str(raw).strip())
    except OverflowError:
        raise ValueError("number out of range") from None
    if not math.isfinite(result):
        raise ValueError("number must be finite")
    return result


def _text(raw, _options):
    return str(raw)


def _date(raw, _options):
    return parse_date(raw).isoformat()


def _time(raw, _options):
    text = str(raw).strip()
    for fmt in ("%H:%M:%S", "%H:%M"):
        try:
            parsed = datetime.strptime(text, fmt).time()
        except ValueError:
            continue
        return parsed.isoformat(timespec="seconds" if fmt == "%H:%M:%S" else "minutes")
    raise ValueError("expected HH:MM or HH:MM:SS")


def _datetime(raw, _options):
    if isinstance(raw, datetime):
        return raw.isoformat()
    text = str(raw).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text).isoformat()


def _color(raw, _options):
    text = str(raw).strip()
    if not _COLOR_RE.match(text):
        raise ValueError("expected #RRGGBB")
    if len(text) == 4:
        text = "#" + "".join(c * 2 for c in text[1:])
    return text.lower()


def _email(raw, _options):
    try:
        return validate_email(str(raw).strip(), check_deliverability=False).normalized
    except EmailNotValidError as exc:
        raise ValueError(str(exc)) from None


def _phone(raw, _options):
    text = str(raw).strip()
    if not _PHONE_RE.match(text):
        raise ValueError("expected a phone number")
    return text


def _checkbox(raw, _options):
    if isinstance(raw, bool):
        return "true" if raw else "false"
    text = str(raw).strip().lower()
    if text in _TRUE:
        return "true"
    if text in _FALSE:
        return "false"
    raise ValueError("expected true or false")


def _dropdown(raw, options):
    text = str(raw).strip()
    if text not in options:
        raise ValueError(f"must be one of: {', '.join(options)}")
    return text


def _url(raw, _options):
    text = str(raw).strip()
    parsed = urlparse(text)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValueError("expected an http(s) URL")
    return text


def _multi_employee(raw, _options):
    if isinstance(raw, (list, tuple)):
        items = [str(i) for i in raw if i is not None]
    else:
        items = str(raw).split(",")
    names = [i.strip() for i in items if i.strip()]
    return ",".join(names)


_NORMALISERS = {
    FieldType.STRING: _text,
    FieldType.NUMBER: _number,
    FieldType.DATE: _date,
    FieldType.TIME: _time,
    FieldType.DATETIME: _datetime,
    FieldType.COLOR: _color,
    FieldType.EMAIL: _email,
    FieldType.PHONE: _phone,
    FieldType.TEXTAREA: _text,
    FieldType.CHECKBOX: _checkbox,
    FieldType.DROPDOWN: _dropdown,
    FieldType.URL: _url,
    FieldType.CODE: _text,
    FieldType.EMPLOYEE: _text,
    FieldType.MULTI_EMPLOYEE: _multi_employee,
}
