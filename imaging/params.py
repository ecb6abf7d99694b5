"""Lenient parsing of numeric multipart form fields.

Form values always arrive as strings. Browsers and scripts commonly send
things like ``"300px"`` or ``" 1.5 "``, so parsing takes the leading
number of the value the way ``parseInt``/``parseFloat`` do in a browser,
and only rejects values with no leading number at all.
"""

from __future__ import annotations

import math
import re
from typing import Optional

from imaging.errors import validation_error


_INT_RE = re.compile(r"\s*([+-]?\d+)")
_FLOAT_RE = re.compile(r"\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")


def _is_blank(value: Optional[str]) -> bool:
    return value is None or str(value).strip() == ""


def parse_int(value: Optional[str], name: str, default: Optional[int] = None) -> int:
    """Return the leading integer of ``value``.

    Blank values fall back to ``default``. When there is no default, or the
    value has no leading integer, a 400 validation error is raised.
    """
    if _is_blank(value):
        if default is None:
            raise validation_error(f"'{name}' is required")
        return default
    match = _INT_RE.match(str(value))
    if not match:
        raise validation_error(f"'{name}' must be an integer, got {value!r}")
    return int(match.group(1))


def parse_float(value: Optional[str], name: str, default: Optional[float] = None) -> float:
    """Return the leading finite number of ``value`` (see ``parse_int``)."""
    if _is_blank(value):
        if default is None:
            raise validation_error(f"'{name}' is required")
        return default
    match = _FLOAT_RE.match(str(value))
    if not match:
        raise validation_error(f"'{name}' must be a number, got {value!r}")
    number = float(match.group(1))
    if not math.isfinite(number):
        raise validation_error(f"'{name}' must be finite, got {value!r}")
    return number


def parse_optional_int(value: Optional[str], name: str) -> Optional[int]:
    if _is_blank(value):
        return None
    return parse_int(value, name)


def echo(value: Optional[str], default=None):
    """Value echoed back in response ``params``: the raw field or its default."""
    return default if value is None else value


__all__ = ["parse_int", "parse_float", "parse_optional_int", "echo"]
