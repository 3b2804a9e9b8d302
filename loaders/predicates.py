"""
Attribute predicate builder.

Builds ArcGIS `where` clauses (`field op value`) for the layer filters.
Input is validated before any request is made: a malformed filter raises
FilterError instead of silently becoming a broken or match-all query.
"""

import math
import re
import logging
from datetime import date, datetime, timezone
from typing import Any, Optional

log = logging.getLogger(__name__)

MATCH_ALL = "1=1"
OPERATORS = ("=", "!=", ">", ">=", "<", "<=", "LIKE")

STRING_TYPES = ("esriFieldTypeString",)
DATE_TYPES = ("esriFieldTypeDate", "esriFieldTypeDateOnly", "esriFieldTypeTimestampOffset")
NUMERIC_TYPES = (
    "esriFieldTypeDouble",
    "esriFieldTypeSingle",
    "esriFieldTypeInteger",
    "esriFieldTypeSmallInteger",
    "esriFieldTypeBigInteger",
    "esriFieldTypeOID",
)

_FIELD_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_.]*$")


class FilterError(ValueError):
    """Raised for filter input that must not reach the service."""


def _format_number(value: Any) -> str:
    if isinstance(value, bool):
        raise FilterError(f"Not a number: {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise FilterError(f"Not a number: {value!r}")
    if not math.isfinite(number):
        raise FilterError(f"Number must be finite: {value!r}")
    if number.is_integer():
        return str(int(number))
    return repr(number)


def _quote(value: Any) -> str:
    return "'" + str(value).replace("'", "''") + "'"


def to_epoch_millis(value: Any) -> int:
    """
    Convert a date value to epoch milliseconds (the ArcGIS REST date form).

    Accepts date/datetime objects or ISO strings (yyyy-mm-dd, optionally
    with a time). Naive values are taken as UTC.
    """
    if isinstance(value, datetime):
        moment = value
    elif isinstance(value, date):
        moment = datetime(value.year, value.month, value.day)
    else:
        text = str(value).strip()
        try:
            moment = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            raise FilterError(f"Unparseable date: {value!r} (expected yyyy-mm-dd)")
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return int(round(moment.timestamp() * 1000))


def build_where(
    field: Optional[str],
    op: Optional[str],
    value: Any,
    field_type: Optional[str] = "",
) -> str:
    """
    Build a where clause for one field comparison.

    Args:
        field: Attribute name; empty means "no filter"
        op: One of OPERATORS; empty means "no filter"
        value: Comparison value; None or "" compares against NULL
        field_type: ArcGIS field type (esriFieldType*) controlling quoting

    Returns:
        The clause, e.g. "nominaldiameter >= 150" or "suburb LIKE '%Kent%'"

    Raises:
        FilterError: unknown operator, bad field name, non-finite number or
            unparseable date
    """
    if not field or not op:
        return MATCH_ALL

    op = op.strip()
    if op.upper() == "LIKE":
        op = "LIKE"
    if op not in OPERATORS:
        raise FilterError(f"Unsupported operator: {op!r}")
    if not _FIELD_RE.match(field):
        raise FilterError(f"Invalid field name: {field!r}")

    if value is None or value == "":
        return f"{field} {op} NULL"

    ftype = field_type or ""
    is_like = op == "LIKE"

    if ftype in STRING_TYPES:
        text = str(value)
        return f"{field} {op} {_quote(f'%{text}%' if is_like else text)}"

    if ftype in DATE_TYPES:
        return f"{field} {op} {to_epoch_millis(value)}"

    if ftype in NUMERIC_TYPES:
        return f"{field} {op} {_format_number(value)}"

    # Unknown type: numbers stay bare, anything else is quoted text
    try:
        return f"{field} {op} {_format_number(value)}"
    except FilterError:
        text = str(value)
        if text.strip().lower() in ("nan", "inf", "+inf", "-inf", "infinity", "-infinity"):
            raise
        return f"{field} {op} {_quote(f'%{text}%' if is_like else text)}"


def diameter_where(min_diameter_mm: Any, field: str = "nominaldiameter") -> str:
    """Clause keeping mains at least min_diameter_mm wide."""
    try:
        value = float(min_diameter_mm)
    except (TypeError, ValueError):
        raise FilterError(f"Enter a non-negative diameter in mm (e.g., 150), got {min_diameter_mm!r}")
    if not math.isfinite(value) or value < 0:
        raise FilterError(f"Enter a non-negative diameter in mm (e.g., 150), got {min_diameter_mm!r}")
    return f"{field} >= {_format_number(value)}"


def normalize_where(where: Optional[str]) -> str:
    """Blank or missing predicates match everything."""
    if where is None or not where.strip():
        return MATCH_ALL
    return where.strip()
