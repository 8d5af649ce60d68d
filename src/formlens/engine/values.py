"""Value coercion shared by filters, joins, aggregation and drilldown.

submission values are whatever the form widgets produced: plain scalars,
lists for multi-selects, little dicts for currency/address/name fields. every
stage needs to turn those into something comparable, and they all need to
agree on how, so it lives in one place.
"""

import json
import math
from datetime import date, datetime, timezone
from decimal import Decimal
from numbers import Number
from typing import Any

from formlens.models.field import FieldDescriptor

NOT_SPECIFIED = "Not Specified"

TRUE_STRINGS = frozenset({"true", "yes", "1", "on", "checked", "y"})

# currency values sometimes come through as "USD:100"
_CURRENCY_CODE_LEN = 3


def _currency_string(value: str) -> tuple[str, str] | None:
    code, sep, amount = value.partition(":")
    if sep and len(code) == _CURRENCY_CODE_LEN and code.isalpha() and code.isupper():
        try:
            float(amount)
        except ValueError:
            return None
        return code, amount
    return None


def format_number(value: float | int | Decimal) -> str:
    """Render a number without a trailing `.0` for integral values."""
    if isinstance(value, bool):
        return "true" if value else "false"
    as_float = float(value)
    if math.isfinite(as_float) and as_float.is_integer():
        return str(int(as_float))
    return str(value)


def numeric_text(text: str) -> str | None:
    """Canonical form of a plain numeric string (`"1.0"` -> `"1"`), None otherwise."""
    try:
        number = float(text)
    except ValueError:
        return None
    return format_number(number) if math.isfinite(number) else None


def is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, tuple, set, dict)):
        return len(value) == 0
    return False


def stringify(value: Any) -> str:
    """Plain string form of a value, case preserved."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Number):
        return format_number(value)  # type: ignore[arg-type]
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return ", ".join(stringify(item) for item in value)
    if isinstance(value, dict):
        return json.dumps(value, sort_keys=True, default=str)
    return str(value)


def comparable_text(value: Any) -> str:
    """Lower-cased text used by the text operators.

    knows about the structured widgets (address, currency, name, status) so
    a `contains "berlin"` filter finds the address dict with city Berlin.
    """
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return ", ".join(comparable_text(item) for item in value)
    if isinstance(value, dict):
        address_parts = ("street", "street2", "city", "state", "country", "zipCode", "postalCode")
        if any(key in value for key in address_parts):
            return ", ".join(str(value[key]) for key in address_parts if value.get(key)).lower()
        if "amount" in value or ("value" in value and "currency" in value):
            amount = value.get("amount", value.get("value", ""))
            code = value.get("code", value.get("currency", ""))
            return (f"{code} {amount}" if code else str(amount)).lower()
        if "firstName" in value or "lastName" in value:
            return f"{value.get('firstName', '')} {value.get('lastName', '')}".strip().lower()
        if "status" in value:
            return str(value["status"]).lower()
        if "label" in value:
            return str(value["label"]).lower()
        return json.dumps(value, sort_keys=True, default=str).lower()
    if isinstance(value, str):
        currency = _currency_string(value)
        if currency:
            return f"{currency[0]} {currency[1]}".lower()
        return value.strip().lower()
    return stringify(value).lower()


def to_number(value: Any) -> float | None:
    """Numeric view of a value, or None when it has none."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Number):
        result = float(value)  # type: ignore[arg-type]
    elif isinstance(value, dict):
        raw = value.get("amount", value.get("value"))
        return to_number(raw) if raw is not None and not isinstance(raw, dict) else None
    elif isinstance(value, str):
        text = value.strip()
        currency = _currency_string(text)
        if currency:
            text = currency[1]
        try:
            result = float(text) if text else math.nan
        except ValueError:
            return None
    else:
        return None
    return result if math.isfinite(result) else None


def to_boolean(value: Any) -> bool:
    """Truthiness of the common boolean encodings. Unknown strings are false."""
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    if isinstance(value, Number):
        return float(value) != 0  # type: ignore[arg-type]
    if isinstance(value, (list, tuple)):
        return any(to_boolean(item) for item in value)
    return str(value).strip().lower() in TRUE_STRINGS


def to_datetime(value: Any) -> datetime | None:
    """Parse a date-ish value into a naive UTC datetime, None if unparseable."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def join_key_parts(value: Any) -> tuple[str, ...]:
    """Normalized keys a value can be joined on.

    scalars give one key. lists give one key per element, so a multi-select
    joins against any of its choices. objects are reduced to their most
    identifying member first.
    """
    if is_missing(value):
        return ()
    if isinstance(value, (list, tuple, set)):
        parts: list[str] = []
        for item in value:
            for part in join_key_parts(item):
                if part not in parts:
                    parts.append(part)
        return tuple(parts)
    if isinstance(value, dict):
        for key in ("value", "label", "id", "name", "email", "submission_ref_id"):
            if value.get(key) is not None:
                return join_key_parts(value[key])
        return (json.dumps(value, sort_keys=True, default=str).lower(),)
    if isinstance(value, bool):
        return ("true" if value else "false",)
    if isinstance(value, Number):
        return (format_number(value),)  # type: ignore[arg-type]
    if isinstance(value, (datetime, date)):
        return (value.isoformat(),)
    text = str(value).strip()
    return (numeric_text(text) or text.lower(),)


def dimension_label(value: Any, field: FieldDescriptor | None = None) -> str:
    """Label a value gets as a grouping key in result buckets."""
    if is_missing(value):
        return NOT_SPECIFIED
    if isinstance(value, (list, tuple)):
        return ", ".join(dimension_label(item, field) for item in value if not is_missing(item))
    if isinstance(value, dict):
        if value.get("status"):
            return str(value["status"])
        if value.get("label"):
            return str(value["label"])
        return stringify(value)
    if field is not None and field.options:
        label = field.option_label(value)
        if label is not None:
            return label
    return stringify(value)
