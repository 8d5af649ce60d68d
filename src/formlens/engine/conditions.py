"""Evaluate a single filter condition against a row.

what an operator means depends on the field: `equals` on a date is "same
calendar day", on a multi-select it's "any chosen value", on a checkbox it's
a boolean comparison. nothing in here raises for bad data - a value that
can't be coerced simply doesn't match.
"""

import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any

from formlens.engine.compatibility import FieldCompatibilityResolver
from formlens.engine.values import (
    comparable_text,
    is_missing,
    numeric_text,
    to_boolean,
    to_datetime,
    to_number,
)
from formlens.models.field import FieldCategory, FieldDescriptor
from formlens.models.report import FilterCondition, FilterOperator
from formlens.models.row import Row

logger = logging.getLogger(__name__)

Op = FilterOperator

_EMPTINESS = (Op.IS_EMPTY, Op.IS_NOT_EMPTY)
_TEXT_OPS = (Op.EQUALS, Op.NOT_EQUALS, Op.CONTAINS, Op.NOT_CONTAINS, Op.STARTS_WITH, Op.ENDS_WITH)
_NUMBER_OPS = (
    Op.EQUALS,
    Op.NOT_EQUALS,
    Op.GREATER_THAN,
    Op.LESS_THAN,
    Op.GREATER_EQUAL,
    Op.LESS_EQUAL,
    Op.BETWEEN,
)
_DATE_OPS = (
    Op.EQUALS,
    Op.NOT_EQUALS,
    Op.AFTER,
    Op.BEFORE,
    Op.BETWEEN,
    Op.LAST_DAYS,
    Op.NEXT_DAYS,
)
_SELECT_OPS = (Op.EQUALS, Op.NOT_EQUALS, Op.IN, Op.NOT_IN, Op.CONTAINS, Op.NOT_CONTAINS)

OPERATORS_BY_CATEGORY: dict[FieldCategory, tuple[FilterOperator, ...]] = {
    FieldCategory.TEXT: _TEXT_OPS + _EMPTINESS,
    FieldCategory.OTHER: _TEXT_OPS + _EMPTINESS,
    FieldCategory.NUMBER: _NUMBER_OPS + _EMPTINESS,
    FieldCategory.DATE: _DATE_OPS + _EMPTINESS,
    FieldCategory.SELECT: _SELECT_OPS + _EMPTINESS,
    FieldCategory.MULTI_SELECT: _SELECT_OPS + _EMPTINESS,
    FieldCategory.BOOLEAN: (Op.EQUALS, Op.NOT_EQUALS) + _EMPTINESS,
}

# where an operator is evaluated when the field's own category doesn't list it
_HOME_CATEGORY: dict[FilterOperator, FieldCategory] = {
    **dict.fromkeys(_TEXT_OPS, FieldCategory.TEXT),
    **dict.fromkeys(
        (Op.GREATER_THAN, Op.LESS_THAN, Op.GREATER_EQUAL, Op.LESS_EQUAL, Op.BETWEEN),
        FieldCategory.NUMBER,
    ),
    **dict.fromkeys((Op.AFTER, Op.BEFORE, Op.LAST_DAYS, Op.NEXT_DAYS), FieldCategory.DATE),
    **dict.fromkeys((Op.IN, Op.NOT_IN), FieldCategory.SELECT),
}

# what a missing value reads as, per category
_MISSING_AS: dict[FieldCategory, Any] = {
    FieldCategory.TEXT: "",
    FieldCategory.OTHER: "",
    FieldCategory.SELECT: "",
    FieldCategory.MULTI_SELECT: [],
    FieldCategory.NUMBER: 0,
    FieldCategory.BOOLEAN: False,
    FieldCategory.DATE: None,
}


def _split_list(value: Any) -> list[str]:
    if isinstance(value, (list, tuple)):
        return [comparable_text(item) for item in value if not is_missing(item)]
    return [part.strip().lower() for part in str(value).split(",") if part.strip()]


def _pair(value: Any) -> tuple[Any, Any] | None:
    """Split a `"min,max"` filter value (or a two item list)."""
    if isinstance(value, (list, tuple)):
        parts = list(value)
    else:
        parts = [part.strip() for part in str(value).split(",")]
    if len(parts) != 2:
        return None
    return parts[0], parts[1]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class FilterConditionMatcher:
    """Matches one FilterCondition against one row."""

    def __init__(self, resolver: FieldCompatibilityResolver | None = None) -> None:
        self.resolver = resolver or FieldCompatibilityResolver()
        self._handlers: dict[FieldCategory, Callable[..., bool]] = {
            FieldCategory.TEXT: self._match_text,
            FieldCategory.OTHER: self._match_text,
            FieldCategory.NUMBER: self._match_number,
            FieldCategory.DATE: self._match_date,
            FieldCategory.SELECT: self._match_select,
            FieldCategory.MULTI_SELECT: self._match_select,
            FieldCategory.BOOLEAN: self._match_boolean,
        }

    def operators_for(self, descriptor: FieldDescriptor | None) -> tuple[FilterOperator, ...]:
        """Operators the editor should offer for a field."""
        category = self.resolver.normalize(descriptor) if descriptor else FieldCategory.TEXT
        return OPERATORS_BY_CATEGORY[category]

    def matches(
        self,
        condition: FilterCondition,
        row: Row,
        descriptor: FieldDescriptor | None = None,
        now: datetime | None = None,
    ) -> bool:
        return self.matches_value(condition, row.get(condition.field_id), descriptor, now)

    def matches_value(
        self,
        condition: FilterCondition,
        value: Any,
        descriptor: FieldDescriptor | None = None,
        now: datetime | None = None,
    ) -> bool:
        operator = condition.operator
        if operator == Op.IS_EMPTY:
            return is_missing(value)
        if operator == Op.IS_NOT_EMPTY:
            return not is_missing(value)

        category = self.resolver.normalize(descriptor) if descriptor else FieldCategory.TEXT
        if operator not in OPERATORS_BY_CATEGORY[category]:
            home = _HOME_CATEGORY[operator]
            logger.debug(
                "operator %s not defined for %s field %s, using %s semantics",
                operator.value,
                category.value,
                condition.field_id,
                home.value,
            )
            category = home
        if is_missing(value):
            value = _MISSING_AS[category]
        return self._handlers[category](operator, value, condition.value, descriptor, now)

    # --- per category ---

    def _match_text(
        self, operator: FilterOperator, value: Any, target: Any, descriptor: Any, now: Any
    ) -> bool:
        needle = comparable_text(target)
        items = value if isinstance(value, (list, tuple)) else [value]
        texts = [comparable_text(item) for item in items] or [""]

        if operator in (Op.EQUALS, Op.NOT_EQUALS):
            # "5" stored as a number and "5.0" typed in a filter are the same value
            target_key = numeric_text(needle) or needle
            found = any((numeric_text(text) or text) == target_key for text in texts)
            return found if operator == Op.EQUALS else not found
        if operator == Op.CONTAINS:
            return any(needle in text for text in texts)
        if operator == Op.NOT_CONTAINS:
            return not any(needle in text for text in texts)
        if operator == Op.STARTS_WITH:
            return any(text.startswith(needle) for text in texts)
        if operator == Op.ENDS_WITH:
            return any(text.endswith(needle) for text in texts)
        return False

    def _match_number(
        self, operator: FilterOperator, value: Any, target: Any, descriptor: Any, now: Any
    ) -> bool:
        number = to_number(value)
        if number is None:
            return False

        if operator == Op.BETWEEN:
            bounds = _pair(target)
            if bounds is None:
                return False
            low, high = to_number(bounds[0]), to_number(bounds[1])
            if low is None or high is None:
                return False
            low, high = min(low, high), max(low, high)
            return low <= number <= high

        threshold = to_number(target)
        if threshold is None:
            return False
        if operator == Op.EQUALS:
            return number == threshold
        if operator == Op.NOT_EQUALS:
            return number != threshold
        if operator == Op.GREATER_THAN:
            return number > threshold
        if operator == Op.LESS_THAN:
            return number < threshold
        if operator == Op.GREATER_EQUAL:
            return number >= threshold
        if operator == Op.LESS_EQUAL:
            return number <= threshold
        return False

    def _match_date(
        self,
        operator: FilterOperator,
        value: Any,
        target: Any,
        descriptor: Any,
        now: datetime | None,
    ) -> bool:
        moment = to_datetime(value)
        if moment is None:
            return False
        day = moment.date()

        if operator in (Op.LAST_DAYS, Op.NEXT_DAYS):
            days = to_number(target)
            if days is None or days < 0:
                return False
            today = (now or _utc_now()).date()
            window = timedelta(days=int(days))
            if operator == Op.LAST_DAYS:
                return today - window <= day <= today
            return today <= day <= today + window

        if operator == Op.BETWEEN:
            bounds = _pair(target)
            if bounds is None:
                return False
            start, end = to_datetime(bounds[0]), to_datetime(bounds[1])
            if start is None or end is None:
                return False
            return start.date() <= day <= end.date()

        reference = to_datetime(target)
        if reference is None:
            return False
        if operator == Op.EQUALS:
            return day == reference.date()
        if operator == Op.NOT_EQUALS:
            return day != reference.date()
        if operator == Op.AFTER:
            return day > reference.date()
        if operator == Op.BEFORE:
            return day < reference.date()
        return False

    def _match_select(
        self,
        operator: FilterOperator,
        value: Any,
        target: Any,
        descriptor: FieldDescriptor | None,
        now: Any,
    ) -> bool:
        items = value if isinstance(value, (list, tuple, set)) else [value]
        # a chosen value matches by its stored value or by its option label
        candidates: set[str] = set()
        for item in items:
            if is_missing(item):
                continue
            candidates.add(comparable_text(item))
            if descriptor is not None:
                label = descriptor.option_label(item)
                if label is not None:
                    candidates.add(label.strip().lower())
        if not candidates:
            candidates.add("")

        if operator in (Op.IN, Op.NOT_IN):
            wanted = set(_split_list(target))
            hit = bool(candidates & wanted)
            return hit if operator == Op.IN else not hit

        hit = comparable_text(target) in candidates
        if operator in (Op.EQUALS, Op.CONTAINS):
            return hit
        if operator in (Op.NOT_EQUALS, Op.NOT_CONTAINS):
            return not hit
        return False

    def _match_boolean(
        self, operator: FilterOperator, value: Any, target: Any, descriptor: Any, now: Any
    ) -> bool:
        same = to_boolean(value) == to_boolean(target)
        if operator == Op.EQUALS:
            return same
        if operator == Op.NOT_EQUALS:
            return not same
        return False
