"""Click-to-filter drilldown state.

every click on a chart bucket pins a field to a value. the stack holds at most
one pin per field - clicking a different bar of the same field moves the pin
instead of stacking a second, contradictory one. all pins are ANDed, after
the report's own filter logic has run.

the stack is a frozen value: click/remove/reset hand back a new stack.
"""

from collections.abc import Sequence
from typing import Any, Self

from pydantic import BaseModel, ConfigDict, model_validator

from formlens.engine.values import NOT_SPECIFIED, stringify
from formlens.models.field import FieldDescriptor
from formlens.models.row import Row


class DrilldownFilter(BaseModel):
    """One pinned value."""

    model_config = ConfigDict(frozen=True)

    field_id: str
    value: Any
    label: str = ""


class DrilldownStack(BaseModel):
    """Ordered drilldown filters, unique per field."""

    model_config = ConfigDict(frozen=True)

    filters: tuple[DrilldownFilter, ...] = ()

    @model_validator(mode="after")
    def one_filter_per_field(self) -> Self:
        seen = set()
        for item in self.filters:
            if item.field_id in seen:
                raise ValueError(f"Drilldown stack holds two filters for field '{item.field_id}'")
            seen.add(item.field_id)
        return self

    def __len__(self) -> int:
        return len(self.filters)

    @property
    def field_ids(self) -> list[str]:
        return [item.field_id for item in self.filters]

    def get(self, field_id: str) -> DrilldownFilter | None:
        for item in self.filters:
            if item.field_id == field_id:
                return item
        return None

    def click(self, field_id: str, value: Any, label: str | None = None) -> "DrilldownStack":
        """Pin field_id to value. An existing pin on the field is replaced in place."""
        pinned = DrilldownFilter(
            field_id=field_id, value=value, label=label if label is not None else stringify(value)
        )
        if self.get(field_id) is None:
            return DrilldownStack(filters=(*self.filters, pinned))
        return DrilldownStack(
            filters=tuple(pinned if item.field_id == field_id else item for item in self.filters)
        )

    def click_label(
        self, field_id: str, label: str, field: FieldDescriptor | None = None
    ) -> "DrilldownStack":
        """Pin field_id to the value behind a chart bucket label.

        buckets show option labels and "Not Specified" for empty values; both
        are mapped back to what the rows actually store before pinning.
        """
        if label == NOT_SPECIFIED:
            return self.click(field_id, None, label)
        stored = field.option_value(label) if field is not None else None
        return self.click(field_id, label if stored is None else stored, label)

    def remove(self, field_id: str) -> "DrilldownStack":
        return DrilldownStack(filters=tuple(item for item in self.filters if item.field_id != field_id))

    def reset(self) -> "DrilldownStack":
        return DrilldownStack()

    def matches(self, row: Row) -> bool:
        """True when the row satisfies every pin.

        comparison is exact on the stringified values. a None pin matches
        rows where the field is empty.
        """
        return all(stringify(row.get(item.field_id)) == stringify(item.value) for item in self.filters)

    def apply(self, rows: Sequence[Row]) -> list[Row]:
        if not self.filters:
            return list(rows)
        return [row for row in rows if self.matches(row)]

    def depth(self, levels: Sequence[str]) -> int:
        """Number of leading levels that are pinned.

        a level only counts when every level above it is pinned too, so pins
        on other fields or out of order don't move the hierarchy.
        """
        count = 0
        for level in levels:
            if self.get(level) is None:
                break
            count += 1
        return count

    def next_level(self, levels: Sequence[str]) -> str | None:
        """Field to group by after the clicks so far, for hierarchical drilldown.

        nothing drilled yet means the chart keeps its normal dimensions, so
        None. once every level is pinned the chart starts over at the top
        level.
        """
        depth = self.depth(levels)
        if not levels or depth == 0:
            return None
        if depth >= len(levels):
            return levels[0]
        return levels[depth]
