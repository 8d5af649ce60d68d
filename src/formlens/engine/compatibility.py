"""Field compatibility rules for joins, filters and chart slots.

form builders have a long tail of field types. for joining and filtering we
only care which family a type belongs to: a currency field can join a number
field, a radio can join a dropdown, an email can't join a date.
"""

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from formlens.models.field import FieldCategory, FieldDescriptor, FieldKind
from formlens.models.report import AggregationType

logger = logging.getLogger(__name__)

# raw type -> canonical category. anything not listed is OTHER.
CATEGORY_ALIASES: dict[str, FieldCategory] = {
    **dict.fromkeys(
        ["number", "currency", "rating", "slider", "calculated", "decimal", "integer"],
        FieldCategory.NUMBER,
    ),
    **dict.fromkeys(
        ["text", "textarea", "email", "url", "tel", "phone", "time", "country"],
        FieldCategory.TEXT,
    ),
    **dict.fromkeys(["select", "dropdown", "radio", "status"], FieldCategory.SELECT),
    **dict.fromkeys(
        ["multi-select", "multiselect", "checkbox", "tags", "checkbox-group"],
        FieldCategory.MULTI_SELECT,
    ),
    **dict.fromkeys(["date", "datetime", "date-time"], FieldCategory.DATE),
    **dict.fromkeys(["boolean", "bool", "toggle", "toggle-switch", "switch"], FieldCategory.BOOLEAN),
    **{category.value: category for category in FieldCategory},
}

# types that never show up in chart field pickers - layout, binary or
# structured widgets with nothing meaningful to group or sum
UNSUPPORTED_CHART_CATEGORIES = frozenset(
    {
        "header",
        "description",
        "section-break",
        "horizontal-line",
        "full-width-container",
        "rich-text",
        "record-table",
        "matrix-grid",
        "file",
        "image",
        "signature",
        "color",
        "geo-location",
        "address",
        "cross-reference",
        "child-cross-reference",
        "workflow-trigger",
        "query-field",
        "conditional-section",
        "group-picker",
        "submission-access",
        "ip-address",
        "barcode",
    }
)

_KIND_BY_CATEGORY = {
    FieldCategory.NUMBER: FieldKind.METRIC,
    FieldCategory.SELECT: FieldKind.DIMENSION,
    FieldCategory.MULTI_SELECT: FieldKind.DIMENSION,
    FieldCategory.BOOLEAN: FieldKind.BOOLEAN,
    FieldCategory.DATE: FieldKind.DATE,
    FieldCategory.TEXT: FieldKind.TEXT,
    FieldCategory.OTHER: FieldKind.TEXT,
}


@dataclass
class FieldSelection:
    """Fields offered to the user, plus whether we had to give up filtering.

    used_fallback means nothing was compatible and every field is offered
    instead - the ui should put a warning badge next to the picker.
    """

    fields: list[FieldDescriptor] = field(default_factory=list)
    used_fallback: bool = False


class FieldCompatibilityResolver:
    """Decides which fields can be joined and how fields may be used.

    stateless. every method is a pure function of the descriptors passed in.
    """

    def normalize(self, category: str | FieldCategory | FieldDescriptor) -> FieldCategory:
        """Map a raw field type onto its canonical category."""
        if isinstance(category, FieldDescriptor):
            category = category.category
        if isinstance(category, FieldCategory):
            return category
        key = category.strip().lower().replace("_", "-")
        return CATEGORY_ALIASES.get(key, FieldCategory.OTHER)

    def classify(self, descriptor: FieldDescriptor) -> FieldKind:
        return _KIND_BY_CATEGORY[self.normalize(descriptor)]

    def can_join(self, left: FieldDescriptor, right: FieldDescriptor) -> bool:
        """True when both fields belong to the same type family.

        identical raw types always join, even for types we otherwise know
        nothing about (two `file` fields, say).
        """
        if left.category == right.category:
            return True
        left_category = self.normalize(left)
        right_category = self.normalize(right)
        if left_category == FieldCategory.OTHER or right_category == FieldCategory.OTHER:
            return False
        return left_category == right_category

    def joinable_fields(
        self, primary: Sequence[FieldDescriptor], secondary: Sequence[FieldDescriptor]
    ) -> FieldSelection:
        """Primary fields that have at least one compatible secondary field.

        if none qualify we hand back every primary field rather than an empty
        picker. metadata is often incomplete and a blocked user is worse
        than a questionable join pair.
        """
        joinable = [
            candidate
            for candidate in primary
            if any(self.can_join(candidate, other) for other in secondary)
        ]
        if joinable or not primary:
            return FieldSelection(fields=joinable)
        logger.warning(
            "no joinable fields between %d primary and %d secondary fields, offering all fields",
            len(primary),
            len(secondary),
        )
        return FieldSelection(fields=list(primary), used_fallback=True)

    def compatible_fields(
        self, chosen: FieldDescriptor, candidates: Sequence[FieldDescriptor]
    ) -> FieldSelection:
        """Secondary fields that can pair with an already chosen primary field."""
        compatible = [candidate for candidate in candidates if self.can_join(chosen, candidate)]
        if compatible or not candidates:
            return FieldSelection(fields=compatible)
        logger.warning("no field compatible with %s, offering all fields", chosen.id)
        return FieldSelection(fields=list(candidates), used_fallback=True)

    def categorize(self, fields: Iterable[FieldDescriptor]) -> dict[str, list[FieldDescriptor]]:
        """Split fields into chart slots: metrics, dimensions and other.

        numeric fields land in both metrics and dimensions since grouping by
        a rating or a quantity is perfectly reasonable. unsupported widget
        types are dropped.
        """
        slots: dict[str, list[FieldDescriptor]] = {"metrics": [], "dimensions": [], "other": []}
        for descriptor in fields:
            if descriptor.category in UNSUPPORTED_CHART_CATEGORIES:
                continue
            kind = self.classify(descriptor)
            if kind == FieldKind.METRIC:
                slots["metrics"].append(descriptor)
                slots["dimensions"].append(descriptor)
            elif self.normalize(descriptor) == FieldCategory.OTHER:
                slots["other"].append(descriptor)
            else:
                slots["dimensions"].append(descriptor)
        return slots

    def compatible_aggregations(self, descriptor: FieldDescriptor) -> list[AggregationType]:
        # only numbers can be summed; everything can be counted
        if self.classify(descriptor) == FieldKind.METRIC:
            return list(AggregationType)
        return [AggregationType.COUNT]
