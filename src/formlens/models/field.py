"""Pydantic models for form field metadata.

fields arrive from the metadata side in whatever shape the form builder
stored them. the descriptor normalizes that once, here at the boundary, so
nothing downstream ever has to guess between `type` and `field_type`.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class FieldCategory(str, Enum):
    """Canonical field categories the engine reasons about.

    raw form-builder types (currency, radio, email, ...) collapse into one of
    these - see FieldCompatibilityResolver.normalize for the mapping.
    """

    TEXT = "text"
    NUMBER = "number"
    DATE = "date"
    BOOLEAN = "boolean"
    SELECT = "select"
    MULTI_SELECT = "multi_select"
    OTHER = "other"


class FieldKind(str, Enum):
    """Coarse usage class of a field for filters, charts and joins."""

    METRIC = "metric"  # numeric, can be aggregated
    DIMENSION = "dimension"  # categorical, good for grouping
    BOOLEAN = "boolean"
    DATE = "date"
    TEXT = "text"


class FieldOption(BaseModel):
    """One selectable option of a select-like field."""

    model_config = ConfigDict(frozen=True)

    value: str
    label: str = ""

    @model_validator(mode="before")
    @classmethod
    def coerce_plain_option(cls, data: Any) -> Any:
        # plenty of older forms store options as bare strings
        if isinstance(data, str):
            return {"value": data, "label": data}
        if isinstance(data, dict):
            data = dict(data)
            if data.get("value") is None:
                data["value"] = data.get("label", "")
            data["value"] = str(data["value"])
            if not data.get("label"):
                data["label"] = data["value"]
        return data


class FieldDescriptor(BaseModel):
    """Metadata for a single form field.

    immutable once loaded. `category` is the raw type string lower-cased; the
    compatibility resolver maps it onto a FieldCategory when it matters.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    label: str = ""
    category: str = "text"
    options: tuple[FieldOption, ...] = Field(default_factory=tuple)
    source_form_id: str = ""

    @model_validator(mode="before")
    @classmethod
    def normalize_raw_metadata(cls, data: Any) -> Any:
        """Lift legacy type keys into `category`.

        the form builder wrote `field_type` in some places and `type` in
        others. whichever is present wins, in that order, unless `category`
        was given explicitly.
        """
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if not data.get("category"):
            raw_type = data.pop("field_type", None) or data.pop("type", None)
            if raw_type:
                data["category"] = raw_type
        else:
            data.pop("field_type", None)
            data.pop("type", None)
        if "sourceFormId" in data and "source_form_id" not in data:
            data["source_form_id"] = data.pop("sourceFormId")
        if data.get("options") is None:
            data["options"] = ()
        if not data.get("label"):
            data["label"] = data.get("id", "")
        return data

    @field_validator("category")
    @classmethod
    def lower_category(cls, value: str) -> str:
        return value.strip().lower().replace("_", "-")

    def option_label(self, value: Any) -> str | None:
        """Return the label of the option whose value matches, if any."""
        needle = str(value).strip().lower()
        for option in self.options:
            if option.value.strip().lower() == needle:
                return option.label
        return None

    def option_value(self, label: str) -> str | None:
        """Return the stored value of the option shown as label, if any."""
        needle = label.strip().lower()
        for option in self.options:
            if option.label.strip().lower() == needle:
                return option.value
        return None
