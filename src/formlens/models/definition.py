"""Pydantic models for the yaml definitions: forms and stored reports."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from formlens.models.field import FieldDescriptor
from formlens.models.report import ReportConfig


class FormDefinition(BaseModel):
    """A form and the metadata of its fields."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ""
    description: str | None = None
    fields: tuple[FieldDescriptor, ...] = ()

    @model_validator(mode="before")
    @classmethod
    def stamp_source_form(cls, data: Any) -> Any:
        # fields written inside a form block belong to that form unless they say otherwise
        if not isinstance(data, dict) or not data.get("id"):
            return data
        data = dict(data)
        stamped = []
        for raw in data.get("fields") or []:
            if isinstance(raw, dict) and not (raw.get("source_form_id") or raw.get("sourceFormId")):
                raw = {**raw, "source_form_id": data["id"]}
            stamped.append(raw)
        data["fields"] = stamped
        if not data.get("name"):
            data["name"] = data["id"]
        return data

    def get_field(self, field_id: str) -> FieldDescriptor | None:
        for descriptor in self.fields:
            if descriptor.id == field_id:
                return descriptor
        return None


class ReportDefinition(BaseModel):
    """A named, stored report."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str | None = None
    config: ReportConfig = Field(default_factory=ReportConfig)
