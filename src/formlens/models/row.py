"""Pydantic model for a single submission row."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# pseudo field ids that read row metadata instead of submission values
ROW_ID_FIELD = "__id__"
REF_ID_FIELD = "__ref_id__"
SUBMITTED_AT_FIELD = "__submitted_at__"


class Row(BaseModel):
    """One form submission.

    rows are never modified. a join builds new synthetic rows whose values are
    the union of both sides, with secondary field ids namespaced by form.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    source_form_id: str = ""
    values: dict[str, Any] = Field(default_factory=dict)
    submitted_at: datetime | None = None
    ref_id: str | None = None  # human facing submission reference, used by cross-references

    def get(self, field_id: str, default: Any = None) -> Any:
        """Read a field value, including the metadata pseudo fields."""
        if field_id == ROW_ID_FIELD:
            return self.id
        if field_id == REF_ID_FIELD:
            return self.ref_id
        if field_id == SUBMITTED_AT_FIELD:
            return self.submitted_at
        return self.values.get(field_id, default)
