"""Pydantic models for planner output.

the result carries the data plus every decision the planner made on the
user's behalf (fallbacks, warnings) so the ui can show badges instead of the
engine guessing silently.
"""

from enum import Enum

from pydantic import BaseModel, Field

from formlens.models.row import Row


class ResultMode(str, Enum):
    AGGREGATE = "aggregate"  # grouped buckets for charts
    TABLE = "table"  # filtered rows, original order


class ExpressionValidation(BaseModel):
    """Outcome of validating a manual filter logic expression."""

    valid: bool
    error: str | None = None
    referenced_indices: list[int] = Field(default_factory=list)


class ResultBucket(BaseModel):
    """One group of the aggregate output."""

    dimension_key: tuple[str, ...]
    value: float  # first metric's value
    count: int  # rows in the bucket
    values: dict[str, float] = Field(default_factory=dict)  # every metric, keyed by MetricAggregation.key


class ReportResult(BaseModel):
    """Result of one planner run."""

    mode: ResultMode
    buckets: list[ResultBucket] = Field(default_factory=list)
    rows: list[Row] = Field(default_factory=list)
    dimensions: list[str] = Field(default_factory=list)  # effective grouping fields
    metric_keys: list[str] = Field(default_factory=list)
    row_count: int = 0  # rows surviving join, filters and drilldown
    filter_validation: ExpressionValidation | None = None  # only set for manual logic
    used_fallback: bool = False  # no joinable fields found, all fields offered instead
    join_warning: str | None = None
    cross_ref_linked: bool | None = None  # None when no cross-reference is configured
