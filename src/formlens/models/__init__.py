"""Pydantic models for formlens."""

from formlens.models.definition import FormDefinition, ReportDefinition
from formlens.models.field import FieldCategory, FieldDescriptor, FieldKind, FieldOption
from formlens.models.report import (
    AggregationType,
    CrossRefMode,
    CrossRefSpec,
    DrilldownConfig,
    FilterCondition,
    FilterOperator,
    JoinSpec,
    JoinType,
    MetricAggregation,
    ReportConfig,
)
from formlens.models.result import ExpressionValidation, ReportResult, ResultBucket, ResultMode
from formlens.models.row import REF_ID_FIELD, ROW_ID_FIELD, SUBMITTED_AT_FIELD, Row

__all__ = [
    "REF_ID_FIELD",
    "ROW_ID_FIELD",
    "SUBMITTED_AT_FIELD",
    "AggregationType",
    "CrossRefMode",
    "CrossRefSpec",
    "DrilldownConfig",
    "ExpressionValidation",
    "FieldCategory",
    "FieldDescriptor",
    "FieldKind",
    "FieldOption",
    "FilterCondition",
    "FilterOperator",
    "FormDefinition",
    "JoinSpec",
    "JoinType",
    "MetricAggregation",
    "ReportConfig",
    "ReportDefinition",
    "ReportResult",
    "ResultBucket",
    "ResultMode",
    "Row",
]
