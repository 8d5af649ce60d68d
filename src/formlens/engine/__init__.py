"""The report evaluation engine: filters, joins, aggregation and drilldown."""

from formlens.engine.aggregation import AggregationEngine
from formlens.engine.compatibility import FieldCompatibilityResolver, FieldSelection
from formlens.engine.conditions import FilterConditionMatcher
from formlens.engine.drilldown import DrilldownFilter, DrilldownStack
from formlens.engine.expression import ExpressionSyntaxError, FilterExpressionEvaluator
from formlens.engine.joins import CROSS_REF_LABEL_FIELD, CROSS_REF_VALUE_FIELD, JoinExecutor
from formlens.engine.planner import ReportQueryPlanner, run_report

__all__ = [
    "CROSS_REF_LABEL_FIELD",
    "CROSS_REF_VALUE_FIELD",
    "AggregationEngine",
    "DrilldownFilter",
    "DrilldownStack",
    "ExpressionSyntaxError",
    "FieldCompatibilityResolver",
    "FieldSelection",
    "FilterConditionMatcher",
    "FilterExpressionEvaluator",
    "JoinExecutor",
    "ReportQueryPlanner",
    "run_report",
]
