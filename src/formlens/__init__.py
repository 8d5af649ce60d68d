"""formlens - report query engine for form submissions.

quick start:

    from formlens import ReportWorkspace

    with ReportWorkspace("definitions/") as ws:
        ws.load_rows("orders", "data/orders.csv")
        result = ws.run("revenue_by_region")
"""

from formlens.engine import (
    AggregationEngine,
    DrilldownFilter,
    DrilldownStack,
    ExpressionSyntaxError,
    FieldCompatibilityResolver,
    FilterConditionMatcher,
    FilterExpressionEvaluator,
    JoinExecutor,
    ReportQueryPlanner,
    run_report,
)
from formlens.models import (
    AggregationType,
    CrossRefSpec,
    FieldDescriptor,
    FilterCondition,
    FilterOperator,
    JoinSpec,
    ReportConfig,
    ReportResult,
    Row,
)
from formlens.workspace import ReportWorkspace

__version__ = "0.1.0"

__all__ = [
    "AggregationEngine",
    "AggregationType",
    "CrossRefSpec",
    "DrilldownFilter",
    "DrilldownStack",
    "ExpressionSyntaxError",
    "FieldCompatibilityResolver",
    "FieldDescriptor",
    "FilterCondition",
    "FilterConditionMatcher",
    "FilterExpressionEvaluator",
    "FilterOperator",
    "JoinExecutor",
    "JoinSpec",
    "ReportConfig",
    "ReportQueryPlanner",
    "ReportResult",
    "ReportWorkspace",
    "Row",
    "run_report",
]
