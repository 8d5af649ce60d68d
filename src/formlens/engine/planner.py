"""Report query planner.

turns (fields, rows, config, drilldown) into chart buckets or table rows.
the pipeline order is fixed:

  1. join / cross-reference  -> working row set
  2. filter logic            -> rows satisfying the (manual or implicit) expression
  3. drilldown pins          -> rows matching every clicked value
  4. aggregate               -> buckets, unless the report is in table mode

nothing here mutates its inputs or keeps state between runs, so calling run()
twice with the same arguments gives the same result, and two charts can run
over the same rows concurrently. memoization is the caller's business - see
ReportWorkspace.cache_key.
"""

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone

from formlens.engine.aggregation import AggregationEngine
from formlens.engine.compatibility import FieldCompatibilityResolver
from formlens.engine.conditions import FilterConditionMatcher
from formlens.engine.drilldown import DrilldownStack
from formlens.engine.expression import Expression, FilterExpressionEvaluator
from formlens.engine.joins import (
    CROSS_REF_LABEL_FIELD,
    CROSS_REF_VALUE_FIELD,
    JoinExecutor,
    namespaced,
)
from formlens.models.field import FieldDescriptor
from formlens.models.report import AggregationType, MetricAggregation, ReportConfig
from formlens.models.result import ExpressionValidation, ReportResult, ResultMode
from formlens.models.row import Row

logger = logging.getLogger(__name__)


@dataclass
class _JoinNotes:
    """Decisions made while building the working row set."""

    used_fallback: bool = False
    warning: str | None = None
    cross_ref_linked: bool | None = None


class ReportQueryPlanner:
    """Runs the report pipeline.

    collaborators are injectable for tests but the defaults are what you
    want - they're all stateless.
    """

    def __init__(
        self,
        resolver: FieldCompatibilityResolver | None = None,
        evaluator: FilterExpressionEvaluator | None = None,
        matcher: FilterConditionMatcher | None = None,
        joins: JoinExecutor | None = None,
        aggregation: AggregationEngine | None = None,
    ) -> None:
        self.resolver = resolver or FieldCompatibilityResolver()
        self.evaluator = evaluator or FilterExpressionEvaluator()
        self.matcher = matcher or FilterConditionMatcher(self.resolver)
        self.aggregation = aggregation or AggregationEngine()
        self.joins = joins or JoinExecutor(self.aggregation)

    def run(
        self,
        fields: Sequence[FieldDescriptor],
        rows: Sequence[Row],
        config: ReportConfig,
        drilldown: DrilldownStack | None = None,
        now: datetime | None = None,
    ) -> ReportResult:
        """Evaluate config over rows.

        Args:
            fields: Field metadata for every form involved.
            rows: Rows of every form involved; split by source_form_id.
            config: The report to compute.
            drilldown: Active drilldown pins, if any.
            now: Anchor for relative date filters. Pass it for reproducible
                results; defaults to the current UTC time.

        Returns:
            ReportResult with buckets (aggregate mode) or rows (table mode).
        """
        drilldown = drilldown if drilldown is not None else DrilldownStack()
        now = now or datetime.now(timezone.utc).replace(tzinfo=None)
        field_map = {descriptor.id: descriptor for descriptor in fields}
        # the primary form's metadata wins when field ids repeat across forms
        field_map.update(
            (descriptor.id, descriptor)
            for descriptor in fields
            if config.form_id is not None and descriptor.source_form_id == config.form_id
        )

        # step 1: working row set
        working, field_map, notes = self._build_working_set(fields, rows, config, field_map)
        logger.debug("working set: %d rows", len(working))

        # step 2: filter logic
        expression, validation = self.effective_expression(config)
        if expression is not None:
            working = [
                row for row in working if self._passes(row, expression, config, field_map, now)
            ]
        logger.debug("after filters: %d rows", len(working))

        # step 3: drilldown, always ANDed on top of the filter logic
        working = drilldown.apply(working)
        logger.debug("after drilldown (%d pins): %d rows", len(drilldown), len(working))

        result = ReportResult(
            mode=ResultMode.AGGREGATE if config.aggregation_enabled else ResultMode.TABLE,
            row_count=len(working),
            filter_validation=validation,
            used_fallback=notes.used_fallback,
            join_warning=notes.warning,
            cross_ref_linked=notes.cross_ref_linked,
        )

        # step 4: aggregate, or hand the rows back as they are
        if not config.aggregation_enabled:
            return result.model_copy(update={"rows": working})

        dimensions = self.effective_dimensions(config, drilldown)
        metrics = self.effective_metrics(config)
        if not metrics:
            logger.info("aggregate mode with no metrics selected, returning no buckets")
        buckets = self.aggregation.aggregate(working, dimensions, metrics, field_map)
        return result.model_copy(
            update={
                "buckets": buckets,
                "dimensions": dimensions,
                "metric_keys": [spec.key for spec in metrics],
            }
        )

    # --- configuration resolution ---

    def effective_expression(
        self, config: ReportConfig
    ) -> tuple[Expression | None, ExpressionValidation | None]:
        """Expression actually applied to the filters.

        without manual logic it's always `1 AND 2 AND ... AND n`, whatever
        stale text is still stored in filterLogicExpression. with manual
        logic an invalid expression is reported and the implicit AND is used
        instead, so the chart still renders.
        """
        count = len(config.filters)
        implicit = self.evaluator.implicit_conjunction(count)
        if count == 0 or not config.use_manual_filter_logic:
            return implicit, None
        if not config.filter_logic_expression.strip():
            return implicit, None

        validation = self.evaluator.validate(config.filter_logic_expression, count)
        if not validation.valid:
            logger.warning(
                "invalid filter logic %r (%s), falling back to AND of all %d conditions",
                config.filter_logic_expression,
                validation.error,
                count,
            )
            return implicit, validation
        return self.evaluator.parse(config.filter_logic_expression), validation

    def effective_dimensions(self, config: ReportConfig, drilldown: DrilldownStack) -> list[str]:
        """Grouping fields for this run.

        with hierarchical drilldown the chart groups by the first level not
        yet pinned, and by the top level again once all of them are. before
        the first level is pinned the configured dimensions apply, or the top
        level if there are none.
        """
        levels = config.drilldown_config.fields
        if config.drilldown_config.enabled and levels:
            level = drilldown.next_level(levels)
            if level is not None:
                return [level]
            if not config.dimensions:
                return [levels[0]]
        if config.dimensions:
            return list(config.dimensions)
        if config.active_cross_ref() is not None:
            return [CROSS_REF_LABEL_FIELD]
        return []

    def effective_metrics(self, config: ReportConfig) -> list[MetricAggregation]:
        specs = config.metric_specs()
        if not specs and config.active_cross_ref() is not None:
            # one bucket per primary row, valued by its linked count/aggregate
            specs = [MetricAggregation(field_id=CROSS_REF_VALUE_FIELD, aggregation=AggregationType.SUM)]
        return specs

    # --- pipeline steps ---

    def _build_working_set(
        self,
        fields: Sequence[FieldDescriptor],
        rows: Sequence[Row],
        config: ReportConfig,
        field_map: dict[str, FieldDescriptor],
    ) -> tuple[list[Row], dict[str, FieldDescriptor], _JoinNotes]:
        notes = _JoinNotes()
        join = config.active_join()
        cross_ref = config.active_cross_ref()
        other_form = (
            join.secondary_form_id if join else cross_ref.target_form_id if cross_ref else None
        )

        if config.form_id is not None:
            primary = [row for row in rows if row.source_form_id == config.form_id]
        elif other_form is not None:
            primary = [row for row in rows if row.source_form_id != other_form]
        else:
            primary = list(rows)

        if join is not None:
            secondary = [row for row in rows if row.source_form_id == join.secondary_form_id]
            secondary_fields = [f for f in fields if f.source_form_id == join.secondary_form_id]
            primary_fields = [
                f
                for f in fields
                if f.source_form_id != join.secondary_form_id
                and (config.form_id is None or f.source_form_id == config.form_id)
            ]
            notes.used_fallback = self.resolver.joinable_fields(
                primary_fields, secondary_fields
            ).used_fallback
            notes.warning = self._check_join_pair(
                field_map.get(join.primary_field_id),
                next((f for f in secondary_fields if f.id == join.secondary_field_id), None),
                join.primary_field_id,
                join.secondary_field_id,
            )

            field_map = dict(field_map)
            for descriptor in secondary_fields:
                key = namespaced(join.secondary_form_id, descriptor.id)
                field_map[key] = descriptor.model_copy(update={"id": key})
            return self.joins.join(primary, secondary, join), field_map, notes

        if cross_ref is not None:
            targets = [row for row in rows if row.source_form_id == cross_ref.target_form_id]
            notes.cross_ref_linked = bool(targets)
            if not targets:
                logger.info(
                    "cross-reference target form %s has no rows, reporting as not linked",
                    cross_ref.target_form_id,
                )
            return self.joins.cross_reference(primary, targets, cross_ref), field_map, notes

        return primary, field_map, notes

    def _check_join_pair(
        self,
        primary_field: FieldDescriptor | None,
        secondary_field: FieldDescriptor | None,
        primary_id: str,
        secondary_id: str,
    ) -> str | None:
        """Warning text for a questionable join pair, None if it looks fine.

        never blocks the join - the user may know something the metadata
        doesn't.
        """
        if primary_field is None or secondary_field is None:
            missing = primary_id if primary_field is None else secondary_id
            warning = f"No metadata for join field '{missing}', compatibility unknown"
        elif not self.resolver.can_join(primary_field, secondary_field):
            warning = (
                f"Join fields '{primary_id}' ({primary_field.category}) and "
                f"'{secondary_id}' ({secondary_field.category}) are not compatible"
            )
        else:
            return None
        logger.warning("%s; joining anyway", warning)
        return warning

    def _passes(
        self,
        row: Row,
        expression: Expression,
        config: ReportConfig,
        field_map: Mapping[str, FieldDescriptor],
        now: datetime,
    ) -> bool:
        conditions = config.filters
        computed: dict[int, bool] = {}

        # conditions are matched lazily, so short-circuited branches cost nothing
        def lookup(index: int) -> bool:
            if index not in computed:
                condition = conditions[index - 1]
                computed[index] = self.matcher.matches(
                    condition, row, field_map.get(condition.field_id), now
                )
            return computed[index]

        return expression.evaluate(lookup)


def run_report(
    fields: Sequence[FieldDescriptor],
    rows: Sequence[Row],
    config: ReportConfig,
    drilldown: DrilldownStack | None = None,
    now: datetime | None = None,
) -> ReportResult:
    """Run a report with a default planner."""
    return ReportQueryPlanner().run(fields, rows, config, drilldown, now)
