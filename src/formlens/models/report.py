"""Pydantic models for report configuration.

the report config is the whole declarative question a chart or table asks:
which metrics, grouped how, filtered how, joined with what. it's a frozen
value - editing a report means building a new config with model_copy, which
keeps the planner a plain function of its inputs.

json/yaml uses the camelCase keys the report editor writes
(metricAggregations, filterLogicExpression, ...). snake_case works too.
"""

from enum import Enum
from typing import Any, Self

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

MAX_DIMENSIONS = 3


class _ConfigModel(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


class AggregationType(str, Enum):
    """Reduction applied to a metric inside a dimension bucket."""

    COUNT = "count"
    SUM = "sum"
    AVG = "avg"
    MIN = "min"
    MAX = "max"
    MEDIAN = "median"
    STDDEV = "stddev"


class FilterOperator(str, Enum):
    """Every operator a filter condition may use.

    which ones make sense depends on the field category - see
    engine.conditions.OPERATORS_BY_CATEGORY.
    """

    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    CONTAINS = "contains"
    NOT_CONTAINS = "not_contains"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"
    IS_EMPTY = "is_empty"
    IS_NOT_EMPTY = "is_not_empty"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    GREATER_EQUAL = "greater_equal"
    LESS_EQUAL = "less_equal"
    BETWEEN = "between"
    AFTER = "after"
    BEFORE = "before"
    LAST_DAYS = "last_days"
    NEXT_DAYS = "next_days"
    IN = "in"
    NOT_IN = "not_in"


class JoinType(str, Enum):
    INNER = "inner"
    LEFT = "left"
    RIGHT = "right"
    FULL = "full"


class CrossRefMode(str, Enum):
    COUNT = "count"  # how many target rows each primary row links to
    AGGREGATE = "aggregate"  # reduce a target field over the linked rows


class FilterCondition(_ConfigModel):
    """One numbered filter condition. numbering is by position, 1-based."""

    field_id: str = Field(validation_alias=AliasChoices("field", "fieldId", "field_id"))
    operator: FilterOperator = FilterOperator.EQUALS
    value: Any = ""


class MetricAggregation(_ConfigModel):
    """A metric field paired with the aggregation to apply to it."""

    field_id: str = Field(validation_alias=AliasChoices("field", "fieldId", "field_id"))
    aggregation: AggregationType = AggregationType.SUM

    @property
    def key(self) -> str:
        """Name of this metric in result buckets, e.g. `sum_amount`."""
        return f"{self.aggregation.value}_{self.field_id}"


class JoinSpec(_ConfigModel):
    """Explicit join of the primary form with a secondary form."""

    enabled: bool = True
    secondary_form_id: str
    join_type: JoinType = JoinType.INNER
    primary_field_id: str
    secondary_field_id: str


class CrossRefSpec(_ConfigModel):
    """Cross-reference shortcut: follow a reference field into another form.

    no join fields to configure - the reference field already says which
    target rows belong to which primary row.
    """

    enabled: bool = True
    cross_ref_field_id: str
    target_form_id: str
    mode: CrossRefMode = CrossRefMode.COUNT
    target_metric_field_id: str | None = None
    target_aggregation: AggregationType = AggregationType.SUM
    source_label_field_id: str | None = None  # nicer bucket labels than raw row ids

    @field_validator("target_aggregation")
    @classmethod
    def simple_aggregations_only(cls, value: AggregationType) -> AggregationType:
        if value in (AggregationType.MEDIAN, AggregationType.STDDEV):
            raise ValueError(f"Cross-reference aggregation '{value.value}' is not supported")
        return value

    @model_validator(mode="after")
    def metric_required_for_aggregate(self) -> Self:
        if self.mode == CrossRefMode.AGGREGATE and not self.target_metric_field_id:
            raise ValueError("Cross-reference aggregate mode requires targetMetricFieldId")
        return self


class DrilldownConfig(_ConfigModel):
    """Which fields a chart may be drilled into, in level order."""

    enabled: bool = False
    # the editor has written this under three different names over time
    fields: tuple[str, ...] = Field(
        default=(),
        validation_alias=AliasChoices("fields", "levels", "drilldownLevels", "drilldown_levels"),
    )


class ReportConfig(_ConfigModel):
    """Full declarative configuration of one chart or table."""

    title: str = ""
    form_id: str | None = None  # primary data source; None means every row given
    metrics: tuple[str, ...] = ()
    dimensions: tuple[str, ...] = ()  # ordered: first is the primary grouping key
    aggregation_type: AggregationType = AggregationType.SUM
    metric_aggregations: tuple[MetricAggregation, ...] = ()
    aggregation_enabled: bool = True
    filters: tuple[FilterCondition, ...] = ()
    filter_logic_expression: str = ""
    use_manual_filter_logic: bool = False
    join_config: JoinSpec | None = None
    cross_ref_config: CrossRefSpec | None = None
    drilldown_config: DrilldownConfig = Field(default_factory=DrilldownConfig)

    @model_validator(mode="after")
    def validate_shape(self) -> Self:
        if len(self.dimensions) > MAX_DIMENSIONS:
            raise ValueError(
                f"At most {MAX_DIMENSIONS} dimensions are supported, got {len(self.dimensions)}"
            )
        if self.active_join() is not None and self.active_cross_ref() is not None:
            raise ValueError("joinConfig and crossRefConfig cannot both be enabled")
        return self

    def active_join(self) -> JoinSpec | None:
        if self.join_config is not None and self.join_config.enabled:
            return self.join_config
        return None

    def active_cross_ref(self) -> CrossRefSpec | None:
        if self.cross_ref_config is not None and self.cross_ref_config.enabled:
            return self.cross_ref_config
        return None

    def metric_specs(self) -> list[MetricAggregation]:
        """Resolve metrics to (field, aggregation) pairs.

        explicit metricAggregations come first. plain `metrics` entries that
        have no explicit aggregation fall back to aggregationType.
        """
        specs = list(self.metric_aggregations)
        covered = {spec.field_id for spec in specs}
        for field_id in self.metrics:
            if field_id not in covered:
                specs.append(MetricAggregation(field_id=field_id, aggregation=self.aggregation_type))
                covered.add(field_id)
        return specs

    def referenced_fields(self) -> set[str]:
        """Every primary-side field id this config mentions."""
        refs = set(self.metrics) | set(self.dimensions)
        refs.update(spec.field_id for spec in self.metric_aggregations)
        refs.update(condition.field_id for condition in self.filters)
        refs.update(self.drilldown_config.fields)
        join = self.active_join()
        if join is not None:
            refs.add(join.primary_field_id)
        cross_ref = self.active_cross_ref()
        if cross_ref is not None:
            refs.add(cross_ref.cross_ref_field_id)
            if cross_ref.source_label_field_id:
                refs.add(cross_ref.source_label_field_id)
        return refs
