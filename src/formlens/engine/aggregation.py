"""Grouping and reduction of rows into result buckets."""

import math
import statistics
from collections.abc import Mapping, Sequence
from typing import Any

from formlens.engine.values import dimension_label, to_number
from formlens.models.field import FieldDescriptor
from formlens.models.report import AggregationType, MetricAggregation
from formlens.models.result import ResultBucket
from formlens.models.row import Row


class AggregationEngine:
    """Buckets rows by dimension values and reduces each bucket.

    buckets come out in first-seen order of their dimension combination,
    which is also the order the chart draws them in.
    """

    def reduce(self, values: Sequence[Any], aggregation: AggregationType) -> float:
        """Apply one aggregation to a projected column.

        count is the number of values given, numeric or not. every other
        function only looks at values that coerce to numbers, and comes back
        as 0 when there are none - never NaN, never a ZeroDivisionError.
        """
        if aggregation == AggregationType.COUNT:
            return float(len(values))

        numbers = [number for value in values if (number := to_number(value)) is not None]
        if not numbers:
            return 0.0

        if aggregation == AggregationType.SUM:
            return math.fsum(numbers)
        if aggregation == AggregationType.AVG:
            return math.fsum(numbers) / len(numbers)
        if aggregation == AggregationType.MIN:
            return min(numbers)
        if aggregation == AggregationType.MAX:
            return max(numbers)
        if aggregation == AggregationType.MEDIAN:
            return float(statistics.median(numbers))
        if aggregation == AggregationType.STDDEV:
            # population stddev - the rows in a bucket are the whole group, not a sample
            return float(statistics.pstdev(numbers))
        raise ValueError(f"Unknown aggregation: {aggregation}")

    def dimension_key(
        self,
        row: Row,
        dimensions: Sequence[str],
        fields: Mapping[str, FieldDescriptor] | None = None,
    ) -> tuple[str, ...]:
        fields = fields or {}
        return tuple(dimension_label(row.get(dim), fields.get(dim)) for dim in dimensions)

    def group(
        self,
        rows: Sequence[Row],
        dimensions: Sequence[str],
        fields: Mapping[str, FieldDescriptor] | None = None,
    ) -> dict[tuple[str, ...], list[Row]]:
        # dicts keep insertion order, which gives us first-seen ordering for free
        groups: dict[tuple[str, ...], list[Row]] = {}
        for row in rows:
            groups.setdefault(self.dimension_key(row, dimensions, fields), []).append(row)
        return groups

    def aggregate(
        self,
        rows: Sequence[Row],
        dimensions: Sequence[str],
        metrics: Sequence[MetricAggregation],
        fields: Mapping[str, FieldDescriptor] | None = None,
    ) -> list[ResultBucket]:
        """Compute one bucket per dimension combination present in rows.

        no rows or no metrics means no buckets. there is never a made-up
        zero bucket standing in for an empty result.
        """
        if not rows or not metrics:
            return []

        buckets = []
        for key, members in self.group(rows, dimensions, fields).items():
            values = {
                spec.key: self.reduce([row.get(spec.field_id) for row in members], spec.aggregation)
                for spec in metrics
            }
            buckets.append(
                ResultBucket(
                    dimension_key=key,
                    value=values[metrics[0].key],
                    count=len(members),
                    values=values,
                )
            )
        return buckets
