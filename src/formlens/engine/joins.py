"""Cross-form joins and cross-reference lookups.

two ways to bring a second form into a report:

  explicit join - pick a field on each side, rows match when the normalized
  values match. inner/left/right/full behave like their sql namesakes.

  cross-reference - the primary form has a reference field pointing at rows
  of the target form. no matching fields to pick; each primary row gets a
  count (or an aggregate) over the rows it links to.

joined rows carry secondary values under `<form id>.<field id>` so the two
sides can never clobber each other.
"""

import logging
from collections.abc import Iterable, Sequence
from typing import Any

from formlens.engine.aggregation import AggregationEngine
from formlens.engine.values import is_missing, join_key_parts, stringify
from formlens.models.report import CrossRefMode, CrossRefSpec, JoinSpec, JoinType
from formlens.models.row import Row

logger = logging.getLogger(__name__)

CROSS_REF_VALUE_FIELD = "__crossref_value__"
CROSS_REF_LABEL_FIELD = "__crossref_label__"


def namespaced(form_id: str, field_id: str) -> str:
    """Field id of a secondary field inside a joined row."""
    return f"{form_id}.{field_id}"


def reference_ids(value: Any) -> list[str]:
    """Pull target reference ids out of a cross-reference field value.

    seen in the wild: "REF-1, REF-2", ["REF-1", "REF-2"],
    [{"submission_ref_id": "REF-1"}] and a single such dict.
    """
    if is_missing(value):
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    if isinstance(value, dict):
        for key in ("submission_ref_id", "ref_id", "id"):
            if value.get(key):
                return [str(value[key]).strip()]
        return []
    if isinstance(value, (list, tuple)):
        ids: list[str] = []
        for item in value:
            for ref in reference_ids(item):
                if ref not in ids:
                    ids.append(ref)
        return ids
    return [stringify(value)]


class JoinExecutor:
    """Runs explicit joins and cross-reference enrichment over row lists."""

    def __init__(self, aggregation: AggregationEngine | None = None) -> None:
        self.aggregation = aggregation or AggregationEngine()

    def join(self, primary: Sequence[Row], secondary: Sequence[Row], spec: JoinSpec) -> list[Row]:
        """Join two row sets on spec's field pair.

        every (primary, secondary) match produces its own output row. output
        follows primary order, except right joins which follow secondary
        order; full joins append unmatched secondary rows at the end.
        """
        form_id = spec.secondary_form_id

        if spec.join_type == JoinType.RIGHT:
            primary_index = self._index(primary, spec.primary_field_id)
            result = []
            for other in secondary:
                matches = self._lookup(primary_index, other.get(spec.secondary_field_id))
                if matches:
                    result.extend(self._merge(primary[i], other, form_id) for i in matches)
                else:
                    result.append(self._secondary_only(other, form_id))
            logger.debug("right join kept %d secondary rows -> %d rows", len(secondary), len(result))
            return result

        secondary_index = self._index(secondary, spec.secondary_field_id)
        result = []
        matched_secondary: set[int] = set()
        for row in primary:
            matches = self._lookup(secondary_index, row.get(spec.primary_field_id))
            if matches:
                matched_secondary.update(matches)
                result.extend(self._merge(row, secondary[i], form_id) for i in matches)
            elif spec.join_type in (JoinType.LEFT, JoinType.FULL):
                result.append(row)

        if spec.join_type == JoinType.FULL:
            result.extend(
                self._secondary_only(other, form_id)
                for i, other in enumerate(secondary)
                if i not in matched_secondary
            )

        logger.debug(
            "%s join: %d primary + %d secondary -> %d rows (%d secondary matched)",
            spec.join_type.value,
            len(primary),
            len(secondary),
            len(result),
            len(matched_secondary),
        )
        return result

    def cross_reference(
        self, primary: Sequence[Row], targets: Sequence[Row], spec: CrossRefSpec
    ) -> list[Row]:
        """Attach the linked-row count or aggregate to every primary row.

        a primary row linking to nothing gets 0 in count mode and None in
        aggregate mode. the target form having no rows at all is the same
        situation, just for every row.
        """
        by_ref: dict[str, list[Row]] = {}
        for target in targets:
            for key in {target.ref_id, target.id} - {None, ""}:
                by_ref.setdefault(key, []).append(target)

        enriched = []
        for row in primary:
            linked = self._linked_rows(reference_ids(row.get(spec.cross_ref_field_id)), by_ref)
            if spec.mode == CrossRefMode.COUNT:
                value: float | int | None = len(linked)
            elif linked:
                metric_values = [target.get(spec.target_metric_field_id) for target in linked]
                value = self.aggregation.reduce(metric_values, spec.target_aggregation)
            else:
                value = None

            label = row.get(spec.source_label_field_id) if spec.source_label_field_id else None
            if is_missing(label):
                label = row.ref_id or row.id
            enriched.append(
                row.model_copy(
                    update={
                        "values": {
                            **row.values,
                            CROSS_REF_VALUE_FIELD: value,
                            CROSS_REF_LABEL_FIELD: stringify(label),
                        }
                    }
                )
            )
        return enriched

    # --- helpers ---

    def _index(self, rows: Sequence[Row], field_id: str) -> dict[str, list[int]]:
        index: dict[str, list[int]] = {}
        for position, row in enumerate(rows):
            for key in join_key_parts(row.get(field_id)):
                index.setdefault(key, []).append(position)
        return index

    def _lookup(self, index: dict[str, list[int]], value: Any) -> list[int]:
        # a multi-valued key can hit the same row through several parts
        positions: set[int] = set()
        for key in join_key_parts(value):
            positions.update(index.get(key, ()))
        return sorted(positions)

    def _linked_rows(self, refs: Iterable[str], by_ref: dict[str, list[Row]]) -> list[Row]:
        linked: list[Row] = []
        seen: set[str] = set()
        for ref in refs:
            for target in by_ref.get(ref, ()):
                if target.id not in seen:
                    seen.add(target.id)
                    linked.append(target)
        return linked

    def _merge(self, primary: Row, secondary: Row, form_id: str) -> Row:
        values = dict(primary.values)
        values.update({namespaced(form_id, key): value for key, value in secondary.values.items()})
        return Row(
            id=f"{primary.id}+{secondary.id}",
            source_form_id=primary.source_form_id,
            values=values,
            submitted_at=primary.submitted_at,
            ref_id=primary.ref_id,
        )

    def _secondary_only(self, secondary: Row, form_id: str) -> Row:
        return Row(
            id=secondary.id,
            source_form_id=secondary.source_form_id,
            values={namespaced(form_id, key): value for key, value in secondary.values.items()},
            submitted_at=secondary.submitted_at,
            ref_id=secondary.ref_id,
        )
