"""Main ReportWorkspace interface for formlens."""

import hashlib
import json
import logging
from datetime import datetime
from pathlib import Path

from formlens.engine.compatibility import FieldSelection
from formlens.engine.drilldown import DrilldownStack
from formlens.engine.planner import ReportQueryPlanner
from formlens.models.field import FieldDescriptor
from formlens.models.report import ReportConfig
from formlens.models.result import ReportResult
from formlens.models.row import Row
from formlens.parser.loader import DefinitionRegistry
from formlens.sources.duckdb_source import DuckDBRowSource

logger = logging.getLogger(__name__)


class ReportWorkspace:
    """Main interface for formlens: definitions + rows + planner."""

    def __init__(
        self,
        definitions_path: str | Path,
        database_path: str | None = None,
    ) -> None:
        """Initialize the workspace.

        Args:
            definitions_path: Directory containing form/report YAML files.
            database_path: Path to DuckDB file, or None for in-memory.
        """
        self.definitions_path = Path(definitions_path)
        self.registry = DefinitionRegistry()
        self.source = DuckDBRowSource(database_path)
        self.planner = ReportQueryPlanner()
        self.rows: dict[str, list[Row]] = {}
        # bumped on every load so cached results of older row sets never match
        self.row_set_version = 0

        # load and validate definitions upfront - fail fast if there are problems
        self.registry.load_directory(self.definitions_path)

    # --- rows ---

    def load_rows(self, form_id: str, path: str | Path) -> int:
        """Load a data file for a form, replacing its previous rows."""
        self.registry.get_form(form_id)
        return self.set_rows(form_id, self.source.load_path(form_id, path))

    def load_table(self, form_id: str, table_name: str) -> int:
        self.registry.get_form(form_id)
        return self.set_rows(form_id, self.source.load_table(form_id, table_name))

    def set_rows(self, form_id: str, rows: list[Row]) -> int:
        self.rows[form_id] = list(rows)
        self.row_set_version += 1
        return len(rows)

    def all_rows(self) -> list[Row]:
        return [row for rows in self.rows.values() for row in rows]

    # --- reports ---

    def resolve(self, report: str | ReportConfig) -> ReportConfig:
        if isinstance(report, ReportConfig):
            return report
        return self.registry.get_report(report).config

    def run(
        self,
        report: str | ReportConfig,
        drilldown: DrilldownStack | None = None,
        now: datetime | None = None,
    ) -> ReportResult:
        """Run a stored report by name, or an ad-hoc config.

        Args:
            report: Report name or a ReportConfig.
            drilldown: Active drilldown pins.
            now: Anchor for relative date filters.

        Returns:
            ReportResult from the planner.
        """
        config = self.resolve(report)
        return self.planner.run(self.registry.all_fields(), self.all_rows(), config, drilldown, now)

    def drill(
        self,
        report: str | ReportConfig,
        field_id: str,
        label: str,
        drilldown: DrilldownStack | None = None,
    ) -> DrilldownStack:
        """Pin a field to the bucket label the user clicked in report's chart."""
        config = self.resolve(report)
        stack = drilldown or DrilldownStack()
        return stack.click_label(field_id, label, self._descriptor(config, field_id))

    def _descriptor(self, config: ReportConfig, field_id: str) -> FieldDescriptor | None:
        form_id, _, bare_id = field_id.rpartition(".")
        if form_id in self.registry.forms:
            return self.registry.forms[form_id].get_field(bare_id)
        if config.form_id is not None:
            descriptor = self.registry.get_form(config.form_id).get_field(field_id)
            if descriptor is not None:
                return descriptor
        return next((f for f in self.registry.all_fields() if f.id == field_id), None)

    def cache_key(self, report: str | ReportConfig, drilldown: DrilldownStack | None = None) -> str:
        """Memoization key for a run over the current row set.

        identical key means identical result (relative date filters aside,
        which also depend on `now`).
        """
        config = self.resolve(report)
        payload = {
            "row_set_version": self.row_set_version,
            "config": config.model_dump(mode="json", by_alias=True),
            "drilldown": (drilldown or DrilldownStack()).model_dump(mode="json"),
        }
        json_str = json.dumps(payload, sort_keys=True, default=str)
        return hashlib.sha256(json_str.encode()).hexdigest()

    def joinable_fields(self, primary_form_id: str, secondary_form_id: str) -> FieldSelection:
        """Primary form fields with at least one join partner in the secondary form."""
        return self.planner.resolver.joinable_fields(
            self.registry.fields_for(primary_form_id),
            self.registry.fields_for(secondary_form_id),
        )

    # --- listings ---

    def list_fields(self, form_id: str | None = None) -> list[dict]:
        """List fields of one form, or of every form."""
        fields: list[FieldDescriptor] = (
            self.registry.fields_for(form_id) if form_id else self.registry.all_fields()
        )
        resolver = self.planner.resolver
        return [
            {
                "form": descriptor.source_form_id,
                "id": descriptor.id,
                "label": descriptor.label,
                "category": resolver.normalize(descriptor).value,
                "kind": resolver.classify(descriptor).value,
            }
            for descriptor in fields
        ]

    def list_reports(self) -> list[dict]:
        return [
            {
                "name": report.name,
                "form": report.config.form_id,
                "title": report.config.title,
                "description": report.description,
            }
            for report in self.registry.reports.values()
        ]

    def validate(self) -> list[str]:
        """Validate all stored reports. Returns list of errors.

        the loader already checked references; this checks the things that
        only fall back silently at run time - broken manual filter logic and
        incompatible join fields.
        """
        errors = []
        evaluator = self.planner.evaluator
        resolver = self.planner.resolver

        for report in self.registry.reports.values():
            config = report.config
            if config.use_manual_filter_logic and config.filter_logic_expression.strip():
                validation = evaluator.validate(config.filter_logic_expression, len(config.filters))
                if not validation.valid:
                    errors.append(f"Report '{report.name}': {validation.error}")

            join = config.active_join()
            if join is not None and config.form_id is not None:
                primary = self.registry.get_form(config.form_id).get_field(join.primary_field_id)
                secondary = self.registry.get_field(join.secondary_form_id, join.secondary_field_id)
                if primary is not None and not resolver.can_join(primary, secondary):
                    errors.append(
                        f"Report '{report.name}': join fields '{join.primary_field_id}' "
                        f"({primary.category}) and '{join.secondary_field_id}' "
                        f"({secondary.category}) are not compatible"
                    )

        return errors

    def close(self) -> None:
        """Close database connection."""
        self.source.close()

    def __enter__(self) -> "ReportWorkspace":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
