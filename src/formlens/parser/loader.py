"""YAML loader and definitions registry for formlens.

the registry holds every form (with its field metadata) and every stored
report. reports are plain yaml so they diff nicely and can live next to the
forms they chart.

    forms:
      - id: orders
        name: Orders
        fields:
          - {id: amount, label: Amount, type: currency}
          - {id: region, type: select, options: [North, South]}
    reports:
      - name: revenue_by_region
        config:
          formId: orders
          metrics: [amount]
          dimensions: [region]
"""

import logging
from pathlib import Path

import yaml

from formlens.engine.joins import CROSS_REF_LABEL_FIELD, CROSS_REF_VALUE_FIELD, namespaced
from formlens.models.definition import FormDefinition, ReportDefinition
from formlens.models.field import FieldDescriptor
from formlens.models.report import ReportConfig
from formlens.models.row import REF_ID_FIELD, ROW_ID_FIELD, SUBMITTED_AT_FIELD

logger = logging.getLogger(__name__)

PSEUDO_FIELDS = frozenset({ROW_ID_FIELD, REF_ID_FIELD, SUBMITTED_AT_FIELD})


class DefinitionRegistry:
    """Registry of forms and stored reports.

    loads yaml files, checks that reports only reference fields that exist,
    and provides lookup methods. forms and reports share a registry since a
    report is meaningless without the fields it points at.
    """

    def __init__(self) -> None:
        self.forms: dict[str, FormDefinition] = {}
        self.reports: dict[str, ReportDefinition] = {}

    def load_directory(self, path: Path) -> None:
        """Load all YAML files from a directory, recursively.

        file order doesn't matter - references are validated once everything
        is loaded.
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Definitions directory not found: {path}")

        yaml_files = sorted(list(path.glob("**/*.yaml")) + list(path.glob("**/*.yml")))
        if not yaml_files:
            raise ValueError(f"No YAML files found in {path}")

        for yaml_file in yaml_files:
            self._load_file(yaml_file)

        self._validate_references()
        logger.info(
            "loaded %d forms and %d reports from %s", len(self.forms), len(self.reports), path
        )

    def _load_file(self, path: Path) -> None:
        """Parse a single YAML file. empty files are ignored."""
        with open(path) as f:
            data = yaml.safe_load(f)

        if data is None:
            return

        for form_data in data.get("forms", []):
            form = FormDefinition.model_validate(form_data)
            if form.id in self.forms:
                raise ValueError(f"Duplicate form: {form.id}")
            seen: set[str] = set()
            for descriptor in form.fields:
                if descriptor.id in seen:
                    raise ValueError(f"Duplicate field '{descriptor.id}' in form '{form.id}'")
                seen.add(descriptor.id)
            self.forms[form.id] = form

        for report_data in data.get("reports", []):
            report = ReportDefinition.model_validate(report_data)
            if report.name in self.reports:
                raise ValueError(f"Duplicate report: {report.name}")
            self.reports[report.name] = report

    def _validate_references(self) -> None:
        """Ensure every form and field a report mentions exists.

        broken references fail at load time, not in the middle of a chart
        render.
        """
        for name, report in self.reports.items():
            config = report.config
            known = self.known_fields(config)

            for form_id in self._referenced_forms(config):
                if form_id not in self.forms:
                    raise ValueError(f"Report '{name}' references unknown form '{form_id}'")

            for field_id in sorted(config.referenced_fields()):
                if field_id not in known:
                    raise ValueError(f"Report '{name}' references unknown field '{field_id}'")

            join = config.active_join()
            if join is not None and self.forms[join.secondary_form_id].get_field(
                join.secondary_field_id
            ) is None:
                raise ValueError(
                    f"Report '{name}' joins on unknown field '{join.secondary_field_id}' "
                    f"of form '{join.secondary_form_id}'"
                )

            cross_ref = config.active_cross_ref()
            if (
                cross_ref is not None
                and cross_ref.target_metric_field_id
                and self.forms[cross_ref.target_form_id].get_field(cross_ref.target_metric_field_id)
                is None
            ):
                raise ValueError(
                    f"Report '{name}' aggregates unknown field "
                    f"'{cross_ref.target_metric_field_id}' of form '{cross_ref.target_form_id}'"
                )

    def _referenced_forms(self, config: ReportConfig) -> list[str]:
        form_ids = [config.form_id] if config.form_id else []
        join = config.active_join()
        if join is not None:
            form_ids.append(join.secondary_form_id)
        cross_ref = config.active_cross_ref()
        if cross_ref is not None:
            form_ids.append(cross_ref.target_form_id)
        return form_ids

    def known_fields(self, config: ReportConfig) -> set[str]:
        """Every field id a report over config may legitimately reference."""
        known = set(PSEUDO_FIELDS)
        if config.form_id is None:
            known.update(descriptor.id for descriptor in self.all_fields())
        elif config.form_id in self.forms:
            known.update(descriptor.id for descriptor in self.forms[config.form_id].fields)

        join = config.active_join()
        if join is not None and join.secondary_form_id in self.forms:
            known.update(
                namespaced(join.secondary_form_id, descriptor.id)
                for descriptor in self.forms[join.secondary_form_id].fields
            )
        if config.active_cross_ref() is not None:
            known.update((CROSS_REF_VALUE_FIELD, CROSS_REF_LABEL_FIELD))
        return known

    # --- lookup methods ---
    # all of these raise KeyError for unknown names

    def get_form(self, form_id: str) -> FormDefinition:
        """Get a form by id."""
        if form_id not in self.forms:
            raise KeyError(f"Unknown form: {form_id}")
        return self.forms[form_id]

    def get_field(self, form_id: str, field_id: str) -> FieldDescriptor:
        """Get one field of a form."""
        descriptor = self.get_form(form_id).get_field(field_id)
        if descriptor is None:
            raise KeyError(f"Unknown field: {form_id}.{field_id}")
        return descriptor

    def get_report(self, name: str) -> ReportDefinition:
        """Get a stored report by name."""
        if name not in self.reports:
            raise KeyError(f"Unknown report: {name}")
        return self.reports[name]

    def fields_for(self, form_id: str) -> list[FieldDescriptor]:
        return list(self.get_form(form_id).fields)

    def all_fields(self) -> list[FieldDescriptor]:
        """Fields of every form, in load order."""
        return [descriptor for form in self.forms.values() for descriptor in form.fields]
