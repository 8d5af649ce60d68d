"""Tests for YAML loading and DefinitionRegistry."""

from pathlib import Path

import pytest

from formlens.parser.loader import DefinitionRegistry


def _load(tmp_path: Path, **files: str) -> DefinitionRegistry:
    definitions = tmp_path / "definitions"
    definitions.mkdir(exist_ok=True)
    for name, content in files.items():
        (definitions / f"{name}.yaml").write_text(content)
    registry = DefinitionRegistry()
    registry.load_directory(definitions)
    return registry


ORDERS_FORM = """
forms:
  - id: orders
    fields:
      - {id: amount, type: number}
      - {id: region, type: select}
"""


class TestDefinitionRegistry:
    def test_load_directory(self, registry: DefinitionRegistry):
        """Can load forms and reports from a directory."""
        assert set(registry.forms) == {"orders", "customers", "projects", "tasks"}
        assert len(registry.reports) == 4

    def test_load_nonexistent_directory(self, tmp_path: Path):
        """Raises error for nonexistent directory."""
        registry = DefinitionRegistry()
        with pytest.raises(FileNotFoundError):
            registry.load_directory(tmp_path / "nonexistent")

    def test_load_empty_directory(self, tmp_path: Path):
        """Raises error for a directory without YAML."""
        empty_dir = tmp_path / "empty"
        empty_dir.mkdir()

        registry = DefinitionRegistry()
        with pytest.raises(ValueError, match="No YAML files"):
            registry.load_directory(empty_dir)

    def test_nested_and_yml_files(self, tmp_path: Path):
        """Subdirectories and .yml files are picked up."""
        definitions = tmp_path / "definitions"
        (definitions / "forms").mkdir(parents=True)
        (definitions / "forms" / "orders.yml").write_text(ORDERS_FORM)
        (definitions / "empty.yaml").write_text("")

        registry = DefinitionRegistry()
        registry.load_directory(definitions)
        assert "orders" in registry.forms

    def test_get_form(self, registry: DefinitionRegistry):
        form = registry.get_form("orders")
        assert form.name == "Orders"
        assert form.fields[0].source_form_id == "orders"

    def test_get_unknown_form_raises(self, registry: DefinitionRegistry):
        """Raises KeyError for unknown form."""
        with pytest.raises(KeyError, match="Unknown form"):
            registry.get_form("nonexistent")

    def test_get_field(self, registry: DefinitionRegistry):
        """Field metadata is normalized on load."""
        field = registry.get_field("orders", "amount")
        assert field.category == "currency"
        assert field.label == "Amount"

    def test_get_unknown_field_raises(self, registry: DefinitionRegistry):
        with pytest.raises(KeyError, match="Unknown field"):
            registry.get_field("orders", "nonexistent")

    def test_get_report(self, registry: DefinitionRegistry):
        report = registry.get_report("revenue_by_region")
        assert report.description == "Order revenue per region"
        assert report.config.dimensions == ("region",)

    def test_get_unknown_report_raises(self, registry: DefinitionRegistry):
        with pytest.raises(KeyError, match="Unknown report"):
            registry.get_report("nonexistent")

    def test_all_fields(self, registry: DefinitionRegistry):
        fields = registry.all_fields()
        assert len(fields) == 14
        assert fields[0].id == "order_no"


class TestDefinitionRegistryValidation:
    def test_duplicate_form_raises(self, tmp_path: Path):
        """Raises error for duplicate form ids across files."""
        with pytest.raises(ValueError, match="Duplicate form"):
            _load(tmp_path, file1=ORDERS_FORM, file2=ORDERS_FORM)

    def test_duplicate_field_raises(self, tmp_path: Path):
        yaml_content = """
forms:
  - id: orders
    fields:
      - {id: amount, type: number}
      - {id: amount, type: text}
"""
        with pytest.raises(ValueError, match="Duplicate field 'amount'"):
            _load(tmp_path, forms=yaml_content)

    def test_duplicate_report_raises(self, tmp_path: Path):
        reports = """
reports:
  - name: r
    config: {formId: orders}
  - name: r
    config: {formId: orders}
"""
        with pytest.raises(ValueError, match="Duplicate report"):
            _load(tmp_path, forms=ORDERS_FORM, reports=reports)

    def test_unknown_field_reference_raises(self, tmp_path: Path):
        """Reports may only reference fields of their forms."""
        reports = """
reports:
  - name: broken
    config: {formId: orders, metrics: [amount], dimensions: [country]}
"""
        with pytest.raises(ValueError, match="Report 'broken' references unknown field 'country'"):
            _load(tmp_path, forms=ORDERS_FORM, reports=reports)

    def test_unknown_form_reference_raises(self, tmp_path: Path):
        reports = """
reports:
  - name: broken
    config:
      formId: orders
      crossRefConfig: {crossRefFieldId: amount, targetFormId: ghosts}
"""
        with pytest.raises(ValueError, match="unknown form 'ghosts'"):
            _load(tmp_path, forms=ORDERS_FORM, reports=reports)

    def test_unknown_secondary_join_field_raises(self, tmp_path: Path):
        forms = ORDERS_FORM + """
  - id: regions
    fields:
      - {id: code, type: text}
"""
        reports = """
reports:
  - name: broken
    config:
      formId: orders
      joinConfig:
        secondaryFormId: regions
        primaryFieldId: region
        secondaryFieldId: nope
"""
        with pytest.raises(ValueError, match="joins on unknown field 'nope'"):
            _load(tmp_path, forms=forms, reports=reports)

    def test_pseudo_and_namespaced_fields_allowed(self, tmp_path: Path):
        """Pseudo fields and joined `form.field` ids are valid references."""
        forms = ORDERS_FORM + """
  - id: regions
    fields:
      - {id: code, type: select}
      - {id: manager, type: text}
"""
        reports = """
reports:
  - name: ok
    config:
      formId: orders
      metrics: [amount]
      dimensions: [regions.manager, __submitted_at__]
      joinConfig:
        secondaryFormId: regions
        primaryFieldId: region
        secondaryFieldId: code
"""
        registry = _load(tmp_path, forms=forms, reports=reports)
        assert "ok" in registry.reports

    def test_invalid_config_raises(self, tmp_path: Path):
        """Schema errors in a report config surface at load time."""
        reports = """
reports:
  - name: broken
    config: {formId: orders, dimensions: [a, b, c, d]}
"""
        with pytest.raises(ValueError, match="At most 3 dimensions"):
            _load(tmp_path, forms=ORDERS_FORM, reports=reports)
