"""Tests for CLI commands."""

from pathlib import Path

from typer.testing import CliRunner

from formlens.cli.main import app

runner = CliRunner()


class TestCLIList:
    def test_list_fields(self, definitions_dir: Path):
        """Can list fields via CLI."""
        result = runner.invoke(app, ["list", "fields", "--dir", str(definitions_dir)])
        assert result.exit_code == 0
        assert "amount" in result.stdout

    def test_list_fields_of_form(self, definitions_dir: Path):
        result = runner.invoke(
            app, ["list", "fields", "--form", "tasks", "--dir", str(definitions_dir)]
        )
        assert result.exit_code == 0
        assert "hours" in result.stdout
        assert "amount" not in result.stdout

    def test_list_fields_unknown_form(self, definitions_dir: Path):
        result = runner.invoke(
            app, ["list", "fields", "--form", "ghosts", "--dir", str(definitions_dir)]
        )
        assert result.exit_code == 1
        assert "unknown form" in result.stdout.lower()

    def test_list_reports(self, definitions_dir: Path):
        """Can list reports via CLI."""
        result = runner.invoke(app, ["list", "reports", "--dir", str(definitions_dir)])
        assert result.exit_code == 0
        assert "open_or_big" in result.stdout

    def test_list_invalid_type(self, definitions_dir: Path):
        """Reports error for invalid list type."""
        result = runner.invoke(app, ["list", "invalid", "--dir", str(definitions_dir)])
        assert result.exit_code == 1
        assert "unknown type" in result.stdout.lower()

    def test_list_nonexistent_directory(self, tmp_path: Path):
        """Reports error for nonexistent directory."""
        result = runner.invoke(app, ["list", "fields", "--dir", str(tmp_path / "nope")])
        assert result.exit_code == 1
        assert "error" in result.stdout.lower()


class TestCLIValidate:
    def test_validate_success(self, definitions_dir: Path):
        """Validate passes for valid definitions."""
        result = runner.invoke(app, ["validate", "--dir", str(definitions_dir)])
        assert result.exit_code == 0
        assert "success" in result.stdout.lower()

    def test_validate_failure(self, tmp_path: Path):
        definitions = tmp_path / "definitions"
        definitions.mkdir()
        (definitions / "defs.yaml").write_text(
            """
forms:
  - id: orders
    fields:
      - {id: amount, type: number}
reports:
  - name: bad_logic
    config:
      formId: orders
      filters:
        - {field: amount, operator: greater_than, value: 1}
      filterLogicExpression: "1 OR"
      useManualFilterLogic: true
"""
        )
        result = runner.invoke(app, ["validate", "--dir", str(definitions)])
        assert result.exit_code == 1
        assert "validation failed" in result.stdout.lower()
        assert "bad_logic" in result.stdout


class TestCLIRun:
    def test_run_table(self, definitions_dir: Path, orders_csv: Path):
        """Runs a report over a data file."""
        result = runner.invoke(
            app,
            [
                "run",
                "revenue_by_region",
                "--dir",
                str(definitions_dir),
                "--data",
                f"orders={orders_csv}",
            ],
        )
        assert result.exit_code == 0
        assert "North" in result.stdout
        assert "South" in result.stdout

    def test_run_json_with_drilldown(self, definitions_dir: Path, orders_csv: Path):
        result = runner.invoke(
            app,
            [
                "run",
                "revenue_by_region",
                "--dir",
                str(definitions_dir),
                "--data",
                f"orders={orders_csv}",
                "--drill",
                "status=closed",
                "--output",
                "json",
            ],
        )
        assert result.exit_code == 0
        assert '"North"' in result.stdout
        assert '"South"' in result.stdout
        assert '"row_count": 2' in result.stdout

    def test_run_drill_on_label(self, definitions_dir: Path, orders_csv: Path):
        """--drill takes the label shown in the output, not the stored value."""
        result = runner.invoke(
            app,
            [
                "run",
                "revenue_by_region",
                "--dir",
                str(definitions_dir),
                "--data",
                f"orders={orders_csv}",
                "--drill",
                "region=North",
                "--output",
                "json",
            ],
        )
        assert result.exit_code == 0
        assert '"North"' in result.stdout
        assert '"South"' not in result.stdout

    def test_run_bad_pair(self, definitions_dir: Path):
        result = runner.invoke(
            app, ["run", "revenue_by_region", "--dir", str(definitions_dir), "--data", "orders"]
        )
        assert result.exit_code == 1
        assert "expected key=value" in result.stdout

    def test_run_unknown_report(self, definitions_dir: Path):
        result = runner.invoke(app, ["run", "nonexistent", "--dir", str(definitions_dir)])
        assert result.exit_code == 1
        assert "report error" in result.stdout.lower()


class TestCLICheckLogic:
    def test_valid(self):
        result = runner.invoke(app, ["check-logic", "(1 AND 2) OR 3", "--conditions", "3"])
        assert result.exit_code == 0
        assert "valid" in result.stdout.lower()

    def test_out_of_range(self):
        """Out of range indices fail with the offending number."""
        result = runner.invoke(app, ["check-logic", "1 AND 5", "--conditions", "3"])
        assert result.exit_code == 1
        assert "invalid condition numbers: 5" in result.stdout.lower()


class TestCLIJoinable:
    def test_joinable(self, definitions_dir: Path):
        result = runner.invoke(app, ["joinable", "orders", "customers", "--dir", str(definitions_dir)])
        assert result.exit_code == 0
        assert "customer_id" in result.stdout

    def test_unknown_form(self, definitions_dir: Path):
        result = runner.invoke(app, ["joinable", "orders", "ghosts", "--dir", str(definitions_dir)])
        assert result.exit_code == 1
        assert "error" in result.stdout.lower()
