"""CLI for formlens."""

import json
import logging
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from formlens.engine.drilldown import DrilldownStack
from formlens.engine.expression import FilterExpressionEvaluator
from formlens.engine.values import format_number
from formlens.models.result import ReportResult, ResultMode
from formlens.workspace import ReportWorkspace

app = typer.Typer(
    name="formlens",
    help="formlens - form report query engine",
    no_args_is_help=True,
)
console = Console()

DirOption = Annotated[Path, typer.Option("--dir", "-d", help="Definitions directory")]


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Debug logging")] = False,
) -> None:
    """Form report query engine."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def get_workspace(definitions_dir: Path, db_path: str | None = None) -> ReportWorkspace:
    return ReportWorkspace(definitions_dir, db_path)


def _parse_pairs(items: list[str] | None, option: str) -> list[tuple[str, str]]:
    """Split repeated `key=value` options."""
    pairs = []
    for item in items or []:
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            console.print(f"[red]Invalid {option} '{item}', expected key=value[/red]")
            raise typer.Exit(1)
        pairs.append((key.strip(), value.strip()))
    return pairs


@app.command("list")
def list_items(
    item_type: Annotated[str, typer.Argument(help="Type: fields or reports")],
    definitions_dir: DirOption = Path("./definitions"),
    form: Annotated[str | None, typer.Option("--form", "-f", help="Only this form")] = None,
) -> None:
    """List fields or reports."""
    try:
        workspace = get_workspace(definitions_dir)
    except Exception as e:
        console.print(f"[red]Error loading definitions: {e}[/red]")
        raise typer.Exit(1)

    if item_type == "fields":
        try:
            _list_fields(workspace, form)
        except KeyError as e:
            console.print(f"[red]{e.args[0]}[/red]")
            raise typer.Exit(1)
    elif item_type == "reports":
        _list_reports(workspace)
    else:
        console.print(f"[red]Unknown type: {item_type}. Use: fields, reports[/red]")
        raise typer.Exit(1)


def _list_fields(workspace: ReportWorkspace, form_id: str | None) -> None:
    fields = workspace.list_fields(form_id)

    if not fields:
        console.print("[yellow]No fields defined[/yellow]")
        return

    table = Table(title="Fields")
    table.add_column("Form", style="yellow")
    table.add_column("Id", style="cyan")
    table.add_column("Label")
    table.add_column("Category", style="green")
    table.add_column("Kind")

    for field in fields:
        table.add_row(field["form"], field["id"], field["label"], field["category"], field["kind"])

    console.print(table)


def _list_reports(workspace: ReportWorkspace) -> None:
    reports = workspace.list_reports()

    if not reports:
        console.print("[yellow]No reports defined[/yellow]")
        return

    table = Table(title="Reports")
    table.add_column("Name", style="cyan")
    table.add_column("Form", style="yellow")
    table.add_column("Title")
    table.add_column("Description")

    for report in reports:
        table.add_row(
            report["name"],
            report["form"] or "-",
            report["title"] or "-",
            report["description"] or "-",
        )

    console.print(table)


@app.command()
def run(
    report: Annotated[str, typer.Argument(help="Report name")],
    definitions_dir: DirOption = Path("./definitions"),
    data: Annotated[
        list[str] | None, typer.Option("--data", help="form=path of a csv/parquet/json file")
    ] = None,
    drill: Annotated[
        list[str] | None, typer.Option("--drill", help="field=label drilldown pin, as shown in the output")
    ] = None,
    db_path: Annotated[str | None, typer.Option("--db", help="DuckDB database path")] = None,
    output: Annotated[str, typer.Option("--output", "-o", help="Output: table or json")] = "table",
) -> None:
    """Run a stored report over data files."""
    data_pairs = _parse_pairs(data, "--data")
    drill_pairs = _parse_pairs(drill, "--drill")

    try:
        workspace = get_workspace(definitions_dir, db_path)
    except Exception as e:
        console.print(f"[red]Error loading definitions: {e}[/red]")
        raise typer.Exit(1)

    try:
        for form_id, path in data_pairs:
            workspace.load_rows(form_id, path)
        # pins are given as the labels the table output shows
        stack = DrilldownStack()
        for field_id, label in drill_pairs:
            stack = workspace.drill(report, field_id, label, stack)
        result = workspace.run(report, stack)
    except Exception as e:
        console.print(f"[red]Report error: {e}[/red]")
        raise typer.Exit(1)
    finally:
        workspace.close()

    _output_result(result, output, report)


def _output_result(result: ReportResult, output_format: str, title: str) -> None:
    """Output a report result in the specified format."""
    if output_format == "json":
        console.print_json(json.dumps(result.model_dump(mode="json"), default=str))
        return

    for note in _result_notes(result):
        console.print(f"[yellow]{note}[/yellow]")

    if result.mode == ResultMode.TABLE:
        columns: list[str] = []
        for row in result.rows:
            columns.extend(key for key in row.values if key not in columns)
        table = Table(title=f"{title} ({result.row_count} rows)")
        table.add_column("id", style="cyan")
        for column in columns:
            table.add_column(column)
        for row in result.rows:
            table.add_row(row.id, *[_cell(row.values.get(column)) for column in columns])
        console.print(table)
        return

    table = Table(title=f"{title} ({len(result.buckets)} groups, {result.row_count} rows)")
    for dimension in result.dimensions:
        table.add_column(dimension, style="cyan")
    for key in result.metric_keys:
        table.add_column(key, style="green", justify="right")
    table.add_column("count", justify="right")
    for bucket in result.buckets:
        table.add_row(
            *bucket.dimension_key,
            *[format_number(bucket.values.get(key, 0.0)) for key in result.metric_keys],
            str(bucket.count),
        )
    console.print(table)


def _result_notes(result: ReportResult) -> list[str]:
    notes = []
    if result.filter_validation is not None and not result.filter_validation.valid:
        notes.append(f"Filter logic ignored: {result.filter_validation.error}")
    if result.join_warning:
        notes.append(f"Join warning: {result.join_warning}")
    if result.used_fallback:
        notes.append("No compatible join fields found, all fields were offered")
    if result.cross_ref_linked is False:
        notes.append("Cross-reference not linked: target form has no rows")
    return notes


def _cell(value: object) -> str:
    if value is None:
        return "-"
    if isinstance(value, float):
        return format_number(value)
    return str(value)


@app.command()
def validate(
    definitions_dir: DirOption = Path("./definitions"),
) -> None:
    """Validate all form and report definitions."""
    try:
        workspace = get_workspace(definitions_dir)
    except Exception as e:
        console.print(f"[red]Error loading definitions: {e}[/red]")
        raise typer.Exit(1)

    errors = workspace.validate()

    if errors:
        console.print("[red]Validation failed:[/red]")
        for error in errors:
            console.print(f"  - {error}")
        raise typer.Exit(1)
    else:
        form_count = len(workspace.registry.forms)
        report_count = len(workspace.registry.reports)
        console.print(
            f"[green]Validated {form_count} forms and "
            f"{report_count} reports successfully![/green]"
        )


@app.command("check-logic")
def check_logic(
    expression: Annotated[str, typer.Argument(help="Filter logic, e.g. '(1 AND 2) OR 3'")],
    conditions: Annotated[
        int, typer.Option("--conditions", "-n", help="Number of filter conditions")
    ] = 0,
) -> None:
    """Check a filter logic expression against a number of conditions."""
    validation = FilterExpressionEvaluator().validate(expression, conditions)
    if not validation.valid:
        console.print(f"[red]Invalid: {validation.error}[/red]")
        raise typer.Exit(1)
    refs = ", ".join(str(index) for index in validation.referenced_indices)
    console.print(f"[green]Valid[/green] (references conditions {refs})")


@app.command()
def joinable(
    primary: Annotated[str, typer.Argument(help="Primary form id")],
    secondary: Annotated[str, typer.Argument(help="Secondary form id")],
    definitions_dir: DirOption = Path("./definitions"),
) -> None:
    """Show which primary fields can be joined to the secondary form."""
    try:
        workspace = get_workspace(definitions_dir)
        selection = workspace.joinable_fields(primary, secondary)
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    if selection.used_fallback:
        console.print("[yellow]No compatible fields, showing all fields[/yellow]")

    resolver = workspace.planner.resolver
    table = Table(title=f"Joinable fields: {primary} -> {secondary}")
    table.add_column("Field", style="cyan")
    table.add_column("Category", style="green")
    table.add_column("Partners")
    secondary_fields = workspace.registry.fields_for(secondary)
    for descriptor in selection.fields:
        partners = resolver.compatible_fields(descriptor, secondary_fields)
        names = ", ".join(candidate.id for candidate in partners.fields)
        table.add_row(descriptor.id, resolver.normalize(descriptor).value, names or "-")
    console.print(table)


if __name__ == "__main__":
    app()
