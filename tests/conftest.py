"""Pytest fixtures for formlens tests."""

from collections.abc import Generator
from datetime import datetime
from pathlib import Path

import pytest

from formlens.models import FieldDescriptor, Row
from formlens.parser.loader import DefinitionRegistry
from formlens.workspace import ReportWorkspace


@pytest.fixture
def sample_definitions_yaml() -> str:
    """Forms and reports used across the tests."""
    return """
forms:
  - id: orders
    name: Orders
    fields:
      - {id: order_no, label: Order No, type: text}
      - {id: amount, label: Amount, type: currency}
      - id: region
        label: Region
        type: select
        options:
          - {value: n, label: North}
          - {value: s, label: South}
      - {id: status, label: Status, type: dropdown, options: [open, closed]}
      - {id: customer, label: Customer, type: text}
      - {id: placed_on, label: Placed On, type: date}
      - {id: rush, label: Rush, type: toggle}
      - {id: tags, label: Tags, type: checkbox, options: [gift, bulk]}

  - id: customers
    name: Customers
    fields:
      - {id: customer_id, label: Customer Id, type: text}
      - {id: tier, label: Tier, type: select, options: [gold, silver]}

  - id: projects
    name: Projects
    fields:
      - {id: name, label: Name, type: text}
      - {id: tasks, label: Tasks, type: cross-reference}

  - id: tasks
    name: Tasks
    fields:
      - {id: title, label: Title, type: text}
      - {id: hours, label: Hours, type: number}

reports:
  - name: revenue_by_region
    description: "Order revenue per region"
    config:
      title: Revenue by region
      formId: orders
      metrics: [amount]
      dimensions: [region]

  - name: open_or_big
    config:
      formId: orders
      metrics: [amount]
      dimensions: [status]
      filters:
        - {field: status, operator: equals, value: open}
        - {field: amount, operator: greater_than, value: 25}
      filterLogicExpression: "1 OR 2"
      useManualFilterLogic: true

  - name: revenue_by_tier
    config:
      formId: orders
      metricAggregations:
        - {field: amount, aggregation: sum}
      dimensions: [customers.tier]
      joinConfig:
        secondaryFormId: customers
        joinType: inner
        primaryFieldId: customer
        secondaryFieldId: customer_id

  - name: tasks_per_project
    config:
      formId: projects
      crossRefConfig:
        crossRefFieldId: tasks
        targetFormId: tasks
        mode: count
        sourceLabelFieldId: name
"""


@pytest.fixture
def definitions_dir(tmp_path: Path, sample_definitions_yaml: str) -> Path:
    """Temporary directory with the sample definitions."""
    definitions = tmp_path / "definitions"
    definitions.mkdir()
    (definitions / "forms.yaml").write_text(sample_definitions_yaml)
    return definitions


@pytest.fixture
def registry(definitions_dir: Path) -> DefinitionRegistry:
    registry = DefinitionRegistry()
    registry.load_directory(definitions_dir)
    return registry


@pytest.fixture
def fields(registry: DefinitionRegistry) -> list[FieldDescriptor]:
    return registry.all_fields()


@pytest.fixture
def field_map(fields: list[FieldDescriptor]) -> dict[str, FieldDescriptor]:
    return {descriptor.id: descriptor for descriptor in fields}


@pytest.fixture
def order_rows() -> list[Row]:
    """Four orders with amounts 10, 20, 30, 40."""
    return [
        Row(
            id="o1",
            source_form_id="orders",
            ref_id="ORD-1",
            values={
                "order_no": "A-1",
                "amount": 10,
                "region": "n",
                "status": "open",
                "customer": "c1",
                "placed_on": "2026-10-01",
                "rush": True,
                "tags": ["gift"],
            },
        ),
        Row(
            id="o2",
            source_form_id="orders",
            ref_id="ORD-2",
            values={
                "order_no": "A-2",
                "amount": 20,
                "region": "s",
                "status": "closed",
                "customer": "c2",
                "placed_on": "2026-09-01",
                "rush": False,
                "tags": ["bulk"],
            },
        ),
        Row(
            id="o3",
            source_form_id="orders",
            ref_id="ORD-3",
            values={
                "order_no": "B-3",
                "amount": "30",
                "region": "n",
                "status": "closed",
                "customer": "C1",
                "placed_on": "2026-10-15",
                "rush": "no",
                "tags": ["gift", "bulk"],
            },
        ),
        Row(
            id="o4",
            source_form_id="orders",
            ref_id="ORD-4",
            values={
                "order_no": "B-4",
                "amount": {"amount": 40, "code": "USD"},
                "status": "open",
                "customer": "c3",
                "placed_on": "2026-10-17T09:30:00",
                "rush": "yes",
                "tags": [],
            },
        ),
    ]


@pytest.fixture
def customer_rows() -> list[Row]:
    return [
        Row(id="cust-1", source_form_id="customers", values={"customer_id": "c1", "tier": "gold"}),
        Row(id="cust-2", source_form_id="customers", values={"customer_id": "c2", "tier": "silver"}),
        Row(id="cust-4", source_form_id="customers", values={"customer_id": "c4", "tier": "gold"}),
    ]


@pytest.fixture
def project_rows() -> list[Row]:
    """Apollo links to three tasks, Gemini to none."""
    return [
        Row(id="p1", source_form_id="projects", values={"name": "Apollo", "tasks": "T-1, T-2, T-3"}),
        Row(id="p2", source_form_id="projects", values={"name": "Gemini", "tasks": []}),
    ]


@pytest.fixture
def task_rows() -> list[Row]:
    return [
        Row(id="t1", source_form_id="tasks", ref_id="T-1", values={"title": "design", "hours": 2}),
        Row(id="t2", source_form_id="tasks", ref_id="T-2", values={"title": "build", "hours": 3}),
        Row(id="t3", source_form_id="tasks", ref_id="T-3", values={"title": "ship", "hours": 5}),
    ]


@pytest.fixture
def all_rows(
    order_rows: list[Row],
    customer_rows: list[Row],
    project_rows: list[Row],
    task_rows: list[Row],
) -> list[Row]:
    return order_rows + customer_rows + project_rows + task_rows


@pytest.fixture
def workspace(
    definitions_dir: Path,
    order_rows: list[Row],
    customer_rows: list[Row],
    project_rows: list[Row],
    task_rows: list[Row],
) -> Generator[ReportWorkspace, None, None]:
    """Workspace with every sample form's rows loaded."""
    ws = ReportWorkspace(definitions_dir)
    ws.set_rows("orders", order_rows)
    ws.set_rows("customers", customer_rows)
    ws.set_rows("projects", project_rows)
    ws.set_rows("tasks", task_rows)
    yield ws
    ws.close()


@pytest.fixture
def orders_csv(tmp_path: Path) -> Path:
    """CSV export of the orders form."""
    path = tmp_path / "orders.csv"
    path.write_text(
        "id,order_no,amount,region,status,customer,submitted_at,ref_id\n"
        "o1,A-1,10,n,open,c1,2026-10-01 10:00:00,ORD-1\n"
        "o2,A-2,20,s,closed,c2,2026-09-01 11:00:00,ORD-2\n"
        "o3,B-3,30,n,closed,c1,2026-10-15 12:00:00,ORD-3\n"
    )
    return path


@pytest.fixture
def now() -> datetime:
    """Fixed evaluation time for relative date filters."""
    return datetime(2026, 10, 18, 12, 0, 0)
