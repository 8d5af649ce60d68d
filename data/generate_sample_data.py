"""Generate sample form submissions for formlens demos and manual testing."""

import random
from datetime import datetime, timedelta
from pathlib import Path

import duckdb


def generate_sample_data(output_dir: Path | None = None) -> duckdb.DuckDBPyConnection:
    """Generate sample submissions for the example forms.

    Args:
        output_dir: Directory to write the exports to, or None for in-memory only.

    Returns:
        DuckDB connection with one table per form.
    """
    random.seed(42)  # reproducible data

    conn = duckdb.connect(":memory:")

    conn.execute("""
        CREATE TABLE orders (
            id VARCHAR PRIMARY KEY,
            ref_id VARCHAR,
            submitted_at TIMESTAMP,
            amount DECIMAL(10, 2),
            region VARCHAR,
            status VARCHAR,
            customer VARCHAR,
            rush BOOLEAN
        )
    """)
    conn.executemany("INSERT INTO orders VALUES (?, ?, ?, ?, ?, ?, ?, ?)", generate_orders(500))

    conn.execute("""
        CREATE TABLE customers (
            id VARCHAR PRIMARY KEY,
            customer_id VARCHAR,
            tier VARCHAR,
            country VARCHAR
        )
    """)
    conn.executemany("INSERT INTO customers VALUES (?, ?, ?, ?)", generate_customers(120))

    conn.execute("""
        CREATE TABLE tasks (
            id VARCHAR PRIMARY KEY,
            ref_id VARCHAR,
            title VARCHAR,
            hours INTEGER
        )
    """)
    tasks = generate_tasks(200)
    conn.executemany("INSERT INTO tasks VALUES (?, ?, ?, ?)", tasks)

    conn.execute("CREATE TABLE projects (id VARCHAR PRIMARY KEY, name VARCHAR, tasks VARCHAR)")
    conn.executemany("INSERT INTO projects VALUES (?, ?, ?)", generate_projects(25, tasks))

    if output_dir:
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        # one of each export format the row source reads
        conn.execute(f"COPY orders TO '{output_dir}/orders.csv' (HEADER, DELIMITER ',')")
        conn.execute(f"COPY customers TO '{output_dir}/customers.parquet' (FORMAT PARQUET)")
        conn.execute(f"COPY tasks TO '{output_dir}/tasks.json' (FORMAT JSON, ARRAY true)")
        conn.execute(f"COPY projects TO '{output_dir}/projects.csv' (HEADER, DELIMITER ',')")
        print(f"Data exported to {output_dir}")

    return conn


def generate_orders(count: int) -> list[tuple]:
    """Generate order submissions. roughly one in ten has no region."""
    regions = ["n", "n", "s", "e", "w", None]
    statuses = ["open", "closed", "closed", "closed"]

    start = datetime(2026, 1, 1, 8, 0)
    orders = []
    for i in range(1, count + 1):
        orders.append(
            (
                f"ord-{i}",
                f"ORD-{i:04d}",
                start + timedelta(hours=random.randint(0, 24 * 280)),
                round(random.uniform(10, 500), 2),
                random.choice(regions),
                random.choice(statuses),
                f"c{random.randint(1, 150)}",  # some customers don't exist - try a left join
                random.random() < 0.2,
            )
        )
    return orders


def generate_customers(count: int) -> list[tuple]:
    tiers = ["gold", "silver", "silver", "bronze", "bronze", "bronze"]
    countries = ["US", "US", "UK", "DE", "FR", "CA"]
    return [
        (f"cust-{i}", f"c{i}", random.choice(tiers), random.choice(countries))
        for i in range(1, count + 1)
    ]


def generate_tasks(count: int) -> list[tuple]:
    titles = ["design", "build", "review", "test", "ship", "document"]
    return [
        (f"task-{i}", f"T-{i:04d}", random.choice(titles), random.randint(1, 16))
        for i in range(1, count + 1)
    ]


def generate_projects(count: int, tasks: list[tuple]) -> list[tuple]:
    """Projects link to a random handful of tasks through a reference list."""
    names = ["Apollo", "Gemini", "Mercury", "Artemis", "Voyager", "Pioneer", "Viking"]
    projects = []
    for i in range(1, count + 1):
        linked = random.sample(tasks, k=random.randint(0, 8))
        projects.append(
            (
                f"proj-{i}",
                f"{random.choice(names)} {i}",
                ", ".join(task[1] for task in linked),
            )
        )
    return projects


if __name__ == "__main__":
    import sys

    output_dir = Path(sys.argv[1]) if len(sys.argv) > 1 else Path(__file__).parent
    conn = generate_sample_data(output_dir)

    for table in ("orders", "customers", "projects", "tasks"):
        result = conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()
        print(f"Generated {result[0]} {table}")

    conn.close()
