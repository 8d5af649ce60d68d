"""Basic usage example for formlens.

run `python data/generate_sample_data.py data/` first to create the exports.
"""

from pathlib import Path

from formlens import ReportWorkspace

ROOT = Path(__file__).parent.parent


def main():
    """Demonstrate formlens capabilities."""
    ws = ReportWorkspace(ROOT / "examples" / "definitions")

    # one export per form, in whatever format the backend produced
    ws.load_rows("orders", ROOT / "data" / "orders.csv")
    ws.load_rows("customers", ROOT / "data" / "customers.parquet")
    ws.load_rows("projects", ROOT / "data" / "projects.csv")
    ws.load_rows("tasks", ROOT / "data" / "tasks.json")

    print("=" * 60)
    print("formlens Demo")
    print("=" * 60)

    # 1. Grouped report with two metrics
    print("\n1. Revenue by region and status:")
    result = ws.run("revenue_by_region")
    for bucket in result.buckets:
        region, status = bucket.dimension_key
        print(
            f"   {region:<14} {status:<7} sum ${bucket.values['sum_amount']:>10,.2f}"
            f"   avg ${bucket.values['avg_amount']:>7,.2f}   ({bucket.count} orders)"
        )

    # 2. Drilldown: click on North, then on closed
    print("\n2. Drilling into North -> closed:")
    stack = ws.drill("revenue_by_region", "region", "North")
    result = ws.run("revenue_by_region", stack)
    print(f"   now grouped by {result.dimensions[0]}, {len(result.buckets)} buckets")
    stack = ws.drill("revenue_by_region", "status", "closed", stack)
    result = ws.run("revenue_by_region", stack)
    print(f"   now grouped by {result.dimensions[0]}, top 3:")
    top = sorted(result.buckets, key=lambda b: b.value, reverse=True)[:3]
    for bucket in top:
        print(f"   {bucket.dimension_key[0]}: ${bucket.value:,.2f}")

    # 3. Manual filter logic
    print("\n3. Open orders that are large or rush, per region:")
    result = ws.run("big_or_rush")
    for bucket in result.buckets:
        print(f"   {bucket.dimension_key[0]}: {bucket.value:.0f}")

    # 4. Join with another form
    print("\n4. Revenue by customer tier (left join):")
    result = ws.run("revenue_by_tier")
    for bucket in result.buckets:
        print(f"   {bucket.dimension_key[0]}: ${bucket.value:,.2f}")
    if result.join_warning:
        print(f"   warning: {result.join_warning}")

    # 5. Cross-reference
    print("\n5. Task hours per project (first 5):")
    result = ws.run("hours_per_project")
    for bucket in result.buckets[:5]:
        print(f"   {bucket.dimension_key[0]}: {bucket.value:.0f}h")

    # 6. Table mode
    print("\n6. Open orders (raw rows):")
    result = ws.run("open_orders")
    print(f"   {result.row_count} rows, first: {result.rows[0].id if result.rows else '-'}")

    # 7. Memoization key
    print("\n7. Cache key for revenue_by_region:")
    print(f"   {ws.cache_key('revenue_by_region')[:16]}...")

    print("\n" + "=" * 60)
    print("Demo complete!")
    print("=" * 60)

    ws.close()


if __name__ == "__main__":
    main()
