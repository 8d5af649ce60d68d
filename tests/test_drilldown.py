"""Tests for the drilldown stack."""

import pytest
from pydantic import ValidationError

from formlens.engine.drilldown import DrilldownFilter, DrilldownStack
from formlens.models import FieldDescriptor, Row


class TestStack:
    def test_click_is_idempotent(self):
        """Clicking the same value twice leaves a single pin."""
        stack = DrilldownStack().click("status", "Done").click("status", "Done")
        assert len(stack) == 1
        assert stack.field_ids == ["status"]

    def test_click_replaces_in_place(self):
        """Re-clicking a field moves its pin without changing position."""
        stack = DrilldownStack().click("region", "n").click("status", "open").click("region", "s")
        assert stack.field_ids == ["region", "status"]
        assert stack.get("region").value == "s"

    def test_stack_is_immutable(self):
        """Operations return new stacks."""
        empty = DrilldownStack()
        clicked = empty.click("region", "n")
        assert len(empty) == 0
        assert len(clicked) == 1

    def test_remove_and_reset(self):
        stack = DrilldownStack().click("a", 1).click("b", 2)
        assert stack.remove("a").field_ids == ["b"]
        assert stack.remove("zzz").field_ids == ["a", "b"]
        assert len(stack.reset()) == 0

    def test_label_defaults_to_value(self):
        assert DrilldownStack().click("n", 3.0).get("n").label == "3"
        assert DrilldownStack().click("region", "n", "North").get("region").label == "North"

    def test_duplicate_fields_rejected(self):
        with pytest.raises(ValidationError):
            DrilldownStack(
                filters=(
                    DrilldownFilter(field_id="a", value=1),
                    DrilldownFilter(field_id="a", value=2),
                )
            )


class TestApply:
    def test_and_of_all_pins(self, order_rows):
        """A row must match every pin."""
        stack = DrilldownStack().click("region", "n").click("status", "closed")
        assert [r.id for r in stack.apply(order_rows)] == ["o3"]

    def test_exact_value_only(self):
        """A pin never matches a row whose option label equals the pinned value."""
        grade = FieldDescriptor(
            id="grade",
            category="select",
            options=[{"value": "a", "label": "b"}, {"value": "b", "label": "c"}],
        )
        rows = [Row(id="r1", values={"grade": "a"}), Row(id="r2", values={"grade": "b"})]
        assert [r.id for r in DrilldownStack().click("grade", "b").apply(rows)] == ["r2"]
        assert [r.id for r in DrilldownStack().click_label("grade", "b", grade).apply(rows)] == ["r1"]

    def test_string_comparison(self):
        """Values are compared after stringification."""
        rows = [Row(id="r1", values={"n": 5}), Row(id="r2", values={"n": 6})]
        assert [r.id for r in DrilldownStack().click("n", "5").apply(rows)] == ["r1"]

    def test_empty_stack_keeps_everything(self, order_rows):
        assert DrilldownStack().apply(order_rows) == order_rows


class TestClickLabel:
    def test_option_label_pins_stored_value(self, order_rows, field_map):
        """Clicking a bucket label pins the option value behind it."""
        stack = DrilldownStack().click_label("region", "North", field_map["region"])
        assert stack.get("region").value == "n"
        assert stack.get("region").label == "North"
        assert [r.id for r in stack.apply(order_rows)] == ["o1", "o3"]

    def test_not_specified_pins_empty(self, order_rows, field_map):
        stack = DrilldownStack().click_label("region", "Not Specified", field_map["region"])
        assert stack.get("region").value is None
        assert [r.id for r in stack.apply(order_rows)] == ["o4"]

    def test_unknown_label_kept_as_value(self, order_rows):
        """Fields without options pin the label text itself."""
        stack = DrilldownStack().click_label("customer", "c2")
        assert [r.id for r in stack.apply(order_rows)] == ["o2"]


class TestLevels:
    LEVELS = ["region", "status", "customer"]

    def test_next_level(self):
        stack = DrilldownStack()
        assert stack.next_level(self.LEVELS) is None
        stack = stack.click("region", "n")
        assert stack.next_level(self.LEVELS) == "status"
        stack = stack.click("status", "open")
        assert stack.next_level(self.LEVELS) == "customer"

    def test_fully_drilled_returns_to_top(self):
        """Once every level is pinned the chart groups by the top level again."""
        stack = DrilldownStack().click("region", "n").click("status", "open").click("customer", "c1")
        assert stack.depth(self.LEVELS) == 3
        assert stack.next_level(self.LEVELS) == "region"

    def test_pins_outside_levels_ignored(self):
        """Only pins on the levels themselves count toward depth."""
        stack = DrilldownStack().click("amount", 10)
        assert stack.depth(self.LEVELS) == 0
        assert stack.next_level(self.LEVELS) is None
        assert stack.click("region", "n").next_level(self.LEVELS) == "status"

    def test_out_of_order_pin_does_not_advance(self):
        """A pin on a lower level without the levels above it stays at the top."""
        stack = DrilldownStack().click("status", "open")
        assert stack.depth(self.LEVELS) == 0
        assert stack.next_level(self.LEVELS) is None
        stack = stack.click("region", "n")
        assert stack.depth(self.LEVELS) == 2
        assert stack.next_level(self.LEVELS) == "customer"
