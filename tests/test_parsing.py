"""
Tests for resource delta extraction.

Covers structured plan counting (including replacements) and the
free-text apply/destroy summary scan.
"""

import json

import pytest

from iacrunner.modules.api.models import Operation
from iacrunner.modules.executor import (
    ExecutionResult,
    ResourceDelta,
    count_plan_changes,
    decode_plan,
    parse_summary_counts,
)


def change(*actions):
    return {"address": "x", "change": {"actions": list(actions)}}


# =============================================================================
# Structured plan
# =============================================================================

class TestCountPlanChanges:
    """Counting resource_changes action sets."""

    def test_one_of_each(self):
        plan = {"resource_changes": [change("create"), change("update"), change("delete")]}

        assert count_plan_changes(plan) == ResourceDelta(add=1, change=1, destroy=1)

    def test_replacement_counts_add_and_destroy(self):
        """Both orderings of a replacement count one add and one destroy."""
        plan = {
            "resource_changes": [
                change("delete", "create"),
                change("create", "delete"),
            ]
        }

        assert count_plan_changes(plan) == ResourceDelta(add=2, change=0, destroy=2)

    def test_noop_and_read_count_nothing(self):
        plan = {"resource_changes": [change("no-op"), change("read")]}

        assert count_plan_changes(plan) == ResourceDelta()

    def test_missing_or_null_changes(self):
        assert count_plan_changes({}) == ResourceDelta()
        assert count_plan_changes({"resource_changes": None}) == ResourceDelta()
        assert count_plan_changes({"resource_changes": [{"address": "a"}]}) == ResourceDelta()

    def test_worked_example(self):
        plan = {
            "resource_changes": [
                change("create"),
                change("create"),
                change("update"),
                change("delete"),
                change("delete", "create"),
            ]
        }

        assert count_plan_changes(plan) == ResourceDelta(add=3, change=1, destroy=2)

    def test_mixed_plan(self):
        plan = {
            "resource_changes": [
                change("create"),
                change("create"),
                change("update"),
                change("no-op"),
                change("delete", "create"),
            ]
        }

        delta = count_plan_changes(plan)

        assert (delta.add, delta.change, delta.destroy) == (3, 1, 1)
        assert delta.total == 5


class TestDecodePlan:
    def test_object(self):
        assert decode_plan(json.dumps({"format_version": "1.2"})) == {"format_version": "1.2"}

    @pytest.mark.parametrize("text", ["", "not json", "[1, 2]", "null"])
    def test_not_an_object(self, text):
        assert decode_plan(text) is None


# =============================================================================
# Summary text
# =============================================================================

class TestParseSummaryCounts:
    """Scanning apply/destroy summary lines."""

    def test_apply_summary(self):
        output = (
            "aws_instance.web: Creating...\n"
            "aws_instance.web: Creation complete after 2s\n"
            "\n"
            "Apply complete! Resources: 1 added, 0 changed, 0 destroyed.\n"
        )

        assert parse_summary_counts(output) == ResourceDelta(add=1, change=0, destroy=0)

    def test_destroy_only_summary(self):
        output = "Destroy complete! Resources: 3 destroyed.\n"

        assert parse_summary_counts(output) == ResourceDelta(add=0, change=0, destroy=3)

    def test_last_matching_line_wins(self):
        output = (
            "Resources: 1 added, 1 changed, 1 destroyed.\n"
            "Apply complete! Resources: 4 added, 5 changed, 6 destroyed.\n"
        )

        assert parse_summary_counts(output) == ResourceDelta(add=4, change=5, destroy=6)

    def test_no_summary(self):
        assert parse_summary_counts("No changes. Your infrastructure matches the configuration.") == ResourceDelta()
        assert parse_summary_counts("") == ResourceDelta()


class TestExecutionResult:
    def test_has_changes_only_for_plan_exit_2(self):
        assert ExecutionResult(operation=Operation.PLAN, exit_code=2).has_changes
        assert not ExecutionResult(operation=Operation.PLAN, exit_code=0).has_changes
        assert not ExecutionResult(operation=Operation.APPLY, exit_code=2).has_changes

    def test_resource_accessors(self):
        result = ExecutionResult(
            operation=Operation.APPLY, delta=ResourceDelta(add=1, change=2, destroy=3)
        )

        assert result.resources_to_add == 1
        assert result.resources_to_change == 2
        assert result.resources_to_destroy == 3
        assert result.outputs == {}
