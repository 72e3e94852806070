"""
Resource delta extraction.

Two independent paths feed the same ResourceDelta:

- count_plan_changes() walks the structured plan from `show -json`.
- parse_summary_counts() scans the free-text summary printed by
  apply and destroy, e.g.

    Apply complete! Resources: 1 added, 0 changed, 0 destroyed.
    Destroy complete! Resources: 3 destroyed.

Both are pure functions over captured output.
"""

import json
import re
from typing import Any, Dict, Mapping, Optional

from .result import ResourceDelta

SUMMARY_RE = re.compile(r"(\d+) added, (\d+) changed, (\d+) destroyed")
DESTROY_ONLY_RE = re.compile(r"Resources: (\d+) destroyed")

CREATE = "create"
UPDATE = "update"
DELETE = "delete"


def decode_plan(plan_json: str) -> Optional[Dict[str, Any]]:
    """Decode `show -json` output; None if it is not a JSON object."""
    try:
        plan = json.loads(plan_json)
    except ValueError:
        return None
    return plan if isinstance(plan, dict) else None


def count_plan_changes(plan: Mapping[str, Any]) -> ResourceDelta:
    """
    Count proposed changes by action set.

    {create} adds, {update} changes, {delete} destroys; a set holding both
    create and delete is a replacement and counts as one add and one destroy.
    Anything else (no-op, read) counts nothing.
    """
    delta = ResourceDelta()

    for resource_change in plan.get("resource_changes") or []:
        change = resource_change.get("change") or {}
        actions = frozenset(change.get("actions") or [])

        if actions == {CREATE}:
            delta.add += 1
        elif actions == {UPDATE}:
            delta.change += 1
        elif actions == {DELETE}:
            delta.destroy += 1
        elif CREATE in actions and DELETE in actions:
            delta.add += 1
            delta.destroy += 1

    return delta


def parse_summary_counts(output: str) -> ResourceDelta:
    """
    Extract counts from apply/destroy summary lines.

    The last matching line wins.
    """
    delta = ResourceDelta()

    for line in output.splitlines():
        match = SUMMARY_RE.search(line)
        if match:
            delta = ResourceDelta(
                add=int(match.group(1)),
                change=int(match.group(2)),
                destroy=int(match.group(3)),
            )
            continue

        match = DESTROY_ONLY_RE.search(line)
        if match:
            delta = ResourceDelta(destroy=int(match.group(1)))

    return delta
