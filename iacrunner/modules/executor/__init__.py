"""
Executor Module - Black Box Interface

Purpose: Run IaC tool subcommands and normalize their output
Interface: TerraformExecutor.init(), run(); ExecutionResult; parsing helpers
Hidden: Process spawning, output teeing, exit code interpretation, delta extraction

Can be replaced with a different IaC tool driver exposing the same result type.
"""

from .executor import AUTOMATION_ENV, PLAN_FILE, Invocation, TerraformExecutor
from .parsing import count_plan_changes, decode_plan, parse_summary_counts
from .result import ExecutionResult, ResourceDelta, Run

__all__ = [
    "AUTOMATION_ENV",
    "PLAN_FILE",
    "ExecutionResult",
    "Invocation",
    "ResourceDelta",
    "Run",
    "TerraformExecutor",
    "count_plan_changes",
    "decode_plan",
    "parse_summary_counts",
]
