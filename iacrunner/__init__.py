"""
iacrunner - Infrastructure-as-Code Run Agent

Runs an IaC tool (plan/apply/destroy) on behalf of a remote control plane,
streaming logs and reporting results, while staying cancellable mid-run.

Architecture:
- Each module is self-contained with clear interfaces
- Modules are completely replaceable
- No module knows the internals of another
- All communication through defined interfaces

Modules:
- api: Wire models for the control plane
- callback: Status, outputs and log delivery
- config: Remote execution config fetch
- cancel: Cancellation token and remote cancellation watcher
- logstream: Ordered, batched log streaming
- executor: IaC subprocess execution and output parsing
- terraform: Tool resolution and input file materialization
- source: Source tree preparation
- runner: Run orchestration (managed and local)
"""

__version__ = "1.0.0"
