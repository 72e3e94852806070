"""
Runner Module - Black Box Interface

Purpose: Drive one run from config fetch to final status report
Interface: RunOrchestrator.run(), run_local(); RunPhase
Hidden: Phase sequencing, cleanup ordering, failure reporting

Collaborators (config fetch, tool resolution, source preparation) are
injectable, so the orchestrator can be exercised without a control plane.
"""

from .orchestrator import RunOrchestrator, RunPhase, run_local

__all__ = ["RunOrchestrator", "RunPhase", "run_local"]
