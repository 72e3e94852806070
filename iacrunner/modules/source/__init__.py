"""
Source Module - Black Box Interface

Purpose: Fetch IaC source code into a temporary working tree
Interface: prepare(), remove_tree(); PreparedSource
Hidden: git invocation, ref fallback strategy, temp directory layout

Can be extended with other source types (archives, object storage).
"""

from .clone import PreparedSource, prepare, remove_tree

__all__ = ["PreparedSource", "prepare", "remove_tree"]
