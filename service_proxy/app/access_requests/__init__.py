"""
Approval-gated access requests for proxy entitlement changes.
"""

from .orchestrator import AccessRequestOrchestrator, AccessRequestType

__all__ = ["AccessRequestOrchestrator", "AccessRequestType"]
