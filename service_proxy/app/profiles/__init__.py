"""
Optional access profiles mirroring the synthetic hierarchy.
"""

from .synchronizer import AccessProfileSynchronizer, build_entitlement_refs

__all__ = ["AccessProfileSynchronizer", "build_entitlement_refs"]
