"""
Reconciliation of identities' effective proxy entitlements.
"""

from .reconciler import ProxyStateReconciler

__all__ = ["ProxyStateReconciler"]
