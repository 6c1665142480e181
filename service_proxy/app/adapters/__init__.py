"""
Adapters package for the proxy connector.

Contains the HTTP client wrapper for the identity platform. It
encapsulates base URLs and request shapes, token exchange, pagination,
and error handling that maps to shared errors.
"""

from .isc_client import ISCClient

__all__ = ["ISCClient"]
