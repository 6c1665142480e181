"""
Proxy Entitlements connector package.

Proxy entitlements are synthetic, requestable entitlements standing in for
one or more sensitive entitlements on a monitored source. Assigning one
triggers an approval-gated access request for the real entitlements
instead of granting them directly. This package provides:

- app.main: Host-facing command surface and health.
- app.connector: The five connector commands.
- app.hierarchy: Name parsing and the product -> role -> leaf hierarchy.
- app.reconcile: Effective proxy entitlements of each identity.
- app.access_requests: Resolution and submission of access requests.
- app.profiles: Optional access profiles mirroring the hierarchy.
- app.adapters: REST client for the identity platform.

Guidelines:
- The service is stateless; every command re-reads platform state.
- Commands run sequentially, one remote call at a time.
"""
