"""
epg.services

Lifecycle services.

Responsibilities:
- Provisioning orchestration (install, start, reconcile, activate, pool).
- Signal-driven shutdown coordination.
"""

# Package marker.
