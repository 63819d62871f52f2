"""
epg.db

Client-side database access (SQLAlchemy async over asyncpg).

Responsibilities:
- Connection pool adapter for the service layer.
- Read-only catalog queries used by the API.
"""

# Package marker.
