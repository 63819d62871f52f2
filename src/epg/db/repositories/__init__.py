"""
epg.db.repositories

Repository layer (raw SQL over SQLAlchemy async engines).
"""

# Package marker.
