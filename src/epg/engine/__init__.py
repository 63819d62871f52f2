"""
epg.engine

Managed PostgreSQL engine: binaries, data directory, process lifecycle.

Responsibilities:
- Download and unpack pinned PostgreSQL binaries.
- Own the engine process through an explicit state machine.
- Run administrative statements against the running engine.
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# Import `epg.engine.handle.PostgreSQL` directly; this package stays side-effect free
# because `epg.settings` imports `epg.engine.version`.
