"""
epg.api

HTTP service layer.

Responsibilities:
- FastAPI app factory and router modules.
- uvicorn server wiring that leaves signal handling to the shutdown coordinator.
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# The API layer stays thin: one catalog query plus health probes.
