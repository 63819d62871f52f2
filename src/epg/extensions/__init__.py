"""
epg.extensions

Compiled extension installation.

Responsibilities:
- Fetch extension artifacts and stage them in the engine installation.
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# Staging is not activation: the provisioner restarts the engine and runs
# CREATE EXTENSION afterwards (see `epg.services.provisioning`).
