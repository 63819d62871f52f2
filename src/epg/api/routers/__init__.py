"""
epg.api.routers

Route modules mounted by `epg.api.app.create_app`.
"""
