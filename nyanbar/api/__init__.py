"""
HTTP API routers for Nyanbar.
"""
