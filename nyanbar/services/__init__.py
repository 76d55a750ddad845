"""
Services for Nyanbar: torrent search, metadata, watch list and episode checks.
"""
