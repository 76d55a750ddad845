"""
Nyanbar - anime metadata browser and torrent finder.
"""
