"""
ShokarrFin - Shoko series and watch state for Jellyfin
"""

__version__ = "0.1.0"
