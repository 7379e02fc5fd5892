"""
JellyPot Bridge package.

Plays Jellyfin items in PotPlayer and reports playback progress back to the server.
"""

__version__ = "1.0.0"
__author__ = "Hattiss"

from .main import JellyPotBridge, main

__all__ = [
    'JellyPotBridge',
    'main',
]
