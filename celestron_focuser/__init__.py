"""
Celestron SCT / EdgeHD Focuser Motion Core.

Drives the Celestron focuser motor controller over the AUX serial bus:
absolute and relative moves, abort, hardware limits and motion polling.
"""

__version__ = "1.0.0"
__author__ = "Samuele Vecchi"
__email__ = "noreply@example.com"
