"""
External lookup collaborators.

Available sources:
- PostcodesIoGeocoder: postcode coordinates from api.postcodes.io
"""

from .geocoder import Coordinates, Geocoder, PostcodesIoGeocoder

__all__ = [
    "Coordinates",
    "Geocoder",
    "PostcodesIoGeocoder",
]
