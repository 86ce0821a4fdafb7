"""
Adapters for GeoShade.

This module contains adapters that implement the port interfaces
for external systems.
"""

from .openmeteo import OpenMeteoClient

__all__ = ["OpenMeteoClient"]
