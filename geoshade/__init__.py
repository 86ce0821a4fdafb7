"""
GeoShade: threshold-colored map polygons backed by sampled weather data.
"""

__version__ = "0.1.0"
