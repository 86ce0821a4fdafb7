"""
Port interfaces for GeoShade hexagonal architecture.

This module defines the port interfaces (Protocols) that define
the contracts between the core domain and external adapters.
"""

from .provider import DataProviderPort

__all__ = ["DataProviderPort"]
