"""
Observability for GeoShade.

This module contains loguru logging setup and Prometheus metrics.
"""

from .logging_setup import get_logger, setup_logging_dev, with_context

__all__ = ["get_logger", "setup_logging_dev", "with_context"]
