from .client import OpenMeteoClient, mean_of_series, resolve_range

__all__ = ["OpenMeteoClient", "mean_of_series", "resolve_range"]
