from .polygon_store import PolygonStore, new_polygon_id

__all__ = ["PolygonStore", "new_polygon_id"]
