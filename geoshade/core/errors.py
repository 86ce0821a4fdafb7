"""
Error taxonomy for GeoShade.

Geometry errors are user-facing and reject a mutation outright.
Store errors describe benign conflicts the session logs and absorbs.
Sample failures are per-point and never leave the orchestrator.
"""

from typing import Optional


class GeoShadeError(Exception):
    """GeoShade 공통 예외"""


class GeometryError(GeoShadeError):
    """폴리곤 형상 검증 실패"""

    def __init__(self, count: int, message: str):
        super().__init__(message)
        self.count = count


class TooFewVertices(GeometryError):
    """꼭짓점이 최소 개수보다 적음"""

    def __init__(self, count: int, minimum: int):
        super().__init__(count, f"Polygon must have at least {minimum} vertices (got {count})")
        self.minimum = minimum


class TooManyVertices(GeometryError):
    """꼭짓점이 최대 개수보다 많음"""

    def __init__(self, count: int, maximum: int):
        super().__init__(count, f"Polygon cannot have more than {maximum} vertices (got {count})")
        self.maximum = maximum


class PolygonStoreError(GeoShadeError):
    """폴리곤 저장소 오류"""

    def __init__(self, polygon_id: str, message: str):
        super().__init__(message)
        self.polygon_id = polygon_id


class DuplicateGeometry(PolygonStoreError):
    """동일한 꼭짓점 순서를 가진 폴리곤이 이미 존재함"""

    def __init__(self, polygon_id: str, existing_id: str):
        super().__init__(polygon_id, f"Polygon {polygon_id} duplicates the geometry of {existing_id}")
        self.existing_id = existing_id


class DuplicateId(PolygonStoreError):
    """같은 id 의 폴리곤이 이미 존재함"""

    def __init__(self, polygon_id: str):
        super().__init__(polygon_id, f"Polygon id already in use: {polygon_id}")


class NotFound(PolygonStoreError):
    """id 에 해당하는 폴리곤이 없음"""

    def __init__(self, polygon_id: str):
        super().__init__(polygon_id, f"Polygon not found: {polygon_id}")


class UnknownDataSource(GeoShadeError, ValueError):
    """설정되지 않은 데이터 소스"""

    def __init__(self, data_source: str):
        super().__init__(f"Unknown data source: {data_source}")
        self.data_source = data_source


class SampleFailure(GeoShadeError):
    """
    개별 샘플 포인트 요청 실패.

    오케스트레이터 내부에서 생성되어 기록만 되며 호출자에게 전파되지 않습니다.
    """

    def __init__(self, polygon_id: str, data_source: str, point, cause: Optional[BaseException] = None):
        reason = f"{type(cause).__name__}: {cause}" if cause is not None else "no data"
        super().__init__(f"Sample failed for {polygon_id} ({data_source}) at {point.lat},{point.lng}: {reason}")
        self.polygon_id = polygon_id
        self.data_source = data_source
        self.point = point
        self.cause = cause
