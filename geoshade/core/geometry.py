"""
Geometry validation and sample point derivation for GeoShade.

This module checks polygon cardinality, computes the bounding box
centroid used as the center sample, and derives the per-run
sample points of a polygon.
"""

from typing import List, Optional, Sequence, Tuple
from geoshade.core.errors import GeometryError, TooFewVertices, TooManyVertices
from geoshade.core.models import LatLng, Polygon, SampleKind, SamplePoint

MIN_VERTICES = 3
MAX_VERTICES = 12


def check(points: Sequence) -> Optional[GeometryError]:
    """
    꼭짓점 개수를 검사하고 오류를 반환합니다 (예외를 던지지 않음).

    Args:
        points: 링 순서의 꼭짓점 목록

    Returns:
        유효하면 None, 아니면 GeometryError
    """
    count = len(points)
    if count < MIN_VERTICES:
        return TooFewVertices(count, MIN_VERTICES)
    if count > MAX_VERTICES:
        return TooManyVertices(count, MAX_VERTICES)
    return None


def validate(points: Sequence) -> None:
    """
    꼭짓점 개수를 검사합니다.

    자기 교차 검사는 그리기 도구가 담당하므로 여기서는 개수만 확인합니다.

    Raises:
        TooFewVertices: 3개 미만
        TooManyVertices: 12개 초과
    """
    error = check(points)
    if error is not None:
        raise error


def bounding_box(points: Sequence[LatLng]) -> Tuple[float, float, float, float]:
    """
    꼭짓점들의 경계 상자를 계산합니다.

    Returns:
        (min_lat, min_lng, max_lat, max_lng)
    """
    if not points:
        return (0, 0, 0, 0)

    lats = [p.lat for p in points]
    lngs = [p.lng for p in points]

    return (min(lats), min(lngs), max(lats), max(lngs))


def bounds_center(points: Sequence[LatLng]) -> LatLng:
    """경계 상자의 중심점 (폴리곤 무게중심이 아님)"""
    min_lat, min_lng, max_lat, max_lng = bounding_box(points)
    return LatLng(lat=(min_lat + max_lat) / 2, lng=(min_lng + max_lng) / 2)


def derive_sample_points(polygon: Polygon) -> List[SamplePoint]:
    """
    폴리곤의 샘플 포인트를 만듭니다: 중심 1개 + 링 순서의 꼭짓점 N개.
    """
    center = bounds_center(polygon.points)
    samples = [SamplePoint(lat=center.lat, lng=center.lng, kind=SampleKind.CENTER)]
    for index, vertex in enumerate(polygon.points):
        samples.append(SamplePoint(lat=vertex.lat, lng=vertex.lng,
                                   kind=SampleKind.VERTEX, vertex_index=index))
    return samples
