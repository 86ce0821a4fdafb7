"""
Aggregation of sample readings for GeoShade.

Pure functions that turn the per-point readings of one polygon into
its value, breakdown and label.
"""

from typing import Optional, Sequence, Tuple
from geoshade.core.models import AdditionalData, SampleKind, SamplePoint, lookup_data_source

Reading = Tuple[SamplePoint, Optional[float]]


def aggregate(readings: Sequence[Reading]) -> Optional[AdditionalData]:
    """
    유효한(non-null) 값만 모아 통계를 계산합니다.

    Args:
        readings: (샘플 포인트, 값 또는 None) 목록

    Returns:
        유효 값이 하나도 없으면 None
    """
    valid = [(point, value) for point, value in readings if value is not None]
    if not valid:
        return None

    values = [value for _, value in valid]
    center_value = next((v for p, v in valid if p.kind == SampleKind.CENTER), None)
    vertex_values = [v for p, v in sorted(
        ((p, v) for p, v in valid if p.kind == SampleKind.VERTEX),
        key=lambda pv: pv[0].vertex_index,
    )]

    return AdditionalData(
        total_points=len(values),
        center_value=center_value,
        vertex_values=tuple(vertex_values),
        min_value=min(values),
        max_value=max(values),
        all_values=tuple(values),
    )


def average(data: AdditionalData) -> float:
    """all_values 의 산술 평균"""
    return sum(data.all_values) / len(data.all_values)


def format_label(data_source: str, value: float, count: int) -> str:
    """'<이름>: <값 소수 1자리><단위> (<개수> points)' 형식의 라벨"""
    source = lookup_data_source(data_source)
    return f"{source.display_name}: {value:.1f}{source.unit} ({count} points)"


def summarize(data_source: str, readings: Sequence[Reading]) -> Optional[Tuple[float, AdditionalData, str]]:
    """
    폴리곤 하나의 읽기 결과를 (값, 상세, 라벨) 로 요약합니다.

    유효 값이 없으면 None 을 반환하며, 호출자는 기존 값을 그대로 둡니다.
    """
    data = aggregate(readings)
    if data is None:
        return None
    value = average(data)
    return value, data, format_label(data_source, value, data.total_points)
