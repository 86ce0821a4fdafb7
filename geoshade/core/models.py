"""
Core domain models for GeoShade.

This module defines the core domain models using Pydantic v2
for type safety and validation. Polygon, ThresholdRule and TimeWindow
are frozen: every change produces a new snapshot.
"""

from datetime import date, datetime
from enum import Enum
from typing import Dict, List, Literal, Optional, Sequence, Tuple
from pydantic import BaseModel, ConfigDict, Field, model_validator

# 비교 연산자 타입 정의
Operator = Literal["<", "<=", "=", ">=", ">"]

# 초기 폴리곤 색상이자 규칙 미일치 시 기본 색상
DEFAULT_COLOR = "#3388ff"


class LatLng(BaseModel):
    """위경도 좌표 모델"""
    model_config = ConfigDict(frozen=True)

    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)


class AdditionalData(BaseModel):
    """집계 결과 상세 (파생 값, 단독 수정 금지)"""
    model_config = ConfigDict(frozen=True)

    total_points: int
    center_value: Optional[float] = None
    vertex_values: Tuple[float, ...] = ()
    min_value: float
    max_value: float
    all_values: Tuple[float, ...] = ()


class Polygon(BaseModel):
    """지도 위에 그려진 폴리곤 모델"""
    model_config = ConfigDict(frozen=True)

    id: str
    points: Tuple[LatLng, ...]
    data_source: Optional[str] = None
    value: Optional[float] = None
    additional_data: Optional[AdditionalData] = None
    color: str = DEFAULT_COLOR
    label: Optional[str] = None

    def point_key(self) -> Tuple[Tuple[float, float], ...]:
        """중복 판정용 정확한 꼭짓점 순서 키"""
        return tuple((p.lat, p.lng) for p in self.points)

    def with_points(self, points: Sequence[LatLng]) -> "Polygon":
        """형상을 교체하고 재샘플링 전까지 파생 값을 비웁니다."""
        return self.model_copy(update={
            "points": tuple(points),
            "value": None,
            "additional_data": None,
            "label": None,
        })

    def with_data_source(self, data_source: Optional[str]) -> "Polygon":
        """데이터 소스를 교체하고 파생 값을 비웁니다."""
        return self.model_copy(update={
            "data_source": data_source,
            "value": None,
            "additional_data": None,
            "label": None,
        })


class ThresholdRule(BaseModel):
    """임계값 규칙 모델"""
    model_config = ConfigDict(frozen=True)

    operator: Operator
    value: float
    color: str


def as_date(value) -> date:
    """date, datetime, YYYY-MM-DD 문자열을 date 로 변환합니다."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value.strip()[:10])
    raise ValueError(f"Unsupported date value: {value!r}")


class TimeWindow(BaseModel):
    """
    샘플링 요청에 사용하는 날짜 구간.

    start_date > end_date 로 생성하면 예외 대신 양 끝을 교환합니다.
    """
    model_config = ConfigDict(frozen=True)

    start_date: date
    end_date: date

    @model_validator(mode="before")
    @classmethod
    def _order_endpoints(cls, data):
        if isinstance(data, dict) and "start_date" in data and "end_date" in data:
            start, end = as_date(data["start_date"]), as_date(data["end_date"])
            if start > end:
                start, end = end, start
            data = {**data, "start_date": start, "end_date": end}
        return data

    @property
    def days(self) -> int:
        """구간에 포함된 날짜 수 (양 끝 포함)"""
        return (self.end_date - self.start_date).days + 1

    def as_query(self) -> Tuple[str, str]:
        """(start, end) 를 YYYY-MM-DD 문자열로 반환합니다."""
        return self.start_date.isoformat(), self.end_date.isoformat()


class SampleKind(str, Enum):
    CENTER = "center"
    VERTEX = "vertex"


class SamplePoint(BaseModel):
    """샘플링 한 번에 쓰이는 요청 좌표 (저장하지 않음)"""
    model_config = ConfigDict(frozen=True)

    lat: float
    lng: float
    kind: SampleKind
    vertex_index: Optional[int] = None


class DataSource(BaseModel):
    """데이터 소스 정의"""
    model_config = ConfigDict(frozen=True)

    id: str
    display_name: str
    unit: str = ""


DATA_SOURCES: Dict[str, DataSource] = {
    ds.id: ds for ds in (
        DataSource(id="temperature_2m", display_name="Temperature", unit="°C"),
        DataSource(id="relativehumidity_2m", display_name="Relative Humidity", unit="%"),
        DataSource(id="precipitation", display_name="Precipitation", unit="mm"),
        DataSource(id="windspeed_10m", display_name="Wind Speed", unit="km/h"),
    )
}


def lookup_data_source(data_source_id: str) -> DataSource:
    """
    표에서 데이터 소스를 찾습니다.

    표에 없는 id 는 첫 '_' 를 공백으로 바꾼 뒤 단어 첫 글자를
    대문자로 만든 이름과 빈 단위를 사용합니다.
    """
    known = DATA_SOURCES.get(data_source_id)
    if known is not None:
        return known
    words = data_source_id.replace("_", " ", 1).split(" ")
    name = " ".join(w[:1].upper() + w[1:] for w in words)
    return DataSource(id=data_source_id, display_name=name, unit="")


def to_points(raw: Sequence) -> List[LatLng]:
    """
    원시 좌표 목록을 LatLng 목록으로 변환합니다.

    (lat, lng) 쌍, {"lat":..., "lng":...} 딕셔너리, LatLng 모두 허용합니다.
    """
    points: List[LatLng] = []
    for item in raw:
        if isinstance(item, LatLng):
            points.append(item)
        elif isinstance(item, dict):
            points.append(LatLng(lat=item["lat"], lng=item["lng"]))
        else:
            lat, lng = item
            points.append(LatLng(lat=lat, lng=lng))
    return points
