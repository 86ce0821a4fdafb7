# geoshade/settings.py
from __future__ import annotations
from typing import List
from pydantic import BaseModel, Field
from geoshade.core.models import DEFAULT_COLOR, ThresholdRule

class ProviderConfig(BaseModel):
    base_url: str = "https://api.open-meteo.com/v1/forecast"
    timeout_sec: float = 10.0
    max_retries: int = 2
    backoff_base_sec: float = 0.5
    backoff_max_sec: float = 5.0
    max_concurrency: int = 16

def _default_rules() -> List[ThresholdRule]:
    return [
        ThresholdRule(operator="<", value=0, color="#1e40af"),    # 영하: 진한 파랑
        ThresholdRule(operator=">=", value=0, color="#06b6d4"),   # 쌀쌀: 청록
        ThresholdRule(operator=">=", value=10, color="#10b981"),  # 온화: 초록
    ]

class MapConfig(BaseModel):
    data_sources: List[str] = Field(default_factory=lambda: ["temperature_2m", "relativehumidity_2m"])
    default_color: str = DEFAULT_COLOR
    equality_tolerance: float = 0.0           # 0 이면 '=' 는 정확히 일치
    rule_match: str = "first"                 # first | last
    default_rules: List[ThresholdRule] = Field(default_factory=_default_rules)

class TimelineConfig(BaseModel):
    days_before: int = 15
    days_after: int = 15

class Observability(BaseModel):
    http_host: str = "0.0.0.0"
    http_port: int = 8099
    metrics_enabled: bool = True
    service_name: str = "GeoShade"
    build_version: str = "0.1.0"
    build_date: str = "2026-10-01"
    log_level: str = "INFO"
    json_logs: bool = False

class Settings(BaseModel):
    # 하위 섹션 (기본값/팩토리로 누락 방지)
    provider: ProviderConfig = Field(default_factory=ProviderConfig)
    map: MapConfig = Field(default_factory=MapConfig)
    timeline: TimelineConfig = Field(default_factory=TimelineConfig)
    observability: Observability = Field(default_factory=Observability)
