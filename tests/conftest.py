"""
테스트 설정 및 픽스처

이 모듈은 pytest 설정과 공통 픽스처를 제공합니다.
"""

import asyncio
import inspect
from typing import Dict, List, Optional, Tuple, Union
import pytest
from geoshade.core.models import ThresholdRule, TimeWindow
from geoshade.core.time_window import TimeWindowState
from geoshade.orchestrators.sampling import SamplingOrchestrator
from geoshade.orchestrators.session import MapSession
from geoshade.settings import Settings
from geoshade.store.polygon_store import PolygonStore


class FakeProvider:
    """
    테스트용 데이터 제공자.

    values 에 (lat, lng) → 값 또는 예외를 지정하고, 나머지 좌표는 default 를 반환합니다.
    gate 가 주어지면 열릴 때까지 요청이 대기합니다 (gated 가 주어지면 그 좌표만).
    """

    def __init__(self,
                 values: Optional[Dict[Tuple[float, float], Union[float, None, Exception]]] = None,
                 default: Optional[float] = 10.0,
                 gate: Optional[asyncio.Event] = None,
                 delay: float = 0.0,
                 gated: Optional[List[Tuple[float, float]]] = None):
        self.values = values or {}
        self.default = default
        self.gate = gate
        self.delay = delay
        self.gated = set(gated) if gated is not None else None
        self.calls: List[tuple] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def fetch_value(self, lat, lng, data_source, start_date=None, end_date=None):
        self.calls.append((lat, lng, data_source, start_date, end_date))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.gate is not None and (self.gated is None or (lat, lng) in self.gated):
                await self.gate.wait()
            elif self.delay:
                await asyncio.sleep(self.delay)
            else:
                await asyncio.sleep(0)
        finally:
            self.in_flight -= 1

        result = self.values.get((lat, lng), self.default)
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture
def square_points():
    """테스트용 사각형 (위도, 경도)"""
    return [
        (37.0, 126.0),  # 좌하
        (37.0, 127.0),  # 우하
        (38.0, 127.0),  # 우상
        (38.0, 126.0),  # 좌상
    ]


@pytest.fixture
def triangle_points():
    """테스트용 삼각형 (위도, 경도)"""
    return [(10.0, 10.0), (10.0, 12.0), (12.0, 11.0)]


@pytest.fixture
def sample_rules():
    """테스트용 규칙 [<0 A, >=0 B, >=10 C]"""
    return [
        ThresholdRule(operator="<", value=0, color="A"),
        ThresholdRule(operator=">=", value=0, color="B"),
        ThresholdRule(operator=">=", value=10, color="C"),
    ]


@pytest.fixture
def sample_window():
    return TimeWindow(start_date="2024-06-01", end_date="2024-06-10")


@pytest.fixture
def sample_settings():
    """테스트용 설정"""
    settings = Settings()
    settings.observability.service_name = "test-service"
    settings.observability.build_version = "1.0.0"
    settings.observability.log_level = "INFO"
    return settings


@pytest.fixture
def fake_provider():
    return FakeProvider()


@pytest.fixture
def make_provider():
    """FakeProvider 팩토리"""
    return FakeProvider


@pytest.fixture
def make_session(sample_window):
    """FakeProvider 로 세션을 만드는 팩토리"""

    def _make(provider: FakeProvider, *, data_sources=("temperature_2m", "relativehumidity_2m"),
              rules=(), **kwargs) -> MapSession:
        store = PolygonStore(data_sources)
        window = TimeWindowState(sample_window)
        orchestrator = SamplingOrchestrator(provider, max_concurrency=kwargs.pop("max_concurrency", 16))
        return MapSession(store, window, orchestrator, data_sources=data_sources, rules=rules, **kwargs)

    return _make


# pytest 설정
def pytest_configure(config):
    """pytest 설정"""
    config.addinivalue_line(
        "markers", "asyncio: 비동기 테스트 마커"
    )


def pytest_collection_modifyitems(config, items):
    """테스트 아이템 수정"""
    for item in items:
        # 비동기 테스트에 asyncio 마커 추가
        function = getattr(item, "function", None)
        if function is not None and inspect.iscoroutinefunction(function):
            item.add_marker(pytest.mark.asyncio)

        # 느린 테스트 마커 추가
        if "performance" in item.name or "stress" in item.name:
            item.add_marker(pytest.mark.slow)

        # 통합 테스트 마커 추가
        if "integration" in item.name:
            item.add_marker(pytest.mark.integration)
