"""
Open-Meteo API client for GeoShade.

This module provides the data provider adapter that fetches an hourly
series for a coordinate and date range and reduces it to a single
rounded average.
"""

import asyncio
from datetime import date, datetime, timezone
from typing import Any, Dict, Optional, Union
import aiohttp
from geoshade.common.retry import retry_with_backoff
from geoshade.observability.logging_setup import get_logger

log = get_logger("geoshade.openmeteo")

DEFAULT_BASE_URL = "https://api.open-meteo.com/v1/forecast"

# 종료일 미지정 시 시작 시각 + 24시간
DEFAULT_EXTENDED_HOURS = 24

_MS_PER_HOUR = 1000 * 60 * 60

DateArg = Union[date, str, int, None]


class ProviderServerError(Exception):
    """재시도 대상인 5xx 응답"""

    def __init__(self, status: int):
        super().__init__(f"Provider responded with HTTP {status}")
        self.status = status


def to_epoch_hour(value: DateArg, now: Optional[datetime] = None) -> int:
    """
    날짜 인자를 epoch 기준 시간 수로 변환합니다.

    Args:
        value: None(현재 시각), epoch 밀리초, date, YYYY-MM-DD 문자열
        now: 현재 시각 (테스트용)
    """
    if value is None:
        now = now or datetime.now(timezone.utc)
        return int(now.timestamp() // 3600)
    if isinstance(value, bool):
        raise ValueError(f"Unsupported date value: {value!r}")
    if isinstance(value, int):
        return value // _MS_PER_HOUR
    if isinstance(value, datetime):
        moment = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
        return int(moment.timestamp() // 3600)
    if isinstance(value, str):
        value = date.fromisoformat(value.strip()[:10])
    midnight = datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    return int(midnight.timestamp() // 3600)


def hour_to_date(hour: int) -> str:
    """epoch 시간 수 → UTC YYYY-MM-DD"""
    return datetime.fromtimestamp(hour * 3600, tz=timezone.utc).date().isoformat()


def resolve_range(start_date: DateArg, end_date: DateArg,
                  now: Optional[datetime] = None,
                  extended_hours: int = DEFAULT_EXTENDED_HOURS) -> tuple:
    """요청에 쓸 (start_date, end_date) 문자열을 계산합니다."""
    start_hour = to_epoch_hour(start_date, now)
    end_hour = to_epoch_hour(end_date, now) if end_date is not None else start_hour + extended_hours
    return hour_to_date(start_hour), hour_to_date(end_hour)


def mean_of_series(payload: Any, data_source: str) -> Optional[float]:
    """
    응답의 hourly[data_source] 시계열 평균을 소수 1자리로 반환합니다.

    시계열이 없거나 비어 있거나 숫자 값이 하나도 없으면 None.
    """
    if not isinstance(payload, dict):
        return None
    hourly = payload.get("hourly")
    if not isinstance(hourly, dict):
        return None
    series = hourly.get(data_source)
    if not isinstance(series, list) or not series:
        return None

    values = [float(v) for v in series if isinstance(v, (int, float)) and not isinstance(v, bool)]
    if not values:
        return None
    return round(sum(values) / len(values), 1)


class OpenMeteoClient:
    """Open-Meteo 예보 API 클라이언트"""

    def __init__(self,
                 base_url: str = DEFAULT_BASE_URL,
                 timeout: float = 10,
                 *,
                 max_retries: int = 2,
                 backoff_base: float = 0.5,
                 backoff_max: float = 5.0,
                 session: Optional[aiohttp.ClientSession] = None):
        """
        초기화합니다.

        Args:
            base_url: 예보 API URL
            timeout: 요청 타임아웃 (초)
            max_retries: 일시 오류 재시도 횟수
            backoff_base: 재시도 기본 지연 (초)
            backoff_max: 재시도 최대 지연 (초)
            session: 외부에서 관리하는 세션 (주입 시 닫지 않음)
        """
        self.base_url = base_url
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff_base = backoff_base
        self.backoff_max = backoff_max
        self.session = session
        self._owns_session = session is None

        log.info("Open-Meteo 클라이언트 초기화됨", base_url=base_url)

    async def __aenter__(self):
        """비동기 컨텍스트 매니저 진입"""
        if self.session is None:
            self.session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
            self._owns_session = True
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """비동기 컨텍스트 매니저 종료"""
        await self.close()

    async def close(self) -> None:
        if self.session is not None and self._owns_session:
            await self.session.close()
            self.session = None

    async def _get_json(self, params: Dict[str, Any]) -> Any:
        if self.session is None:
            raise RuntimeError("세션이 초기화되지 않았습니다. async with를 사용하세요.")

        async def _request():
            async with self.session.get(self.base_url, params=params) as response:
                if response.status >= 500:
                    raise ProviderServerError(response.status)
                response.raise_for_status()
                return await response.json()

        return await retry_with_backoff(
            _request,
            max_retries=self.max_retries,
            base_delay=self.backoff_base,
            max_delay=self.backoff_max,
            retry_on=(aiohttp.ClientConnectionError, asyncio.TimeoutError, ProviderServerError),
        )

    async def fetch_value(self,
                          lat: float,
                          lng: float,
                          data_source: str,
                          start_date: DateArg = None,
                          end_date: DateArg = None) -> Optional[float]:
        """
        좌표의 시간별 값 평균을 조회합니다.

        Returns:
            평균 (소수 1자리) 또는 데이터가 없거나 요청이 실패하면 None
        """
        try:
            start_str, end_str = resolve_range(start_date, end_date)
            payload = await self._get_json({
                "latitude": lat,
                "longitude": lng,
                "start_date": start_str,
                "end_date": end_str,
                "hourly": data_source,
            })
        except (aiohttp.ClientError, asyncio.TimeoutError, ProviderServerError, ValueError) as e:
            log.error("날씨 데이터 조회 실패", lat=lat, lng=lng, data_source=data_source,
                      error=str(e))
            return None

        value = mean_of_series(payload, data_source)
        if value is None:
            log.debug("시계열 데이터 없음", lat=lat, lng=lng, data_source=data_source,
                      start=start_str, end=end_str)
        return value
