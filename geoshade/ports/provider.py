"""
Data provider port interface.

This module defines the protocol for fetching a scalar environmental
reading for a coordinate and time window.
"""

from datetime import date
from typing import Optional, Protocol, Union

DateArg = Union[date, str, int, None]


class DataProviderPort(Protocol):
    """환경 데이터 제공자 포트 인터페이스"""

    async def fetch_value(self,
                          lat: float,
                          lng: float,
                          data_source: str,
                          start_date: DateArg = None,
                          end_date: DateArg = None) -> Optional[float]:
        """
        좌표와 기간에 대한 값을 조회합니다.

        Args:
            lat: 위도
            lng: 경도
            data_source: 데이터 소스 id (예: temperature_2m)
            start_date: 시작일 (YYYY-MM-DD, date, epoch 밀리초, None 이면 현재 시각)
            end_date: 종료일 (None 이면 시작 + 24시간)

        Returns:
            시간별 값의 평균 (소수 1자리), 데이터가 없으면 None
        """
        ...
