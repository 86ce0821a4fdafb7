"""
Time window state for GeoShade.

This module owns the current sampling date range and the hour-index
timeline the slider works in. Every set() is a trigger event for
re-sampling, even when the dates do not change.
"""

from datetime import date, datetime, timedelta, timezone
from typing import Callable, List, Optional, Union
from geoshade.core.models import TimeWindow, as_date
from geoshade.observability.logging_setup import get_logger

log = get_logger("geoshade.timewindow")

DateLike = Union[date, datetime, str]
Listener = Callable[[TimeWindow], None]

# 슬라이더 범위: 30일 (시간 단위)
HOURS_IN_TIMELINE = 24 * 30


def default_window(today: Optional[date] = None, days_before: int = 15, days_after: int = 15) -> TimeWindow:
    """오늘을 중심으로 한 기본 구간 (앞 15일, 뒤 15일)"""
    today = today or datetime.now(timezone.utc).date()
    return TimeWindow(start_date=today - timedelta(days=days_before),
                      end_date=today + timedelta(days=days_after))


class TimeWindowState:
    """현재 시간 구간 보관소"""

    def __init__(self, initial: Optional[TimeWindow] = None):
        self._current = initial or default_window()
        self._revision = 0
        self._listeners: List[Listener] = []

    @property
    def revision(self) -> int:
        """set() 호출 횟수"""
        return self._revision

    def current(self) -> TimeWindow:
        """현재 구간 스냅샷"""
        return self._current

    def set(self, start: Union[TimeWindow, DateLike], end: Optional[DateLike] = None) -> TimeWindow:
        """
        구간을 교체합니다.

        시작일이 종료일보다 늦으면 실패하지 않고 양 끝을 교환합니다.

        Args:
            start: TimeWindow 또는 시작일
            end: 종료일 (start 가 TimeWindow 이면 생략)

        Returns:
            새 구간 스냅샷
        """
        if isinstance(start, TimeWindow):
            window = start
        else:
            if end is None:
                raise ValueError("end date is required")
            start_d, end_d = as_date(start), as_date(end)
            if start_d > end_d:
                log.warning("시간 구간 역순 입력, 양 끝을 교환합니다",
                            start=start_d.isoformat(), end=end_d.isoformat())
            window = TimeWindow(start_date=start_d, end_date=end_d)

        self._current = window
        self._revision += 1
        log.debug("시간 구간 변경", start=window.start_date.isoformat(),
                  end=window.end_date.isoformat(), revision=self._revision)

        for listener in list(self._listeners):
            listener(window)
        return window

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)


class Timeline:
    """
    슬라이더의 시간 인덱스(0..720) 와 날짜를 변환합니다.

    인덱스 0 은 기준 시각(now) 에서 days_before 일 전, 정각입니다.
    """

    def __init__(self, now: Optional[datetime] = None, days_before: int = 15,
                 hours: int = HOURS_IN_TIMELINE):
        now = now or datetime.now(timezone.utc)
        self.origin = (now - timedelta(days=days_before)).replace(minute=0, second=0, microsecond=0)
        self.hours = hours

    def _at(self, hour_index: int) -> datetime:
        return self.origin + timedelta(hours=hour_index)

    def hour_index_to_date(self, hour_index: int) -> date:
        """시간 인덱스 → 날짜"""
        return self._at(hour_index).date()

    def date_to_hour_index(self, value: DateLike) -> int:
        """날짜 → 시간 인덱스 ([0, hours] 범위로 제한)"""
        if isinstance(value, datetime):
            target = value if value.tzinfo else value.replace(tzinfo=self.origin.tzinfo)
        else:
            d = as_date(value)
            target = datetime(d.year, d.month, d.day, tzinfo=self.origin.tzinfo)
        diff_hours = int((target - self.origin).total_seconds() // 3600)
        return max(0, min(diff_hours, self.hours))
