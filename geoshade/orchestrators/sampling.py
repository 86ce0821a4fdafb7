"""
Sampling orchestrator for GeoShade.

This module fans out one provider request per sample point of every
data-source-bound polygon, tracks progress as requests complete, and
aggregates the readings per polygon. At most one run is in flight;
triggers that arrive while a run is active are dropped.
"""

import asyncio
import math
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, List, Optional, Sequence, Tuple
from pydantic import BaseModel
from geoshade.core.errors import SampleFailure
from geoshade.core.geometry import derive_sample_points
from geoshade.core.models import Polygon, SamplePoint, TimeWindow
from geoshade.core.sampling import Reading, summarize
from geoshade.observability import metrics
from geoshade.observability.logging_setup import get_logger, with_context
from geoshade.ports.provider import DataProviderPort

log = get_logger("geoshade.sampling")

ProgressListener = Callable[[float], None]


class RunState(str, Enum):
    """실행 상태: IDLE → RUNNING → IDLE"""
    IDLE = "idle"
    RUNNING = "running"


class RunStatus(BaseModel):
    """뷰 레이어에 노출하는 실행 상태"""
    state: RunState
    is_loading: bool
    progress_percent: float
    last_completed_at: Optional[datetime] = None
    runs_completed: int = 0
    runs_dropped: int = 0


@dataclass
class SamplingRun:
    """샘플링 1회 결과"""
    updated: List[Polygon]
    progress: List[float]
    requests: int
    started_at: datetime
    completed_at: datetime
    failures: List[SampleFailure] = field(default_factory=list)


class _ProgressTracker:
    """완료 카운터. 증가와 발행 사이에 await 가 없어 갱신이 유실되지 않음"""

    def __init__(self, total: int, publish: Callable[[float], None]):
        self.total = total
        self.completed = 0
        self.events: List[float] = []
        self._publish = publish

    def advance(self) -> float:
        self.completed += 1
        percent = self.completed / self.total * 100
        self.events.append(percent)
        self._publish(percent)
        return percent


class SamplingOrchestrator:
    """샘플링 오케스트레이터"""

    def __init__(self,
                 provider: DataProviderPort,
                 *,
                 max_concurrency: int = 16,
                 on_progress: Optional[ProgressListener] = None):
        """
        초기화합니다.

        Args:
            provider: 데이터 제공자 포트
            max_concurrency: 동시에 진행할 최대 요청 수
            on_progress: 진행률(0–100) 발행 콜백
        """
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        self.provider = provider
        self.max_concurrency = max_concurrency
        self.on_progress = on_progress

        self._state = RunState.IDLE
        self.progress_percent = 0.0
        self.last_completed_at: Optional[datetime] = None
        self.runs_completed = 0
        self.runs_dropped = 0
        self.runs_started = 0

    @property
    def state(self) -> RunState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is RunState.RUNNING

    def status(self) -> RunStatus:
        return RunStatus(
            state=self._state,
            is_loading=self.is_running,
            progress_percent=self.progress_percent,
            last_completed_at=self.last_completed_at,
            runs_completed=self.runs_completed,
            runs_dropped=self.runs_dropped,
        )

    def _publish(self, percent: float) -> None:
        self.progress_percent = percent
        metrics.sampling_progress.set(percent)
        if self.on_progress is not None:
            try:
                self.on_progress(percent)
            except Exception as e:
                log.error("진행률 콜백 오류", error=str(e))

    async def run(self, polygons: Sequence[Polygon], window: TimeWindow) -> Optional[SamplingRun]:
        """
        샘플링을 1회 실행합니다.

        실행 중에 다시 호출되면 대기하지 않고 즉시 None 을 반환합니다.
        입력은 실행 시작 시점의 스냅샷이며 실행 도중의 변경은 다음 실행에 반영됩니다.

        Args:
            polygons: 폴리곤 스냅샷
            window: 시간 구간 스냅샷

        Returns:
            실행 결과, 이미 실행 중이어서 무시되면 None
        """
        if self._state is RunState.RUNNING:
            self.runs_dropped += 1
            metrics.sampling_runs.labels(outcome="dropped").inc()
            log.debug("샘플링 실행 중, 트리거 무시")
            return None

        self._state = RunState.RUNNING
        self.runs_started += 1
        self.progress_percent = 0.0
        started_at = datetime.now(timezone.utc)
        t0 = time.perf_counter()

        try:
            with with_context(run=self.runs_started):
                selected = [p for p in polygons if p.data_source]
                if not selected:
                    metrics.sampling_runs.labels(outcome="empty").inc()
                    log.debug("샘플링 대상 폴리곤 없음")
                    return self._complete(SamplingRun(updated=[], progress=[], requests=0,
                                                      started_at=started_at, completed_at=started_at))

                plans = [(p, derive_sample_points(p)) for p in selected]
                total = sum(len(points) for _, points in plans)
                tracker = _ProgressTracker(total, self._publish)
                failures: List[SampleFailure] = []
                start, end = window.as_query()
                semaphore = asyncio.Semaphore(self.max_concurrency)

                log.info("샘플링 시작", polygons=len(selected), requests=total, start=start, end=end)

                results = await asyncio.gather(*(
                    self._sample_polygon(polygon, points, start, end, semaphore, tracker, failures)
                    for polygon, points in plans
                ))
                updated = [p for p in results if p is not None]

                elapsed = time.perf_counter() - t0
                metrics.sampling_run_seconds.observe(elapsed)
                metrics.sampling_runs.labels(outcome="completed").inc()
                log.info("샘플링 완료", updated=len(updated), polygons=len(selected),
                         failures=len(failures), elapsed_sec=round(elapsed, 3))

                return self._complete(SamplingRun(
                    updated=updated,
                    progress=tracker.events,
                    requests=total,
                    started_at=started_at,
                    completed_at=datetime.now(timezone.utc),
                    failures=failures,
                ))
        finally:
            self.progress_percent = 0.0
            metrics.sampling_progress.set(0)
            self._state = RunState.IDLE

    def _complete(self, result: SamplingRun) -> SamplingRun:
        self.last_completed_at = result.completed_at
        self.runs_completed += 1
        return result

    async def _sample_polygon(self,
                              polygon: Polygon,
                              points: List[SamplePoint],
                              start: str,
                              end: str,
                              semaphore: asyncio.Semaphore,
                              tracker: _ProgressTracker,
                              failures: List[SampleFailure]) -> Optional[Polygon]:
        """폴리곤 하나의 모든 포인트를 조회하고 집계합니다."""
        values = await asyncio.gather(*(
            self._sample_point(polygon, point, start, end, semaphore, tracker, failures)
            for point in points
        ))
        readings: List[Reading] = list(zip(points, values))

        summary = summarize(polygon.data_source, readings)
        if summary is None:
            # 유효 값이 없으면 마지막 정상 값을 유지
            log.warning("유효한 샘플 없음, 기존 값 유지", polygon_id=polygon.id,
                        data_source=polygon.data_source)
            return None

        value, data, label = summary
        return polygon.model_copy(update={
            "value": value,
            "additional_data": data,
            "label": label,
        })

    async def _sample_point(self,
                            polygon: Polygon,
                            point: SamplePoint,
                            start: str,
                            end: str,
                            semaphore: asyncio.Semaphore,
                            tracker: _ProgressTracker,
                            failures: List[SampleFailure]) -> Optional[float]:
        """포인트 1개 조회. 어떤 오류도 None 으로 흡수합니다."""
        value: Optional[float] = None
        outcome = "null"
        try:
            async with semaphore:
                raw = await self.provider.fetch_value(point.lat, point.lng, polygon.data_source, start, end)
            if raw is not None:
                value = float(raw)
                if not math.isfinite(value):
                    value = None
            outcome = "ok" if value is not None else "null"
        except Exception as e:
            failure = SampleFailure(polygon.id, polygon.data_source, point, e)
            failures.append(failure)
            outcome = "error"
            log.warning("샘플 요청 실패", polygon_id=polygon.id, kind=point.kind.value,
                        vertex_index=point.vertex_index, error=str(e))
        metrics.sample_requests.labels(data_source=polygon.data_source, outcome=outcome).inc()
        tracker.advance()
        return value


def sampling_key(polygons: Sequence[Polygon]) -> Tuple:
    """재샘플링이 필요한지 판단하는 키: 바인딩된 (id, 데이터 소스, 형상)"""
    return tuple((p.id, p.data_source, p.point_key()) for p in polygons if p.data_source)
