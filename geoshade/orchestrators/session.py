"""
Map session for GeoShade.

This module implements the coordinating context that owns the polygon
store, the time window and the threshold rules. It turns drawing and
timeline events into store mutations, triggers sampling runs when the
sampling inputs change, and re-evaluates polygon colors.
"""

import asyncio
from typing import Iterable, List, Optional, Sequence, Set, Tuple
from geoshade.core import geometry
from geoshade.core.errors import DuplicateGeometry, GeometryError, NotFound, UnknownDataSource
from geoshade.core.models import DEFAULT_COLOR, Polygon, ThresholdRule, TimeWindow, to_points
from geoshade.core.threshold import RuleMatch, evaluate
from geoshade.core.time_window import DateLike, Timeline, TimeWindowState
from geoshade.orchestrators.sampling import RunStatus, SamplingOrchestrator, SamplingRun, sampling_key
from geoshade.observability import metrics
from geoshade.observability.logging_setup import get_logger
from geoshade.store.polygon_store import PolygonStore, new_polygon_id

log = get_logger("geoshade.session")


class MapSession:
    """지도 세션 (상태 소유 및 이벤트 조정)"""

    def __init__(self,
                 store: PolygonStore,
                 time_window: TimeWindowState,
                 orchestrator: SamplingOrchestrator,
                 *,
                 data_sources: Sequence[str] = ("temperature_2m", "relativehumidity_2m"),
                 rules: Iterable[ThresholdRule] = (),
                 default_color: str = DEFAULT_COLOR,
                 tolerance: float = 0.0,
                 rule_match: RuleMatch = RuleMatch.FIRST,
                 timeline: Optional[Timeline] = None):
        """
        초기화합니다.

        Args:
            store: 폴리곤 저장소
            time_window: 시간 구간 상태
            orchestrator: 샘플링 오케스트레이터
            data_sources: 설정된 데이터 소스 id 목록
            rules: 초기 임계값 규칙
            default_color: 규칙 미일치 색상
            tolerance: '=' 연산자 허용 오차
            rule_match: 규칙 선택 방식
            timeline: 슬라이더 인덱스 변환기 (기본: 현재 시각 기준 30일)
        """
        self.store = store
        self.time_window = time_window
        self.orchestrator = orchestrator
        self.data_sources = list(data_sources)
        self.default_color = default_color
        self.tolerance = tolerance
        self.rule_match = RuleMatch(rule_match)
        self._rules: Tuple[ThresholdRule, ...] = tuple(rules)
        self.timeline = timeline or Timeline()

        self._last_sampled_key: Optional[Tuple] = None
        self._tasks: Set[asyncio.Task] = set()

        # 시간 구간 set() 은 모두 재샘플링 트리거
        self.time_window.subscribe(self._on_time_window_set)

    # ---- 그리기 이벤트 ----

    def geometry_created(self, points: Sequence, data_source: Optional[str] = None) -> Optional[Polygon]:
        """
        그리기 완료 이벤트를 처리합니다.

        Returns:
            저장된 폴리곤, 동일 형상이 이미 있으면 None

        Raises:
            GeometryError: 꼭짓점 개수 위반 (저장소 변경 없음)
            UnknownDataSource: 설정되지 않은 데이터 소스
        """
        geometry.validate(points)
        self._check_data_source(data_source)

        polygon = Polygon(id=new_polygon_id(), points=tuple(to_points(points)),
                          data_source=data_source, color=self.default_color)
        try:
            stored = self.store.create(polygon)
        except DuplicateGeometry as e:
            metrics.polygon_events.labels(event="duplicate").inc()
            log.info("동일 형상 폴리곤이 이미 존재, 무시", existing_id=e.existing_id)
            return None

        metrics.polygon_events.labels(event="created").inc()
        log.info("폴리곤 생성", polygon_id=stored.id, vertices=len(stored.points),
                 data_source=stored.data_source)
        self._trigger()
        return stored

    def geometry_edited(self, polygon_id: str, points: Sequence) -> Optional[Polygon]:
        """
        편집 완료 이벤트를 처리합니다.

        형상이 유효하지 않으면 GeometryError 를 던지고 기존 형상을 유지합니다
        (그리기 도구는 이 경우 화면을 되돌려야 함).

        Returns:
            갱신된 폴리곤, 그 사이 삭제되었으면 None
        """
        try:
            geometry.validate(points)
        except GeometryError:
            metrics.polygon_events.labels(event="rejected").inc()
            log.warning("편집 거부, 기존 형상 유지", polygon_id=polygon_id, vertices=len(points))
            raise

        current = self.store.get(polygon_id)
        if current is None:
            log.warning("편집 대상 폴리곤 없음", polygon_id=polygon_id)
            return None

        try:
            updated = self.store.update(current.with_points(to_points(points)))
        except NotFound:
            log.warning("편집 중 폴리곤이 삭제됨", polygon_id=polygon_id)
            return None

        metrics.polygon_events.labels(event="edited").inc()
        log.info("폴리곤 편집", polygon_id=polygon_id, vertices=len(updated.points))
        self._trigger()
        return updated

    def geometry_deleted(self, polygon_id: str) -> bool:
        """삭제 이벤트를 처리합니다. 없는 id 는 무시합니다."""
        removed = self.store.delete(polygon_id)
        if removed:
            metrics.polygon_events.labels(event="deleted").inc()
            log.info("폴리곤 삭제", polygon_id=polygon_id)
            self._trigger()
        return removed

    def assign_data_source(self, polygon_id: str, data_source: Optional[str]) -> Optional[Polygon]:
        """
        폴리곤의 데이터 소스를 바꿉니다 (None 이면 샘플링 해제).

        Raises:
            UnknownDataSource: 설정되지 않은 데이터 소스
        """
        self._check_data_source(data_source)
        current = self.store.get(polygon_id)
        if current is None:
            log.warning("데이터 소스 지정 대상 폴리곤 없음", polygon_id=polygon_id)
            return None
        if current.data_source == data_source:
            return current
        updated = self.store.update(current.with_data_source(data_source))
        log.info("데이터 소스 지정", polygon_id=polygon_id, data_source=data_source)
        self._trigger()
        return updated

    def _check_data_source(self, data_source: Optional[str]) -> None:
        if data_source is not None and data_source not in self.data_sources:
            raise UnknownDataSource(data_source)

    # ---- 타임라인 / 규칙 ----

    def time_window_changed(self, start: DateLike, end: DateLike) -> TimeWindow:
        """타임라인 변경 이벤트 (YYYY-MM-DD 문자열 또는 date)"""
        return self.time_window.set(start, end)

    def time_window_from_slider(self, start_index: int, end_index: int) -> TimeWindow:
        """슬라이더 손잡이 위치(시간 인덱스) 로 구간을 바꿉니다."""
        return self.time_window.set(self.timeline.hour_index_to_date(start_index),
                                    self.timeline.hour_index_to_date(end_index))

    def slider_indices(self) -> Tuple[int, int]:
        """현재 구간의 슬라이더 손잡이 위치"""
        window = self.time_window.current()
        return (self.timeline.date_to_hour_index(window.start_date),
                self.timeline.date_to_hour_index(window.end_date))

    @property
    def threshold_rules(self) -> List[ThresholdRule]:
        return list(self._rules)

    def set_threshold_rules(self, rules: Iterable[ThresholdRule]) -> List[Polygon]:
        """규칙 전체를 교체하고 색상을 다시 계산합니다."""
        self._rules = tuple(rules)
        log.info("임계값 규칙 교체", rules=len(self._rules))
        return self.evaluate_thresholds()

    def evaluate_thresholds(self) -> List[Polygon]:
        """
        현재 규칙으로 모든 폴리곤 색상을 계산하고 저장소에 반영합니다.

        Returns:
            평가 후 폴리곤 스냅샷
        """
        before = self.store.list()
        after = evaluate(before, self._rules, default_color=self.default_color,
                         tolerance=self.tolerance, match=self.rule_match)
        for old, new in zip(before, after):
            if new is not old:
                self.store.update(new)
        metrics.threshold_evaluations.inc()
        return self.store.list()

    # ---- 샘플링 ----

    def _current_key(self) -> Tuple:
        return (sampling_key(self.store.list()), self.time_window.revision)

    def needs_sampling(self) -> bool:
        return self._current_key() != self._last_sampled_key

    async def refresh(self, *, force: bool = False) -> bool:
        """
        샘플링 입력이 바뀌었으면 샘플링을 실행하고 색상을 다시 계산합니다.

        실행 도중 입력이 다시 바뀌면 완료 후 한 번 더 실행합니다.
        다른 실행이 진행 중이면 즉시 False 를 반환합니다 (진행 중인 실행이 변경을 확인함).

        Args:
            force: 입력이 같아도 실행

        Returns:
            샘플링을 1회 이상 실행했는지 여부
        """
        ran = False
        while force or self.needs_sampling():
            force = False
            key = self._current_key()
            result = await self.orchestrator.run(self.store.list(), self.time_window.current())
            if result is None:
                return ran
            self._last_sampled_key = key
            self._apply(result)
            ran = True

        if ran:
            self.evaluate_thresholds()
        return ran

    def _trigger(self) -> None:
        if self.needs_sampling():
            self.request_refresh()

    def _on_time_window_set(self, window: TimeWindow) -> None:
        self.request_refresh()

    def request_refresh(self) -> Optional[asyncio.Task]:
        """
        refresh() 를 백그라운드 태스크로 예약합니다.

        실행 중인 이벤트 루프가 없으면 아무 것도 하지 않습니다.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return None
        task = loop.create_task(self.refresh())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def wait_idle(self) -> None:
        """예약된 refresh 태스크가 모두 끝날 때까지 기다립니다."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    def _apply(self, result: SamplingRun) -> None:
        """샘플링 결과를 현재 저장된 폴리곤에 반영합니다."""
        for sampled in result.updated:
            current = self.store.get(sampled.id)
            if current is None:
                log.info("샘플링 중 폴리곤이 삭제됨, 결과 폐기", polygon_id=sampled.id)
                continue
            if current.data_source != sampled.data_source:
                log.info("샘플링 중 데이터 소스가 바뀜, 결과 폐기", polygon_id=sampled.id)
                continue
            try:
                self.store.update(current.model_copy(update={
                    "value": sampled.value,
                    "additional_data": sampled.additional_data,
                    "label": sampled.label,
                }))
            except NotFound:
                log.info("샘플링 결과 반영 대상 없음", polygon_id=sampled.id)

    def status(self) -> RunStatus:
        return self.orchestrator.status()

    def polygons(self) -> List[Polygon]:
        return self.store.list()
