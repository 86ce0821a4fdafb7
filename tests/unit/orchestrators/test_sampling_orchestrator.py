"""
샘플링 오케스트레이터 테스트

진행률, 중복 실행 방지, 포인트 단위 실패 흡수, 동시성 제한을 테스트합니다.
"""

import asyncio
import math

import pytest

from geoshade.core.models import Polygon, to_points
from geoshade.orchestrators.sampling import RunState, SamplingOrchestrator, sampling_key


def make_polygon(polygon_id, raw_points, data_source="temperature_2m"):
    return Polygon(id=polygon_id, points=tuple(to_points(raw_points)), data_source=data_source)


class TestSamplingRun:
    """샘플링 1회 실행 테스트"""

    async def test_aggregates_center_and_vertices(self, make_provider, square_points, sample_window):
        provider = make_provider(values={(37.5, 126.5): 20.0, (37.0, 126.0): 10.0}, default=30.0)
        orchestrator = SamplingOrchestrator(provider)

        result = await orchestrator.run([make_polygon("a", square_points)], sample_window)

        assert result.requests == 5
        assert len(provider.calls) == 5
        polygon = result.updated[0]
        assert polygon.additional_data.center_value == 20.0
        assert polygon.additional_data.vertex_values == (10.0, 30.0, 30.0, 30.0)
        assert polygon.value == pytest.approx(24.0)
        assert polygon.label == "Temperature: 24.0°C (5 points)"

    async def test_passes_window_and_data_source(self, make_provider, triangle_points, sample_window):
        provider = make_provider()
        orchestrator = SamplingOrchestrator(provider)

        await orchestrator.run([make_polygon("a", triangle_points, "precipitation")], sample_window)

        assert {call[2:] for call in provider.calls} == {("precipitation", "2024-06-01", "2024-06-10")}

    async def test_unbound_polygons_are_skipped(self, make_provider, square_points, triangle_points, sample_window):
        provider = make_provider()
        orchestrator = SamplingOrchestrator(provider)

        result = await orchestrator.run(
            [make_polygon("a", square_points, None), make_polygon("b", triangle_points)],
            sample_window,
        )

        assert result.requests == 4
        assert [p.id for p in result.updated] == ["b"]

    async def test_empty_selection(self, make_provider, square_points, sample_window):
        provider = make_provider()
        orchestrator = SamplingOrchestrator(provider)

        result = await orchestrator.run([make_polygon("a", square_points, None)], sample_window)

        assert result.updated == []
        assert result.progress == []
        assert result.requests == 0
        assert provider.calls == []
        assert orchestrator.runs_completed == 1
        assert orchestrator.state is RunState.IDLE

    async def test_input_snapshot_not_mutated(self, make_provider, square_points, sample_window):
        polygon = make_polygon("a", square_points)
        orchestrator = SamplingOrchestrator(make_provider())

        result = await orchestrator.run([polygon], sample_window)

        assert polygon.value is None
        assert result.updated[0] is not polygon


class TestProgress:
    """진행률 테스트"""

    async def test_monotonic_and_reaches_100(self, make_provider, square_points, triangle_points, sample_window):
        published = []
        orchestrator = SamplingOrchestrator(make_provider(), max_concurrency=3,
                                            on_progress=published.append)

        result = await orchestrator.run(
            [make_polygon("a", square_points), make_polygon("b", triangle_points)],
            sample_window,
        )

        assert len(result.progress) == result.requests == 9
        assert result.progress == sorted(result.progress)
        assert result.progress[-1] == pytest.approx(100.0)
        assert published == result.progress

    async def test_reset_after_run(self, make_provider, square_points, sample_window):
        orchestrator = SamplingOrchestrator(make_provider())
        await orchestrator.run([make_polygon("a", square_points)], sample_window)

        status = orchestrator.status()
        assert status.progress_percent == 0
        assert status.is_loading is False
        assert status.last_completed_at is not None

    async def test_progress_visible_while_running(self, make_provider, square_points, sample_window):
        gate = asyncio.Event()
        provider = make_provider(gate=gate)
        orchestrator = SamplingOrchestrator(provider)

        task = asyncio.create_task(orchestrator.run([make_polygon("a", square_points)], sample_window))
        await asyncio.sleep(0)
        assert orchestrator.status().is_loading is True
        assert orchestrator.status().progress_percent == 0

        gate.set()
        await task
        assert orchestrator.status().is_loading is False

    async def test_callback_error_does_not_fail_run(self, make_provider, square_points, sample_window):
        def broken(_percent):
            raise RuntimeError("view gone")

        orchestrator = SamplingOrchestrator(make_provider(), on_progress=broken)
        result = await orchestrator.run([make_polygon("a", square_points)], sample_window)

        assert len(result.updated) == 1
        assert result.progress[-1] == pytest.approx(100.0)


class TestReentrancy:
    """중복 실행 방지 테스트"""

    async def test_trigger_while_running_is_dropped(self, make_provider, square_points, sample_window):
        gate = asyncio.Event()
        provider = make_provider(gate=gate)
        orchestrator = SamplingOrchestrator(provider)
        polygons = [make_polygon("a", square_points)]

        first = asyncio.create_task(orchestrator.run(polygons, sample_window))
        await asyncio.sleep(0)

        assert orchestrator.is_running
        assert await orchestrator.run(polygons, sample_window) is None
        assert orchestrator.runs_dropped == 1

        gate.set()
        result = await first

        assert result is not None
        assert len(provider.calls) == 5
        assert orchestrator.runs_completed == 1
        assert orchestrator.state is RunState.IDLE

    async def test_dropped_trigger_keeps_progress(self, make_provider, square_points, sample_window):
        gate = asyncio.Event()
        provider = make_provider(gate=gate, gated=[(37.5, 126.5)])
        orchestrator = SamplingOrchestrator(provider)
        polygons = [make_polygon("a", square_points)]

        first = asyncio.create_task(orchestrator.run(polygons, sample_window))
        for _ in range(50):
            await asyncio.sleep(0)
            if orchestrator.status().progress_percent >= 80:
                break

        # 꼭짓점 4개 완료, 중심점 대기 중
        before = orchestrator.status()
        assert before.progress_percent == pytest.approx(80.0)
        assert await orchestrator.run(polygons, sample_window) is None

        after = orchestrator.status()
        assert after.progress_percent == before.progress_percent
        assert after.is_loading is True

        gate.set()
        result = await first

        assert result.progress == pytest.approx([20.0, 40.0, 60.0, 80.0, 100.0])
        assert max(result.progress) <= 100
        assert orchestrator.runs_dropped == 1

    async def test_guard_released_after_provider_errors(self, make_provider, square_points, sample_window):
        provider = make_provider(default=RuntimeError("boom"))
        orchestrator = SamplingOrchestrator(provider)

        await orchestrator.run([make_polygon("a", square_points)], sample_window)
        second = await orchestrator.run([make_polygon("a", square_points)], sample_window)

        assert second is not None
        assert orchestrator.runs_completed == 2


class TestFailures:
    """포인트 단위 실패 테스트"""

    async def test_failed_points_are_excluded(self, make_provider, square_points, sample_window):
        provider = make_provider(values={
            (37.5, 126.5): ConnectionError("timeout"),
            (37.0, 126.0): None,
        }, default=12.0)
        orchestrator = SamplingOrchestrator(provider)

        result = await orchestrator.run([make_polygon("a", square_points)], sample_window)

        polygon = result.updated[0]
        assert polygon.additional_data.total_points == 3
        assert polygon.additional_data.center_value is None
        assert polygon.value == pytest.approx(12.0)
        assert len(result.failures) == 1
        assert result.failures[0].polygon_id == "a"
        assert result.progress[-1] == pytest.approx(100.0)

    async def test_all_points_failed_polygon_not_updated(self, make_provider, square_points, triangle_points, sample_window):
        """유효 값이 없는 폴리곤은 결과에서 빠지고 다른 폴리곤은 정상 처리"""
        bad = {(lat, lng): None for lat, lng in square_points}
        bad[(37.5, 126.5)] = None
        provider = make_provider(values=bad, default=5.0)
        orchestrator = SamplingOrchestrator(provider)

        result = await orchestrator.run(
            [make_polygon("a", square_points), make_polygon("b", triangle_points)],
            sample_window,
        )

        assert [p.id for p in result.updated] == ["b"]
        assert result.failures == []

    async def test_non_finite_values_become_null(self, make_provider, square_points, sample_window):
        provider = make_provider(values={(37.5, 126.5): math.nan, (37.0, 126.0): math.inf}, default=4.0)
        orchestrator = SamplingOrchestrator(provider)

        result = await orchestrator.run([make_polygon("a", square_points)], sample_window)

        assert result.updated[0].additional_data.total_points == 3
        assert result.updated[0].value == pytest.approx(4.0)


class TestConcurrency:
    """동시성 제한 테스트"""

    async def test_max_concurrency(self, make_provider, square_points, triangle_points, sample_window):
        provider = make_provider(delay=0.01)
        orchestrator = SamplingOrchestrator(provider, max_concurrency=2)

        await orchestrator.run(
            [make_polygon("a", square_points), make_polygon("b", triangle_points)],
            sample_window,
        )

        assert len(provider.calls) == 9
        assert provider.max_in_flight <= 2

    def test_invalid_concurrency(self, make_provider):
        with pytest.raises(ValueError):
            SamplingOrchestrator(make_provider(), max_concurrency=0)


class TestSamplingKey:
    def test_only_bound_polygons(self, square_points, triangle_points):
        a = make_polygon("a", square_points)
        b = make_polygon("b", triangle_points, None)
        assert sampling_key([a, b]) == (("a", "temperature_2m", a.point_key()),)

    def test_changes_with_geometry(self, square_points, triangle_points):
        a = make_polygon("a", square_points)
        assert sampling_key([a]) != sampling_key([a.with_points(to_points(triangle_points))])
