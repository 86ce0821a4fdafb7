"""
HTTP endpoints for GeoShade.

This module exposes the map session to the view layer (polygons,
threshold rules, time window, run status) together with health,
readiness, metrics and info endpoints.
"""

import time
from datetime import date
from typing import List, Optional
from fastapi import FastAPI, HTTPException
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pydantic import BaseModel
from geoshade.core.errors import GeometryError, UnknownDataSource
from geoshade.core.models import LatLng, Polygon, ThresholdRule, TimeWindow
from geoshade.orchestrators.sampling import RunStatus
from geoshade.orchestrators.session import MapSession
from geoshade.observability.logging_setup import get_logger
from geoshade.settings import Settings

log = get_logger("geoshade.api")


class GeometryPayload(BaseModel):
    points: List[LatLng]
    data_source: Optional[str] = None


class EditPayload(BaseModel):
    points: List[LatLng]


class DataSourcePayload(BaseModel):
    data_source: Optional[str] = None


class CreateResponse(BaseModel):
    created: bool
    polygon: Optional[Polygon] = None


class TimeWindowPayload(BaseModel):
    """날짜 쌍 또는 슬라이더 인덱스 쌍. 역순이면 세션이 교환함"""
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    start_index: Optional[int] = None
    end_index: Optional[int] = None


class TimelineResponse(BaseModel):
    origin: str
    hours: int
    start_index: int
    end_index: int


def create_app(settings: Settings, session: MapSession) -> FastAPI:
    """FastAPI 애플리케이션을 생성합니다."""
    app = FastAPI(
        title=settings.observability.service_name,
        version=settings.observability.build_version,
        description="GeoShade polygon sampling and threshold service"
    )

    start_time = time.time()

    @app.get("/health")
    async def health():
        """헬스 체크 엔드포인트"""
        return JSONResponse({
            "status": "ok",
            "service": settings.observability.service_name,
            "timestamp": time.time()
        })

    @app.get("/ready")
    async def ready():
        """레디니스 체크 엔드포인트"""
        return JSONResponse({
            "status": "ready",
            "service": settings.observability.service_name,
            "sampling": session.status().state.value,
            "timestamp": time.time()
        })

    @app.get("/metrics")
    async def metrics():
        """Prometheus 메트릭 엔드포인트"""
        if not settings.observability.metrics_enabled:
            raise HTTPException(status_code=503, detail="Metrics disabled")
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    @app.get("/info")
    async def info():
        """서비스 정보 엔드포인트"""
        uptime = time.time() - start_time
        return JSONResponse({
            "service": settings.observability.service_name,
            "version": settings.observability.build_version,
            "build_date": settings.observability.build_date,
            "uptime_seconds": int(uptime),
            "metrics_enabled": settings.observability.metrics_enabled,
            "log_level": settings.observability.log_level,
            "data_sources": session.data_sources,
        })

    # ---- 폴리곤 ----

    @app.get("/polygons", response_model=List[Polygon])
    async def list_polygons():
        return session.polygons()

    @app.post("/polygons", response_model=CreateResponse)
    async def create_polygon(payload: GeometryPayload):
        """그리기 완료 이벤트"""
        try:
            polygon = session.geometry_created(payload.points, payload.data_source)
        except (GeometryError, UnknownDataSource) as e:
            log.warning("폴리곤 생성 요청 거부", error=str(e))
            raise HTTPException(status_code=422, detail=str(e))
        if polygon is None:
            return CreateResponse(created=False)
        return CreateResponse(created=True, polygon=polygon)

    @app.put("/polygons/{polygon_id}", response_model=Polygon)
    async def edit_polygon(polygon_id: str, payload: EditPayload):
        """편집 완료 이벤트. 422 이면 그리기 도구가 형상을 되돌려야 함"""
        try:
            polygon = session.geometry_edited(polygon_id, payload.points)
        except GeometryError as e:
            raise HTTPException(status_code=422, detail=str(e))
        if polygon is None:
            raise HTTPException(status_code=404, detail=f"Polygon not found: {polygon_id}")
        return polygon

    @app.delete("/polygons/{polygon_id}")
    async def delete_polygon(polygon_id: str):
        return {"deleted": session.geometry_deleted(polygon_id)}

    @app.put("/polygons/{polygon_id}/data-source", response_model=Polygon)
    async def set_data_source(polygon_id: str, payload: DataSourcePayload):
        try:
            polygon = session.assign_data_source(polygon_id, payload.data_source)
        except UnknownDataSource as e:
            log.warning("데이터 소스 변경 요청 거부", polygon_id=polygon_id, error=str(e))
            raise HTTPException(status_code=422, detail=str(e))
        if polygon is None:
            raise HTTPException(status_code=404, detail=f"Polygon not found: {polygon_id}")
        return polygon

    # ---- 규칙 / 시간 구간 / 상태 ----

    @app.get("/threshold-rules", response_model=List[ThresholdRule])
    async def get_rules():
        return session.threshold_rules

    @app.put("/threshold-rules", response_model=List[Polygon])
    async def put_rules(rules: List[ThresholdRule]):
        return session.set_threshold_rules(rules)

    @app.post("/evaluate", response_model=List[Polygon])
    async def evaluate_thresholds():
        return session.evaluate_thresholds()

    @app.get("/time-window", response_model=TimeWindow)
    async def get_time_window():
        return session.time_window.current()

    @app.put("/time-window", response_model=TimeWindow)
    async def put_time_window(payload: TimeWindowPayload):
        """타임라인 변경 이벤트 (재샘플링은 세션이 예약)"""
        if payload.start_index is not None and payload.end_index is not None:
            return session.time_window_from_slider(payload.start_index, payload.end_index)
        if payload.start_date is not None and payload.end_date is not None:
            return session.time_window_changed(payload.start_date, payload.end_date)
        log.warning("시간 구간 요청 거부", payload=payload.model_dump(exclude_none=True))
        raise HTTPException(status_code=422,
                            detail="start_date and end_date, or start_index and end_index, are required")

    @app.get("/timeline", response_model=TimelineResponse)
    async def get_timeline():
        """슬라이더 기준 시각과 현재 손잡이 위치"""
        start_index, end_index = session.slider_indices()
        return TimelineResponse(origin=session.timeline.origin.isoformat(), hours=session.timeline.hours,
                                start_index=start_index, end_index=end_index)

    @app.get("/status", response_model=RunStatus)
    async def status():
        return session.status()

    @app.post("/refresh")
    async def refresh():
        """샘플링을 강제로 실행합니다 (진행 중이면 무시)"""
        ran = await session.refresh(force=True)
        return {"ran": ran, "status": session.status().model_dump(mode="json")}

    @app.get("/")
    async def root():
        """루트 엔드포인트"""
        return JSONResponse({
            "service": settings.observability.service_name,
            "version": settings.observability.build_version,
            "endpoints": {
                "health": "/health",
                "ready": "/ready",
                "metrics": "/metrics",
                "info": "/info",
                "polygons": "/polygons",
                "threshold_rules": "/threshold-rules",
                "time_window": "/time-window",
                "timeline": "/timeline",
                "status": "/status",
            }
        })

    return app
