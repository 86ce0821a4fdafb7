"""
In-memory polygon store for GeoShade.

This module implements the authoritative collection of annotated
polygons. It owns identity and insertion order and rejects exact
structural duplicates.
"""

import secrets
import string
import time
from typing import Dict, List, Optional, Sequence
from geoshade.core.errors import DuplicateGeometry, DuplicateId, NotFound
from geoshade.core.models import Polygon
from geoshade.observability import metrics
from geoshade.observability.logging_setup import get_logger

log = get_logger("geoshade.store")

_ID_ALPHABET = string.ascii_lowercase + string.digits


def new_polygon_id() -> str:
    """polygon_<epoch ms>_<base36 9자리> 형식의 id 를 생성합니다."""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"polygon_{int(time.time() * 1000)}_{suffix}"


class PolygonStore:
    """메모리 기반 폴리곤 저장소"""

    def __init__(self, data_sources: Sequence[str] = ()):
        """
        초기화합니다.

        Args:
            data_sources: 설정된 데이터 소스 id 목록 (하나뿐이면 새 폴리곤에 자동 지정)
        """
        self.data_sources = list(data_sources)
        self._polygons: Dict[str, Polygon] = {}

    def __len__(self) -> int:
        return len(self._polygons)

    def __contains__(self, polygon_id: str) -> bool:
        return polygon_id in self._polygons

    def create(self, polygon: Polygon) -> Polygon:
        """
        폴리곤을 추가합니다.

        Args:
            polygon: 추가할 폴리곤

        Returns:
            저장된 폴리곤 (데이터 소스 자동 지정 반영)

        Raises:
            DuplicateId: 같은 id 가 이미 존재
            DuplicateGeometry: 꼭짓점 순서까지 동일한 폴리곤이 이미 존재
        """
        if polygon.id in self._polygons:
            raise DuplicateId(polygon.id)

        key = polygon.point_key()
        for existing in self._polygons.values():
            if existing.point_key() == key:
                raise DuplicateGeometry(polygon.id, existing.id)

        if polygon.data_source is None and len(self.data_sources) == 1:
            polygon = polygon.model_copy(update={"data_source": self.data_sources[0]})

        # dict 는 삽입 순서를 유지함
        self._polygons[polygon.id] = polygon
        metrics.polygons_stored.set(len(self._polygons))
        log.debug("폴리곤 추가됨", polygon_id=polygon.id, vertices=len(polygon.points),
                  data_source=polygon.data_source)
        return polygon

    def update(self, polygon: Polygon) -> Polygon:
        """
        같은 id 의 폴리곤을 교체합니다.

        Raises:
            NotFound: id 가 없음 (동시 삭제 경합일 수 있으므로 호출자는 무시 가능)
        """
        if polygon.id not in self._polygons:
            raise NotFound(polygon.id)
        self._polygons[polygon.id] = polygon
        return polygon

    def delete(self, polygon_id: str) -> bool:
        """폴리곤을 삭제합니다. 없는 id 는 조용히 무시합니다."""
        removed = self._polygons.pop(polygon_id, None) is not None
        if removed:
            metrics.polygons_stored.set(len(self._polygons))
            log.debug("폴리곤 삭제됨", polygon_id=polygon_id)
        return removed

    def get(self, polygon_id: str) -> Optional[Polygon]:
        return self._polygons.get(polygon_id)

    def list(self) -> List[Polygon]:
        """삽입 순서의 현재 스냅샷"""
        return list(self._polygons.values())
