# geoshade/main.py
import os, asyncio
import uvicorn
from geoshade.adapters.openmeteo.client import OpenMeteoClient
from geoshade.api.app import create_app
from geoshade.core.threshold import RuleMatch
from geoshade.core.time_window import Timeline, TimeWindowState, default_window
from geoshade.orchestrators.sampling import SamplingOrchestrator
from geoshade.orchestrators.session import MapSession
from geoshade.settings import Settings
from geoshade.store.polygon_store import PolygonStore
from geoshade.observability.logging_setup import setup_logger, get_logger

def _b(name, default=False): return os.getenv(name, str(default)).lower() in ("1","true","yes","on")

def build_settings() -> Settings:
    s = Settings()

    # 데이터 제공자
    s.provider.base_url = os.getenv("OPEN_METEO_URL", s.provider.base_url)
    s.provider.timeout_sec = float(os.getenv("PROVIDER_TIMEOUT_SEC", s.provider.timeout_sec))
    s.provider.max_retries = int(os.getenv("PROVIDER_MAX_RETRIES", s.provider.max_retries))
    s.provider.max_concurrency = int(os.getenv("SAMPLING_MAX_CONCURRENCY", s.provider.max_concurrency))

    # 지도 / 규칙
    sources = os.getenv("DATA_SOURCES")
    if sources:
        s.map.data_sources = [x.strip() for x in sources.split(",") if x.strip()]
    s.map.default_color = os.getenv("DEFAULT_COLOR", s.map.default_color)
    s.map.equality_tolerance = float(os.getenv("EQUALITY_TOLERANCE", s.map.equality_tolerance))
    s.map.rule_match = RuleMatch(os.getenv("RULE_MATCH", s.map.rule_match).lower()).value

    # 관측성
    s.observability.http_port = int(os.getenv("HTTP_PORT", s.observability.http_port))
    s.observability.metrics_enabled = _b("METRICS_ENABLED", s.observability.metrics_enabled)
    s.observability.log_level = os.getenv("LOG_LEVEL", s.observability.log_level)
    s.observability.json_logs = _b("JSON_LOGS", s.observability.json_logs)

    return s

def build_session(s: Settings, provider) -> MapSession:
    store = PolygonStore(s.map.data_sources)
    window = TimeWindowState(default_window(days_before=s.timeline.days_before,
                                            days_after=s.timeline.days_after))
    orchestrator = SamplingOrchestrator(provider, max_concurrency=s.provider.max_concurrency)
    return MapSession(
        store, window, orchestrator,
        data_sources=s.map.data_sources,
        rules=s.map.default_rules,
        default_color=s.map.default_color,
        tolerance=s.map.equality_tolerance,
        rule_match=RuleMatch(s.map.rule_match),
        timeline=Timeline(days_before=s.timeline.days_before,
                          hours=24 * (s.timeline.days_before + s.timeline.days_after)),
    )

async def main():
    s = build_settings()
    setup_logger(s.observability.log_level, json_logs=s.observability.json_logs)
    log = get_logger("geoshade.main")
    log.info("설정 로드 완료", data_sources=s.map.data_sources, rule_match=s.map.rule_match)

    async with OpenMeteoClient(
        base_url=s.provider.base_url,
        timeout=s.provider.timeout_sec,
        max_retries=s.provider.max_retries,
        backoff_base=s.provider.backoff_base_sec,
        backoff_max=s.provider.backoff_max_sec,
    ) as provider:
        session = build_session(s, provider)
        log.info("지도 세션 생성 완료")

        app = create_app(s, session)
        server = uvicorn.Server(uvicorn.Config(
            app, host=s.observability.http_host, port=s.observability.http_port,
            log_level=s.observability.log_level.lower()
        ))
        log.info("HTTP 서버 시작", port=s.observability.http_port)
        # uvicorn 이 SIGINT/SIGTERM 을 처리하고 serve() 가 반환됨
        await server.serve()
        await session.wait_idle()
        log.info("종료")

def run():
    asyncio.run(main())

if __name__ == "__main__":
    run()
