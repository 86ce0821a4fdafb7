from __future__ import annotations
import logging
import sys
from loguru import logger

# ---- stdlib logging → loguru 인터셉트 ----
class InterceptHandler(logging.Handler):
    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno
        logger.opt(depth=6, exception=record.exc_info).log(level, record.getMessage())

def _hook_stdlib_logging() -> None:
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    # uvicorn / aiohttp 로그도 같은 sink 로
    for noisy in ("uvicorn", "uvicorn.error", "uvicorn.access", "aiohttp", "asyncio"):
        l = logging.getLogger(noisy)
        l.handlers = [InterceptHandler()]
        l.propagate = False

# ---- 개발 콘솔 포맷: 모듈명 + 메시지 + key=value 필드 ----
DEV_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level:<7}</level> | "
    "<cyan>{extra[name]}</cyan> | "
    "<level>{message}</level>"
    "<dim>{extra[fields]}</dim>"
)

def render_fields(record) -> None:
    """log.info("msg", polygon_id=...) 의 kwargs 를 ' key=value' 문자열로 펼침 (콘솔 전용)."""
    extra = record["extra"]
    pairs = [f"{k}={v}" for k, v in extra.items() if k not in ("name", "fields")]
    extra["fields"] = (" " + " ".join(pairs)) if pairs else ""

def setup_logging_dev(log_level: str = "INFO", json_logs: bool = False) -> None:
    """
    loguru 초기화.
    - 기본: 콘솔 컬러 출력, 바인딩된 필드를 메시지 뒤에 표시
    - json_logs=True: 한 줄 JSON (serialize), 필드는 record.extra 에 그대로
    - stdlib logging 흡수
    """
    logger.remove()  # 기본 sink 제거
    if json_logs:
        logger.configure(extra={"name": "geoshade"}, patcher=lambda record: None)
        logger.add(
            sink=sys.stdout,
            serialize=True,
            backtrace=False,
            diagnose=False,
            level=log_level.upper(),
            enqueue=False,
        )
    else:
        logger.configure(extra={"name": "geoshade", "fields": ""}, patcher=render_fields)
        logger.add(
            sink=lambda m: print(m, end=""),
            format=DEV_FORMAT,
            colorize=True,
            backtrace=True,
            diagnose=False,
            level=log_level.upper(),
            enqueue=False,
        )
    _hook_stdlib_logging()

def get_logger(name: str = "geoshade", **ctx):
    """모듈명(및 선택적 컨텍스트)을 바인딩한 logger 반환."""
    return logger.bind(name=name, **ctx)

def with_context(**ctx):
    """컨텍스트 매니저로 일시 컨텍스트 부여 (예: 샘플링 실행 번호)."""
    return logger.contextualize(**ctx)

# main.py 에서 쓰는 별칭
setup_logger = setup_logging_dev
