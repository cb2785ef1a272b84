"""
Настройка логирования с поддержкой trace_id.

Каждое принятое соединение получает уникальный trace_id, который
автоматически добавляется во все логи через ContextVar + Filter.
"""
import logging
import time
import uuid
from contextvars import ContextVar
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Optional

# trace_id хранится в contextvars, доступен из любой корутины
# в рамках одного соединения без явной передачи
trace_id_var: ContextVar[Optional[str]] = ContextVar("trace_id", default=None)


def generate_trace_id() -> str:
    """
    Генерирует короткий trace_id.

    Берём первые 8 символов UUID, этого достаточно для отладки,
    не захламляет логи.
    """
    return uuid.uuid4().hex[:8]


def get_trace_id() -> Optional[str]:
    """Текущий trace_id или None."""
    return trace_id_var.get()


def set_trace_id(trace_id: str) -> None:
    """Устанавливает trace_id для текущего контекста."""
    trace_id_var.set(trace_id)


class TraceIdFilter(logging.Filter):
    """
    Добавляет trace_id в каждую запись лога.

    Если trace_id не установлен (старт, reaper), ставит "-".
    """
    def filter(self, record: logging.LogRecord) -> bool:
        record.trace_id = trace_id_var.get() or "-"
        return True


@dataclass
class RequestLog:
    """
    Данные для лога запроса.

    Заполняется по ходу обработки и выводится в finally.
    status == 0 значит ответ так и не был отправлен целиком.
    """
    trace_id: str
    method: str
    path: str
    status: int
    duration_ms: float
    dynamic: bool = False


def setup_logger(level: str = "info") -> logging.Logger:
    """
    Настраивает логгер "tinyhttpd".

    Формат: 2025-01-15 12:30:45 | INFO | [abc12345] message
    """
    logger = logging.getLogger("tinyhttpd")
    logger.setLevel(getattr(logging, level.upper()))

    # чистим старые хэндлеры если есть (при перезапуске)
    logger.handlers.clear()

    handler = logging.StreamHandler()

    formatter = logging.Formatter(
        "%(asctime)s | %(levelname)s | [%(trace_id)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    handler.setFormatter(formatter)
    handler.addFilter(TraceIdFilter())
    logger.addHandler(handler)
    return logger


@contextmanager
def log_request(logger: logging.Logger, method: str, path: str) -> Iterator[RequestLog]:
    """
    Контекст для измерения времени запроса.

    Использование:
        with log_request(logger, "GET", "./home.html") as log:
            log.status = 200
        # автоматически залогирует с duration
    """
    trace_id = get_trace_id() or "-"
    start = time.perf_counter()
    log = RequestLog(
        trace_id=trace_id,
        method=method,
        path=path,
        status=0,
        duration_ms=0,
    )

    try:
        yield log
    finally:
        log.duration_ms = (time.perf_counter() - start) * 1000
        kind = "cgi" if log.dynamic else "static"
        logger.info(
            f"{log.method} {log.path} ({kind}) | "
            f"{log.status or '-'} | {log.duration_ms:.2f}ms"
        )
