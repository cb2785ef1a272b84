"""
Обработка одного соединения.

Это главная логика сервера:
- читаем и парсим запрос
- проверяем ресурс (метод, существование, права)
- отдаём статику, запускаем CGI или шлём страницу ошибки
"""
import asyncio
import logging
from typing import Optional

from tinyhttpd.cgi import serve_dynamic
from tinyhttpd.config import ServerConfig
from tinyhttpd.errors import ClientDisconnected, RequestAborted, SpawnError
from tinyhttpd.logger import log_request
from tinyhttpd.resolver import Rejection, resolve
from tinyhttpd.responses import send_error, serve_static
from tinyhttpd.timeouts import with_timeout
from tinyhttpd.utils.http import HttpRequest, LineReader, parse_request

logger = logging.getLogger("tinyhttpd")


async def handle_client(
    reader: asyncio.StreamReader,
    writer: asyncio.StreamWriter,
    config: ServerConfig,
) -> Optional[int]:
    """
    Один запрос, один ответ.

    Возвращает статус ответа или None, если ответ так и не был
    отправлен целиком. Соединение закрывает вызывающий.
    """
    lines = LineReader(reader, config.limits.max_line)

    try:
        request = await with_timeout(
            parse_request(
                lines,
                root=config.root,
                default_file=config.default_file,
                cgi_prefix=config.cgi_prefix,
                max_body=config.limits.max_body,
            ),
            config.timeouts.read,
            "reading request",
        )
    except RequestAborted as e:
        # клиент ничего толкового не прислал, отвечать некому
        logger.debug(f"Request aborted: {e}")
        return None
    except TimeoutError as e:
        logger.warning(f"Timeout: {e}")
        return None

    with log_request(logger, request.method, request.target_path) as log:
        log.dynamic = request.is_dynamic
        try:
            log.status = await write_response(writer, request, config)
        except ClientDisconnected as e:
            logger.info(str(e))
        except TimeoutError as e:
            logger.warning(f"Timeout: {e}")
        except SpawnError as e:
            # заголовок уже ушёл, исправить ответ нечем
            logger.error(f"CGI failed: {e}")

    return log.status or None


async def write_response(
    writer: asyncio.StreamWriter,
    request: HttpRequest,
    config: ServerConfig,
) -> int:
    """Выбирает ответ и отправляет его, возвращает HTTP-статус."""
    outcome = resolve(request)

    if isinstance(outcome, Rejection):
        await send_error(
            writer,
            request.method,
            outcome.cause,
            outcome.status,
            outcome.message,
            config.timeouts,
        )
        return outcome.status

    if request.is_dynamic:
        return await serve_dynamic(writer, request, config.server_name, config.timeouts)

    return await serve_static(writer, request, outcome.size, config.server_name, config.timeouts)
