"""
Формирование ответов: статика и страницы ошибок.

Ответы всегда HTTP/1.0 и Connection: close, соединение
закрывается сразу после ответа.
HEAD никогда не получает тела, какой бы ни был ответ.
"""
import asyncio
import html
import logging
import mmap
import os

from tinyhttpd.config import TimeoutConfig
from tinyhttpd.errors import ClientDisconnected
from tinyhttpd.timeouts import with_timeout
from tinyhttpd.utils.http import HttpRequest, HttpStatus, reason_phrase

logger = logging.getLogger("tinyhttpd")

# 16KB: хороший баланс между latency и throughput
# меньший чанк даёт больше syscall'ов, больший дольше ждёт первый байт
CHUNK_SIZE = 16 * 1024

MIME_TYPES = {
    "html": "text/html",
    "css": "text/css",
    "js": "text/javascript",
    "pdf": "application/pdf",
    "gif": "image/gif",
    "png": "image/png",
    "jpg": "image/jpeg",
    "ico": "image/vnd.microsoft.icon",
    "mpg": "video/mpeg",
    "mpeg": "video/mpeg",
    "mp4": "video/mp4",
}


def mime_type(filename: str) -> str:
    """MIME по расширению, неизвестное отдаём как text/plain."""
    ext = os.path.splitext(os.path.basename(filename))[1]
    return MIME_TYPES.get(ext[1:].lower(), "text/plain")


async def send(
    writer: asyncio.StreamWriter,
    data: bytes,
    timeout: float,
    operation: str = "writing response",
) -> None:
    """
    write() + drain() с таймаутом.

    Клиент, закрывший соединение, превращается в ClientDisconnected:
    это нормальная ситуация, а не падение сервера.
    """
    try:
        writer.write(data)
        # drain() блокирует если получатель не успевает, это и есть backpressure
        await with_timeout(writer.drain(), timeout, operation)
    except (BrokenPipeError, ConnectionResetError) as e:
        raise ClientDisconnected(f"Client went away during {operation}: {e}") from e


async def serve_static(
    writer: asyncio.StreamWriter,
    request: HttpRequest,
    size: int,
    server_name: str,
    timeouts: TimeoutConfig,
) -> HttpStatus:
    """
    Отдаёт файл целиком.

    Файл мапится в память и уходит чанками, копируется только
    текущий чанк. mmap закрывается в любом случае, даже если
    клиент отвалился посреди передачи.

    Открываем и мапим до заголовков: если файл пропал или
    съёжился после stat, клиент не получит 200 без тела.
    """
    header = (
        "HTTP/1.0 200 OK\r\n"
        f"Server: {server_name}\r\n"
        "Connection: close\r\n"
        f"Content-length: {size}\r\n"
        f"Content-type: {mime_type(request.target_path)}\r\n"
        "\r\n"
    ).encode("latin-1")

    if request.is_head or size == 0:
        # пустой файл mmap не умеет, да и слать нечего
        await send(writer, header, timeouts.write, "sending headers")
        return HttpStatus.OK

    with open(request.target_path, "rb") as f:
        mapped = mmap.mmap(f.fileno(), size, access=mmap.ACCESS_READ)

    with mapped:
        await send(writer, header, timeouts.write, "sending headers")
        logger.debug(f"Response headers:\n{header.decode('latin-1')}")
        for offset in range(0, size, CHUNK_SIZE):
            await send(
                writer,
                mapped[offset:offset + CHUNK_SIZE],
                timeouts.write,
                "sending file",
            )

    return HttpStatus.OK


def error_body(status: int, cause: str, message: str) -> str:
    """HTML-страница ошибки. cause приходит от клиента, экранируем."""
    return (
        "<html><title>Tiny Error</title>"
        "<body bgcolor=ffffff>\r\n"
        f"{status}: {reason_phrase(status)}\r\n"
        f"<p>{message}: {html.escape(cause)}\r\n"
        "<hr><em>The Tiny Web server</em></body></html>\r\n"
    )


async def send_error(
    writer: asyncio.StreamWriter,
    method: str,
    cause: str,
    status: int,
    message: str,
    timeouts: TimeoutConfig,
) -> None:
    """
    Отправляет клиенту страницу ошибки.

    Content-length считаем по байтам, а не по символам.
    """
    body = error_body(status, cause, message).encode("utf-8")
    header = (
        f"HTTP/1.0 {status} {reason_phrase(status)}\r\n"
        "Content-type: text/html\r\n"
        f"Content-length: {len(body)}\r\n"
        "\r\n"
    )

    payload = header.encode("latin-1")
    if method != "HEAD":
        payload += body
    await send(writer, payload, timeouts.write, "sending error page")
