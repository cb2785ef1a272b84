"""
Запуск CGI-программ.

Родитель шлёт только начало ответа (status line + Server), дальше
всё пишет сама программа: её stdout и есть сокет клиента.
Ждать завершения ребёнка здесь нельзя: зависшая программа
остановила бы accept(). Зомби собирает ChildReaper.
"""
import asyncio
import logging
import os
from types import MappingProxyType
from typing import Mapping

from tinyhttpd.config import TimeoutConfig
from tinyhttpd.errors import SpawnError
from tinyhttpd.responses import send
from tinyhttpd.utils.http import HttpRequest, HttpStatus

logger = logging.getLogger("tinyhttpd")


def cgi_environment(request: HttpRequest) -> Mapping[str, str]:
    """
    Окружение для программы: родительское + две переменные запроса.

    os.environ не трогаем, каждый запрос получает свою копию.
    """
    env = dict(os.environ)
    env["QUERY_STRING"] = request.query_args
    env["REQUEST_METHOD"] = request.method
    return MappingProxyType(env)


def spawn_cgi(path: str, env: Mapping[str, str], stdout_fd: int) -> int:
    """
    posix_spawn: dup2(stdout_fd, 1) + exec без аргументов кроме имени.

    Возвращает pid. Ребёнок наследует SIG_IGN для SIGPIPE от
    интерпретатора, так что отвалившийся клиент его не убьёт.
    """
    try:
        return os.posix_spawn(
            path,
            [path],
            env,
            file_actions=[(os.POSIX_SPAWN_DUP2, stdout_fd, 1)],
        )
    except OSError as e:
        raise SpawnError(path, e.strerror or str(e)) from e


async def serve_dynamic(
    writer: asyncio.StreamWriter,
    request: HttpRequest,
    server_name: str,
    timeouts: TimeoutConfig,
) -> HttpStatus:
    """
    Отдаёт начало ответа и запускает программу.

    Content-length не шлём, длина заранее неизвестна.
    Для HEAD программу не запускаем: заголовки закрываем пустой
    строкой, тела не будет.
    """
    header = (
        "HTTP/1.0 200 OK\r\n"
        f"Server: {server_name}\r\n"
    )
    if request.is_head:
        header += "\r\n"
    await send(writer, header.encode("latin-1"), timeouts.write, "sending CGI headers")

    if request.is_head:
        return HttpStatus.OK

    sock = writer.get_extra_info("socket")
    fd = sock.fileno()
    # O_NONBLOCK живёт на открытом файле, а не на дескрипторе,
    # без этого программа получала бы EAGAIN на больших ответах.
    # Мы уже всё отправили (drain выше), после нас сокет только закрывают.
    os.set_blocking(fd, True)

    pid = spawn_cgi(request.target_path, cgi_environment(request), fd)
    logger.info(f"Spawned {request.target_path} as pid {pid}")
    return HttpStatus.OK
