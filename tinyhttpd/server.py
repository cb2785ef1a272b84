"""
TCP-сервер: accept -> обслужить -> закрыть -> снова accept.

Соединения обслуживаются строго по одному, поэтому вместо
asyncio.start_server() здесь свой цикл поверх loop.sock_accept().
Параллельно живут только CGI-процессы, их собирает ChildReaper.
"""
import asyncio
import logging
import socket
from enum import Enum
from typing import Optional

from tinyhttpd.client_handler import handle_client
from tinyhttpd.config import ServerConfig
from tinyhttpd.logger import generate_trace_id, set_trace_id
from tinyhttpd.reaper import ChildReaper

logger = logging.getLogger("tinyhttpd")


class ServerState(Enum):
    IDLE = "idle"
    ACCEPTING = "accepting"
    SERVING = "serving"
    CLOSING = "closing"


class TinyServer:
    """
    Основной класс сервера.

    start() крутится, пока задачу не отменят (stop() или сигнал).
    Между соединениями не сохраняется ничего, кроме счётчика.
    """

    def __init__(self, config: ServerConfig):
        self.config = config
        self.state = ServerState.IDLE
        self.started = asyncio.Event()
        self.reaper = ChildReaper(config.reaper.poll_interval)
        self.connections_served = 0
        self._sock: Optional[socket.socket] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def port(self) -> int:
        """Реальный порт, важно, если в конфиге 0."""
        if self._sock is not None:
            return self._sock.getsockname()[1]
        return self.config.listen_port

    async def start(self) -> None:
        """
        Запуск сервера.

        Сокет слушает с самого начала, а accept() делаем только
        когда предыдущее соединение закрыто.
        """
        loop = asyncio.get_running_loop()
        self._task = asyncio.current_task()
        self._sock = self._create_listen_socket()
        self.reaper.install(loop)

        logger.info(
            f"{self.config.server_name} is listening on "
            f"{self.config.listen_host}:{self.port}, root '{self.config.root}'"
        )
        self.started.set()

        try:
            while True:
                await self._serve_next(loop)
        finally:
            self.reaper.uninstall(loop)
            self._sock.close()
            self._sock = None
            self.state = ServerState.IDLE
            self.started.clear()

    async def stop(self) -> None:
        """Остановка: отменяем задачу с циклом accept."""
        if self._task is None or self._task.done():
            return
        logger.info("Stopping server...")
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        logger.info("Server stopped")

    def _create_listen_socket(self) -> socket.socket:
        """
        Слушающий сокет: bind + listen.
        SO_REUSEADDR, чтобы перезапуск не ждал, пока уйдёт TIME_WAIT.
        """
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind((self.config.listen_host, self.config.listen_port))
        sock.listen(self.config.limits.backlog)
        sock.setblocking(False)
        return sock

    async def _serve_next(self, loop: asyncio.AbstractEventLoop) -> None:
        """Один цикл: ACCEPTING -> SERVING -> CLOSING."""
        self.state = ServerState.ACCEPTING
        try:
            conn, addr = await loop.sock_accept(self._sock)
        except OSError as e:
            # ECONNABORTED, EMFILE и т.п.: этот клиент потерян, ждём следующего
            logger.warning(f"Accept failed: {e}")
            return

        set_trace_id(generate_trace_id())
        client = f"{addr[0]}:{addr[1]}"
        logger.info(f"Connected to ({client})")

        self.state = ServerState.SERVING
        writer = None
        try:
            reader, writer = await asyncio.open_connection(
                sock=conn,
                # +2 на CRLF, точную длину строки проверяет LineReader
                limit=self.config.limits.max_line + 2,
            )
            await handle_client(reader, writer, self.config)
        except Exception as e:
            logger.exception(f"Unexpected error while serving ({client}): {e}")
        finally:
            self.state = ServerState.CLOSING
            self.connections_served += 1
            # всегда закрываем соединение с клиентом
            if writer is not None:
                try:
                    writer.close()
                    await writer.wait_closed()
                except Exception:
                    pass  # уже закрыт или сломался, ок
            else:
                conn.close()
            logger.info(f"Client ({client}) disconnected")
