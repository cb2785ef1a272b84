"""
Сбор завершившихся CGI-процессов.

Обработка запроса никогда не ждёт своего ребёнка. Вместо этого на
SIGCHLD подписан reap(), который забирает всех готовых детей через
waitpid(-1, WNOHANG) и не блокируется, если готовых нет.

Общего состояния с обработкой запросов нет, только таблица
процессов ОС. Обработчик сигнала asyncio вызывает между колбэками
loop'а, поэтому прерванных системных вызовов (и errno) тут нет.
"""
import asyncio
import logging
import os
import signal
from typing import Optional

logger = logging.getLogger("tinyhttpd")


class ChildReaper:
    """
    Подписка на SIGCHLD.

    Если add_signal_handler недоступен (loop не в главном потоке),
    работает fallback: фоновая задача опрашивает waitpid по таймеру.
    """

    def __init__(self, poll_interval: float = 1.0):
        self.poll_interval = poll_interval
        self.reaped = 0
        self._poll_task: Optional[asyncio.Task] = None
        self._signal_installed = False

    def reap(self) -> int:
        """
        Забирает всех завершившихся детей, возвращает сколько.

        Детей нет вообще (ECHILD) не ошибка, просто 0.
        """
        count = 0
        while True:
            try:
                pid, status = os.waitpid(-1, os.WNOHANG)
            except ChildProcessError:
                break
            if pid == 0:
                # дети есть, но ещё работают
                break
            count += 1
            logger.debug(f"Child {pid} reaped, exit code {os.waitstatus_to_exitcode(status)}")

        self.reaped += count
        return count

    def install(self, loop: asyncio.AbstractEventLoop) -> None:
        """Подписывает reap() на SIGCHLD или запускает опрос."""
        try:
            loop.add_signal_handler(signal.SIGCHLD, self.reap)
            self._signal_installed = True
            logger.debug("Child reaper subscribed to SIGCHLD")
        except (RuntimeError, ValueError, NotImplementedError, AttributeError) as e:
            logger.warning(
                f"SIGCHLD handler unavailable ({e}), polling every {self.poll_interval}s"
            )
            self._poll_task = loop.create_task(self._poll())

    def uninstall(self, loop: asyncio.AbstractEventLoop) -> None:
        if self._signal_installed:
            loop.remove_signal_handler(signal.SIGCHLD)
            self._signal_installed = False
        if self._poll_task is not None:
            self._poll_task.cancel()
            self._poll_task = None

    async def _poll(self) -> None:
        while True:
            await asyncio.sleep(self.poll_interval)
            self.reap()
