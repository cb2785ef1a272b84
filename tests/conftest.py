"""
pytest configuration and fixtures.

Сервер в тестах запускается внутри asyncio.run() в главном потоке,
так SIGCHLD-обработчик reaper'а ставится по-настоящему.
"""
import asyncio
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

import pytest

from tinyhttpd.config import LimitsConfig, ServerConfig, TimeoutConfig
from tinyhttpd.server import TinyServer

HOME_HTML = (b"<html><head><title>Tiny</title></head>"
             b"<body><p>Welcome to the tiny web server.</p></body></html>\n")
HOME_HTML = HOME_HTML + b"." * (120 - len(HOME_HTML))

ENV_SCRIPT = (
    "#!/bin/sh\n"
    "printf 'Content-type: text/plain\\r\\n\\r\\n'\n"
    "printf 'QUERY_STRING=%s\\n' \"$QUERY_STRING\"\n"
    "printf 'REQUEST_METHOD=%s\\n' \"$REQUEST_METHOD\"\n"
)


@pytest.fixture
def site(tmp_path: Path) -> Path:
    """
    Корень сайта:

        home.html           120 байт
        empty.txt           0 байт
        style.css
        secret.txt          без права на чтение
        docs/home.html
        cgi-bin/env.sh      печатает QUERY_STRING и REQUEST_METHOD
        cgi-bin/noexec.sh   без права на запуск
    """
    root = tmp_path / "www"
    root.mkdir()
    (root / "home.html").write_bytes(HOME_HTML)
    (root / "empty.txt").write_bytes(b"")
    (root / "style.css").write_text("body { color: black; }\n")

    secret = root / "secret.txt"
    secret.write_text("top secret\n")
    secret.chmod(0o200)

    docs = root / "docs"
    docs.mkdir()
    (docs / "home.html").write_text("<html>docs</html>\n")

    cgi = root / "cgi-bin"
    cgi.mkdir()
    env_script = cgi / "env.sh"
    env_script.write_text(ENV_SCRIPT)
    env_script.chmod(0o755)
    noexec = cgi / "noexec.sh"
    noexec.write_text(ENV_SCRIPT)
    noexec.chmod(0o644)
    return root


@pytest.fixture
def config(site: Path) -> ServerConfig:
    """Конфиг для тестов: случайный порт, короткие таймауты."""
    return ServerConfig(
        listen_host="127.0.0.1",
        listen_port=0,
        root=str(site),
        timeouts=TimeoutConfig(read_ms=2000, write_ms=2000),
        limits=LimitsConfig(),
    )


@pytest.fixture
def small_lines_config(config: ServerConfig) -> ServerConfig:
    return replace(config, limits=LimitsConfig(max_line=64, max_body=16))


async def _roundtrip(port: int, raw: bytes, timeout: float) -> bytes:
    reader, writer = await asyncio.open_connection("127.0.0.1", port)
    try:
        if raw:
            writer.write(raw)
            await writer.drain()
        else:
            # клиент подключился и сразу закрыл свою сторону
            writer.write_eof()
        return await asyncio.wait_for(reader.read(), timeout)
    except ConnectionResetError:
        return b""
    finally:
        writer.close()


def exchange(config: ServerConfig, *requests: bytes, timeout: float = 5.0,
             abandon: Optional[bytes] = None) -> List[bytes]:
    """
    Запускает сервер, отправляет запросы по одному соединению на каждый
    и возвращает сырые ответы.

    abandon: запрос, после которого клиент сразу закрывает соединение,
    не читая ответ (отправляется первым).
    """
    async def scenario() -> List[bytes]:
        server = TinyServer(config)
        task = asyncio.create_task(server.start())
        await asyncio.wait_for(server.started.wait(), timeout)
        try:
            if abandon is not None:
                _, writer = await asyncio.open_connection("127.0.0.1", server.port)
                writer.write(abandon)
                await writer.drain()
                writer.close()
            return [await _roundtrip(server.port, raw, timeout) for raw in requests]
        finally:
            await server.stop()
            assert task.done()

    return asyncio.run(scenario())


def split_response(raw: bytes):
    """(status line, {header: value}, body)."""
    head, _, body = raw.partition(b"\r\n\r\n")
    lines = head.decode("latin-1").split("\r\n")
    headers = {}
    for line in lines[1:]:
        name, _, value = line.partition(":")
        headers[name.strip()] = value.strip()
    return lines[0], headers, body


class FakeWriter:
    """Подмена StreamWriter: копит записанное, drain может падать."""

    def __init__(self, fail_with: Optional[BaseException] = None):
        self.data = bytearray()
        self.fail_with = fail_with

    def write(self, data: bytes) -> None:
        self.data.extend(data)

    async def drain(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    def get_extra_info(self, name, default=None):
        return default


@pytest.fixture
def fake_writer():
    return FakeWriter
