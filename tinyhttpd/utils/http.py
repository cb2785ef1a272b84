"""
Минимальный HTTP/1.0 парсер.

Только то что нужно для tiny:
- построчное чтение с лимитом на длину строки
- request line -> путь в файловой системе + аргументы CGI
- Content-Length (остальные заголовки выбрасываем)
- тело POST, которое становится QUERY_STRING
"""
import asyncio
import logging
import posixpath
import re
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import AsyncIterator, Optional

from tinyhttpd.errors import RequestAborted

logger = logging.getLogger("tinyhttpd")

IMPLEMENTED_METHODS = ("GET", "HEAD", "POST")

# как sscanf("%d"): пробелы, знак, цифры, дальше мусор игнорируем
_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


class HttpStatus(IntEnum):
    """Коды, которые tiny умеет отдавать сам."""
    OK = 200
    FORBIDDEN = 403
    NOT_FOUND = 404
    NOT_IMPLEMENTED = 501

    @property
    def phrase(self) -> str:
        return _PHRASES[self]


_PHRASES = {
    HttpStatus.OK: "OK",
    HttpStatus.FORBIDDEN: "Forbidden",
    HttpStatus.NOT_FOUND: "Not Found",
    HttpStatus.NOT_IMPLEMENTED: "Not Implemented",
}


def reason_phrase(code: int) -> str:
    """Reason phrase для status line. Для чужих кодов заглушка."""
    try:
        return HttpStatus(code).phrase
    except ValueError:
        return "Unknown Error"


class LineEnd(Enum):
    """Почему строки закончились."""
    EOF = "eof"
    TOO_LONG = "too long"


class LineReader:
    """
    Построчное чтение из StreamReader.

    readline() возвращает строку без CRLF, "" для пустой строки
    и None когда данных больше не будет; после None всегда None,
    причина лежит в self.end.
    """

    def __init__(self, reader: asyncio.StreamReader, max_line: int):
        self._reader = reader
        self.max_line = max_line
        self.end: Optional[LineEnd] = None

    async def readline(self) -> Optional[str]:
        if self.end is not None:
            return None

        try:
            raw = await self._reader.readline()
        except ValueError:
            # StreamReader упёрся в свой limit раньше, чем нашёл \n
            self.end = LineEnd.TOO_LONG
            return None

        if not raw:
            self.end = LineEnd.EOF
            return None

        if raw.endswith(b"\r\n"):
            raw = raw[:-2]
        elif raw.endswith(b"\n"):
            raw = raw[:-1]

        if len(raw) > self.max_line:
            self.end = LineEnd.TOO_LONG
            return None

        # latin-1: стандартная кодировка для HTTP/1.x headers
        return raw.decode("latin-1")

    async def read_body(self, length: int) -> bytes:
        """
        Ровно length байт после заголовков.

        Если клиент закрыл раньше, отдаём сколько успели прочитать.
        """
        if length <= 0:
            return b""
        try:
            return await self._reader.readexactly(length)
        except asyncio.IncompleteReadError as e:
            return e.partial

    def __aiter__(self) -> AsyncIterator[str]:
        return self._iter_lines()

    async def _iter_lines(self) -> AsyncIterator[str]:
        while True:
            line = await self.readline()
            if line is None:
                return
            yield line


@dataclass(frozen=True)
class HttpRequest:
    """
    Распарсенный запрос.

    target_path: уже путь в файловой системе (root + path из URI),
    query_args: сырые аргументы CGI без декодирования.
    """
    method: str             # GET, HEAD, POST или что прислали
    uri: str                # /cgi-bin/adder?15&20
    version: str            # HTTP/1.0
    target_path: str        # ./cgi-bin/adder
    query_args: str = ""    # 15&20
    content_length: int = 0
    is_dynamic: bool = False

    @property
    def is_head(self) -> bool:
        return self.method == "HEAD"


def clean_path(path: str) -> str:
    """
    Убирает . и .. из пути, чтобы не выйти за пределы root.

    /a/../b -> /b, /.. -> /, слэш на конце сохраняется.
    """
    trailing = path.endswith("/")
    cleaned = "/" + posixpath.normpath("/" + path).lstrip("/")
    if trailing and not cleaned.endswith("/"):
        cleaned += "/"
    return cleaned


def parse_content_length(value: str) -> int:
    """Целое в начале значения; всё нераспознанное даёт 0."""
    match = _LEADING_INT.match(value)
    if not match:
        return 0
    return max(0, int(match.group(1)))


async def parse_request(
    lines: LineReader,
    root: str,
    default_file: str,
    cgi_prefix: str,
    max_body: int,
) -> HttpRequest:
    """
    Читает request line, заголовки и (для POST) тело.

    Формат:
    GET /cgi-bin/adder?15&20 HTTP/1.0\r\n
    Content-Length: 0\r\n
    \r\n

    Нет request line: RequestAborted, отвечать некому.
    """
    request_line = await lines.readline()
    if request_line is None:
        raise RequestAborted(f"No request line ({lines.end.value})")

    # разбираем как sscanf("%s %s %s"), лишнее игнорируем, недостающее пусто
    parts = request_line.split()
    if not parts:
        raise RequestAborted("Empty request line")
    method, uri, version = (parts + ["", ""])[:3]
    logger.info(f"Request: {request_line}")

    path, _, query_args = uri.partition("?")
    path = clean_path(path)

    target_path = root + path
    if path.endswith("/"):
        target_path += default_file
    is_dynamic = path.startswith(cgi_prefix)

    # заголовки читаем до пустой строки, нужен только Content-Length
    content_length = 0
    while True:
        header = await lines.readline()
        if header is None:
            if lines.end is LineEnd.TOO_LONG:
                # хвост строки выброшен вместе с буфером, дальше верить нечему
                raise RequestAborted("Header line too long")
            break
        if header == "":
            break
        logger.debug(f"Header: {header}")
        if header.startswith("Content-Length:"):
            content_length = parse_content_length(header[len("Content-Length:"):])

    if method == "POST":
        # тело только после заголовков, аргументы берём из него целиком
        if content_length > max_body:
            raise RequestAborted(
                f"Request body too large: {content_length} > {max_body}"
            )
        body = await lines.read_body(content_length)
        query_args = body.decode("latin-1")

    return HttpRequest(
        method=method,
        uri=uri,
        version=version,
        target_path=target_path,
        query_args=query_args,
        content_length=content_length,
        is_dynamic=is_dynamic,
    )
