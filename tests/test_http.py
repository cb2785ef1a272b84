"""
Unit tests for the line reader and request parsing.
"""
import asyncio

import pytest

from tinyhttpd.errors import RequestAborted
from tinyhttpd.utils.http import (
    HttpStatus,
    LineEnd,
    LineReader,
    clean_path,
    parse_content_length,
    parse_request,
    reason_phrase,
)


def _stream(raw: bytes) -> asyncio.StreamReader:
    reader = asyncio.StreamReader()
    reader.feed_data(raw)
    reader.feed_eof()
    return reader


def read_lines(raw: bytes, max_line: int = 8192):
    async def go():
        lines = LineReader(_stream(raw), max_line)
        collected = [line async for line in lines]
        return collected, lines.end
    return asyncio.run(go())


def parse(raw: bytes, max_body: int = 8192, max_line: int = 8192):
    async def go():
        lines = LineReader(_stream(raw), max_line)
        return await parse_request(
            lines, root=".", default_file="home.html",
            cgi_prefix="/cgi-bin/", max_body=max_body,
        )
    return asyncio.run(go())


class TestLineReader:

    def test_strips_line_endings(self):
        lines, end = read_lines(b"first\r\nsecond\n\r\n")
        assert lines == ["first", "second", ""]
        assert end is LineEnd.EOF

    def test_partial_last_line_is_returned(self):
        lines, end = read_lines(b"GET / HTTP/1.0")
        assert lines == ["GET / HTTP/1.0"]
        assert end is LineEnd.EOF

    def test_overlong_line_ends_stream(self):
        lines, end = read_lines(b"short\r\n" + b"x" * 100 + b"\r\nafter\r\n", max_line=16)
        assert lines == ["short"]
        assert end is LineEnd.TOO_LONG

    def test_line_of_exact_limit_is_accepted(self):
        lines, _ = read_lines(b"x" * 16 + b"\r\n", max_line=16)
        assert lines == ["x" * 16]

    def test_none_is_final(self):
        async def go():
            lines = LineReader(_stream(b""), 64)
            return [await lines.readline(), await lines.readline()]
        assert asyncio.run(go()) == [None, None]

    def test_read_body_returns_partial_on_eof(self):
        async def go():
            lines = LineReader(_stream(b"\r\nabc"), 64)
            assert await lines.readline() == ""
            return await lines.read_body(10)
        assert asyncio.run(go()) == b"abc"

    def test_read_body_zero_length(self):
        async def go():
            return await LineReader(_stream(b"abc"), 64).read_body(0)
        assert asyncio.run(go()) == b""


class TestParseRequest:

    def test_simple_get(self):
        request = parse(b"GET /home.html HTTP/1.0\r\nHost: localhost\r\n\r\n")
        assert request.method == "GET"
        assert request.uri == "/home.html"
        assert request.version == "HTTP/1.0"
        assert request.target_path == "./home.html"
        assert request.query_args == ""
        assert request.content_length == 0
        assert request.is_dynamic is False

    def test_trailing_slash_gets_default_file(self):
        assert parse(b"GET / HTTP/1.0\r\n\r\n").target_path == "./home.html"
        assert parse(b"GET /docs/ HTTP/1.0\r\n\r\n").target_path == "./docs/home.html"

    def test_cgi_request_with_query(self):
        request = parse(b"GET /cgi-bin/adder?15&20 HTTP/1.0\r\n\r\n")
        assert request.is_dynamic is True
        assert request.target_path == "./cgi-bin/adder"
        assert request.query_args == "15&20"

    def test_query_split_at_first_question_mark(self):
        request = parse(b"GET /cgi-bin/x?a=1?b=2 HTTP/1.0\r\n\r\n")
        assert request.query_args == "a=1?b=2"

    def test_query_is_not_decoded(self):
        request = parse(b"GET /cgi-bin/x?q=hello%20world HTTP/1.0\r\n\r\n")
        assert request.query_args == "q=hello%20world"

    def test_post_body_replaces_query(self):
        request = parse(
            b"POST /cgi-bin/adder?15&20 HTTP/1.0\r\n"
            b"Content-Length: 7\r\n"
            b"\r\n"
            b"1&2&3&4"
        )
        assert request.content_length == 7
        assert request.query_args == "1&2&3&4"

    def test_post_without_body_clears_query(self):
        request = parse(b"POST /cgi-bin/adder?15&20 HTTP/1.0\r\nContent-Length: 0\r\n\r\n")
        assert request.query_args == ""

    def test_get_keeps_query_and_ignores_body(self):
        request = parse(b"GET /cgi-bin/adder?15&20 HTTP/1.0\r\nContent-Length: 3\r\n\r\nabc")
        assert request.query_args == "15&20"

    def test_content_length_prefix_is_case_sensitive(self):
        request = parse(b"POST /cgi-bin/x HTTP/1.0\r\ncontent-length: 3\r\n\r\nabc")
        assert request.content_length == 0
        assert request.query_args == ""

    def test_oversized_post_body_aborts(self):
        with pytest.raises(RequestAborted):
            parse(b"POST /cgi-bin/x HTTP/1.0\r\nContent-Length: 100\r\n\r\n", max_body=10)

    def test_unknown_method_is_kept(self):
        assert parse(b"BREW /pot HTTP/1.0\r\n\r\n").method == "BREW"

    def test_extra_tokens_are_ignored(self):
        request = parse(b"GET /home.html HTTP/1.0 trailing junk\r\n\r\n")
        assert request.version == "HTTP/1.0"
        assert request.target_path == "./home.html"

    def test_missing_tokens_are_empty(self):
        request = parse(b"GET\r\n\r\n")
        assert request.uri == ""
        assert request.version == ""
        assert request.target_path == "./home.html"

    def test_headers_end_at_eof(self):
        request = parse(b"GET /home.html HTTP/1.0\r\nHost: x\r\n")
        assert request.target_path == "./home.html"

    def test_overlong_header_aborts(self):
        with pytest.raises(RequestAborted):
            parse(b"GET /home.html HTTP/1.0\r\nX-Long: " + b"a" * 200 + b"\r\n\r\n", max_line=64)

    def test_overlong_header_in_post_aborts(self):
        with pytest.raises(RequestAborted):
            parse(
                b"POST /cgi-bin/x HTTP/1.0\r\nContent-Length: 3\r\n"
                + b"X-Long: " + b"a" * 200 + b"\r\n\r\nabc",
                max_line=64,
            )

    def test_empty_stream_aborts(self):
        with pytest.raises(RequestAborted):
            parse(b"")

    def test_blank_request_line_aborts(self):
        with pytest.raises(RequestAborted):
            parse(b"\r\n\r\n")

    def test_path_cannot_escape_root(self):
        assert parse(b"GET /../../etc/passwd HTTP/1.0\r\n\r\n").target_path == "./etc/passwd"

    def test_dot_segments_are_removed_before_classification(self):
        request = parse(b"GET /cgi-bin/../home.html HTTP/1.0\r\n\r\n")
        assert request.is_dynamic is False
        assert request.target_path == "./home.html"


@pytest.mark.parametrize("value, expected", [
    (" 120", 120),
    ("42\r", 42),
    ("12xyz", 12),
    (" +7", 7),
    (" -5", 0),
    (" abc", 0),
    ("", 0),
])
def test_parse_content_length(value, expected):
    assert parse_content_length(value) == expected


@pytest.mark.parametrize("path, expected", [
    ("/home.html", "/home.html"),
    ("/", "/"),
    ("", "/"),
    ("/a/./b/", "/a/b/"),
    ("/a/../../b", "/b"),
    ("//cgi-bin//x", "/cgi-bin/x"),
    ("noslash", "/noslash"),
])
def test_clean_path(path, expected):
    assert clean_path(path) == expected


def test_reason_phrases():
    assert reason_phrase(200) == "OK"
    assert reason_phrase(403) == "Forbidden"
    assert reason_phrase(404) == "Not Found"
    assert reason_phrase(501) == "Not Implemented"
    assert reason_phrase(500) == "Unknown Error"
    assert HttpStatus.NOT_FOUND.phrase == "Not Found"
