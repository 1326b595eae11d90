"""Incremental parser for HTTP request heads."""

from __future__ import annotations

from enum import Enum, auto

from basnet.http_request import Header, Request


class ParseResult(Enum):
    """Outcome of feeding data to the parser."""

    GOOD = auto()
    BAD = auto()
    INDETERMINATE = auto()


class _State(Enum):
    METHOD_START = auto()
    METHOD = auto()
    URI_START = auto()
    URI = auto()
    HTTP_VERSION_H = auto()
    HTTP_VERSION_T_1 = auto()
    HTTP_VERSION_T_2 = auto()
    HTTP_VERSION_P = auto()
    HTTP_VERSION_SLASH = auto()
    HTTP_VERSION_MAJOR_START = auto()
    HTTP_VERSION_MAJOR = auto()
    HTTP_VERSION_MINOR_START = auto()
    HTTP_VERSION_MINOR = auto()
    EXPECTING_NEWLINE_1 = auto()
    HEADER_LINE_START = auto()
    HEADER_LWS = auto()
    HEADER_NAME = auto()
    SPACE_BEFORE_HEADER_VALUE = auto()
    HEADER_VALUE = auto()
    EXPECTING_NEWLINE_2 = auto()
    EXPECTING_NEWLINE_3 = auto()


_TSPECIALS = frozenset(b'()<>@,;:\\"/[]?={} \t')

_SP = ord(" ")
_HT = ord("\t")
_CR = ord("\r")
_LF = ord("\n")

_LITERALS = {
    _State.HTTP_VERSION_H: (ord("H"), _State.HTTP_VERSION_T_1),
    _State.HTTP_VERSION_T_1: (ord("T"), _State.HTTP_VERSION_T_2),
    _State.HTTP_VERSION_T_2: (ord("T"), _State.HTTP_VERSION_P),
    _State.HTTP_VERSION_P: (ord("P"), _State.HTTP_VERSION_SLASH),
    _State.EXPECTING_NEWLINE_1: (_LF, _State.HEADER_LINE_START),
    _State.EXPECTING_NEWLINE_2: (_LF, _State.HEADER_LINE_START),
}


def _is_char(c: int) -> bool:
    return 0 <= c <= 127


def _is_ctl(c: int) -> bool:
    return 0 <= c <= 31 or c == 127


def _is_tspecial(c: int) -> bool:
    return c in _TSPECIALS


def _is_token(c: int) -> bool:
    return _is_char(c) and not _is_ctl(c) and not _is_tspecial(c)


def _is_digit(c: int) -> bool:
    return ord("0") <= c <= ord("9")


class RequestParser:
    """Parser for incoming requests, fed one chunk of bytes at a time."""

    def __init__(self) -> None:
        self._state = _State.METHOD_START

    def reset(self) -> None:
        """Return to the initial parser state."""
        self._state = _State.METHOD_START

    def parse(self, request: Request, data: bytes | bytearray | memoryview | str) -> tuple[ParseResult, int]:
        """Feed data into ``request``.

        Returns the result and the number of bytes consumed. The result is
        GOOD when a complete request head was parsed, BAD when the data is
        invalid, and INDETERMINATE when more data is needed.
        """
        if isinstance(data, str):
            data = data.encode("latin-1")
        consumed = 0
        for consumed, byte in enumerate(bytes(data), 1):
            result = self._consume(request, byte)
            if result is not ParseResult.INDETERMINATE:
                return result, consumed
        return ParseResult.INDETERMINATE, consumed

    def _consume(self, req: Request, c: int) -> ParseResult:
        state = self._state
        more = ParseResult.INDETERMINATE
        bad = ParseResult.BAD
        ch = chr(c)

        if state in _LITERALS:
            expected, following = _LITERALS[state]
            if c != expected:
                return bad
            self._state = following
            return more

        if state is _State.METHOD_START:
            if not _is_token(c):
                return bad
            self._state = _State.METHOD
            req.method += ch
            return more

        if state is _State.METHOD:
            if c == _SP:
                self._state = _State.URI
                return more
            if not _is_token(c):
                return bad
            req.method += ch
            return more

        if state is _State.URI_START:
            if _is_ctl(c):
                return bad
            self._state = _State.URI
            req.uri += ch
            return more

        if state is _State.URI:
            if c == _SP:
                self._state = _State.HTTP_VERSION_H
                return more
            if _is_ctl(c):
                return bad
            req.uri += ch
            return more

        if state is _State.HTTP_VERSION_SLASH:
            if c != ord("/"):
                return bad
            req.http_version_major = 0
            req.http_version_minor = 0
            self._state = _State.HTTP_VERSION_MAJOR_START
            return more

        if state is _State.HTTP_VERSION_MAJOR_START:
            if not _is_digit(c):
                return bad
            req.http_version_major = req.http_version_major * 10 + int(ch)
            self._state = _State.HTTP_VERSION_MAJOR
            return more

        if state is _State.HTTP_VERSION_MAJOR:
            if c == ord("."):
                self._state = _State.HTTP_VERSION_MINOR_START
                return more
            if not _is_digit(c):
                return bad
            req.http_version_major = req.http_version_major * 10 + int(ch)
            return more

        if state is _State.HTTP_VERSION_MINOR_START:
            if not _is_digit(c):
                return bad
            req.http_version_minor = req.http_version_minor * 10 + int(ch)
            self._state = _State.HTTP_VERSION_MINOR
            return more

        if state is _State.HTTP_VERSION_MINOR:
            if c == _CR:
                self._state = _State.EXPECTING_NEWLINE_1
                return more
            if not _is_digit(c):
                return bad
            req.http_version_minor = req.http_version_minor * 10 + int(ch)
            return more

        if state is _State.HEADER_LINE_START:
            if c == _CR:
                self._state = _State.EXPECTING_NEWLINE_3
                return more
            if req.headers and c in (_SP, _HT):
                self._state = _State.HEADER_LWS
                return more
            if not _is_token(c):
                return bad
            req.headers.append(Header(name=ch))
            self._state = _State.HEADER_NAME
            return more

        if state is _State.HEADER_LWS:
            if c == _CR:
                self._state = _State.EXPECTING_NEWLINE_2
                return more
            if c in (_SP, _HT):
                return more
            if _is_ctl(c):
                return bad
            self._state = _State.HEADER_VALUE
            req.headers[-1].value += ch
            return more

        if state is _State.HEADER_NAME:
            if c == ord(":"):
                self._state = _State.SPACE_BEFORE_HEADER_VALUE
                return more
            if not _is_token(c):
                return bad
            req.headers[-1].name += ch
            return more

        if state is _State.SPACE_BEFORE_HEADER_VALUE:
            if c != _SP:
                return bad
            self._state = _State.HEADER_VALUE
            return more

        if state is _State.HEADER_VALUE:
            if c == _CR:
                self._state = _State.EXPECTING_NEWLINE_2
                return more
            if _is_ctl(c):
                return bad
            req.headers[-1].value += ch
            return more

        if state is _State.EXPECTING_NEWLINE_3:
            return ParseResult.GOOD if c == _LF else bad

        return bad