"""Application parameters of the proxy server, read from a config file."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, fields
from typing import Callable, Optional

_USHORT_MAX = 0xFFFF
_UINT_MAX = 0xFFFFFFFF
_SIZE_MAX = 0xFFFFFFFFFFFFFFFF

_DIGITS = re.compile(r"\d+")


@dataclass
class AppParam:
    """Parameters of the application, with their defaults."""

    ip: str = ""
    port: int = 2012
    accept_queue_size: int = 250

    io_thread_size: int = 4
    work_thread_init: int = 4
    work_thread_high: int = 32
    work_thread_load: int = 100

    handler_pool_init: int = 1000
    handler_pool_low: int = 0
    handler_pool_high: int = 5000
    handler_pool_inc: int = 50
    handler_pool_max: int = 9999

    read_buffer_size: int = 256
    write_buffer_size: int = 0
    session_timeout: int = 30
    io_timeout: int = 0

    local_ip: str = ""
    proxy_ip: str = ""
    proxy_port: int = 2012


def _unsigned(limit: int) -> Callable[[str, str], int]:
    def convert(option: str, text: str) -> int:
        if not _DIGITS.fullmatch(text):
            raise ValueError(f"invalid value {text!r} for option {option!r}")
        value = int(text)
        if value > limit:
            raise ValueError(f"value {text!r} out of range for option {option!r}")
        return value

    return convert


_ushort = _unsigned(_USHORT_MAX)
_uint = _unsigned(_UINT_MAX)
_size = _unsigned(_SIZE_MAX)

# Option name in the file -> (field of AppParam, converter or None for text).
_OPTIONS: dict[str, tuple[str, Optional[Callable[[str, str], int]]]] = {
    "server.ip": ("ip", None),
    "server.port": ("port", _ushort),
    "server.accept_queue_size": ("accept_queue_size", _size),
    "server.io_thread_size": ("io_thread_size", _size),
    "server.work_thread_init": ("work_thread_init", _size),
    "server.work_thread_high": ("work_thread_high", _size),
    "server.work_thread_load": ("work_thread_load", _size),
    "server.handler_pool_init": ("handler_pool_init", _size),
    "server.handler_pool_low": ("handler_pool_low", _size),
    "server.handler_pool_high": ("handler_pool_high", _size),
    "server.handler_pool_inc": ("handler_pool_inc", _size),
    "server.handler_pool_max": ("handler_pool_max", _size),
    "server.read_buffer_size": ("read_buffer_size", _size),
    "server.write_buffer_size": ("write_buffer_size", _size),
    "server.session_timeout": ("session_timeout", _uint),
    "server.io_timeout": ("io_timeout", _uint),
    "proxy.local_ip": ("local_ip", None),
    "proxy.peer_ip": ("proxy_ip", None),
    "proxy.peer_port": ("proxy_port", _ushort),
}

assert {name for name, _ in _OPTIONS.values()} == {f.name for f in fields(AppParam)}


def _read_options(lines) -> dict[str, str]:
    prefix = ""
    found: dict[str, str] = {}
    for lineno, raw in enumerate(lines, 1):
        line = raw.split("#", 1)[0].strip()
        if not line:
            continue
        if line.startswith("[") and line.endswith("]"):
            section = line[1:-1].strip()
            prefix = f"{section}." if section else ""
            continue
        name, sep, value = line.partition("=")
        name = name.strip()
        if not sep or not name:
            raise ValueError(f"invalid syntax on line {lineno}: {raw.rstrip()!r}")
        option = prefix + name
        if option in found:
            raise ValueError(f"option {option!r} given more than once")
        found[option] = value.strip()
    return found


def get_param(config_file: str | os.PathLike[str]) -> AppParam:
    """Read parameters from an INI-style config file.

    Options that are not recognised are ignored; missing ones take their
    defaults. Raises FileNotFoundError if the file cannot be found and
    ValueError on malformed content.
    """
    with open(config_file, encoding="utf-8") as stream:
        found = _read_options(stream)

    values: dict[str, object] = {}
    for option, text in found.items():
        known = _OPTIONS.get(option)
        if known is None:
            continue
        field_name, convert = known
        values[field_name] = text if convert is None else convert(option, text)
    return AppParam(**values)