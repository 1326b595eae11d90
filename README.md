# basnet

Small building blocks for TCP servers and clients, using only the standard
library.

## Modules

- `basnet.http_request`: the `Header` and `Request` dataclasses. They hold a
  parsed HTTP request line and its headers. `Request.reset()` empties a
  request so that it can be used again.
- `basnet.request_parser`: `RequestParser`, an incremental parser for HTTP
  request heads. `parse(request, data)` accepts bytes, or a `str` that it
  encodes as Latin-1. It fills in `request` and returns a pair: a
  `ParseResult` and the number of bytes it consumed. The result is `GOOD`
  when the head is complete, `BAD` when the input is invalid and
  `INDETERMINATE` when more data is needed. `reset()` makes the parser ready
  for a new request.
- `basnet.app_param`: the `AppParam` dataclass and `get_param(config_file)`.
  `get_param` reads an INI-style file with `[server]` and `[proxy]`
  sections. Keys it does not recognise are ignored, and keys that are left
  out take their defaults. It raises `FileNotFoundError` when the file is
  missing and `ValueError` when the content is malformed or a number is out
  of range.
- `basnet.sync_handler`: `SyncHandler`, a blocking TCP connection with a
  timeout on each operation and an internal buffer. Its methods are
  `connect`, `read_some`, `read`, `write`, `write_read`, `close` and
  `error_code`. Failures are raised as `SyncHandlerError`, which is an
  `OSError`:
  - `errno` is `EALREADY` when another operation is already running.
  - `errno` is `ESHUTDOWN` after `close`.
  - `errno` is `ETIMEDOUT` when an operation times out.
  - `errno` is `None` when the peer closed the connection; `is_eof` is
    then true.
- `basnet.server`: `Server`, which listens on an endpoint and runs each
  accepted connection on a pool of worker threads. `start()` runs it in the
  background. `run()` blocks until `stop()` is called. `set_force_stop()`
  chooses how the server stops: gracefully, waiting for running handlers, or
  forced, closing open connections. It can also be used as a context manager.

## Install

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## Parsing a request

```python
from basnet.http_request import Request
from basnet.request_parser import ParseResult, RequestParser

parser = RequestParser()
request = Request()
result, consumed = parser.parse(
    request, b"GET /index.html HTTP/1.1\r\nHost: example.com\r\n\r\n"
)
if result is ParseResult.GOOD:
    print(request.method, request.uri, request.headers)
```

## Loading configuration

```python
from basnet.app_param import get_param

param = get_param("proxy.ini")
print(param.port, param.proxy_ip, param.proxy_port)
```

Every key in the file is optional. Text after `#` is a comment.

```ini
[server]
ip = 0.0.0.0
port = 2012
session_timeout = 30

[proxy]
local_ip =
peer_ip = 127.0.0.1
peer_port = 8080
```

In the `[proxy]` section, `peer_ip` and `peer_port` fill `AppParam.proxy_ip`
and `AppParam.proxy_port`.

## Talking to a server

```python
from basnet.sync_handler import SyncHandler, SyncHandlerError

with SyncHandler(("127.0.0.1", 8080), buffer_size=4096, timeout_milliseconds=5000) as handler:
    handler.connect()
    handler.buffer += b"ping"
    try:
        reply = handler.write_read()
    except SyncHandlerError as exc:
        print("failed:", exc)
```

`write_read()` sends the buffer, empties it, and then reads a reply into it.

## Serving connections

```python
from basnet.server import Server

def echo(conn, address):
    conn.sendall(conn.recv(1024))

server = Server(lambda: echo, ("127.0.0.1", 0), workers=4)
server.start()
print("listening on", server.address)
# ...
server.stop()
```

`Server` calls `handler_pool` before each accept. It should return a callable
that takes `(conn, address)`, and the connection is closed when that callable
returns. If `handler_pool` returns `None`, the server waits `accept_delay`
seconds before it accepts again.

## What is not included

The package provides parts, not finished programs.

- It has no command-line program, either for an HTTP server or for a proxy.
- It does not build HTTP replies or serve files.
- It does not forward traffic between connections.

To build any of these, combine `Server`, `RequestParser`, `SyncHandler` and
`get_param` in your own code.