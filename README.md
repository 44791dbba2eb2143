# ixnet

A small networking toolkit built on the standard library alone.

## Modules

- `ixnet.sockets`: `Socket`, a TCP socket with non-blocking, cancellable
  `read_byte`, `read_line`, `read_bytes` and `write_bytes`. Also provides
  `poll_fd`, which returns a `PollResultType`, and the functions `connect`,
  `connect_to_address` and `configure`. Failures raise `SocketError`, whose
  `partial` attribute holds whatever was read before the failure.
  `Socket.wake_up_from_poll(code)` posts a code that makes a thread blocked in
  `poll()` return.
- `ixnet.select_interrupt`: wake-up channels for polls. `SelectInterruptPipe`
  uses a pipe, `SelectInterruptEventFd` uses a Linux eventfd, and
  `SelectInterrupt` does nothing. `create_select_interrupt()` picks the pipe on
  Linux and macOS and the no-op class elsewhere.
- `ixnet.tls_socket`: `TlsSocket`, the same interface over TLS. It verifies
  the peer certificate against the default trust store and checks the host
  name. `check_host(host, pattern)` matches a host against a shell-style
  pattern.
- `ixnet.socket_factory`: `create_socket(tls)` returns an initialised
  `Socket` or `TlsSocket`. `wrap_socket(sock)` wraps an already connected
  `socket.socket`.
- `ixnet.dns_lookup`: `DNSLookup(hostname, port).resolve(...)` returns
  getaddrinfo entries. The lookup runs on a background thread so it can be
  abandoned. Each `DNSLookup` instance can perform one cancellable lookup.
  Failures and cancellation raise `DNSLookupError`.
- `ixnet.cancellation`: `make_cancellation_request_with_timeout(secs, event)`
  returns a callable that is true once `event` is set or `secs` have passed.
- `ixnet.url_parser`: `parse_url(url)` returns a `ParsedUrl` with `protocol`,
  `host`, `path`, `query` and `port`.
  - When the URL gives no port, the default is 80 for `ws` and `http` and 443
    for `wss` and `https`.
  - `path` always starts with `/` and includes the query.
  - Errors raise `UrlParseError`.
- `ixnet.http`: the types `HttpRequest`, `HttpResponse`, `HttpRequestArgs` and
  `HttpErrorCode`, and these helpers:
  - `parse_request_line` splits a request line into method, URI and version.
  - `parse_request(sock)` reads a request line and its headers, and raises
    `HttpParseError` when it cannot.
  - `send_response(response, sock)` writes a status line, a `Content-Length`
    header, the other headers and the body.
- `ixnet.http_client`: `HttpClient`, an HTTP/1.1 client described below.
  Also provides `url_encode` and `serialize_http_parameters`.
- `ixnet.connection_state`: `ConnectionState`, which holds a process-wide
  connection id and a terminated flag.
- `ixnet.close_constants`: the WebSocket close codes (`CloseCode`) and their
  messages (`CloseMessage`).

## Installing

```
pip install .
```

## HTTP client

```python
from ixnet.http_client import HttpClient

with HttpClient() as client:
    args = client.create_request("http://localhost:8080/index.html", "GET")
    response = client.get(args.url, args)
    print(response.status_code, response.error_code, len(response.payload))
```

### Errors

Requests do not raise. A failure is reported in `response.error_code`, an
`HttpErrorCode`, with a message in `response.error_msg`.

### Request bodies

`post(url, body, args)` and `put(url, body, args)` take a body as a string, as
bytes, or as a mapping. A mapping is sent URL-encoded, ordered by key. If the
extra headers give no `Content-Type`, the client sends
`application/x-www-form-urlencoded`.

### Responses

The client:

- follows 301–308 redirects up to `max_redirects`;
- reads bodies framed by `Content-Length` or sent with chunked transfer
  encoding;
- decompresses gzip payloads.

### Default settings

`HttpRequestArgs` sets these defaults:

| Setting | Default |
|---|---|
| `connect_timeout` | 60 seconds |
| `transfer_timeout` | 1800 seconds |
| `follow_redirects` | `True` |
| `max_redirects` | 5 |
| `compress` | `True` |

### Running requests on a background thread

With `HttpClient(async_=True)`, `perform_request(args, on_response)` queues a
request. `on_response` is then called from a background thread.
`close()` stops that thread, and so does leaving the `with` block.

## What is not included

The package has no HTTP server and no loop that accepts connections. To
answer a connection you accepted yourself:

1. Wrap it with `ixnet.socket_factory.wrap_socket`.
2. Read the request with `ixnet.http.parse_request`.
3. Reply with `ixnet.http.send_response`.

There is no WebSocket client or server. Only the close codes and messages are
provided.

## Running the tests

```
pip install .[test]
pytest
```