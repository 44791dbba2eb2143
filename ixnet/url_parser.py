"""Parsing of ws, wss, http and https URLs into connection parameters."""

from __future__ import annotations

import re
from dataclasses import dataclass

_SCHEME_RE = re.compile(r"([A-Za-z][A-Za-z0-9+.\-]*)://(.*)", re.DOTALL)
_PORT_RE = re.compile(r"[0-9]+")

DEFAULT_PORTS = {"ws": 80, "http": 80, "wss": 443, "https": 443}


class UrlParseError(ValueError):
    """Raised when a URL cannot be parsed."""


@dataclass(frozen=True)
class ParsedUrl:
    """Components of a URL; *path* always starts with '/' and includes the query."""

    protocol: str
    host: str
    path: str
    query: str
    port: int


def _split_host_port(hostport: str, url: str) -> tuple[str, str | None]:
    if hostport.startswith("["):
        end = hostport.find("]")
        if end == -1:
            raise UrlParseError(f"Cannot parse url: {url}")
        host = hostport[1:end]
        after = hostport[end + 1:]
        if not after:
            return host, None
        if not after.startswith(":"):
            raise UrlParseError(f"Cannot parse url: {url}")
        return host, after[1:]
    if ":" in hostport:
        host, port_text = hostport.rsplit(":", 1)
        return host, port_text
    return hostport, None


def parse_url(url: str) -> ParsedUrl:
    """Split *url* into protocol, host, path, query and port."""
    match = _SCHEME_RE.fullmatch(url)
    if match is None:
        raise UrlParseError(f"Cannot parse url: {url}")

    protocol = match.group(1).lower()
    rest = match.group(2).partition("#")[0]

    cut = min((i for i in (rest.find("/"), rest.find("?")) if i != -1), default=len(rest))
    authority, remainder = rest[:cut], rest[cut:]
    path, _, query = remainder.partition("?")

    hostport = authority.rpartition("@")[2]
    host, port_text = _split_host_port(hostport, url)
    if not host or any(ch.isspace() for ch in host):
        raise UrlParseError(f"Cannot parse url: {url}")

    if port_text:
        if not _PORT_RE.fullmatch(port_text):
            raise UrlParseError(f"Invalid port in url: {url}")
        port = int(port_text)
        if port > 65535:
            raise UrlParseError(f"Invalid port in url: {url}")
    else:
        try:
            port = DEFAULT_PORTS[protocol]
        except KeyError:
            raise UrlParseError(f"Unsupported protocol in url: {url}") from None

    if not path:
        path = "/"
    elif not path.startswith("/"):
        path = "/" + path

    if query:
        path = f"{path}?{query}"

    return ParsedUrl(protocol=protocol, host=host, path=path, query=query, port=port)