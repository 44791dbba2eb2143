"""Cancellable sockets, TLS, DNS lookup, URL parsing and an HTTP/1.1 client."""

__version__ = "0.1.0"