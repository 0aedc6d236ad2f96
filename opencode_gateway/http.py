"""Minimal blocking HTTP/1.1 client used to talk to a local OpenCode server."""

from __future__ import annotations

import re
import socket
from dataclasses import dataclass

_TIMEOUT_SECONDS = 2.0
_UNRESERVED = frozenset(
    b"ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-_.~"
)
_STATUS_CODE = re.compile(r"\+?[0-9]+")


class HttpProtocolError(ValueError):
    """Raised when a server reply is not a usable HTTP response."""


@dataclass(frozen=True)
class HttpResponse:
    """Status code and body of an HTTP response."""

    status_code: int
    body: str


def http_get(host: str, port: int, path: str) -> HttpResponse:
    """Send a GET request with ``Connection: close`` and read the whole reply."""
    request = (
        f"GET {path} HTTP/1.1\r\n"
        f"Host: {host}:{port}\r\n"
        "Connection: close\r\n\r\n"
    )
    with socket.create_connection((host, port), timeout=_TIMEOUT_SECONDS) as stream:
        stream.sendall(request.encode("utf-8"))
        chunks = []
        while chunk := stream.recv(65536):
            chunks.append(chunk)
    return parse_http_response(b"".join(chunks).decode("utf-8"))


def percent_encode(data: bytes) -> str:
    """Percent-encode every byte outside the RFC 3986 unreserved set."""
    return "".join(
        chr(byte) if byte in _UNRESERVED else f"%{byte:02X}" for byte in data
    )


def parse_http_response(response: str) -> HttpResponse:
    """Split a raw HTTP response into its status code and body."""
    for separator in ("\r\n\r\n", "\n\n"):
        head, found, body = response.partition(separator)
        if found:
            break
    else:
        raise HttpProtocolError("invalid HTTP response")

    if not head:
        raise HttpProtocolError("missing HTTP status line")
    status_line = head.split("\n", 1)[0].removesuffix("\r")

    fields = status_line.split()
    if len(fields) < 2:
        raise HttpProtocolError("missing HTTP status code")

    code_text = fields[1]
    if not _STATUS_CODE.fullmatch(code_text) or int(code_text) > 0xFFFF:
        raise HttpProtocolError(f"invalid HTTP status code: {code_text}")

    return HttpResponse(status_code=int(code_text), body=body)