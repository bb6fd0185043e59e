from __future__ import annotations

from enum import Enum


class StrEnum(str, Enum):
    def __str__(self) -> str:
        return self.value  # type: ignore

    def __repr__(self) -> str:
        return str(self)


class ScopeType(StrEnum):
    HTTP = "http"
    WEBSOCKET = "websocket"
    LIFESPAN = "lifespan"


class Event(StrEnum):
    HTTP_DISCONNECT = "http.disconnect"
    LIFESPAN_STARTUP = "lifespan.startup"
    LIFESPAN_SHUTDOWN = "lifespan.shutdown"


class ResponseEvent(StrEnum):
    START = "http.response.start"
    BODY = "http.response.body"
    PUSH = "http.response.push"
    ZEROCOPYSEND = "http.response.zerocopysend"


class HTTPMethod(StrEnum):
    GET = "GET"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"


class MediaType(StrEnum):
    TEXT = "text/plain"
    OCTET = "application/octet-stream"
