from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pushserve import status
from pushserve.datastructures import Header
from pushserve.enums import HTTPMethod, MediaType, ResponseEvent
from pushserve.types import Receive, Scope, Send


class Response:
    """
    A response sent in one piece: the start message, then the whole body.
    """

    media_type: str | None = None
    status_code: int = status.HTTP_200_OK
    charset: str = "utf-8"

    def __init__(
        self,
        content: str | bytes | None = None,
        status_code: int | None = None,
        headers: Mapping[str, str] | None = None,
        media_type: str | None = None,
    ) -> None:
        self.status_code = status_code if status_code is not None else self.status_code
        self.media_type = media_type or self.media_type
        self.body = self.render(content)
        self.headers = self.make_headers(headers)

    def render(self, content: str | bytes | None) -> bytes:
        if content is None:
            return b""
        if isinstance(content, bytes):
            return content
        return content.encode(self.charset)

    def make_headers(self, headers: Mapping[str, str] | None) -> Header:
        result = Header(headers)
        result.setdefault("content-length", str(len(self.body)))
        content_type = get_content_type(self.media_type, self.charset)
        if content_type is not None:
            result.setdefault("content-type", content_type)
        return result

    def message(self) -> dict[str, Any]:
        return {
            "type": ResponseEvent.START.value,
            "status": self.status_code,
            "headers": self.headers.get_encoded_multi_items(),
        }

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        await send(self.message())
        body = b"" if scope.get("method") == HTTPMethod.HEAD else self.body
        await send({"type": ResponseEvent.BODY.value, "body": body})

    def __repr__(self) -> str:
        return f"{type(self).__name__}(status_code={self.status_code}, media_type={self.media_type!r})"


class PlainText(Response):
    media_type = MediaType.TEXT


def get_content_type(media_type: str | None, charset: str) -> str | None:
    """
    The `content-type` value of `media_type`, with the charset for text types.
    """
    if media_type is None:
        return None
    if media_type.startswith("text/") and "charset=" not in media_type.lower():
        return f"{media_type}; charset={charset}"
    return media_type
