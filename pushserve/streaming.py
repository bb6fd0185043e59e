from __future__ import annotations

import functools
import hashlib
import os
from collections.abc import Awaitable, Callable
from email.utils import formatdate
from mimetypes import guess_type
from typing import Any

import anyio
import anyio.to_thread
from anyio import AsyncFile

from pushserve import status
from pushserve.datastructures import Header
from pushserve.enums import Event, HTTPMethod, MediaType, ResponseEvent
from pushserve.logging import logger
from pushserve.requests import Request
from pushserve.responses import get_content_type
from pushserve.types import Receive, Scope, Send


class FileHandle:
    """
    An open file bound to the lifetime of one response stream.

    The file is opened on entering the context and released on leaving it,
    whichever way the stream ends. `release()` closes the file at most once,
    however many times and from however many tasks it is called.
    """

    __slots__ = ("path", "file", "released")

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self.path = os.fspath(path)
        self.file: AsyncFile[bytes] | None = None
        self.released = False

    async def open(self) -> FileHandle:
        """
        Opens the file for binary reading.

        Raises:
            OSError: Whatever the operating system raised while opening.
            RuntimeError: If the handle was opened before.
        """
        if self.file is not None:
            raise RuntimeError(f"The file handle of '{self.path}' is already open.")
        self.file = await anyio.open_file(self.path, mode="rb")
        return self

    async def release(self) -> None:
        if self.released or self.file is None:
            return
        self.released = True
        with anyio.CancelScope(shield=True):
            await self.file.aclose()

    @property
    def closed(self) -> bool:
        return self.file is None or self.file.wrapped.closed

    @property
    def opened(self) -> AsyncFile[bytes]:
        if self.file is None:
            raise RuntimeError(f"The file handle of '{self.path}' is not open.")
        return self.file

    def fileno(self) -> int:
        return self.opened.wrapped.fileno()

    async def stat(self) -> os.stat_result:
        return await anyio.to_thread.run_sync(os.fstat, self.fileno())

    async def __aenter__(self) -> FileHandle:
        if self.file is None:
            await self.open()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.release()

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(path={self.path!r}, released={self.released})"


class FileResponse:
    """
    Streams an open `FileHandle` as the body of a response.

    The transport's zero copy extension is used when advertised, otherwise the
    file is sent in `chunk_size` chunks. A client disconnect cancels the write.
    """

    chunk_size = 64 * 1024
    charset = "utf-8"

    def __init__(
        self,
        handle: FileHandle,
        stat_result: os.stat_result,
        status_code: int = status.HTTP_200_OK,
        media_type: str | None = None,
    ) -> None:
        self.handle = handle
        self.stat_result = stat_result
        self.status_code = status_code
        self.media_type = media_type or guess_type(handle.path)[0] or MediaType.OCTET
        self.headers = self.make_headers()

    def make_headers(self) -> Header:
        headers = Header()
        content_type = get_content_type(self.media_type, self.charset)
        if content_type is not None:
            headers["content-type"] = content_type
        self.set_stat_headers(headers, self.stat_result)
        return headers

    def set_stat_headers(self, headers: Header, stat_result: os.stat_result) -> None:
        content_length = str(stat_result.st_size)
        last_modified = formatdate(stat_result.st_mtime, usegmt=True)
        etag_base = str(stat_result.st_mtime) + "-" + str(stat_result.st_size)
        etag = hashlib.md5(etag_base.encode(), usedforsecurity=False).hexdigest()

        headers.setdefault("content-length", content_length)
        headers.setdefault("last-modified", last_modified)
        headers.setdefault("etag", f'"{etag}"')

    def message(self) -> dict[str, Any]:
        return {
            "type": ResponseEvent.START.value,
            "status": self.status_code,
            "headers": self.headers.get_encoded_multi_items(),
        }

    async def wait_for_disconnect(self, receive: Receive) -> None:
        while True:
            message = await receive()
            if message["type"] == Event.HTTP_DISCONNECT:
                logger.debug("Stream for %s closed by the client.", self.handle.path)
                break

    async def stream(self, scope: Scope, send: Send) -> None:
        size = self.stat_result.st_size
        extensions = scope.get("extensions") or {}

        if ResponseEvent.ZEROCOPYSEND.value in extensions:
            await send(
                {
                    "type": ResponseEvent.ZEROCOPYSEND.value,
                    "file": self.handle.fileno(),
                    "count": size,
                    "more_body": False,
                }
            )
            return

        file = self.handle.opened
        more_body = True
        while more_body:
            chunk = await file.read(self.chunk_size)
            more_body = len(chunk) == self.chunk_size
            await send({"type": ResponseEvent.BODY.value, "body": chunk, "more_body": more_body})

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        await send(self.message())

        if scope.get("method", HTTPMethod.GET) in {HTTPMethod.HEAD, HTTPMethod.OPTIONS}:
            await send({"type": ResponseEvent.BODY.value, "body": b"", "more_body": False})
            return

        async with anyio.create_task_group() as task_group:

            async def wrap(func: Callable[[], Awaitable[None]]) -> None:
                await func()
                task_group.cancel_scope.cancel()

            task_group.start_soon(wrap, functools.partial(self.stream, scope, send))
            await wrap(functools.partial(self.wait_for_disconnect, receive))

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(path={self.handle.path!r}, status_code={self.status_code})"


async def stream_file(request: Request, path: str | os.PathLike[str]) -> None:
    """
    Streams the file at `path` onto the response stream of `request`.

    The file is opened before anything is sent, so an open failure reaches the
    caller as the `OSError` raised by the operating system and the caller is
    still free to answer with an error status. Once open, the handle belongs to
    the response stream and is released exactly once when the stream ends:
    after the last byte, on client disconnect, on cancellation or on error.

    Args:
        request (Request): The request owning the response stream.
        path (str | os.PathLike[str]): The file to stream.

    Raises:
        OSError: If the file cannot be opened.
    """
    async with FileHandle(path) as handle:
        stat_result = await handle.stat()
        response = FileResponse(handle, stat_result)
        await response(request.scope, request.receive, request.send)
