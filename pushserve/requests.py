from __future__ import annotations

from typing import NoReturn, cast

from pushserve.datastructures import Header, QueryParams, RequestTarget, parse_request
from pushserve.enums import ResponseEvent, ScopeType
from pushserve.types import Message, Receive, Scope, Send

SERVER_PUSH_HEADERS = {
    "accept",
    "accept-encoding",
    "accept-language",
    "cache-control",
    "user-agent",
}


async def empty_receive() -> NoReturn:  # pragma: no cover
    """
    Placeholder `receive` for requests built without a transport.
    """
    raise RuntimeError()


async def empty_send(message: Message) -> NoReturn:  # pragma: no cover
    """
    Placeholder `send` for requests built without a transport.
    """
    raise RuntimeError()


class Request:
    """
    One HTTP request together with the response stream it owns.

    The ASGI scope is read, never mutated: the parsed path and query live in
    the immutable `target`.
    """

    __slots__ = ("scope", "_receive", "_send", "_target", "_headers")

    def __init__(
        self, scope: Scope, receive: Receive = empty_receive, send: Send = empty_send
    ) -> None:
        assert scope["type"] == ScopeType.HTTP
        self.scope = scope
        self._receive = receive
        self._send = send
        self._target: RequestTarget | None = None
        self._headers: Header | None = None

    @property
    def method(self) -> str:
        return cast(str, self.scope.get("method", "GET"))

    @property
    def target(self) -> RequestTarget:
        if self._target is None:
            self._target = parse_request(
                self.scope.get("path", "/"), self.scope.get("query_string", b"")
            )
        return self._target

    @property
    def path(self) -> str:
        return self.target.path

    @property
    def query_params(self) -> QueryParams:
        return self.target.query

    @property
    def headers(self) -> Header:
        if self._headers is None:
            self._headers = Header.from_scope(self.scope)
        return self._headers

    @property
    def extensions(self) -> dict:
        return cast(dict, self.scope.get("extensions") or {})

    @property
    def supports_push(self) -> bool:
        """
        Whether the transport can open server push streams for this request.
        """
        return ResponseEvent.PUSH.value in self.extensions

    async def receive(self) -> Message:
        return await self._receive()

    async def send(self, message: Message) -> None:
        await self._send(message)

    async def send_push_promise(self, path: str) -> None:
        """
        Asks the transport to open a push stream for `path`.

        The content negotiation headers of this request are forwarded on the
        promised request.

        Args:
            path (str): The path promised to the client.

        Raises:
            RuntimeError: If the transport does not support server push.
        """
        if not self.supports_push:
            raise RuntimeError("The transport does not support server push.")

        raw_headers: list[tuple[bytes, bytes]] = []
        for name in SERVER_PUSH_HEADERS:
            for value in self.headers.getlist(name):
                raw_headers.append((name.encode("latin-1"), value.encode("latin-1")))
        await self._send({"type": ResponseEvent.PUSH.value, "path": path, "headers": raw_headers})

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(method={self.method!r}, path={self.path!r})"
