from __future__ import annotations

import io
import typing
from typing import Any, cast
from urllib.parse import unquote

import anyio
import httpx
from anyio.from_thread import BlockingPortal

from pushserve.types import ASGIApp, Message

PortalFactoryType = typing.Callable[[], typing.ContextManager[BlockingPortal]]


class ASGISpecViolation(Exception): ...


class TestClientTransport(httpx.BaseTransport):
    """
    Calls an ASGI application in place of the network.

    With `server_push` the requests look like HTTP/2 requests advertising the
    `http.response.push` extension. Every promised path is then requested from
    the application once the main response completes, like a server fulfilling
    its push promises would, and the responses are kept on `response.pushed`.
    """

    __test__ = False
    encoding: str = "ascii"

    def __init__(
        self,
        app: ASGIApp,
        portal_factory: PortalFactoryType,
        raise_server_exceptions: bool = True,
        server_push: bool = True,
        root_path: str = "",
    ) -> None:
        self.app = app
        self.portal_factory = portal_factory
        self.raise_server_exceptions = raise_server_exceptions
        self.server_push = server_push
        self.root_path = root_path

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        scheme = request.url.scheme
        host, port = self._parse_host_and_port(request.url.netloc.decode(self.encoding), scheme)
        headers = self._build_headers(request.headers, host, port, scheme)
        scope = self._build_http_scope(
            method=request.method,
            scheme=scheme,
            path=request.url.path,
            raw_path=request.url.raw_path,
            query=request.url.query.decode(self.encoding),
            headers=headers,
            server=(host, port),
            server_push=self.server_push,
        )
        response, promises = self._process_http_request(scope, request)

        host_header = next(value for key, value in headers if key == b"host")
        pushed: list[httpx.Response] = []
        for path, promised_headers in promises:
            pushed_request = httpx.Request("GET", request.url.join(path), headers=promised_headers)
            pushed_scope = self._build_http_scope(
                method="GET",
                scheme=scheme,
                path=path,
                raw_path=path.encode(self.encoding),
                query="",
                headers=[(b"host", host_header), *promised_headers],
                server=(host, port),
                server_push=False,
            )
            pushed_response, _ = self._process_http_request(pushed_scope, pushed_request)
            pushed_response.read()
            pushed.append(pushed_response)

        response.pushed = pushed  # type: ignore[attr-defined]
        return response

    def _parse_host_and_port(self, netloc: str, scheme: str) -> tuple[str, int]:
        default_port = {"http": 80, "https": 443}[scheme]
        if ":" in netloc:
            host, port_string = netloc.split(":", 1)
            return host, int(port_string)
        return netloc, default_port

    def _build_headers(
        self, request_headers: httpx.Headers, host: str, port: int, scheme: str
    ) -> list[tuple[bytes, bytes]]:
        headers: list[tuple[bytes, bytes]] = []
        if "host" not in request_headers:
            default_port = {"http": 80, "https": 443}[scheme]
            netloc = host if port == default_port else f"{host}:{port}"
            headers.append((b"host", netloc.encode()))
        headers += [
            (key.lower().encode(), value.encode()) for key, value in request_headers.multi_items()
        ]
        return headers

    def _build_http_scope(
        self,
        *,
        method: str,
        scheme: str,
        path: str,
        raw_path: bytes,
        query: str,
        headers: list[tuple[bytes, bytes]],
        server: tuple[str, int],
        server_push: bool,
    ) -> dict[str, Any]:
        extensions: dict[str, Any] = {"http.response.push": {}} if server_push else {}
        return {
            "type": "http",
            "asgi": {"version": "3.0", "spec_version": "2.3"},
            "http_version": "2" if server_push else "1.1",
            "method": method,
            "path": unquote(path),
            "raw_path": raw_path,
            "root_path": self.root_path,
            "scheme": scheme,
            "query_string": query.encode(),
            "headers": headers,
            "client": ("testclient", 50000),
            "server": server,
            "extensions": extensions,
        }

    def _process_http_request(
        self, scope: dict[str, Any], request: httpx.Request
    ) -> tuple[httpx.Response, list[tuple[str, list[tuple[bytes, bytes]]]]]:
        """
        Runs the application for one request and collects its response and
        push promises.
        """
        request_complete = False
        response_started = False
        response_complete: anyio.Event
        raw_kwargs: dict[str, Any] = {"stream": io.BytesIO()}
        promises: list[tuple[str, list[tuple[bytes, bytes]]]] = []

        async def receive() -> Message:
            nonlocal request_complete

            if request_complete:
                if not response_complete.is_set():
                    await response_complete.wait()
                return {"type": "http.disconnect"}

            body = request.read()
            request_complete = True
            return {"type": "http.request", "body": body, "more_body": False}

        async def send(message: Message) -> None:
            nonlocal response_started

            if message["type"] == "http.response.push":
                assert not response_complete.is_set(), (
                    'Received "http.response.push" after response completed.'
                )
                promises.append((message["path"], list(message.get("headers", []))))
            elif message["type"] == "http.response.start":
                assert not response_started, 'Received multiple "http.response.start" messages.'
                raw_kwargs["status_code"] = message["status"]
                raw_kwargs["headers"] = list(message.get("headers", []))
                response_started = True
            elif message["type"] == "http.response.body":
                assert response_started, (
                    'Received "http.response.body" without "http.response.start".'
                )
                assert not response_complete.is_set(), (
                    'Received "http.response.body" after response completed.'
                )
                body = message.get("body", b"")
                if not isinstance(body, (bytes, bytearray, memoryview)):
                    raise ASGISpecViolation("ASGI Spec violation: body must be a bytes string")
                if request.method != "HEAD":
                    raw_kwargs["stream"].write(body)
                if not message.get("more_body", False):
                    raw_kwargs["stream"].seek(0)
                    response_complete.set()

        try:
            with self.portal_factory() as portal:
                response_complete = portal.call(anyio.Event)
                portal.call(self.app, scope, receive, send)
        except BaseException:
            if self.raise_server_exceptions:
                raise

        if not response_started:
            if self.raise_server_exceptions:
                raise ASGISpecViolation("TestClient did not receive any response.")
            raw_kwargs = {"status_code": 500, "headers": [], "stream": io.BytesIO()}

        raw_kwargs["stream"] = httpx.ByteStream(cast(io.BytesIO, raw_kwargs["stream"]).read())
        return httpx.Response(**raw_kwargs, request=request), promises
