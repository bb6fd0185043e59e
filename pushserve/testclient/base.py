from __future__ import annotations

import contextlib
import math
from collections.abc import Iterator
from concurrent.futures import Future
from typing import Any, Literal

import anyio
import anyio.from_thread
import httpx
from anyio.abc import ObjectReceiveStream, ObjectSendStream
from anyio.from_thread import BlockingPortal

from pushserve.testclient.transport import TestClientTransport
from pushserve.types import ASGIApp, Message


class TestClient(httpx.Client):
    """
    An `httpx.Client` sending its requests to an ASGI application in process.

    Requests advertise server push by default, like HTTP/2 requests do, and the
    responses of the promised paths are available on `response.pushed`.

    Used as a context manager the client keeps one event loop running for all
    of its requests and drives the application lifespan around them.

    Args:
        app (ASGIApp): The application under test.
        base_url (str): Base URL of the requests.
        raise_server_exceptions (bool): Re-raise exceptions escaping the application.
        server_push (bool): Advertise the `http.response.push` extension.
        root_path (str): ASGI `root_path` of the requests.
        backend (Literal["asyncio", "trio"]): The anyio backend running the application.
        backend_options (dict[str, Any] | None): Options of the backend.
        headers (dict[str, str] | None): Default headers of the requests.
    """

    __test__ = False
    portal: BlockingPortal | None = None

    def __init__(
        self,
        app: ASGIApp,
        base_url: str = "https://testserver",
        raise_server_exceptions: bool = True,
        server_push: bool = True,
        root_path: str = "",
        backend: Literal["asyncio", "trio"] = "asyncio",
        backend_options: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.app = app
        self.backend: dict[str, Any] = {
            "backend": backend,
            "backend_options": backend_options or {},
        }
        transport = TestClientTransport(
            app=app,
            portal_factory=self._portal_factory,
            raise_server_exceptions=raise_server_exceptions,
            server_push=server_push,
            root_path=root_path,
        )
        headers = {"user-agent": "testclient", **(headers or {})}
        super().__init__(base_url=base_url, headers=headers, transport=transport)

    @contextlib.contextmanager
    def _portal_factory(self) -> Iterator[BlockingPortal]:
        """
        Reuses the portal of the session, or runs a portal for one request.
        """
        if self.portal is not None:
            yield self.portal
            return
        with anyio.from_thread.start_blocking_portal(**self.backend) as portal:
            yield portal

    def __enter__(self) -> TestClient:
        with contextlib.ExitStack() as stack:
            self.portal = portal = stack.enter_context(
                anyio.from_thread.start_blocking_portal(**self.backend)
            )
            stack.callback(self._drop_portal)

            self._to_app: ObjectSendStream[Message]
            self._app_inbox: ObjectReceiveStream[Message]
            self._app_outbox: ObjectSendStream[Message | None]
            self._from_app: ObjectReceiveStream[Message | None]
            self._to_app, self._app_inbox = anyio.create_memory_object_stream(math.inf)
            self._app_outbox, self._from_app = anyio.create_memory_object_stream(math.inf)

            self._lifespan_task: Future[None] = portal.start_task_soon(self._run_lifespan)
            portal.call(self._lifespan_event, "startup")
            stack.callback(portal.call, self._lifespan_event, "shutdown")

            self._exit_stack = stack.pop_all()
        return self

    def __exit__(self, *args: Any) -> None:
        self._exit_stack.close()

    def _drop_portal(self) -> None:
        self.portal = None

    async def _run_lifespan(self) -> None:
        scope = {"type": "lifespan", "asgi": {"version": "3.0"}, "state": {}}
        try:
            await self.app(scope, self._app_inbox.receive, self._app_outbox.send)
        finally:
            await self._app_outbox.send(None)

    async def _lifespan_event(self, event: str) -> None:
        await self._to_app.send({"type": f"lifespan.{event}"})
        message = await self._from_app.receive()
        if message is None:
            # The application returned, raise whatever ended it.
            self._lifespan_task.result()
        assert message is not None, f"The application exited during lifespan {event}."
        assert message["type"] == f"lifespan.{event}.complete", message

        if event == "shutdown":
            assert await self._from_app.receive() is None
            for stream in (self._to_app, self._app_inbox, self._app_outbox, self._from_app):
                await stream.aclose()
