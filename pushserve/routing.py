from __future__ import annotations

import functools
from collections.abc import Awaitable, Callable

from pushserve import handlers
from pushserve.conf import Settings
from pushserve.requests import Request
from pushserve.types import Receive, Scope, Send

Handler = Callable[[Request], Awaitable[None]]


class Router:
    """
    Dispatches every request to exactly one of the three handlers:

    * `/` to the index page.
    * Anything starting with the static prefix (`/static`) to the static files.
    * Everything else to not found.
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.index_handler: Handler = functools.partial(handlers.index_page, settings=settings)
        self.static_handler: Handler = functools.partial(handlers.static_file, settings=settings)
        self.not_found_handler: Handler = handlers.not_found

    def resolve(self, path: str) -> Handler:
        if path == "/":
            return self.index_handler
        if path.startswith(self.settings.static_prefix):
            return self.static_handler
        return self.not_found_handler

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        request = Request(scope, receive, send)
        handler = self.resolve(request.path)
        await handler(request)
