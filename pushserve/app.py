from __future__ import annotations

from typing import Annotated

from typing_extensions import Doc

from pushserve.conf import Settings
from pushserve.enums import Event, ScopeType
from pushserve.logging import LoggingConfig, StandardLoggingConfig, logger, setup_logging
from pushserve.routing import Router
from pushserve.types import Receive, Scope, Send


class PushServer:
    """
    The ASGI application serving the entry page and its static assets.

    **Example**

    ```python
    from pushserve import PushServer, Settings

    app = PushServer(settings=Settings(root_dir="/srv/site"))
    ```
    """

    def __init__(
        self,
        settings: Annotated[
            Settings | None,
            Doc(
                """
                The settings of the server. Built from the environment when
                not given.
                """
            ),
        ] = None,
        logging_config: Annotated[
            LoggingConfig | None,
            Doc(
                """
                The logging configuration. Defaults to a `StandardLoggingConfig`
                at the level of `settings.logging_level`.
                """
            ),
        ] = None,
    ) -> None:
        self.settings = settings if settings is not None else Settings()
        self.logging_config = logging_config or StandardLoggingConfig(
            level=self.settings.logging_level
        )
        setup_logging(self.logging_config)
        self.router = Router(self.settings)

    async def handle_lifespan(self, scope: Scope, receive: Receive, send: Send) -> None:
        while True:
            message = await receive()
            if message["type"] == Event.LIFESPAN_STARTUP:
                logger.debug("Serving %s.", self.settings.root_dir)
                await send({"type": "lifespan.startup.complete"})
            elif message["type"] == Event.LIFESPAN_SHUTDOWN:
                await send({"type": "lifespan.shutdown.complete"})
                return

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        scope_type = scope["type"]
        if scope_type == ScopeType.LIFESPAN:
            await self.handle_lifespan(scope, receive, send)
        elif scope_type == ScopeType.HTTP:
            await self.router(scope, receive, send)
        else:
            await send({"type": "websocket.close", "code": 1000})
