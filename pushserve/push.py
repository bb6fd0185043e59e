from __future__ import annotations

from pushserve.exceptions import PushPromiseError
from pushserve.logging import logger
from pushserve.requests import Request


async def push_asset(request: Request, url: str) -> bool:
    """
    Initiates a server push of the asset served at `url`.

    The transport promises `url` to the client and opens a new stream for it,
    on which the application is called again as for a `GET` of `url`. The
    router hands that stream to the static file handler, which streams the
    asset file onto it.

    Transports without push (HTTP/1.1) make this a no-op. A transport that
    supports push but fails to open the stream fails the whole request.

    Args:
        request (Request): The request the push is attached to.
        url (str): The path promised to the client.

    Returns:
        bool: `True` if the push was initiated, `False` if the transport
            cannot push.

    Raises:
        PushPromiseError: If the transport failed to open the push stream.
    """
    if not request.supports_push:
        logger.warning("Server push is not available on this connection, skipping %s.", url)
        return False

    logger.info("Sending server push for %s.", url)
    try:
        await request.send_push_promise(url)
    except Exception as exc:
        raise PushPromiseError(detail=f"Unable to open the push stream for '{url}'.") from exc
    return True
