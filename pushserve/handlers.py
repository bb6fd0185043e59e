from __future__ import annotations

import os

from pushserve import status
from pushserve.conf import Settings
from pushserve.exceptions import NotFound
from pushserve.logging import logger
from pushserve.push import push_asset
from pushserve.requests import Request
from pushserve.responses import PlainText
from pushserve.streaming import stream_file

PUSH_QUERY_KEY = "push"


async def not_found(request: Request) -> None:
    response = PlainText("Not found", status_code=status.HTTP_404_NOT_FOUND)
    await response(request.scope, request.receive, request.send)


async def server_error(request: Request) -> None:
    response = PlainText("Server error", status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)
    await response(request.scope, request.receive, request.send)


async def index_page(request: Request, settings: Settings) -> None:
    """
    Streams the entry page, pushing its stylesheet and script first when the
    query carries a `push` key. Only the presence of the key matters.
    """
    logger.info("New request received for %s.", request.path)

    if request.target.has_query(PUSH_QUERY_KEY):
        for url in settings.push_assets:
            await push_asset(request, url)

    logger.info("Sending html file %s.", settings.index_path)
    try:
        await stream_file(request, settings.index_path)
    except FileNotFoundError:
        logger.error("Entry page %s does not exist.", settings.index_path)
        await not_found(request)
    except OSError as exc:
        logger.error("Unable to open entry page %s: %s", settings.index_path, exc)
        await server_error(request)


def resolve_asset_path(root: str, relative: str) -> str:
    """
    Resolves `relative`, a `/` separated path, under the asset `root`.

    `.` and `..` segments are normalised away. A result that lands outside
    `root` once symlinks are followed is refused.

    Args:
        root (str): The asset root directory.
        relative (str): The remainder of the URL path after the static prefix.

    Returns:
        str: The path of the asset inside `root`.

    Raises:
        NotFound: If the path escapes `root` or is not a valid file name.
    """
    if "\x00" in relative:
        raise NotFound(detail=f"{relative!r} is not a valid file name.")

    segments = [segment for segment in relative.split("/") if segment]
    joined = os.path.normpath(os.path.join(root, *segments))

    real_root = os.path.realpath(root)
    real_path = os.path.realpath(joined)
    if os.path.commonpath([real_root, real_path]) != real_root:
        raise NotFound(detail=f"'{relative}' is outside of the static directory.")
    return joined


async def static_file(request: Request, settings: Settings) -> None:
    """
    Streams the file under the static directory named by the request path.

    A missing file answers 404, any other failure to open it answers 500.
    """
    relative = request.path[len(settings.static_prefix) :]
    logger.info("Serving static file %s.", request.path)

    try:
        path = resolve_asset_path(settings.static_path, relative)
        await stream_file(request, path)
    except NotFound as exc:
        logger.warning("Refusing static file %s: %s", request.path, exc.detail)
        await not_found(request)
    except FileNotFoundError:
        logger.info("Static file %s does not exist.", request.path)
        await not_found(request)
    except OSError as exc:
        logger.error("Unable to open static file %s: %s", request.path, exc)
        await server_error(request)
