from __future__ import annotations

import http

from pushserve import status


class PushServeException(Exception):
    detail: str = ""

    def __init__(self, detail: str | None = None) -> None:
        if detail:
            self.detail = detail
        super().__init__(self.detail)


class HTTPException(PushServeException):
    """
    An error that maps onto an HTTP status.

    The detail defaults to the class `detail`, then to the reason phrase of
    the status.
    """

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        detail: str | None = None,
        status_code: int | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        if status_code is not None:
            self.status_code = status_code
        super().__init__(detail or self.detail or http.HTTPStatus(self.status_code).phrase)
        self.headers = headers

    def __str__(self) -> str:
        return f"{self.status_code}: {self.detail}"

    def __repr__(self) -> str:
        return f"{type(self).__name__}(status_code={self.status_code!r}, detail={self.detail!r})"


class ImproperlyConfigured(HTTPException, ValueError): ...


class NotFound(HTTPException, ValueError):
    status_code = status.HTTP_404_NOT_FOUND
    detail = "The resource cannot be found."


class PushPromiseError(HTTPException):
    """
    Raised when the transport fails to open a server push stream.
    """

    status_code = status.HTTP_502_BAD_GATEWAY
    detail = "Unable to open the server push stream."
