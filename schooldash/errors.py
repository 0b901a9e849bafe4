"""
Exception types shared across the dashboard.

Request failures are split the same way the pages report them:

    NetworkError     connection could not be established
    RequestTimeout   the per-request timeout elapsed
    HttpStatusError  the API answered with a non-2xx status
    BusinessError    the API answered 200 but the body reports a failure

Pages catch these, log them and show a notification. They never reach the
user as a traceback.
"""

from __future__ import annotations

from typing import Optional


class SchoolDashError(Exception):
    """Base class for all errors raised by schooldash."""


class ApiError(SchoolDashError):
    """A request to the school API failed."""

    def __init__(self, message: str, *, url: str = "") -> None:
        super().__init__(message)
        self.message = message
        self.url = url


class NetworkError(ApiError):
    pass


class RequestTimeout(ApiError):
    pass


_STATUS_MESSAGES = {
    403: "You do not have permission to perform this action.",
    404: "The requested resource was not found.",
}
_SERVER_ERROR_MESSAGE = "The server encountered an error. Please try again later."


def user_message_for_status(status: int, detail: str = "") -> str:
    """
    Map an HTTP status to the message shown to the user.

    403/404 and all 5xx statuses get fixed wording; anything else falls back
    to the detail sent by the API (or a generic text).
    """
    if status in _STATUS_MESSAGES:
        return _STATUS_MESSAGES[status]
    if status >= 500:
        return _SERVER_ERROR_MESSAGE
    return detail or f"Request failed with status {status}"


class HttpStatusError(ApiError):
    def __init__(self, status: int, detail: str = "", *, url: str = "") -> None:
        self.status = status
        self.detail = detail
        super().__init__(user_message_for_status(status, detail), url=url)


class BusinessError(ApiError):
    pass


class ValidationError(SchoolDashError):
    """
    Raised for records or form input that do not satisfy the expected shape.

    `field_errors` maps a field name to a human readable message.
    """

    def __init__(self, message: str, field_errors: Optional[dict[str, str]] = None) -> None:
        super().__init__(message)
        self.field_errors: dict[str, str] = dict(field_errors or {})


class ExportError(SchoolDashError):
    pass
