from __future__ import annotations


class ValidationError(Exception):
    """Field-level validation failure; rendered as the `errors` prop on the next page."""

    def __init__(self, errors: dict[str, str]):
        super().__init__("; ".join(f"{k}: {v}" for k, v in errors.items()))
        self.errors = errors


class ProtectedUserError(Exception):
    pass


class RateLimitedError(ValidationError):
    def __init__(self, field: str, message: str, retry_after: int):
        super().__init__({field: message})
        self.retry_after = retry_after


ERROR_MESSAGES = {
    400: ("Bad request", "The request could not be understood by the server."),
    401: ("Unauthorized", "You need to sign in to access this page."),
    403: ("Forbidden", "You do not have permission to access this page."),
    404: ("Page not found", "The page you are looking for does not exist."),
    405: ("Method not allowed", "This action is not supported for this page."),
    408: ("Request timeout", "The server timed out waiting for the request."),
    419: ("Page expired", "Your session has expired. Please refresh and try again."),
    422: ("Unprocessable request", "The submitted data could not be processed."),
    429: ("Too many requests", "You are sending too many requests. Please slow down."),
    500: ("Server error", "Something went wrong on our end."),
    503: ("Service unavailable", "The service is temporarily unavailable. Please try again later."),
}


def describe_status(status: int) -> tuple[str, str]:
    return ERROR_MESSAGES.get(status, ("Error", "An unexpected error occurred."))
