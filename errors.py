# errors.py


class RenderError(Exception):
    """The PDF could not be produced. No bytes were returned to the caller."""


class DeliveryError(Exception):
    """
    The PDF was rendered but could not be delivered (upload or file write).
    The rendered bytes are still valid; retrying delivery is up to the caller.
    """

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ApiError(DeliveryError):
    """Backend answered with a non-2xx status. Message is the response body."""
