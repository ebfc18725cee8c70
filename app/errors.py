"""
Service-level error taxonomy.
Routers never build error responses by hand; app.main maps these to HTTP.
"""


class ServiceError(Exception):
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(ServiceError):
    status_code = 404


class InvalidInputError(ServiceError):
    status_code = 400


class TransientIOError(ServiceError):
    """Cache or store round trip failed; the caller may retry."""

    status_code = 503
