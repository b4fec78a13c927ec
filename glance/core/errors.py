"""
Error taxonomy shared by services and routers.

Every GlanceError carries the HTTP status it maps to and a message that is
safe to show to API clients. Internal detail (failing query, driver error)
goes to the logs only, never into `message`.
"""


class GlanceError(Exception):
    status_code: int = 500
    message: str = "Internal server error"

    def __init__(self, message: str | None = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


class MissingParameter(GlanceError):
    status_code = 400

    def __init__(self, name: str):
        self.parameter = name
        super().__init__(f"Missing {name}")


class InvalidRequest(GlanceError):
    status_code = 400
    message = "Invalid request"


class Unauthorized(GlanceError):
    status_code = 401
    message = "Unauthorized"


class Forbidden(GlanceError):
    status_code = 403
    message = "Forbidden"


class NotFound(GlanceError):
    status_code = 404
    message = "Not found"


class DataStoreFailure(GlanceError):
    """A read or write against the relational store failed."""

    status_code = 500

    def __init__(self, stage: str, message: str | None = None):
        self.stage = stage
        super().__init__(message)


class AggregationFailure(DataStoreFailure):
    """Analytics could not be computed; no partial result is returned."""
