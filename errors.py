class ApiError(Exception):
    """A request the handler refuses, reported to the caller as-is."""

    def __init__(self, status_code: int, error: str, details: str = None):
        super().__init__(error)
        self.status_code = status_code
        self.error = error
        self.details = details

    def to_body(self) -> dict:
        body = {"success": False, "error": self.error}
        if self.details:
            body["details"] = self.details
        return body


class StorageError(Exception):
    """Object storage could not issue an upload URL."""


class GeocodingError(Exception):
    """The geocoding/directions provider returned an error."""


def bad_request(error: str, details: str = None) -> ApiError:
    return ApiError(400, error, details)


def not_found(error: str, details: str = None) -> ApiError:
    return ApiError(404, error, details)


def forbidden(error: str, details: str = None) -> ApiError:
    return ApiError(403, error, details)
