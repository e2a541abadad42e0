from typing import Optional


class AppError(Exception):
    """Error surfaced to API callers as ``{"error": {"code", "message"}}``."""

    status_code = 500
    code = "internal_error"

    def __init__(self, code: Optional[str] = None, message: str = "", status_code: Optional[int] = None):
        super().__init__(message)
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code
        self.message = message


class InvalidCoordinate(AppError):
    status_code = 400
    code = "invalid_coordinate"

    def __init__(self, message: str):
        super().__init__(message=message)


class RouteUnavailable(AppError):
    status_code = 502
    code = "route_unavailable"

    def __init__(self, message: str):
        super().__init__(message=message)


class InvalidRouteResponse(AppError):
    status_code = 502
    code = "invalid_route_response"

    def __init__(self, message: str):
        super().__init__(message=message)


class SpatialQueryFailure(AppError):
    status_code = 503
    code = "spatial_query_failed"

    def __init__(self, message: str):
        super().__init__(message=message)
