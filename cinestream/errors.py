"""Error types raised by the route handlers and mapped to the JSON envelope."""


class ApiError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message=None, error=None, details=None, status_code=None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        self.error = error
        self.details = details
        if status_code is not None:
            self.status_code = status_code


class BadRequest(ApiError):
    status_code = 400
    default_message = "Bad request"


class ValidationFailed(BadRequest):
    default_message = "Validation failed"

    @classmethod
    def from_result(cls, result, message=None):
        first = result.errors[0]["message"] if result.errors else None
        return cls(message or first or cls.default_message, error=first, details=result.errors)


class Unauthorized(ApiError):
    status_code = 401
    default_message = "Unauthorized"


class Forbidden(ApiError):
    status_code = 403
    default_message = "Forbidden"


class NotFound(ApiError):
    status_code = 404
    default_message = "Resource not found"


class Conflict(ApiError):
    status_code = 409
    default_message = "Conflict"
