"""
Domain errors raised by the service layer.

Every error carries the HTTP status it maps to; ``quill.main`` installs a
single handler that renders them as ``{"message": ...}`` (plus ``errors``
for validation failures). Services raise, routers never catch.
"""
from __future__ import annotations


class BlogError(Exception):
    status_code: int = 400
    message: str = "Request could not be processed"

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"message": self.message}


class ValidationFailed(BlogError):
    """Field-level validation failure; ``errors`` is a list of {field, message}."""

    status_code = 422
    message = "Validation failed"

    def __init__(self, errors: list[dict[str, str]], message: str | None = None) -> None:
        super().__init__(message)
        self.errors = errors

    @classmethod
    def single(cls, field: str, message: str) -> "ValidationFailed":
        return cls([{"field": field, "message": message}])

    def to_dict(self) -> dict:
        return {"message": self.message, "errors": self.errors}


class Unauthorized(BlogError):
    status_code = 401
    message = "Could not validate credentials"


class Forbidden(BlogError):
    status_code = 403
    message = "Not authorized to perform this action"


class NotFound(BlogError):
    status_code = 404
    message = "Resource not found"


class DuplicateName(BlogError):
    status_code = 409
    message = "Category with this name already exists"


class DuplicateTitle(BlogError):
    status_code = 409
    message = "Post with this title already exists"


class InvalidCategory(BlogError):
    status_code = 400
    message = "Invalid category"


class HasPosts(BlogError):
    status_code = 400
    message = "Cannot delete category with existing posts"


class DuplicateUser(BlogError):
    status_code = 409
    message = "A user with this username or email already exists"


class ConcurrentWrite(BlogError):
    """Another request inserted the same row first; retrying reads the new state."""

    status_code = 409
    message = "Conflicting concurrent update, please retry"
