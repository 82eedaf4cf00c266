import logging
from typing import Any

logger = logging.getLogger(__name__)

UNKNOWN_ERROR_MESSAGE = "An unknown error occurred."


class ApplicationError(Exception):
    status_code: int = 500

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class NotFoundError(ApplicationError):
    status_code = 404


class ValidationError(ApplicationError):
    """Aggregated field violations, keyed by dotted field path."""

    status_code = 400

    def __init__(self, fields: dict[str, str]) -> None:
        self.fields = dict(fields)
        super().__init__(f"Invalid field{'s' if len(self.fields) > 1 else ''}.")


class FieldErrors:
    """Collects violations so every failing field is reported at once."""

    def __init__(self) -> None:
        self._fields: dict[str, str] = {}

    def add(self, path: str, code: str) -> None:
        self._fields.setdefault(path, code)

    @property
    def fields(self) -> dict[str, str]:
        return dict(self._fields)

    def __contains__(self, path: str) -> bool:
        return path in self._fields

    def __bool__(self) -> bool:
        return bool(self._fields)

    def raise_if_any(self) -> None:
        if self._fields:
            raise ValidationError(self._fields)


def format_error(exc: BaseException) -> tuple[dict[str, Any], int]:
    if isinstance(exc, ValidationError):
        return {"message": exc.message, "fields": exc.fields}, exc.status_code
    if isinstance(exc, ApplicationError):
        return {"message": exc.message}, exc.status_code
    logger.exception("unhandled_error", exc_info=exc)
    return {"message": UNKNOWN_ERROR_MESSAGE}, 500
