"""Custom exceptions and error handling utilities for image transformation."""

from __future__ import annotations

from functools import wraps
from typing import Any, Callable, Optional, TypeVar

from .logging_config import get_logger


class ImageTransformError(Exception):
    """Base exception for all image-transform errors."""


class ConfigurationError(ImageTransformError):
    """Error raised for invalid configuration options."""


class TransformError(ImageTransformError):
    """Base class for failures surfaced by the pipeline executor."""

    retryable = False


class ValidationError(TransformError, ValueError):
    """A parameter is missing or outside its domain.

    Raised before any pixel work begins.
    """


class DecodeError(TransformError):
    """Source bytes could not be decoded into an image."""


class ProcessingError(TransformError):
    """A named pipeline stage failed internally."""

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        self.stage = stage

    def __str__(self) -> str:
        message = super().__str__()
        if self.stage:
            return f"[{self.stage}] {message}"
        return message


class EncodeError(ProcessingError):
    """Final format conversion failed."""

    def __init__(self, message: str, stage: Optional[str] = "encode"):
        super().__init__(message, stage=stage)


class SessionError(ImageTransformError):
    """Base class for errors raised by editing and batch sessions."""


class InvalidTransitionError(SessionError):
    """A batch item was asked to move to a state it cannot reach."""


class ItemNotFoundError(SessionError, KeyError):
    """No enrolled item has the requested id."""

    def __str__(self) -> str:
        return Exception.__str__(self)


class ItemBusyError(SessionError):
    """The item is currently being processed."""


class SessionBusyError(SessionError):
    """The session is running and cannot be modified or re-run."""


class UnsupportedMediaError(SessionError):
    """An enrolled file is not an image."""


F = TypeVar("F", bound=Callable[..., Any])


def with_error_handling(func: F) -> F:
    """Wrap a function so foreign exceptions surface as ProcessingError.

    The wrapped function's name is used as the stage name.
    """

    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:  # type: ignore[override]
        logger = get_logger("image-transform.errors")
        try:
            return func(*args, **kwargs)
        except ImageTransformError:
            logger.debug(f"Pipeline error in {func.__name__}", exc_info=True)
            raise
        except Exception as exc:  # noqa: BLE001
            logger.error(f"Unhandled error in {func.__name__}: {exc}", exc_info=True)
            raise ProcessingError(str(exc), stage=func.__name__) from exc

    return wrapper  # type: ignore[return-value]
