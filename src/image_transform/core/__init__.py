"""Core models, pipeline executor and shared utilities for image-transform."""

from .codec import PillowCodec, fit_size
from .logging_config import get_logger, set_debug, setup_logger
from .exceptions import (
    ImageTransformError,
    ConfigurationError,
    TransformError,
    ValidationError,
    DecodeError,
    ProcessingError,
    EncodeError,
    SessionError,
    InvalidTransitionError,
    ItemNotFoundError,
    ItemBusyError,
    SessionBusyError,
    UnsupportedMediaError,
    with_error_handling,
)
from .executor import PipelineExecutor
from .models import (
    Adjustments,
    AdjustmentKind,
    BatchItem,
    BatchSettings,
    CropRect,
    ErrorDetail,
    ItemStatus,
    OutputFormat,
    PipelineDefaults,
    QUICK_CONVERT,
    TransformRequest,
)
from .payload import ConvertPayload, ConvertResponse, handle_convert

__all__ = [
    "PillowCodec",
    "fit_size",
    "PipelineExecutor",
    "Adjustments",
    "AdjustmentKind",
    "BatchItem",
    "BatchSettings",
    "CropRect",
    "ErrorDetail",
    "ItemStatus",
    "OutputFormat",
    "PipelineDefaults",
    "QUICK_CONVERT",
    "TransformRequest",
    "ConvertPayload",
    "ConvertResponse",
    "handle_convert",
    "setup_logger",
    "get_logger",
    "set_debug",
    "ImageTransformError",
    "ConfigurationError",
    "TransformError",
    "ValidationError",
    "DecodeError",
    "ProcessingError",
    "EncodeError",
    "SessionError",
    "InvalidTransitionError",
    "ItemNotFoundError",
    "ItemBusyError",
    "SessionBusyError",
    "UnsupportedMediaError",
    "with_error_handling",
]
