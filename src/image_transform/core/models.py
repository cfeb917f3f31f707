"""Shared data models for image transformation."""

import math
import os
import time
import uuid
from enum import Enum
from pathlib import PurePath
from typing import Any, Dict, Optional, Set, Tuple

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr
from pydantic import ValidationError as PydanticValidationError

from .exceptions import (
    ConfigurationError,
    InvalidTransitionError,
    ProcessingError,
    ValidationError,
)


def describe_validation_error(exc: PydanticValidationError) -> str:
    """Flatten a pydantic error into one human-readable line."""
    parts = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ())) or "value"
        parts.append(f"{location}: {error.get('msg', 'invalid value')}")
    return "; ".join(parts)


class _ValidatedModel(BaseModel):
    """Base model raising the package's ValidationError on bad input."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    def __init__(self, **data: Any) -> None:
        try:
            super().__init__(**data)
        except PydanticValidationError as exc:
            raise ValidationError(
                f"Invalid {type(self).__name__}: {describe_validation_error(exc)}"
            ) from exc


class OutputFormat(str, Enum):
    """Container formats the encoder can produce."""

    JPEG = "jpeg"
    PNG = "png"
    WEBP = "webp"

    @property
    def extension(self) -> str:
        return "jpg" if self is OutputFormat.JPEG else self.value

    @property
    def mime_type(self) -> str:
        return f"image/{self.value}"

    @property
    def pillow_format(self) -> str:
        return self.value.upper()

    @property
    def uses_quality(self) -> bool:
        return self is not OutputFormat.PNG


class CropRect(_ValidatedModel):
    """Crop rectangle in source-pixel coordinates."""

    x: int = Field(0, ge=0)
    y: int = Field(0, ge=0)
    width: int = Field(gt=0)
    height: int = Field(gt=0)

    @property
    def box(self) -> Tuple[int, int, int, int]:
        """Left, upper, right, lower box as Pillow expects it."""
        return (self.x, self.y, self.x + self.width, self.y + self.height)

    def fits_within(self, width: int, height: int) -> bool:
        return self.x + self.width <= width and self.y + self.height <= height

    def clipped_to(self, width: int, height: int) -> "CropRect":
        """Intersect with a width x height image, raising if nothing is left."""
        left = min(self.x, width)
        top = min(self.y, height)
        right = min(self.x + self.width, width)
        bottom = min(self.y + self.height, height)
        if right <= left or bottom <= top:
            raise ValidationError(
                f"Crop {self.box} lies outside the {width}x{height} image"
            )
        return CropRect(x=left, y=top, width=right - left, height=bottom - top)


class Adjustments(_ValidatedModel):
    """Photometric adjustments; absent values leave the image untouched."""

    brightness: Optional[float] = Field(None, ge=0, allow_inf_nan=False)
    contrast: Optional[float] = Field(None, ge=0, allow_inf_nan=False)
    saturation: Optional[float] = Field(None, ge=0, allow_inf_nan=False)
    blur_radius: Optional[float] = Field(None, ge=0, allow_inf_nan=False)
    sharpen: Optional[float] = Field(None, ge=0, allow_inf_nan=False)

    @property
    def is_identity(self) -> bool:
        multipliers = (self.brightness, self.contrast, self.saturation)
        no_scaling = all(value is None or value == 1.0 for value in multipliers)
        return no_scaling and not self.blur_radius and not self.sharpen


class AdjustmentKind(str, Enum):
    """Adjustments exposed by the editor, with their slider ranges."""

    BRIGHTNESS = "brightness"
    CONTRAST = "contrast"
    SATURATION = "saturation"
    BLUR = "blur"
    SHARPEN = "sharpen"

    @property
    def field_name(self) -> str:
        return "blur_radius" if self is AdjustmentKind.BLUR else self.value

    @property
    def editor_range(self) -> Tuple[float, float]:
        return EDITOR_RANGES[self]

    @property
    def neutral(self) -> float:
        if self in (AdjustmentKind.BLUR, AdjustmentKind.SHARPEN):
            return 0.0
        return 1.0


EDITOR_RANGES: Dict[AdjustmentKind, Tuple[float, float]] = {
    AdjustmentKind.BRIGHTNESS: (0.5, 2.0),
    AdjustmentKind.CONTRAST: (0.5, 2.0),
    AdjustmentKind.SATURATION: (0.0, 2.0),
    AdjustmentKind.BLUR: (0.0, 10.0),
    AdjustmentKind.SHARPEN: (0.0, 10.0),
}
ROTATION_RANGE = (-180.0, 180.0)
QUALITY_RANGE = (1, 100)


class TransformRequest(_ValidatedModel):
    """Immutable description of one image transformation."""

    source_bytes: bytes = Field(repr=False, min_length=1)
    crop: Optional[CropRect] = None
    rotation_degrees: float = Field(0.0, ge=-180, le=180, allow_inf_nan=False)
    adjustments: Adjustments = Field(default_factory=Adjustments)
    target_width: Optional[int] = Field(None, gt=0)
    target_height: Optional[int] = Field(None, gt=0)
    output_format: OutputFormat = OutputFormat.WEBP
    quality: int = Field(85, ge=1, le=100)

    @property
    def wants_resize(self) -> bool:
        return self.target_width is not None or self.target_height is not None


class BatchSettings(_ValidatedModel):
    """Transform settings shared by every item in a batch run."""

    output_format: OutputFormat = OutputFormat.WEBP
    quality: int = Field(85, ge=1, le=100)
    target_width: Optional[int] = Field(None, gt=0)
    target_height: Optional[int] = Field(None, gt=0)

    @classmethod
    def from_defaults(cls, defaults: "PipelineDefaults") -> "BatchSettings":
        return cls(output_format=defaults.output_format, quality=defaults.quality)

    def request_for(self, source_bytes: bytes) -> TransformRequest:
        """Build the request for one item; batches never crop or rotate."""
        return TransformRequest(
            source_bytes=source_bytes,
            output_format=self.output_format,
            quality=self.quality,
            target_width=self.target_width,
            target_height=self.target_height,
        )


class PipelineDefaults(_ValidatedModel):
    """Named defaults shared by the executor and both sessions."""

    output_format: OutputFormat = OutputFormat.WEBP
    quality: int = Field(85, ge=1, le=100)
    editor_format: OutputFormat = OutputFormat.JPEG
    editor_quality: int = Field(90, ge=1, le=100)
    blur_min_sigma: float = Field(0.3, gt=0)
    blur_max_sigma: float = Field(1000.0, gt=0)
    sharpen_max_sigma: float = Field(10.0, gt=0)
    rotation_fill: Tuple[int, int, int, int] = (0, 0, 0, 0)
    jpeg_background: Tuple[int, int, int] = (0, 0, 0)
    preview_max_edge: int = Field(512, gt=0)
    batch_concurrency: int = Field(1, ge=1)

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> "PipelineDefaults":
        """
        Build defaults, applying environment overrides.

        Environment Variables:
            IMAGE_TRANSFORM_FORMAT: Batch output format (jpeg, png, webp)
            IMAGE_TRANSFORM_QUALITY: Batch output quality (1-100)
            IMAGE_TRANSFORM_CONCURRENCY: Batch concurrency ceiling
            IMAGE_TRANSFORM_PREVIEW_EDGE: Longest preview edge in pixels
        """
        env = os.environ if environ is None else environ
        overrides: Dict[str, Any] = {}
        mapping = {
            "IMAGE_TRANSFORM_FORMAT": "output_format",
            "IMAGE_TRANSFORM_QUALITY": "quality",
            "IMAGE_TRANSFORM_CONCURRENCY": "batch_concurrency",
            "IMAGE_TRANSFORM_PREVIEW_EDGE": "preview_max_edge",
        }
        for variable, field_name in mapping.items():
            value = env.get(variable)
            if value:
                overrides[field_name] = value.strip().lower()
        try:
            return cls(**overrides)
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid environment configuration: {exc}") from exc


QUICK_CONVERT = BatchSettings(
    output_format=OutputFormat.JPEG, quality=90, target_width=800
)


def clamp(value: float, low: float, high: float, name: str = "value") -> float:
    """Clamp a finite number into [low, high]."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{name} must be a number, got {value!r}")
    if not math.isfinite(value):
        raise ValidationError(f"{name} must be finite, got {value!r}")
    return float(min(max(value, low), high))


def stem_of(filename: str) -> str:
    """File name without directories or its last extension."""
    name = PurePath(filename).name
    stem = name.rsplit(".", 1)[0] if "." in name.lstrip(".") else name
    return stem or "image"


def unique_filename(filename: str, taken: Set[str]) -> str:
    """``filename``, or ``<stem>-<n><suffix>`` with the first n not in ``taken``."""
    if filename not in taken:
        return filename
    path = PurePath(filename)
    counter = 1
    while f"{path.stem}-{counter}{path.suffix}" in taken:
        counter += 1
    return f"{path.stem}-{counter}{path.suffix}"


class ItemStatus(str, Enum):
    """Lifecycle of a batch item."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ItemStatus.COMPLETED, ItemStatus.FAILED)


ALLOWED_TRANSITIONS = {
    ItemStatus.PENDING: {ItemStatus.PROCESSING},
    ItemStatus.PROCESSING: {ItemStatus.COMPLETED, ItemStatus.FAILED},
    ItemStatus.COMPLETED: set(),
    ItemStatus.FAILED: set(),
}


class ErrorDetail(BaseModel):
    """Why an item failed."""

    model_config = ConfigDict(frozen=True)

    error_type: str
    message: str
    stage: Optional[str] = None

    @classmethod
    def from_exception(cls, exc: BaseException) -> "ErrorDetail":
        stage = exc.stage if isinstance(exc, ProcessingError) else None
        return cls(error_type=type(exc).__name__, message=str(exc), stage=stage)


class BatchItem(BaseModel):
    """One file enrolled in a batch session."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    filename: str
    mime_type: str = "application/octet-stream"
    source_bytes: bytes = Field(repr=False)
    status: ItemStatus = ItemStatus.PENDING
    result: Optional[bytes] = Field(None, repr=False)
    output_format: Optional[OutputFormat] = None
    error_detail: Optional[ErrorDetail] = None
    processing_time: float = 0.0
    enrolled_at: float = Field(default_factory=time.time)

    _preview: Any = PrivateAttr(default=None)
    _started_at: Optional[float] = PrivateAttr(default=None)

    def _transition(self, target: ItemStatus) -> None:
        if target not in ALLOWED_TRANSITIONS[self.status]:
            raise InvalidTransitionError(
                f"Item {self.id} cannot move from {self.status.value} to {target.value}"
            )
        self.status = target

    def start(self) -> None:
        self._transition(ItemStatus.PROCESSING)
        self._started_at = time.time()

    def complete(self, result: bytes, output_format: Optional[OutputFormat] = None) -> None:
        self._transition(ItemStatus.COMPLETED)
        self.result = result
        self.output_format = output_format
        self.error_detail = None
        self.processing_time = self._elapsed()

    def fail(self, error: BaseException) -> None:
        self._transition(ItemStatus.FAILED)
        self.result = None
        self.error_detail = ErrorDetail.from_exception(error)
        self.processing_time = self._elapsed()

    def _elapsed(self) -> float:
        return time.time() - self._started_at if self._started_at else 0.0

    @property
    def preview(self) -> Any:
        return self._preview

    def attach_preview(self, preview: Any) -> None:
        self.release_preview()
        self._preview = preview

    def release_preview(self) -> None:
        """Close the preview thumbnail, if one is held."""
        if self._preview is not None:
            close = getattr(self._preview, "close", None)
            if callable(close):
                close()
            self._preview = None

    def output_filename(self, output_format: Optional[OutputFormat] = None) -> str:
        """Name for the result; defaults to the format the item was encoded in."""
        output_format = output_format or self.output_format
        if output_format is None:
            raise ValidationError(f"Item {self.id} has no output format")
        return f"{stem_of(self.filename)}.{output_format.extension}"
