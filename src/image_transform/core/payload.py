"""Request and response payloads for the convert invocation boundary."""

import base64
import binascii
import json
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from .exceptions import (
    DecodeError,
    ProcessingError,
    TransformError,
    ValidationError,
)
from .models import (
    Adjustments,
    CropRect,
    OutputFormat,
    TransformRequest,
    describe_validation_error,
)
from .protocols import PipelineExecutorProtocol


class FilterPayload(BaseModel):
    """Photometric filters as the client sends them."""

    model_config = ConfigDict(extra="ignore")

    brightness: Optional[float] = Field(None, ge=0, allow_inf_nan=False)
    contrast: Optional[float] = Field(None, ge=0, allow_inf_nan=False)
    saturation: Optional[float] = Field(None, ge=0, allow_inf_nan=False)
    blur: Optional[float] = Field(None, ge=0, allow_inf_nan=False)
    sharpen: Optional[float] = Field(None, ge=0, allow_inf_nan=False)


class CropPayload(BaseModel):
    x: int = Field(0, ge=0)
    y: int = Field(0, ge=0)
    width: int = Field(gt=0)
    height: int = Field(gt=0)


class ConvertPayload(BaseModel):
    """Body of a convert request: a base64 (or raw) image plus transform options."""

    model_config = ConfigDict(extra="ignore")

    image: Union[str, bytes] = Field(min_length=1, repr=False)
    format: OutputFormat = OutputFormat.JPEG
    quality: int = Field(90, ge=1, le=100)
    width: Optional[int] = Field(None, gt=0)
    height: Optional[int] = Field(None, gt=0)
    rotate: Optional[float] = Field(None, ge=-180, le=180, allow_inf_nan=False)
    filters: FilterPayload = Field(default_factory=FilterPayload)
    crop: Optional[CropPayload] = None

    @classmethod
    def parse(cls, data: Dict[str, Any]) -> "ConvertPayload":
        """Validate a decoded JSON object."""
        if not isinstance(data, dict):
            raise ValidationError("Request body must be a JSON object")
        if not data.get("image"):
            raise ValidationError("No image data provided")
        try:
            return cls.model_validate(data)
        except PydanticValidationError as exc:
            raise ValidationError(describe_validation_error(exc)) from exc

    @classmethod
    def from_json(cls, text: Union[str, bytes]) -> "ConvertPayload":
        try:
            data = json.loads(text)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise ValidationError(f"Request body is not valid JSON: {exc}") from exc
        return cls.parse(data)

    def image_bytes(self) -> bytes:
        """Decode the image field, tolerating a ``data:`` URL prefix."""
        if isinstance(self.image, bytes):
            return self.image
        encoded = self.image
        if encoded.startswith("data:") and "," in encoded:
            encoded = encoded.split(",", 1)[1]
        try:
            return base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise DecodeError(f"Image data is not valid base64: {exc}") from exc

    def to_transform_request(self) -> TransformRequest:
        crop = CropRect(**self.crop.model_dump()) if self.crop else None
        return TransformRequest(
            source_bytes=self.image_bytes(),
            crop=crop,
            rotation_degrees=self.rotate or 0.0,
            adjustments=Adjustments(
                brightness=self.filters.brightness,
                contrast=self.filters.contrast,
                saturation=self.filters.saturation,
                blur_radius=self.filters.blur,
                sharpen=self.filters.sharpen,
            ),
            target_width=self.width,
            target_height=self.height,
            output_format=self.format,
            quality=self.quality,
        )


class ConvertResponse(BaseModel):
    """Outcome of a convert request. Failures never carry image data."""

    status_code: int
    image: Optional[str] = Field(None, repr=False)
    content_type: Optional[str] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    stage: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status_code == 200

    @classmethod
    def success(cls, data: bytes, output_format: OutputFormat) -> "ConvertResponse":
        return cls(
            status_code=200,
            image=base64.b64encode(data).decode("ascii"),
            content_type=OutputFormat(output_format).mime_type,
        )

    @classmethod
    def failure(cls, error: TransformError) -> "ConvertResponse":
        if isinstance(error, (ValidationError, DecodeError)):
            status_code = 400
        else:
            status_code = 500
        stage = error.stage if isinstance(error, ProcessingError) else None
        return cls(
            status_code=status_code,
            error=str(error),
            error_type=type(error).__name__,
            stage=stage,
        )

    def image_bytes(self) -> bytes:
        if self.image is None:
            raise DecodeError("Response carries no image")
        return base64.b64decode(self.image)


def handle_convert(body: Any, executor: PipelineExecutorProtocol) -> ConvertResponse:
    """
    Run one convert request end to end.

    Args:
        body: JSON text or an already-decoded JSON object
        executor: Pipeline executor to invoke

    Returns:
        A success response with the encoded image, or a failure response.
        Transform errors are reported in the response, never raised.
    """
    try:
        payload = (
            ConvertPayload.from_json(body)
            if isinstance(body, (str, bytes))
            else ConvertPayload.parse(body)
        )
        request = payload.to_transform_request()
        return ConvertResponse.success(executor.execute(request), request.output_format)
    except TransformError as exc:
        return ConvertResponse.failure(exc)
