"""Pipeline executor: applies a TransformRequest to source bytes."""

from contextlib import contextmanager
from typing import Iterator, Optional, Type

from PIL import Image

from .codec import PillowCodec
from .error_handling import stage_guard
from .exceptions import EncodeError, ProcessingError, ValidationError
from .models import PipelineDefaults, TransformRequest
from .observability import LogContext, MetricsCollector, StructuredLogger, timed_stage
from .protocols import LoggerProtocol, PixelCodecProtocol

STAGES = (
    "decode",
    "crop",
    "rotate",
    "brightness",
    "saturation",
    "contrast",
    "blur",
    "sharpen",
    "resize",
    "encode",
)


class PipelineExecutor:
    """
    Runs the fixed transformation pipeline.

    Stages run in this order, each skipped when its parameters are absent:
    decode, crop, rotate, brightness, saturation, contrast, blur, sharpen,
    resize, encode. Crop happens in source coordinates before any
    resampling, and sharpening follows blur. The first error stops the
    pipeline; nothing is retried.
    """

    def __init__(
        self,
        codec: Optional[PixelCodecProtocol] = None,
        defaults: Optional[PipelineDefaults] = None,
        logger: Optional[LoggerProtocol] = None,
        metrics_collector: Optional[MetricsCollector] = None,
    ):
        self._codec = codec or PillowCodec()
        self._defaults = defaults or PipelineDefaults()
        self._logger = logger or StructuredLogger("image-transform.executor")
        self._metrics_collector = metrics_collector

    @property
    def defaults(self) -> PipelineDefaults:
        return self._defaults

    def execute(self, request: TransformRequest) -> bytes:
        """
        Apply every stage of ``request`` and return the encoded bytes.

        Raises:
            ValidationError: A parameter is out of domain
            DecodeError: The source bytes are not a readable image
            ProcessingError: A stage failed; ``stage`` names it
            EncodeError: The output format could not be written
        """
        if not isinstance(request, TransformRequest):
            raise ValidationError(
                f"Expected a TransformRequest, got {type(request).__name__}"
            )

        context = LogContext(
            operation="execute", component="pipeline_executor"
        ).with_metadata(
            format=request.output_format.value,
            quality=request.quality,
            source_size=len(request.source_bytes),
        )
        self._logger.debug("Executing transform", context)

        with self._stage("decode", context):
            image = self._codec.decode(request.source_bytes)

        # Crop bounds can only be checked once the source size is known.
        if request.crop is not None and not request.crop.fits_within(image.width, image.height):
            raise ValidationError(
                f"Crop {request.crop.box} exceeds the {image.width}x{image.height} source"
            )

        image = self._apply_geometry(image, request, context)
        image = self._apply_adjustments(image, request, context)

        if request.wants_resize:
            with self._stage("resize", context):
                image = self._codec.resize_fit(
                    image, request.target_width, request.target_height
                )

        with self._stage("encode", context, error_cls=EncodeError):
            encoded = self._codec.encode(
                image,
                request.output_format,
                request.quality,
                background=self._defaults.jpeg_background,
            )

        self._logger.info(
            "Transform complete",
            context,
            output_size=len(encoded),
            dimensions=f"{image.width}x{image.height}",
        )
        return encoded

    def execute_bytes(self, source_bytes: bytes, request: TransformRequest) -> bytes:
        """Run ``request`` against a different source buffer."""
        return self.execute(request.model_copy(update={"source_bytes": source_bytes}))

    def _apply_geometry(
        self, image: Image.Image, request: TransformRequest, context: LogContext
    ) -> Image.Image:
        if request.crop is not None:
            with self._stage("crop", context):
                image = self._codec.crop(image, request.crop.box)

        if request.rotation_degrees:
            with self._stage("rotate", context):
                image = self._codec.rotate(
                    image, request.rotation_degrees, fill=self._defaults.rotation_fill
                )
        return image

    def _apply_adjustments(
        self, image: Image.Image, request: TransformRequest, context: LogContext
    ) -> Image.Image:
        adjustments = request.adjustments

        if adjustments.brightness is not None:
            with self._stage("brightness", context):
                image = self._codec.modulate(image, brightness=adjustments.brightness)

        if adjustments.saturation is not None:
            with self._stage("saturation", context):
                image = self._codec.modulate(image, saturation=adjustments.saturation)

        if adjustments.contrast is not None:
            with self._stage("contrast", context):
                image = self._codec.linear(image, adjustments.contrast, 0.0)

        if adjustments.blur_radius:
            sigma = self.effective_blur_sigma(adjustments.blur_radius)
            with self._stage("blur", context):
                image = self._codec.gaussian_blur(image, sigma)

        if adjustments.sharpen:
            sigma = self.effective_sharpen_sigma(adjustments.sharpen)
            with self._stage("sharpen", context):
                image = self._codec.sharpen(image, sigma)

        return image

    def effective_blur_sigma(self, radius: float) -> float:
        """Clamp a positive blur radius into the encoder's supported sigma range."""
        return min(max(radius, self._defaults.blur_min_sigma), self._defaults.blur_max_sigma)

    def effective_sharpen_sigma(self, sigma: float) -> float:
        return min(sigma, self._defaults.sharpen_max_sigma)

    @contextmanager
    def _stage(
        self,
        name: str,
        context: LogContext,
        error_cls: Type[ProcessingError] = ProcessingError,
    ) -> Iterator[None]:
        with timed_stage(name, context, self._logger, self._metrics_collector):
            with stage_guard(name, error_cls):
                yield
