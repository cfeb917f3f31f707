"""Protocol definitions for dependency injection and testability."""

from typing import Any, Optional, Protocol, Tuple

from PIL import Image

from .models import OutputFormat, TransformRequest


class PixelCodecProtocol(Protocol):
    """Pixel primitives the pipeline is built from."""

    def decode(self, data: bytes) -> Image.Image:
        """Decode encoded bytes into a pixel buffer."""
        ...

    def encode(
        self,
        image: Image.Image,
        output_format: OutputFormat,
        quality: int,
        background: Tuple[int, int, int] = (0, 0, 0),
    ) -> bytes:
        """Encode a pixel buffer into the requested container format."""
        ...

    def crop(self, image: Image.Image, box: Tuple[int, int, int, int]) -> Image.Image:
        """Cut the left, upper, right, lower box out of the image."""
        ...

    def rotate(
        self,
        image: Image.Image,
        degrees: float,
        fill: Tuple[int, int, int, int] = (0, 0, 0, 0),
    ) -> Image.Image:
        """Rotate clockwise, expanding the canvas to fit."""
        ...

    def modulate(
        self,
        image: Image.Image,
        brightness: Optional[float] = None,
        saturation: Optional[float] = None,
    ) -> Image.Image:
        """Scale brightness and saturation multiplicatively."""
        ...

    def linear(self, image: Image.Image, multiplier: float, offset: float = 0.0) -> Image.Image:
        """Apply ``multiplier * pixel + offset`` to every color channel."""
        ...

    def gaussian_blur(self, image: Image.Image, sigma: float) -> Image.Image:
        """Blur with a Gaussian of the given standard deviation."""
        ...

    def sharpen(self, image: Image.Image, sigma: float) -> Image.Image:
        """Unsharp-mask the color channels with a Gaussian of width ``sigma``."""
        ...

    def resize_fit(
        self,
        image: Image.Image,
        width: Optional[int],
        height: Optional[int],
    ) -> Image.Image:
        """Fit inside the box, keeping aspect ratio and never enlarging."""
        ...

    def thumbnail(self, image: Image.Image, max_edge: int) -> Image.Image:
        """Return a downscaled copy whose longest edge is at most max_edge."""
        ...


class PipelineExecutorProtocol(Protocol):
    """Anything that turns a transform request into encoded bytes."""

    def execute(self, request: TransformRequest) -> bytes:
        """Run the full pipeline for one request."""
        ...


class LoggerProtocol(Protocol):
    """Protocol for logging operations."""

    def debug(self, message: str, context: Any = None, **kwargs: Any) -> None:
        """Log debug message."""
        ...

    def info(self, message: str, context: Any = None, **kwargs: Any) -> None:
        """Log info message."""
        ...

    def warning(self, message: str, context: Any = None, **kwargs: Any) -> None:
        """Log warning message."""
        ...

    def error(self, message: str, context: Any = None, **kwargs: Any) -> None:
        """Log error message."""
        ...
