"""Pillow-backed pixel primitives used by the transformation pipeline."""

import io
from typing import Callable, Optional, Tuple

import numpy as np
from PIL import Image, ImageEnhance, ImageFilter, UnidentifiedImageError

from .exceptions import DecodeError
from .models import OutputFormat

# Errors Pillow raises for unreadable or malformed input.
DECODE_ERRORS = (
    UnidentifiedImageError,
    OSError,
    SyntaxError,
    ValueError,
    Image.DecompressionBombError,
)


def fit_size(
    source_width: int,
    source_height: int,
    width: Optional[int],
    height: Optional[int],
) -> Tuple[int, int]:
    """
    Size of a source image fitted inside an optional width x height box.

    The aspect ratio is preserved and the result never exceeds the source
    size. A missing dimension places no bound on that axis.

    Args:
        source_width: Width of the image being resized
        source_height: Height of the image being resized
        width: Maximum output width, or None
        height: Maximum output height, or None

    Returns:
        Output (width, height)
    """
    scale = 1.0
    if width:
        scale = min(scale, width / source_width)
    if height:
        scale = min(scale, height / source_height)
    if scale >= 1.0:
        return source_width, source_height
    return (
        max(1, round(source_width * scale)),
        max(1, round(source_height * scale)),
    )


def has_alpha(image: Image.Image) -> bool:
    return "A" in image.getbands() or "transparency" in image.info


def flatten_alpha(
    image: Image.Image, background: Tuple[int, int, int] = (0, 0, 0)
) -> Image.Image:
    """Composite an image with transparency onto a solid RGB background."""
    if not has_alpha(image):
        return image.convert("RGB")
    rgba = image.convert("RGBA")
    flattened = Image.new("RGB", rgba.size, background)
    flattened.paste(rgba, mask=rgba.getchannel("A"))
    return flattened


def on_color_bands(
    image: Image.Image, operation: Callable[[Image.Image], Image.Image]
) -> Image.Image:
    """Apply an RGB operation, carrying any alpha channel through unchanged."""
    if image.mode == "RGBA":
        alpha = image.getchannel("A")
        result = operation(image.convert("RGB"))
        result.putalpha(alpha)
        return result
    if image.mode != "RGB":
        image = image.convert("RGB")
    return operation(image)


class PillowCodec:
    """Pixel codec built on Pillow, with numpy for the linear remap."""

    resample = Image.Resampling.LANCZOS
    rotate_resample = Image.Resampling.BICUBIC
    sharpen_percent = 150

    def decode(self, data: bytes) -> Image.Image:
        """
        Decode bytes into an RGB or RGBA image.

        Raises:
            DecodeError: If the bytes are not a readable image
        """
        try:
            image = Image.open(io.BytesIO(data))
            image.load()
        except DECODE_ERRORS as exc:
            raise DecodeError(f"Unable to decode image: {exc}") from exc

        if image.mode in ("RGB", "RGBA"):
            return image
        return image.convert("RGBA" if has_alpha(image) else "RGB")

    def encode(
        self,
        image: Image.Image,
        output_format: OutputFormat,
        quality: int,
        background: Tuple[int, int, int] = (0, 0, 0),
    ) -> bytes:
        output_format = OutputFormat(output_format)
        if output_format is OutputFormat.JPEG and image.mode != "RGB":
            image = flatten_alpha(image, background)

        options = {"quality": quality} if output_format.uses_quality else {}
        stream = io.BytesIO()
        image.save(stream, format=output_format.pillow_format, **options)
        return stream.getvalue()

    def crop(self, image: Image.Image, box: Tuple[int, int, int, int]) -> Image.Image:
        cropped = image.crop(box)
        cropped.load()
        return cropped

    def rotate(
        self,
        image: Image.Image,
        degrees: float,
        fill: Tuple[int, int, int, int] = (0, 0, 0, 0),
    ) -> Image.Image:
        # Pillow rotates counter-clockwise; quarter turns are exact transposes.
        if degrees % 90 == 0:
            return image.rotate(-degrees, expand=True)
        if image.mode != "RGBA":
            image = image.convert("RGBA")
        return image.rotate(
            -degrees, resample=self.rotate_resample, expand=True, fillcolor=fill
        )

    def modulate(
        self,
        image: Image.Image,
        brightness: Optional[float] = None,
        saturation: Optional[float] = None,
    ) -> Image.Image:
        def scale(rgb: Image.Image) -> Image.Image:
            if brightness is not None:
                rgb = ImageEnhance.Brightness(rgb).enhance(brightness)
            if saturation is not None:
                rgb = ImageEnhance.Color(rgb).enhance(saturation)
            return rgb

        return on_color_bands(image, scale)

    def linear(self, image: Image.Image, multiplier: float, offset: float = 0.0) -> Image.Image:
        def remap(rgb: Image.Image) -> Image.Image:
            pixels = np.asarray(rgb, dtype=np.float32)
            remapped = np.clip(pixels * multiplier + offset, 0, 255)
            return Image.fromarray(np.rint(remapped).astype(np.uint8))

        return on_color_bands(image, remap)

    def gaussian_blur(self, image: Image.Image, sigma: float) -> Image.Image:
        # Pillow's GaussianBlur radius is the standard deviation.
        return image.filter(ImageFilter.GaussianBlur(radius=sigma))

    def sharpen(self, image: Image.Image, sigma: float) -> Image.Image:
        mask = ImageFilter.UnsharpMask(
            radius=sigma, percent=self.sharpen_percent, threshold=0
        )
        return on_color_bands(image, lambda rgb: rgb.filter(mask))

    def resize_fit(
        self,
        image: Image.Image,
        width: Optional[int],
        height: Optional[int],
    ) -> Image.Image:
        size = fit_size(image.width, image.height, width, height)
        if size == image.size:
            return image
        return image.resize(size, self.resample)

    def thumbnail(self, image: Image.Image, max_edge: int) -> Image.Image:
        preview = image.copy()
        preview.thumbnail((max_edge, max_edge), self.resample)
        return preview
