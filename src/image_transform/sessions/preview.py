"""Low-fidelity preview rendering for the single-image editor."""

from dataclasses import dataclass
from typing import Optional

from PIL import Image

from ..core.codec import PillowCodec
from ..core.exceptions import with_error_handling
from ..core.models import Adjustments, CropRect, OutputFormat
from ..core.protocols import PixelCodecProtocol


@dataclass(frozen=True)
class PreviewFrame:
    """A rendered preview tagged with the request version that produced it."""

    version: int
    image: Image.Image

    @property
    def size(self):
        return self.image.size

    def to_bytes(self, output_format: OutputFormat = OutputFormat.PNG) -> bytes:
        return PillowCodec().encode(self.image, output_format, quality=80)


class PreviewRenderer:
    """
    Renders approximate previews from a downscaled copy of the source.

    Crop coordinates are scaled from source pixels onto the working copy,
    and the blur and sharpen widths are scaled with them. A preview then
    matches the direction and rough magnitude of the exported result
    without paying for a full-resolution pass.
    """

    def __init__(
        self,
        source: Image.Image,
        max_edge: int = 512,
        codec: Optional[PixelCodecProtocol] = None,
        fill=(0, 0, 0, 0),
    ):
        self._codec = codec or PillowCodec()
        self._source_size = source.size
        self._base = self._codec.thumbnail(source, max_edge)
        self._scale = self._base.width / source.width
        self._fill = fill

    @property
    def scale(self) -> float:
        return self._scale

    @with_error_handling
    def render(
        self,
        version: int,
        crop: Optional[CropRect] = None,
        rotation: float = 0.0,
        adjustments: Optional[Adjustments] = None,
    ) -> PreviewFrame:
        image = self._base
        if crop is not None:
            image = self._codec.crop(image, self._scaled_box(crop))
        if rotation:
            image = self._codec.rotate(image, rotation, fill=self._fill)

        adjustments = adjustments or Adjustments()
        if adjustments.brightness is not None or adjustments.saturation is not None:
            image = self._codec.modulate(
                image,
                brightness=adjustments.brightness,
                saturation=adjustments.saturation,
            )
        if adjustments.contrast is not None:
            image = self._codec.linear(image, adjustments.contrast)
        if adjustments.blur_radius:
            image = self._codec.gaussian_blur(image, adjustments.blur_radius * self._scale)
        if adjustments.sharpen:
            image = self._codec.sharpen(image, adjustments.sharpen * self._scale)

        if image is self._base:
            image = image.copy()
        return PreviewFrame(version=version, image=image)

    def _scaled_box(self, crop: CropRect):
        width, height = self._base.size
        left = min(int(crop.x * self._scale), width - 1)
        top = min(int(crop.y * self._scale), height - 1)
        right = max(left + 1, min(round((crop.x + crop.width) * self._scale), width))
        bottom = max(top + 1, min(round((crop.y + crop.height) * self._scale), height))
        return (left, top, right, bottom)

    def close(self) -> None:
        self._base.close()
