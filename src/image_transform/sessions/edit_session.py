"""Single-image editing session: a live draft, previews and one final export."""

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Dict, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict

from ..core.codec import PillowCodec
from ..core.exceptions import ValidationError
from ..core.executor import PipelineExecutor
from ..core.logging_config import get_logger
from ..core.models import (
    QUALITY_RANGE,
    ROTATION_RANGE,
    Adjustments,
    AdjustmentKind,
    CropRect,
    OutputFormat,
    PipelineDefaults,
    TransformRequest,
    clamp,
    stem_of,
)
from ..core.protocols import PipelineExecutorProtocol, PixelCodecProtocol
from .preview import PreviewFrame, PreviewRenderer


class EditDraft(BaseModel):
    """Editor state. Every update produces a new draft with a higher version."""

    model_config = ConfigDict(frozen=True)

    version: int = 0
    crop: Optional[CropRect] = None
    rotation: float = 0.0
    brightness: float = 1.0
    contrast: float = 1.0
    saturation: float = 1.0
    blur: float = 0.0
    sharpen: float = 0.0
    output_format: OutputFormat = OutputFormat.JPEG
    quality: int = 90
    target_width: Optional[int] = None
    target_height: Optional[int] = None

    def adjustments(self) -> Adjustments:
        """Adjustments with neutral slider positions left out."""
        values: Dict[str, Any] = {}
        for kind in AdjustmentKind:
            value = getattr(self, kind.value)
            if value != kind.neutral:
                values[kind.field_name] = value
        return Adjustments(**values)


class ImageEditSession:
    """
    Holds one source image and a mutable draft of how to transform it.

    Update calls only validate, clamp and record; nothing is rendered until
    a preview or the final export is requested. Previews are tagged with a
    monotonically increasing ticket and only the newest ticket's frame is
    ever kept as ``latest_preview``.
    """

    def __init__(
        self,
        source_bytes: bytes,
        executor: Optional[PipelineExecutorProtocol] = None,
        defaults: Optional[PipelineDefaults] = None,
        codec: Optional[PixelCodecProtocol] = None,
    ):
        self._defaults = defaults or getattr(executor, "defaults", None) or PipelineDefaults()
        self._executor = executor or PipelineExecutor(defaults=self._defaults)
        self._source_bytes = bytes(source_bytes)
        self._logger = get_logger("image-transform.editor")

        codec = codec or PillowCodec()
        source = codec.decode(self._source_bytes)
        self._source_size = source.size
        self._renderer = PreviewRenderer(
            source,
            max_edge=self._defaults.preview_max_edge,
            codec=codec,
            fill=self._defaults.rotation_fill,
        )

        self._draft = EditDraft(
            output_format=self._defaults.editor_format,
            quality=self._defaults.editor_quality,
        )
        self._lock = threading.Lock()
        self._issued = 0
        self._latest: Optional[PreviewFrame] = None
        self._worker: Optional[ThreadPoolExecutor] = None

    @property
    def source_size(self):
        return self._source_size

    @property
    def draft(self) -> EditDraft:
        with self._lock:
            return self._draft

    @property
    def latest_preview(self) -> Optional[PreviewFrame]:
        with self._lock:
            return self._latest

    @property
    def issued_previews(self) -> int:
        with self._lock:
            return self._issued

    # Draft updates

    def update_crop(self, crop: Union[CropRect, Mapping[str, int], None]) -> EditDraft:
        """Set the crop rectangle, clipped to the source; None removes it."""
        if crop is None:
            return self._update(crop=None)
        rect = crop if isinstance(crop, CropRect) else CropRect(**dict(crop))
        return self._update(crop=rect.clipped_to(*self._source_size))

    def update_rotation(self, degrees: float) -> EditDraft:
        return self._update(rotation=clamp(degrees, *ROTATION_RANGE, name="rotation"))

    def update_adjustment(self, kind: Union[AdjustmentKind, str], value: float) -> EditDraft:
        try:
            kind = AdjustmentKind(kind)
        except ValueError:
            raise ValidationError(f"Unknown adjustment: {kind!r}") from None
        low, high = kind.editor_range
        return self._update(**{kind.value: clamp(value, low, high, name=kind.value)})

    def update_export(
        self, output_format: Union[OutputFormat, str], quality: Optional[float] = None
    ) -> EditDraft:
        try:
            output_format = OutputFormat(output_format)
        except ValueError:
            raise ValidationError(f"Unsupported output format: {output_format!r}") from None
        changes: Dict[str, Any] = {"output_format": output_format}
        if quality is not None:
            changes["quality"] = int(round(clamp(quality, *QUALITY_RANGE, name="quality")))
        return self._update(**changes)

    def update_resize(self, width: Optional[int] = None, height: Optional[int] = None) -> EditDraft:
        for name, value in (("width", width), ("height", height)):
            if value is None:
                continue
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise ValidationError(f"{name} must be a positive integer, got {value!r}")
        return self._update(target_width=width, target_height=height)

    def reset_adjustments(self) -> EditDraft:
        """Return every slider and the rotation to neutral."""
        neutral = {kind.value: kind.neutral for kind in AdjustmentKind}
        return self._update(rotation=0.0, **neutral)

    def _update(self, **changes: Any) -> EditDraft:
        with self._lock:
            changes["version"] = self._draft.version + 1
            self._draft = self._draft.model_copy(update=changes)
            return self._draft

    # Previews

    def render_preview(self) -> PreviewFrame:
        """Render the current draft synchronously on the calling thread."""
        ticket, draft = self._issue_ticket()
        frame = self._render(ticket, draft)
        self._offer(frame)
        return frame

    def request_preview(self) -> "Future[Optional[PreviewFrame]]":
        """
        Queue a preview of the current draft on the background worker.

        The future resolves to the frame, or to None when a newer request
        superseded this one before or while it rendered.
        """
        ticket, draft = self._issue_ticket()
        with self._lock:
            if self._worker is None:
                self._worker = ThreadPoolExecutor(
                    max_workers=1, thread_name_prefix="preview"
                )
            worker = self._worker
        return worker.submit(self._render_if_current, ticket, draft)

    def _issue_ticket(self):
        with self._lock:
            self._issued += 1
            return self._issued, self._draft

    def _render(self, ticket: int, draft: EditDraft) -> PreviewFrame:
        return self._renderer.render(
            ticket,
            crop=draft.crop,
            rotation=draft.rotation,
            adjustments=draft.adjustments(),
        )

    def _render_if_current(self, ticket: int, draft: EditDraft) -> Optional[PreviewFrame]:
        with self._lock:
            current = ticket == self._issued
        if not current:
            self._logger.debug(f"Skipping superseded preview {ticket}")
            return None
        frame = self._render(ticket, draft)
        return frame if self._offer(frame) else None

    def _offer(self, frame: PreviewFrame) -> bool:
        with self._lock:
            if frame.version != self._issued:
                return False
            self._latest = frame
            return True

    # Export

    def snapshot(self) -> TransformRequest:
        """Freeze the current draft into an immutable request."""
        draft = self.draft
        return TransformRequest(
            source_bytes=self._source_bytes,
            crop=draft.crop,
            rotation_degrees=draft.rotation,
            adjustments=draft.adjustments(),
            target_width=draft.target_width,
            target_height=draft.target_height,
            output_format=draft.output_format,
            quality=draft.quality,
        )

    def finalize(self) -> bytes:
        """Run the pipeline once on the current draft. Errors propagate."""
        request = self.snapshot()
        self._logger.info(
            f"Exporting draft v{self.draft.version} as {request.output_format.value}"
        )
        return self._executor.execute(request)

    def output_filename(self, original_name: str) -> str:
        return f"edited_{stem_of(original_name)}.{self.draft.output_format.extension}"

    def close(self) -> None:
        with self._lock:
            worker, self._worker = self._worker, None
        if worker is not None:
            worker.shutdown(wait=True, cancel_futures=True)
        self._renderer.close()

    def __enter__(self) -> "ImageEditSession":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
