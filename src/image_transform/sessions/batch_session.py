"""Batch session: shared settings applied to many independent images."""

import mimetypes
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Tuple

from ..core.codec import PillowCodec
from ..core.error_handling import BatchOperationContextManager
from ..core.exceptions import (
    ConfigurationError,
    ItemBusyError,
    ItemNotFoundError,
    SessionBusyError,
    UnsupportedMediaError,
)
from ..core.executor import PipelineExecutor
from ..core.logging_config import get_logger
from ..core.models import (
    BatchItem,
    BatchSettings,
    ItemStatus,
    PipelineDefaults,
    unique_filename,
)
from ..core.protocols import PipelineExecutorProtocol, PixelCodecProtocol

mimetypes.add_type("image/webp", ".webp")

StatusListener = Callable[[BatchItem], None]


@dataclass
class EnrollmentReport:
    """Files accepted into, and rejected from, one enrollment call."""

    accepted: List[BatchItem] = field(default_factory=list)
    rejected: List[Tuple[str, str]] = field(default_factory=list)


@dataclass
class BatchReport:
    """Summary of one run."""

    total: int
    completed: int
    failed: int
    pending: int
    cancelled: bool
    processing_time: float

    @property
    def success(self) -> bool:
        return self.failed == 0 and self.pending == 0


class BatchSession:
    """
    Runs the pipeline over every enrolled item with one shared BatchSettings.

    Items are processed through a work queue whose concurrency ceiling
    defaults to one, so a single transformation is in flight at a time.
    Each item moves pending -> processing -> completed | failed under the
    session lock; a failing item never affects its siblings or the run.
    """

    def __init__(
        self,
        settings: Optional[BatchSettings] = None,
        executor: Optional[PipelineExecutorProtocol] = None,
        defaults: Optional[PipelineDefaults] = None,
        concurrency: Optional[int] = None,
        codec: Optional[PixelCodecProtocol] = None,
        listener: Optional[StatusListener] = None,
    ):
        self._defaults = defaults or PipelineDefaults()
        self._settings = settings or BatchSettings.from_defaults(self._defaults)
        self._executor = executor or PipelineExecutor(defaults=self._defaults)
        self._concurrency = (
            self._defaults.batch_concurrency if concurrency is None else concurrency
        )
        if self._concurrency < 1:
            raise ConfigurationError(
                f"Batch concurrency must be at least 1, got {self._concurrency}"
            )
        self._codec = codec or PillowCodec()
        self._listener = listener
        self._logger = get_logger("image-transform.batch")

        self._items: Dict[str, BatchItem] = {}
        self._lock = threading.RLock()
        self._running = False
        self._cancel_event = threading.Event()

    @property
    def concurrency(self) -> int:
        return self._concurrency

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._running

    # Settings

    @property
    def settings(self) -> BatchSettings:
        with self._lock:
            return self._settings

    def update_settings(self, **changes: Any) -> BatchSettings:
        """Replace fields of the shared settings; refused while a run is active."""
        with self._lock:
            if self._running:
                raise SessionBusyError("Batch settings cannot change during a run")
            data = self._settings.model_dump()
            data.update(changes)
            self._settings = BatchSettings(**data)
            return self._settings

    # Enrollment

    def enroll(
        self, filename: str, data: bytes, mime_type: Optional[str] = None
    ) -> BatchItem:
        """
        Add one file as a pending item.

        Raises:
            UnsupportedMediaError: The file is not declared or named as an image
        """
        mime_type = mime_type or mimetypes.guess_type(filename)[0] or ""
        if not mime_type.startswith("image/"):
            raise UnsupportedMediaError(
                f"{filename} is not an image (type {mime_type or 'unknown'})"
            )
        if not data:
            raise UnsupportedMediaError(f"{filename} is empty")

        item = BatchItem(filename=filename, mime_type=mime_type, source_bytes=bytes(data))
        with self._lock:
            self._items[item.id] = item
        self._logger.debug(f"Enrolled {filename} as {item.id}")
        return item

    def enroll_many(
        self, files: Iterable[Tuple[str, bytes, Optional[str]]]
    ) -> EnrollmentReport:
        """Enroll several (filename, data, mime_type) files, collecting rejections."""
        report = EnrollmentReport()
        for filename, data, mime_type in files:
            try:
                report.accepted.append(self.enroll(filename, data, mime_type))
            except UnsupportedMediaError as exc:
                self._logger.warning(f"Rejected {filename}: {exc}")
                report.rejected.append((filename, str(exc)))
        return report

    def remove(self, item_id: str) -> BatchItem:
        """Drop an item and release its preview; refused while it is processing."""
        with self._lock:
            item = self._get(item_id)
            if item.status is ItemStatus.PROCESSING:
                raise ItemBusyError(f"Item {item_id} is being processed")
            del self._items[item_id]
        item.release_preview()
        return item

    def clear(self) -> None:
        """Remove every item; refused while a run is active."""
        with self._lock:
            if self._running:
                raise SessionBusyError("Cannot clear a running batch")
            items = list(self._items.values())
            self._items.clear()
        for item in items:
            item.release_preview()

    def preview(self, item_id: str, max_edge: Optional[int] = None):
        """Thumbnail of an item's source, built once and held until removal."""
        with self._lock:
            item = self._get(item_id)
            if item.preview is not None:
                return item.preview
        source = self._codec.decode(item.source_bytes)
        thumbnail = self._codec.thumbnail(source, max_edge or self._defaults.preview_max_edge)
        with self._lock:
            if item_id in self._items and item.preview is None:
                item.attach_preview(thumbnail)
            else:
                thumbnail.close()
            return item.preview

    # Queries

    def get(self, item_id: str) -> BatchItem:
        with self._lock:
            return self._get(item_id)

    def _get(self, item_id: str) -> BatchItem:
        try:
            return self._items[item_id]
        except KeyError:
            raise ItemNotFoundError(f"No item with id {item_id}") from None

    @property
    def items(self) -> List[BatchItem]:
        with self._lock:
            return list(self._items.values())

    def counts(self) -> Dict[ItemStatus, int]:
        """Number of items in each status. The lock is never held across a transform."""
        with self._lock:
            counts = {status: 0 for status in ItemStatus}
            for item in self._items.values():
                counts[item.status] += 1
            return counts

    def completed_results(self) -> List[Tuple[str, bytes]]:
        """
        (output filename, bytes) for every completed item, in enrollment order.

        Names use the format each item was encoded in, not the current
        settings. Colliding names get a numeric suffix: a.webp, a-1.webp.
        """
        with self._lock:
            completed = [
                item
                for item in self._items.values()
                if item.status is ItemStatus.COMPLETED and item.result is not None
            ]
        results: List[Tuple[str, bytes]] = []
        taken: Set[str] = set()
        for item in completed:
            name = unique_filename(item.output_filename(), taken)
            taken.add(name)
            results.append((name, item.result))
        return results

    # Running

    def cancel(self) -> None:
        """
        Stop the active run once in-flight items finish; waiting items stay pending.

        A request made while no run is active stops the next run before it
        starts any item. Every run clears the request when it ends.
        """
        self._cancel_event.set()
        self._logger.info("Batch cancellation requested")

    def run(self) -> BatchReport:
        """
        Process every pending item.

        Raises:
            SessionBusyError: A run is already in progress
        """
        with self._lock:
            if self._running:
                raise SessionBusyError("Batch is already running")
            self._running = True
            pending = [i for i in self._items.values() if i.status is ItemStatus.PENDING]
            settings = self._settings

        start_time = time.time()
        completed = failed = 0
        try:
            operation = f"Batch run of {len(pending)} item(s)"
            with BatchOperationContextManager(operation, self._logger) as batch_op:
                with ThreadPoolExecutor(
                    max_workers=self._concurrency, thread_name_prefix="batch"
                ) as pool:
                    futures = [
                        pool.submit(self._process_item, item, settings)
                        for item in pending
                    ]
                    for future in futures:
                        item = future.result()
                        if item is None:
                            continue
                        if item.status is ItemStatus.COMPLETED:
                            completed += 1
                        else:
                            failed += 1
                            batch_op.add_error(item.error_detail.message, item.filename)
        finally:
            with self._lock:
                self._running = False
                cancelled = self._cancel_event.is_set()
                self._cancel_event.clear()

        counts = self.counts()
        report = BatchReport(
            total=len(pending),
            completed=completed,
            failed=failed,
            pending=counts[ItemStatus.PENDING],
            cancelled=cancelled,
            processing_time=time.time() - start_time,
        )
        self._logger.info(
            f"Batch finished: {completed} completed, {failed} failed, "
            f"{report.pending} pending{' (cancelled)' if cancelled else ''}"
        )
        return report

    def _process_item(self, item: BatchItem, settings: BatchSettings) -> Optional[BatchItem]:
        with self._lock:
            if self._cancel_event.is_set():
                return None
            if self._items.get(item.id) is not item or item.status is not ItemStatus.PENDING:
                return None
            item.start()
        self._notify(item)

        try:
            result = self._executor.execute(settings.request_for(item.source_bytes))
        except Exception as exc:  # noqa: BLE001
            self._logger.error(f"[{item.filename}] {type(exc).__name__}: {exc}")
            self._logger.debug(f"[{item.filename}] traceback", exc_info=True)
            with self._lock:
                item.fail(exc)
        else:
            with self._lock:
                item.complete(result, settings.output_format)
        self._notify(item)
        return item

    def _notify(self, item: BatchItem) -> None:
        if self._listener is None:
            return
        try:
            self._listener(item)
        except Exception as exc:  # noqa: BLE001
            self._logger.error(f"Status listener failed for {item.id}: {exc}", exc_info=True)
