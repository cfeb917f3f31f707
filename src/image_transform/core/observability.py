"""Observability utilities for logging and per-stage metrics."""

import logging
import threading
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional

from .logging_config import get_logger


@dataclass
class LogContext:
    """Context information for structured logging."""

    correlation_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    operation: str = ""
    component: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)

    def with_operation(self, operation: str) -> "LogContext":
        """Create new context with operation set."""
        return LogContext(
            correlation_id=self.correlation_id,
            operation=operation,
            component=self.component,
            metadata=self.metadata.copy(),
        )

    def with_metadata(self, **kwargs: Any) -> "LogContext":
        """Create new context with additional metadata."""
        new_metadata = self.metadata.copy()
        new_metadata.update(kwargs)
        return LogContext(
            correlation_id=self.correlation_id,
            operation=self.operation,
            component=self.component,
            metadata=new_metadata,
        )


class StructuredLogger:
    """Logger that renders a LogContext into each message."""

    def __init__(self, name: str, level: Optional[int] = None):
        self._logger = get_logger(name)
        if level is not None:
            self._logger.setLevel(level)

    @property
    def name(self) -> str:
        return self._logger.name

    def _log(
        self,
        level: int,
        message: str,
        context: Optional[LogContext] = None,
        **kwargs: Any,
    ) -> None:
        if not self._logger.isEnabledFor(level):
            return

        formatted_message = message
        if context:
            formatted_message = f"[{context.correlation_id}] {message}"
            if context.operation:
                formatted_message = f"[{context.operation}] {formatted_message}"
            details = {**context.metadata, **kwargs}
            if details:
                rendered = ", ".join(f"{k}={v}" for k, v in details.items())
                formatted_message = f"{formatted_message} ({rendered})"
        elif kwargs:
            rendered = ", ".join(f"{k}={v}" for k, v in kwargs.items())
            formatted_message = f"{message} ({rendered})"

        # stacklevel points the record at the caller of debug()/info()/...
        self._logger.log(level, formatted_message, stacklevel=3)

    def debug(self, message: str, context: Optional[LogContext] = None, **kwargs: Any) -> None:
        self._log(logging.DEBUG, message, context, **kwargs)

    def info(self, message: str, context: Optional[LogContext] = None, **kwargs: Any) -> None:
        self._log(logging.INFO, message, context, **kwargs)

    def warning(self, message: str, context: Optional[LogContext] = None, **kwargs: Any) -> None:
        self._log(logging.WARNING, message, context, **kwargs)

    def error(self, message: str, context: Optional[LogContext] = None, **kwargs: Any) -> None:
        self._log(logging.ERROR, message, context, **kwargs)


@dataclass
class StageMetric:
    """Timing of one pipeline stage."""

    stage: str
    start_time: float
    end_time: float
    success: bool
    correlation_id: str = ""
    error_message: Optional[str] = None

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time

    @property
    def duration_ms(self) -> float:
        return self.duration * 1000


class MetricsCollector:
    """Thread-safe collector for stage metrics."""

    def __init__(self) -> None:
        self._metrics: List[StageMetric] = []
        self._lock = threading.Lock()

    def record_metric(self, metric: StageMetric) -> None:
        with self._lock:
            self._metrics.append(metric)

    def get_metrics(self, stage: Optional[str] = None) -> List[StageMetric]:
        """Get recorded metrics, optionally filtered by stage."""
        with self._lock:
            if stage:
                return [m for m in self._metrics if m.stage == stage]
            return list(self._metrics)

    def stages_for(self, correlation_id: str) -> List[str]:
        """Stage names recorded for one invocation, in execution order."""
        with self._lock:
            return [m.stage for m in self._metrics if m.correlation_id == correlation_id]

    def get_summary(self, stage: Optional[str] = None) -> Dict[str, Any]:
        """Get summary statistics for metrics."""
        metrics = self.get_metrics(stage)
        if not metrics:
            return {}

        durations = [m.duration for m in metrics]
        successful = [m for m in metrics if m.success]
        return {
            "total_operations": len(metrics),
            "successful_operations": len(successful),
            "failed_operations": len(metrics) - len(successful),
            "success_rate": len(successful) / len(metrics),
            "avg_duration": sum(durations) / len(durations),
            "min_duration": min(durations),
            "max_duration": max(durations),
            "total_duration": sum(durations),
        }

    def clear_metrics(self) -> None:
        with self._lock:
            self._metrics.clear()


@contextmanager
def timed_stage(
    stage: str,
    context: LogContext,
    logger: Optional[Any] = None,
    metrics_collector: Optional[MetricsCollector] = None,
) -> Iterator[LogContext]:
    """Time a block, logging its outcome and recording a StageMetric."""
    stage_context = context.with_operation(stage)
    start_time = time.time()
    success = False
    error_message = None

    if logger:
        logger.debug(f"Starting {stage}", stage_context)
    try:
        yield stage_context
        success = True
    except Exception as exc:
        error_message = str(exc)
        raise
    finally:
        end_time = time.time()
        duration_ms = (end_time - start_time) * 1000
        if logger:
            if success:
                logger.debug(f"Completed {stage}", stage_context, duration_ms=round(duration_ms, 2))
            else:
                logger.warning(f"Failed {stage}: {error_message}", stage_context)
        if metrics_collector:
            metrics_collector.record_metric(
                StageMetric(
                    stage=stage,
                    start_time=start_time,
                    end_time=end_time,
                    success=success,
                    correlation_id=context.correlation_id,
                    error_message=error_message,
                )
            )
