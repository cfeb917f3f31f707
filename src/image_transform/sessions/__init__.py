"""Editing and batch sessions built on the pipeline executor."""

from .batch_session import BatchReport, BatchSession, EnrollmentReport
from .edit_session import EditDraft, ImageEditSession
from .preview import PreviewFrame, PreviewRenderer

__all__ = [
    "BatchSession",
    "BatchReport",
    "EnrollmentReport",
    "ImageEditSession",
    "EditDraft",
    "PreviewFrame",
    "PreviewRenderer",
]
