"""Testing utilities and fakes for image-transform."""

from .fakes import (
    FakeLogger,
    FakeCodec,
    RecordingExecutor,
    create_test_image,
    create_gradient_image,
    open_image,
)

__all__ = [
    "FakeLogger",
    "FakeCodec",
    "RecordingExecutor",
    "create_test_image",
    "create_gradient_image",
    "open_image",
]
