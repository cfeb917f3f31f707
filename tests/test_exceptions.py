"""Tests for exceptions.py error hierarchy and decorator."""

import pytest

from image_transform.core.exceptions import (
    ConfigurationError,
    DecodeError,
    EncodeError,
    ImageTransformError,
    InvalidTransitionError,
    ItemBusyError,
    ItemNotFoundError,
    ProcessingError,
    SessionBusyError,
    SessionError,
    TransformError,
    UnsupportedMediaError,
    ValidationError,
    with_error_handling,
)


class TestExceptionHierarchy:
    """Tests for the exception class hierarchy."""

    def test_transform_errors_share_base(self):
        """Test that every executor failure is a TransformError."""
        for cls in (ValidationError, DecodeError, ProcessingError, EncodeError):
            assert issubclass(cls, TransformError)
            assert issubclass(cls, ImageTransformError)

    def test_session_errors_share_base(self):
        """Test that session failures are SessionErrors, not TransformErrors."""
        for cls in (
            InvalidTransitionError,
            ItemNotFoundError,
            ItemBusyError,
            SessionBusyError,
            UnsupportedMediaError,
        ):
            assert issubclass(cls, SessionError)
            assert not issubclass(cls, TransformError)

    def test_validation_error_is_value_error(self):
        """Test that callers catching ValueError still see validation failures."""
        with pytest.raises(ValueError):
            raise ValidationError("bad quality")

    def test_configuration_error(self):
        with pytest.raises(ImageTransformError):
            raise ConfigurationError("bad env")

    def test_transform_errors_are_not_retryable(self):
        assert TransformError.retryable is False
        assert DecodeError("x").retryable is False

    def test_item_not_found_message_is_not_quoted(self):
        """Test that the KeyError mixin does not repr() the message."""
        error = ItemNotFoundError("No item with id abc")
        assert str(error) == "No item with id abc"
        assert isinstance(error, KeyError)


class TestProcessingError:
    """Tests for ProcessingError stage tagging."""

    def test_stage_in_message(self):
        error = ProcessingError("boom", stage="rotate")
        assert error.stage == "rotate"
        assert str(error) == "[rotate] boom"

    def test_without_stage(self):
        error = ProcessingError("boom")
        assert error.stage is None
        assert str(error) == "boom"

    def test_encode_error_defaults_stage(self):
        error = EncodeError("cannot write")
        assert error.stage == "encode"
        assert isinstance(error, ProcessingError)


class TestWithErrorHandling:
    """Tests for the with_error_handling decorator."""

    def test_returns_value(self):
        @with_error_handling
        def render():
            return 42

        assert render() == 42

    def test_wraps_foreign_exception(self):
        """Test that foreign errors become ProcessingError named after the function."""

        @with_error_handling
        def render():
            raise RuntimeError("pixel buffer exploded")

        with pytest.raises(ProcessingError) as exc_info:
            render()

        assert exc_info.value.stage == "render"
        assert "pixel buffer exploded" in str(exc_info.value)
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    def test_package_errors_pass_through(self):
        @with_error_handling
        def render():
            raise DecodeError("corrupt")

        with pytest.raises(DecodeError):
            render()

    def test_preserves_metadata(self):
        @with_error_handling
        def render_preview():
            """Render a preview."""

        assert render_preview.__name__ == "render_preview"
        assert render_preview.__doc__ == "Render a preview."
