"""Integration tests for the complete pipeline."""

import base64

from image_transform.core import (
    ItemStatus,
    OutputFormat,
    PipelineDefaults,
    PipelineExecutor,
    QUICK_CONVERT,
    handle_convert,
)
from image_transform.core.observability import MetricsCollector
from image_transform.sessions import BatchSession, ImageEditSession
from image_transform.testing import FakeLogger, create_test_image, open_image


class TestPipelineIntegration:
    """Integration tests for the editor, batch and convert entry points."""

    def test_editor_round_trip(self):
        """Test a full editing session from upload to export."""
        source = create_test_image(640, 480, image_format="JPEG")
        with ImageEditSession(source) as session:
            session.update_crop({"x": 40, "y": 40, "width": 400, "height": 300})
            session.update_rotation(90)
            session.update_adjustment("brightness", 1.2)
            session.update_adjustment("saturation", 0.5)
            session.update_adjustment("blur", 1)
            session.update_export("png")
            session.update_resize(width=150)

            preview = session.request_preview().result(timeout=10)
            assert preview is not None
            data = session.finalize()
            filename = session.output_filename("holiday.jpg")

        image = open_image(data)
        assert filename == "edited_holiday.png"
        assert image.format == "PNG"
        # 400x300 crop rotated a quarter turn is 300x400, fitted to width 150.
        assert image.size == (150, 200)

    def test_batch_of_mixed_inputs(self):
        """Test a batch with PNG, JPEG, WebP and one corrupt file."""
        session = BatchSession(defaults=PipelineDefaults(), concurrency=2)
        enrollment = session.enroll_many(
            [
                ("one.png", create_test_image(300, 200), None),
                ("two.jpg", create_test_image(200, 300, image_format="JPEG"), None),
                ("three.webp", create_test_image(100, 100, image_format="WEBP"), None),
                ("broken.png", b"\x89PNG truncated", None),
                ("readme.md", b"# not an image", None),
            ]
        )
        assert len(enrollment.accepted) == 4
        assert len(enrollment.rejected) == 1

        session.update_settings(output_format="jpeg", quality=80, target_width=100)
        report = session.run()

        assert report.completed == 3
        assert report.failed == 1
        counts = session.counts()
        assert counts[ItemStatus.COMPLETED] == 3
        assert counts[ItemStatus.FAILED] == 1
        assert counts[ItemStatus.PROCESSING] == 0

        results = dict(session.completed_results())
        assert set(results) == {"one.jpg", "two.jpg", "three.jpg"}
        assert open_image(results["one.jpg"]).size == (100, 67)
        assert open_image(results["two.jpg"]).size == (100, 150)
        assert open_image(results["three.jpg"]).size == (100, 100)

    def test_quick_convert_preset(self):
        executor = PipelineExecutor(logger=FakeLogger())
        wide = open_image(executor.execute(QUICK_CONVERT.request_for(create_test_image(1600, 400))))
        small = open_image(executor.execute(QUICK_CONVERT.request_for(create_test_image(300, 200))))
        assert wide.format == "JPEG"
        assert wide.size == (800, 200)
        assert small.size == (300, 200)

    def test_convert_endpoint_with_metrics(self):
        metrics = MetricsCollector()
        executor = PipelineExecutor(logger=FakeLogger(), metrics_collector=metrics)
        body = {
            "image": base64.b64encode(create_test_image(80, 80)).decode("ascii"),
            "format": OutputFormat.WEBP.value,
            "quality": 70,
            "filters": {"contrast": 1.3},
        }
        response = handle_convert(body, executor)

        assert response.ok
        assert response.content_type == "image/webp"
        assert [m.stage for m in metrics.get_metrics()] == ["decode", "contrast", "encode"]
        assert metrics.get_summary()["failed_operations"] == 0
