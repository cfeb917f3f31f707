"""Tests for main.py CLI functionality."""

from unittest.mock import patch

import pytest

from image_transform.main import build_parser, main
from image_transform.testing import create_test_image, open_image


@pytest.fixture
def photo(tmp_path):
    path = tmp_path / "photo.png"
    path.write_bytes(create_test_image(100, 60))
    return path


class TestMainCLI:
    """Tests for the main CLI functionality."""

    def test_main_with_no_args_shows_help(self):
        """Test that running main without arguments shows help."""
        with patch("argparse.ArgumentParser.print_help") as mock_help:
            with patch("sys.exit") as mock_exit:
                main([])
                mock_help.assert_called_once()
                mock_exit.assert_called_once_with(1)

    def test_main_version_command(self):
        """Test version command output."""
        with patch("builtins.print") as mock_print:
            with patch("sys.exit") as mock_exit:
                main(["version"])
                mock_print.assert_any_call("Image Transform CLI")
                mock_print.assert_any_call("Version 0.1.0")
                mock_print.assert_any_call("Crop, rotate, adjust, resize and re-encode images")
                mock_exit.assert_called_once_with(0)

    def test_invalid_format_is_rejected_by_parser(self, photo):
        with pytest.raises(SystemExit):
            main(["convert", str(photo), "--format", "gif"])

    def test_parser_crop_takes_four_values(self):
        args = build_parser().parse_args(["convert", "in.png", "--crop", "1", "2", "30", "40"])
        assert args.crop == [1, 2, 30, 40]


class TestConvertCommand:
    """Tests for the convert command."""

    def test_convert_writes_edited_file(self, photo):
        """Test convert with rotation, resize and an adjustment."""
        main(
            [
                "convert",
                str(photo),
                "--format",
                "png",
                "--rotate",
                "90",
                "--width",
                "50",
                "--brightness",
                "1.2",
            ]
        )
        output = photo.with_name("edited_photo.png")
        image = open_image(output.read_bytes())
        assert image.format == "PNG"
        assert image.size == (50, 83)

    def test_convert_sharpen_flag(self, photo):
        parser = build_parser()
        assert parser.parse_args(["convert", str(photo), "--sharpen", "2"]).sharpen == 2.0
        main(["convert", str(photo), "--format", "png", "--sharpen", "2"])
        assert open_image(photo.with_name("edited_photo.png").read_bytes()).format == "PNG"

    def test_convert_defaults_to_jpeg(self, photo):
        main(["convert", str(photo)])
        assert open_image(photo.with_name("edited_photo.jpg").read_bytes()).format == "JPEG"

    def test_convert_explicit_output_and_crop(self, photo, tmp_path):
        output = tmp_path / "out.webp"
        main(
            [
                "convert",
                str(photo),
                "-o",
                str(output),
                "--format",
                "webp",
                "--quality",
                "70",
                "--crop",
                "10",
                "10",
                "40",
                "20",
            ]
        )
        image = open_image(output.read_bytes())
        assert image.format == "WEBP"
        assert image.size == (40, 20)

    def test_convert_corrupt_input_exits_with_error(self, tmp_path):
        broken = tmp_path / "broken.png"
        broken.write_bytes(b"not an image")
        with patch("sys.exit") as mock_exit:
            main(["convert", str(broken)])
            mock_exit.assert_called_once_with(1)

    def test_convert_missing_input_exits_with_error(self, tmp_path):
        with patch("sys.exit") as mock_exit:
            main(["convert", str(tmp_path / "missing.png")])
            mock_exit.assert_called_once_with(1)

    def test_debug_flag_enables_debug_logging(self, photo):
        with patch("image_transform.main.set_debug") as mock_debug:
            main(["--debug", "convert", str(photo)])
            mock_debug.assert_called_once_with(True)


class TestQuickConvertCommand:
    def test_quick_convert(self, tmp_path):
        source = tmp_path / "wide.png"
        source.write_bytes(create_test_image(1200, 300))
        out_dir = tmp_path / "out"

        main(["quick-convert", str(source), "-o", str(out_dir)])

        image = open_image((out_dir / "converted_wide.jpg").read_bytes())
        assert image.format == "JPEG"
        assert image.size == (800, 200)


class TestBatchCommand:
    """Tests for the batch command."""

    def test_batch_writes_results(self, tmp_path):
        inputs = []
        for name in ("a.png", "b.png"):
            path = tmp_path / name
            path.write_bytes(create_test_image(64, 32))
            inputs.append(str(path))
        out_dir = tmp_path / "converted"

        with patch("sys.exit") as mock_exit:
            main(["batch", *inputs, "-o", str(out_dir), "--format", "png", "--width", "32"])
            mock_exit.assert_not_called()

        assert sorted(p.name for p in out_dir.iterdir()) == ["a.png", "b.png"]
        assert open_image((out_dir / "a.png").read_bytes()).size == (32, 16)

    def test_batch_same_stem_files_are_all_written(self, tmp_path):
        png = tmp_path / "a.png"
        png.write_bytes(create_test_image(40, 20))
        jpg = tmp_path / "a.jpg"
        jpg.write_bytes(create_test_image(20, 40, image_format="JPEG"))
        out_dir = tmp_path / "converted"

        with patch("sys.exit") as mock_exit:
            main(["batch", str(png), str(jpg), "-o", str(out_dir)])
            mock_exit.assert_not_called()

        assert sorted(p.name for p in out_dir.iterdir()) == ["a-1.webp", "a.webp"]
        assert open_image((out_dir / "a.webp").read_bytes()).size == (40, 20)
        assert open_image((out_dir / "a-1.webp").read_bytes()).size == (20, 40)

    def test_batch_with_failure_exits_nonzero(self, tmp_path):
        good = tmp_path / "good.png"
        good.write_bytes(create_test_image(20, 20))
        bad = tmp_path / "bad.png"
        bad.write_bytes(b"broken")
        notes = tmp_path / "notes.txt"
        notes.write_text("skip me")
        out_dir = tmp_path / "converted"

        with patch("sys.exit") as mock_exit:
            main(["batch", str(good), str(bad), str(notes), "-o", str(out_dir)])
            mock_exit.assert_called_once_with(1)

        assert [p.name for p in out_dir.iterdir()] == ["good.webp"]

    def test_batch_requires_output_dir(self, photo):
        with pytest.raises(SystemExit):
            main(["batch", str(photo)])
