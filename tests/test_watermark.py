"""Tests for text watermarking."""

import pytest
from PIL import Image

from photo_live.services.watermark import (
    DEFAULT_FONT_SIZE,
    apply_text_watermark,
    font_size_for,
    should_watermark,
)


def test_thumbnails_are_never_watermarked() -> None:
    assert not should_watermark("thumbnail")
    assert should_watermark("small")
    assert should_watermark("large")


@pytest.mark.parametrize(
    ("preset", "width", "height", "expected"),
    [
        ("large", 4000, 3000, 90),
        ("large", 1200, 800, 24),
        ("medium", 800, 600, 18),
        ("medium", 1600, 1600, 40),
        ("small", 400, 300, 14),
        ("custom", 400, 300, DEFAULT_FONT_SIZE),
    ],
)
def test_font_size_scales_with_shorter_side(
    preset: str, width: int, height: int, expected: int
) -> None:
    assert font_size_for(preset, width, height) == expected


def test_watermark_marks_bottom_right_corner_only() -> None:
    image = Image.new("RGB", (800, 600), (0, 0, 0))

    marked = apply_text_watermark(image, "Studio Lumen", 1.0, "medium")

    assert marked.mode == "RGB"
    assert marked.size == (800, 600)
    corner = marked.crop((400, 450, 800, 600))
    assert corner.getextrema() != ((0, 0), (0, 0), (0, 0))
    untouched = marked.crop((0, 0, 400, 300))
    assert untouched.getextrema() == ((0, 0), (0, 0), (0, 0))


def test_zero_opacity_leaves_pixels_unchanged() -> None:
    image = Image.new("RGB", (400, 300), (30, 60, 90))

    marked = apply_text_watermark(image, "Studio Lumen", 0.0, "small")

    assert marked.getextrema() == ((30, 30), (60, 60), (90, 90))
