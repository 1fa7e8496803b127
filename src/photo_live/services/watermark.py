"""Text watermark compositing for derived variants."""

from functools import lru_cache

from PIL import Image, ImageDraw, ImageFont

from photo_live.domain.ingestion import THUMBNAIL
from photo_live.services.resolutions import to_rgb

MARGIN_PX = 20
DEFAULT_FONT_SIZE = 16

# preset name -> (share of the shorter side, minimum size in px)
_FONT_SCALES: dict[str, tuple[float, int]] = {
    "large": (0.03, 24),
    "medium": (0.025, 18),
    "small": (0.02, 14),
}


def should_watermark(preset_name: str) -> bool:
    """Thumbnails are never watermarked."""
    return preset_name != THUMBNAIL


def font_size_for(preset_name: str, width: int, height: int) -> int:
    """Font size proportional to the variant's shorter dimension."""
    scale = _FONT_SCALES.get(preset_name)
    if scale is None:
        return DEFAULT_FONT_SIZE
    ratio, minimum = scale
    return max(minimum, round(min(width, height) * ratio))


@lru_cache(maxsize=32)
def _load_font(size: int) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
    try:
        return ImageFont.truetype("DejaVuSans.ttf", size)
    except OSError:
        return ImageFont.load_default(size=size)


def apply_text_watermark(
    image: Image.Image, text: str, opacity: float, preset_name: str
) -> Image.Image:
    """Overlay ``text`` near the bottom-right corner with a soft shadow."""
    base = image.convert("RGBA")
    overlay = Image.new("RGBA", base.size, (0, 0, 0, 0))
    draw = ImageDraw.Draw(overlay)
    font = _load_font(font_size_for(preset_name, base.width, base.height))

    left, top, right, bottom = draw.textbbox((0, 0), text, font=font)
    x = max(0, base.width - MARGIN_PX - (right - left))
    y = max(0, base.height - MARGIN_PX - (bottom - top))
    alpha = round(255 * min(max(opacity, 0.0), 1.0))

    draw.text((x + 1, y + 1), text, font=font, fill=(0, 0, 0, alpha // 2))
    draw.text((x, y), text, font=font, fill=(255, 255, 255, alpha))
    return to_rgb(Image.alpha_composite(base, overlay))
