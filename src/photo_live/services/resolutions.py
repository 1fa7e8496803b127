"""Derivation of fixed-size JPEG variants from a decoded image."""

from io import BytesIO

from PIL import Image

from photo_live.domain.ingestion import ResolutionPreset

_FAST_RESAMPLE_LIMIT = 512


def to_rgb(image: Image.Image) -> Image.Image:
    """Return an RGB image suitable for JPEG output."""
    if image.mode == "RGB":
        return image
    if image.mode in ("RGBA", "LA") or (
        image.mode == "P" and "transparency" in image.info
    ):
        rgba = image.convert("RGBA")
        background = Image.new("RGB", rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.getchannel("A"))
        return background
    return image.convert("RGB")


def fit_within(image: Image.Image, preset: ResolutionPreset) -> Image.Image:
    """Shrink ``image`` into the preset's bounding box, never enlarging it."""
    resized = to_rgb(image).copy()
    if max(preset.width, preset.height) <= _FAST_RESAMPLE_LIMIT:
        resampling = Image.Resampling.BILINEAR
    else:
        resampling = Image.Resampling.LANCZOS
    resized.thumbnail((preset.width, preset.height), resampling)
    return resized


def encode_jpeg(image: Image.Image, quality: int) -> bytes:
    """Encode as a progressive JPEG without metadata."""
    buffer = BytesIO()
    to_rgb(image).save(
        buffer,
        format="JPEG",
        quality=int(quality),
        optimize=True,
        progressive=True,
    )
    return buffer.getvalue()


def derive_variant(image: Image.Image, preset: ResolutionPreset) -> Image.Image:
    """Produce the pixel data for one named variant."""
    return fit_within(image, preset)
