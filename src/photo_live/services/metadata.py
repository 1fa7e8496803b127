"""Decoding and metadata extraction for uploaded images."""

import logging
from dataclasses import dataclass
from datetime import datetime
from io import BytesIO

from PIL import ExifTags, Image, ImageOps, UnidentifiedImageError

from photo_live.domain.errors import CorruptImageError
from photo_live.domain.photos import ImageMetadata

logger = logging.getLogger(__name__)

_EXIF_DATETIME_FORMAT = "%Y:%m:%d %H:%M:%S"


@dataclass(frozen=True)
class DecodedImage:
    """Upright pixel data plus the metadata read from the source bytes."""

    image: Image.Image
    metadata: ImageMetadata


def decode_image(content: bytes, original_name: str = "upload") -> DecodedImage:
    """Decode ``content`` fully and rotate it upright per its EXIF orientation.

    Any decode failure becomes ``CorruptImageError``; nothing is written
    before this step succeeds.
    """
    try:
        source = Image.open(BytesIO(content))
        source.load()
        upright = ImageOps.exif_transpose(source)
    except (
        UnidentifiedImageError,
        Image.DecompressionBombError,
        OSError,
        SyntaxError,
        ValueError,
    ) as exc:
        raise CorruptImageError(f"Cannot decode {original_name}: {exc}") from exc

    image_format = (source.format or "unknown").lower()
    exif = source.getexif()
    metadata = ImageMetadata(
        width=upright.width,
        height=upright.height,
        format=image_format,
        size_bytes=len(content),
        mime_type=Image.MIME.get(source.format or "", "application/octet-stream"),
        camera=_camera_info(exif),
        captured_at=_captured_at(exif),
    )
    return DecodedImage(image=upright, metadata=metadata)


def _camera_info(exif: Image.Exif) -> dict[str, str]:
    info: dict[str, str] = {}
    for key, tag in (("make", ExifTags.Base.Make), ("model", ExifTags.Base.Model)):
        value = exif.get(tag)
        if value is not None and str(value).strip():
            info[key] = str(value).strip().strip("\x00")
    return info


def _captured_at(exif: Image.Exif) -> datetime | None:
    raw = exif.get_ifd(ExifTags.IFD.Exif).get(ExifTags.Base.DateTimeOriginal)
    if raw is None:
        raw = exif.get(ExifTags.Base.DateTime)
    if raw is None:
        return None
    try:
        return datetime.strptime(str(raw).strip(), _EXIF_DATETIME_FORMAT)
    except ValueError:
        logger.debug("Ignoring unparseable EXIF timestamp %r", raw)
        return None
