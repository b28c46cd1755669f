"""Logo normalizer: decode an uploaded image and letterbox it onto an opaque square."""

import io

from PIL import Image, ImageOps, UnidentifiedImageError

from qrembed.config import MAX_IMAGE_PIXELS
from qrembed.errors import DecodeError, MissingImage, ResourceLimitExceeded, UnsupportedFormat
from qrembed.logging import audit, get_logger, trace

log = get_logger("logo")

# multi-picture camera JPEGs open as MPO
ALLOWED_FORMATS = frozenset({"JPEG", "MPO", "PNG", "GIF", "WEBP"})
DEFAULT_LOGO_BACKGROUND = (255, 255, 255)


def scale_preserving_aspect(original_size: tuple[int, int], target: int) -> tuple[int, int]:
    """Scale (w, h) so the larger dimension equals *target*, preserving aspect."""
    w, h = original_size
    if w >= h:
        return target, max(1, round(target * h / w))
    return max(1, round(target * w / h)), target


def _open(image_bytes: bytes, max_pixels: int) -> Image.Image:
    """Decode *image_bytes* fully, refusing oversized or unexpected formats.

    The pixel ceiling is checked against the header before any pixel data is
    decompressed.
    """
    try:
        img = Image.open(io.BytesIO(image_bytes))
    except UnidentifiedImageError:
        raise UnsupportedFormat() from None
    except Image.DecompressionBombError:
        raise ResourceLimitExceeded("Image dimensions are too large") from None
    except (OSError, SyntaxError, ValueError) as exc:
        raise DecodeError(details=type(exc).__name__) from None

    if img.format not in ALLOWED_FORMATS:
        img.close()
        raise UnsupportedFormat()

    w, h = img.size
    if w <= 0 or h <= 0:
        img.close()
        raise DecodeError(details="empty image")
    if w * h > max_pixels:
        img.close()
        audit("logo.rejected", logger=log, reason="pixels", width=w, height=h, limit=max_pixels)
        raise ResourceLimitExceeded("Image dimensions are too large")

    try:
        img.load()
    except Image.DecompressionBombError:
        img.close()
        raise ResourceLimitExceeded("Image dimensions are too large") from None
    except (OSError, SyntaxError, ValueError) as exc:
        img.close()
        raise DecodeError(details=type(exc).__name__) from None
    return img


@trace
def normalize_logo(
    image_bytes: bytes,
    target_side: int,
    background: tuple[int, int, int] = DEFAULT_LOGO_BACKGROUND,
    max_pixels: int = MAX_IMAGE_PIXELS,
) -> Image.Image:
    """Fit an uploaded image into an opaque ``target_side`` square.

    The image is scaled ("contain") so its longer side equals *target_side*,
    never cropped, and centred on a solid *background*. Any source alpha is
    flattened onto that background, so the result is fully opaque RGBA.

    Raises:
        MissingImage: no bytes were given.
        UnsupportedFormat: not a JPEG, PNG, GIF or WEBP image.
        DecodeError: the image header or data is corrupt.
        ResourceLimitExceeded: decoded dimensions exceed *max_pixels*.
    """
    if not image_bytes:
        raise MissingImage()
    if target_side < 1:
        raise ValueError("target_side must be positive")

    with _open(bytes(image_bytes), max_pixels) as img:
        source_format = img.format
        source_size = img.size
        try:
            rgba = ImageOps.exif_transpose(img).convert("RGBA")
        except (OSError, ValueError) as exc:
            raise DecodeError(details=type(exc).__name__) from None

    new_w, new_h = scale_preserving_aspect(rgba.size, target_side)
    if (new_w, new_h) != rgba.size:
        rgba = rgba.resize((new_w, new_h), Image.LANCZOS)

    canvas = Image.new("RGBA", (target_side, target_side), (*background, 255))
    canvas.alpha_composite(rgba, dest=((target_side - new_w) // 2, (target_side - new_h) // 2))

    audit("logo.normalized", logger=log,
          format=source_format, source=f"{source_size[0]}x{source_size[1]}",
          fitted=f"{new_w}x{new_h}", side=target_side)
    return canvas
