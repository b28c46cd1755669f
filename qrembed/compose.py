"""Compositor: blend a normalized logo into the centre of a QR raster."""

import numpy as np
from PIL import Image

from qrembed.logging import audit, get_logger, trace

log = get_logger("compose")

# Logo side as a fraction of the QR image side. At 0.2 the logo box covers
# about 4% of the image area; with the quiet zone excluded that is roughly 6%
# of the symbol's modules, inside the ~30% a level-H symbol can recover.
# See qrembed.budget.estimate_logo_budget before raising it.
LOGO_FRACTION = 0.2
LOGO_OPACITY = 0.9


def logo_side_for(size: tuple[int, int], fraction: float = LOGO_FRACTION) -> int:
    """Pixel side of the logo for a base raster of the given (w, h)."""
    return max(1, int(min(size) * fraction))


def logo_box(size: tuple[int, int], side: int) -> tuple[int, int, int, int]:
    """(left, top, right, bottom) of a centred ``side`` square, right/bottom exclusive."""
    w, h = size
    x = (w - side) // 2
    y = (h - side) // 2
    return x, y, x + side, y + side


def _scale_alpha(logo: Image.Image, opacity: float) -> Image.Image:
    arr = np.array(logo, dtype=np.float32)
    arr[..., 3] = np.rint(arr[..., 3] * opacity)
    return Image.fromarray(arr.astype(np.uint8))


@trace
def composite(
    base: Image.Image,
    logo: Image.Image,
    opacity: float = LOGO_OPACITY,
    fraction: float = LOGO_FRACTION,
) -> Image.Image:
    """Source-over blend *logo* onto the centre of *base* and return a new image.

    The logo is resized to ``fraction * min(base.size)`` first, and its alpha
    channel is multiplied by *opacity*. Pixels outside the logo box are copied
    from *base* unchanged; *base* itself is not modified.
    """
    if not 0.0 <= opacity <= 1.0:
        raise ValueError("opacity must be within [0, 1]")

    side = logo_side_for(base.size, fraction)
    overlay = logo.convert("RGBA")
    if overlay.size != (side, side):
        overlay = overlay.resize((side, side), Image.LANCZOS)
    if opacity < 1.0:
        overlay = _scale_alpha(overlay, opacity)

    # convert() returns a new image even when base is already RGBA
    result = base.convert("RGBA")
    left, top, _, _ = logo_box(result.size, side)
    result.alpha_composite(overlay, dest=(left, top))

    audit("logo.composited", logger=log,
          qr_size=f"{base.size[0]}x{base.size[1]}",
          logo_size=f"{side}x{side}", offset=f"{left},{top}", opacity=opacity)
    return result
