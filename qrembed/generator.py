"""QR matrix encoder: text + ECC level -> module grid -> uniform-module raster."""

import re
from dataclasses import dataclass
from enum import Enum

import numpy as np
import qrcode
import qrcode.constants
from PIL import Image
from qrcode.exceptions import DataOverflowError

from qrembed.errors import CapacityExceeded, InvalidColor, InvalidText
from qrembed.logging import audit, get_logger, trace

log = get_logger("generator")

# Byte-mode capacity of a version 40 symbol at level L; no symbol holds more.
MAX_TEXT_LENGTH = 2953

_HEX_COLOR = re.compile(r"^#[0-9A-Fa-f]{6}$")


class ECCLevel(Enum):
    L = qrcode.constants.ERROR_CORRECT_L  # 7%
    M = qrcode.constants.ERROR_CORRECT_M  # 15%
    Q = qrcode.constants.ERROR_CORRECT_Q  # 25%
    H = qrcode.constants.ERROR_CORRECT_H  # 30%


ECC_NAMES = {"L": ECCLevel.L, "M": ECCLevel.M, "Q": ECCLevel.Q, "H": ECCLevel.H}


@dataclass(frozen=True)
class QRSymbol:
    """A finished module grid. ``modules[r, c]`` is True for a dark module."""

    version: int
    ecc: str
    modules: np.ndarray

    @property
    def size(self) -> int:
        return self.modules.shape[0]


def parse_hex_color(value) -> tuple[int, int, int]:
    """Parse '#RRGGBB' (or an RGB triple of 0-255 ints) into an RGB tuple."""
    if isinstance(value, str):
        if not _HEX_COLOR.match(value):
            raise InvalidColor()
        s = value[1:]
        return tuple(int(s[i : i + 2], 16) for i in (0, 2, 4))
    if isinstance(value, (tuple, list)) and len(value) == 3:
        if all(isinstance(c, int) and not isinstance(c, bool) and 0 <= c <= 255 for c in value):
            return tuple(value)
    raise InvalidColor()


@trace
def encode_symbol(text: str, ecc: str = "M", version: int | None = None) -> QRSymbol:
    """Build the module grid for *text* using the smallest version that fits.

    Raises:
        InvalidText: text is not a non-blank string.
        CapacityExceeded: no version 1-40 holds the text at level *ecc*.
    """
    if not isinstance(text, str) or not text.strip():
        raise InvalidText()
    if len(text) > MAX_TEXT_LENGTH:
        raise CapacityExceeded(f"Text is too long. Maximum {MAX_TEXT_LENGTH} characters.")
    try:
        ecc_level = ECC_NAMES[ecc.upper()]
    except (KeyError, AttributeError):
        raise ValueError(f"unknown error-correction level {ecc!r}") from None

    qr = qrcode.QRCode(
        version=version,
        error_correction=ecc_level.value,
        box_size=1,
        border=0,
    )
    qr.add_data(text)
    try:
        qr.make(fit=(version is None))
    except (DataOverflowError, ValueError):
        # newer qrcode releases report overflow as an invalid version 41
        audit("qr.capacity_exceeded", logger=log, length=len(text), ecc=ecc.upper())
        raise CapacityExceeded(
            f"Text does not fit in a QR code at error correction level {ecc.upper()}"
        ) from None

    modules = np.array(qr.modules, dtype=bool)
    audit("qr.encoded", logger=log,
          length=len(text), version=qr.version, ecc=ecc.upper(),
          grid=f"{modules.shape[0]}x{modules.shape[1]}")
    return QRSymbol(version=qr.version, ecc=ecc.upper(), modules=modules)


def module_pixels(symbol_size: int, margin: int, pixel_width: int) -> int:
    """Largest integer module size such that symbol plus quiet zone fits *pixel_width*."""
    return max(1, pixel_width // (symbol_size + 2 * margin))


@trace
def rasterize(
    symbol: QRSymbol,
    margin: int = 4,
    pixel_width: int = 500,
    module_color=(0, 0, 0),
    background_color=(255, 255, 255),
) -> Image.Image:
    """Render a symbol to an opaque RGBA image.

    Every module is the same integer number of pixels. The leftover
    ``pixel_width % (size + 2 * margin)`` pixels are split over the quiet zone so
    the image is exactly ``pixel_width`` wide whenever a 1px module fits.
    """
    fg = parse_hex_color(module_color)
    bg = parse_hex_color(background_color)
    if margin < 0:
        raise ValueError("margin must be non-negative")

    box = module_pixels(symbol.size, margin, pixel_width)
    grid = np.pad(symbol.modules, margin, mode="constant", constant_values=False)
    dark = np.repeat(np.repeat(grid, box, axis=0), box, axis=1)

    side = max(dark.shape[0], pixel_width)
    lead = (side - dark.shape[0]) // 2

    canvas = np.empty((side, side, 4), dtype=np.uint8)
    canvas[...] = (*bg, 255)
    region = canvas[lead : lead + dark.shape[0], lead : lead + dark.shape[1]]
    region[dark] = (*fg, 255)

    audit("qr.rasterized", logger=log,
          version=symbol.version, module_px=box, margin=margin,
          image_px=f"{side}x{side}")
    return Image.fromarray(canvas)


def encode(
    text: str,
    ecc: str = "M",
    margin: int = 4,
    pixel_width: int = 500,
    module_color=(0, 0, 0),
    background_color=(255, 255, 255),
) -> Image.Image:
    """Encode *text* and rasterize it in one step."""
    # colors are checked before any encoding work
    parse_hex_color(module_color)
    parse_hex_color(background_color)
    symbol = encode_symbol(text, ecc=ecc)
    return rasterize(symbol, margin=margin, pixel_width=pixel_width,
                     module_color=module_color, background_color=background_color)
