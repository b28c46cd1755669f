"""Request option normalization and the error-correction policy.

Everything the pipeline sees has been through ``normalize_options``: a fully
defaulted ``QROptions`` with no optional fields left.
"""

import json
from collections.abc import Mapping
from dataclasses import dataclass, replace

from qrembed.errors import CapacityExceeded, InvalidColor, InvalidText
from qrembed.generator import ECC_NAMES, MAX_TEXT_LENGTH, parse_hex_color

RGB = tuple[int, int, int]

DEFAULT_ECC = "M"
LOGO_ECC = "H"
DEFAULT_MARGIN = 4
MARGIN_RANGE = (1, 10)
DEFAULT_PIXEL_WIDTH = 500
PIXEL_WIDTH_RANGE = (200, 1000)
DEFAULT_MODULE_COLOR: RGB = (0, 0, 0)
DEFAULT_BACKGROUND_COLOR: RGB = (255, 255, 255)

# wire name used by the browser client -> descriptive alias
_ALIASES = {
    "errorCorrectionLevel": ("errorCorrectionLevel", "error_correction"),
    "margin": ("margin",),
    "width": ("width", "pixelWidth", "pixel_width"),
    "darkColor": ("darkColor", "moduleColor", "module_color"),
    "lightColor": ("lightColor", "backgroundColor", "background_color"),
}


@dataclass(frozen=True)
class QROptions:
    error_correction: str = DEFAULT_ECC
    margin: int = DEFAULT_MARGIN
    pixel_width: int = DEFAULT_PIXEL_WIDTH
    module_color: RGB = DEFAULT_MODULE_COLOR
    background_color: RGB = DEFAULT_BACKGROUND_COLOR


def _pick(raw: Mapping, key: str):
    for name in _ALIASES[key]:
        if name in raw:
            return raw[name]
    return None


def _int_in_range(value, bounds: tuple[int, int], default: int) -> int:
    if isinstance(value, bool):
        return default
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, int) and bounds[0] <= value <= bounds[1]:
        return value
    return default


def _color_or_default(value, default: RGB) -> RGB:
    # only the hex form is accepted from the wire
    if not isinstance(value, str):
        return default
    try:
        return parse_hex_color(value)
    except InvalidColor:
        return default


def normalize_options(raw=None) -> QROptions:
    """Turn whatever the client sent into a valid QROptions.

    ``raw`` may be a mapping, a JSON object string (multipart uploads send
    options that way) or None. Invalid fields are silently replaced by their
    defaults; this function never raises.
    """
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except ValueError:
            raw = None
    if not isinstance(raw, Mapping):
        raw = {}

    ecc = _pick(raw, "errorCorrectionLevel")
    return QROptions(
        error_correction=ecc if isinstance(ecc, str) and ecc in ECC_NAMES else DEFAULT_ECC,
        margin=_int_in_range(_pick(raw, "margin"), MARGIN_RANGE, DEFAULT_MARGIN),
        pixel_width=_int_in_range(_pick(raw, "width"), PIXEL_WIDTH_RANGE, DEFAULT_PIXEL_WIDTH),
        module_color=_color_or_default(_pick(raw, "darkColor"), DEFAULT_MODULE_COLOR),
        background_color=_color_or_default(_pick(raw, "lightColor"), DEFAULT_BACKGROUND_COLOR),
    )


def validate_text(text) -> str:
    """Return the trimmed payload text or raise InvalidText/CapacityExceeded."""
    if not isinstance(text, str) or not text:
        raise InvalidText()
    trimmed = text.strip()
    if not trimmed:
        raise InvalidText("Text cannot be empty")
    if len(trimmed) > MAX_TEXT_LENGTH:
        raise CapacityExceeded(f"Text is too long. Maximum {MAX_TEXT_LENGTH} characters.")
    return trimmed


def resolve_error_correction(options: QROptions, has_logo: bool) -> QROptions:
    """Apply the logo policy: any overlay destroys modules, so a logo always gets level H."""
    if has_logo and options.error_correction != LOGO_ECC:
        return replace(options, error_correction=LOGO_ECC)
    return options
