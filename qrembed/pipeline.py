"""Request pipeline: Encode -> [Normalize -> Composite] -> PNG.

Each call owns every buffer it creates; nothing is cached or shared between
calls, so the functions here are safe to run concurrently.
"""

import base64
import io
from dataclasses import dataclass

from PIL import Image

from qrembed.budget import estimate_logo_budget
from qrembed.compose import LOGO_OPACITY, composite, logo_side_for
from qrembed.config import MAX_IMAGE_PIXELS
from qrembed.errors import MissingImage
from qrembed.generator import encode_symbol, rasterize
from qrembed.logging import audit, get_logger, trace
from qrembed.logo import normalize_logo
from qrembed.options import QROptions, normalize_options, resolve_error_correction, validate_text

log = get_logger("pipeline")


@dataclass(frozen=True)
class QRResult:
    image: Image.Image
    png: bytes
    text: str
    options: QROptions
    version: int
    has_logo: bool
    scan_ok: bool | None = None

    @property
    def error_correction(self) -> str:
        return self.options.error_correction

    @property
    def data_uri(self) -> str:
        return "data:image/png;base64," + base64.b64encode(self.png).decode("ascii")


def encode_png(image: Image.Image) -> bytes:
    """Serialize to an 8-bit RGBA PNG."""
    buffer = io.BytesIO()
    image.convert("RGBA").save(buffer, format="PNG")
    return buffer.getvalue()


def _as_options(options) -> QROptions:
    if isinstance(options, QROptions):
        return options
    return normalize_options(options)


def _check_scan(image: Image.Image, text: str) -> bool:
    from qrembed.verify import scan_ok, verify

    ok = scan_ok(verify(image, expected_data=text))
    if not ok:
        log.warning("Generated QR code could not be read back by any decoder")
    return ok


@trace
def generate_text_qr(text, options=None, *, verify_scan: bool = False) -> QRResult:
    """Generate a plain QR code.

    Args:
        text: Payload; trimmed before encoding.
        options: QROptions, or raw client options (mapping / JSON string / None).
        verify_scan: Decode the result and record whether it reads back.
    """
    payload = validate_text(text)
    opts = resolve_error_correction(_as_options(options), has_logo=False)

    symbol = encode_symbol(payload, ecc=opts.error_correction)
    image = rasterize(symbol, margin=opts.margin, pixel_width=opts.pixel_width,
                      module_color=opts.module_color, background_color=opts.background_color)

    scanned = _check_scan(image, payload) if verify_scan else None
    audit("qr.text_generated", logger=log,
          length=len(payload), version=symbol.version, ecc=opts.error_correction,
          image_px=f"{image.size[0]}x{image.size[1]}", scan_ok=scanned)
    return QRResult(image=image, png=encode_png(image), text=payload, options=opts,
                    version=symbol.version, has_logo=False, scan_ok=scanned)


@trace
def generate_image_qr(
    text,
    image_bytes: bytes | None,
    options=None,
    *,
    max_image_pixels: int = MAX_IMAGE_PIXELS,
    verify_scan: bool = False,
) -> QRResult:
    """Generate a QR code with *image_bytes* composited into its centre.

    Error correction is always H here, whatever the options ask for.
    """
    payload = validate_text(text)
    if not image_bytes:
        raise MissingImage()
    opts = resolve_error_correction(_as_options(options), has_logo=True)

    symbol = encode_symbol(payload, ecc=opts.error_correction)
    base = rasterize(symbol, margin=opts.margin, pixel_width=opts.pixel_width,
                     module_color=opts.module_color, background_color=opts.background_color)

    budget = estimate_logo_budget(symbol.version, opts.error_correction, margin=opts.margin)
    if not budget.safe:
        log.warning("Logo may exceed the error-correction budget (%.1f%% used)",
                    budget.budget_used_pct)

    logo = normalize_logo(image_bytes, logo_side_for(base.size), max_pixels=max_image_pixels)
    image = composite(base, logo, opacity=LOGO_OPACITY)

    scanned = _check_scan(image, payload) if verify_scan else None
    audit("qr.image_generated", logger=log,
          length=len(payload), version=symbol.version, ecc=opts.error_correction,
          image_px=f"{image.size[0]}x{image.size[1]}",
          budget_pct=f"{budget.budget_used_pct:.1f}%", scan_ok=scanned)
    return QRResult(image=image, png=encode_png(image), text=payload, options=opts,
                    version=symbol.version, has_logo=True, scan_ok=scanned)
