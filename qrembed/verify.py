"""Scan verification: decode a rendered QR image with real readers."""

import time
from dataclasses import dataclass

import cv2
import numpy as np
from PIL import Image

from qrembed.logging import audit, get_logger, trace

log = get_logger("verify")


@dataclass
class ScanResult:
    """Result of a single scan attempt."""
    success: bool
    decoded_data: str | None = None
    decode_time_ms: float = 0.0
    decoder: str = ""
    error: str | None = None


def _finish(decoder: str, start: float, data: str | None, error: str | None = None) -> ScanResult:
    elapsed = (time.perf_counter() - start) * 1000
    if data:
        audit("scan.verified", logger=log, decoder=decoder, success=True,
              time_ms=round(elapsed, 1), length=len(data))
        return ScanResult(success=True, decoded_data=data, decode_time_ms=elapsed, decoder=decoder)
    error = error or "No QR code detected"
    audit("scan.verified", logger=log, decoder=decoder, success=False,
          time_ms=round(elapsed, 1), error=error)
    return ScanResult(success=False, decode_time_ms=elapsed, decoder=decoder, error=error)


@trace
def scan_pyzbar(image: Image.Image) -> ScanResult:
    """Scan with pyzbar (wraps ZBar). Reports failure if libzbar is not installed."""
    start = time.perf_counter()
    try:
        from pyzbar.pyzbar import decode as pyzbar_decode
    except ImportError as e:
        return _finish("pyzbar/zbar", start, None, error=f"decoder unavailable: {e}")
    try:
        results = pyzbar_decode(image.convert("L"))
    except Exception as e:
        audit("scan.error", logger=log, decoder="pyzbar/zbar", error=type(e).__name__)
        return _finish("pyzbar/zbar", start, None, error=str(e))
    data = results[0].data.decode("utf-8", errors="replace") if results else None
    return _finish("pyzbar/zbar", start, data)


@trace
def scan_opencv(image: Image.Image) -> ScanResult:
    """Scan with OpenCV's built-in QR detector."""
    start = time.perf_counter()
    try:
        arr = np.array(image.convert("RGB"))
        gray = cv2.cvtColor(arr, cv2.COLOR_RGB2GRAY)
        detector = cv2.QRCodeDetector()
        data, _points, _ = detector.detectAndDecode(gray)
    except Exception as e:
        audit("scan.error", logger=log, decoder="opencv", error=type(e).__name__)
        return _finish("opencv", start, None, error=str(e))
    return _finish("opencv", start, data or None)


@trace
def verify(image: Image.Image, expected_data: str | None = None) -> list[ScanResult]:
    """Run every available decoder on an image.

    Args:
        image: PIL Image containing a QR code.
        expected_data: If given, a decode that returns anything else is a failure.

    Returns:
        One ScanResult per decoder.
    """
    results = []
    for scanner in (scan_pyzbar, scan_opencv):
        result = scanner(image)
        if result.success and expected_data is not None and result.decoded_data != expected_data:
            result.success = False
            result.error = "Data mismatch"
        results.append(result)
    return results


def scan_ok(results: list[ScanResult]) -> bool:
    """True when at least one decoder read the code (and matched, if checked)."""
    return any(r.success for r in results)
