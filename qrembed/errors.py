"""Error taxonomy for the QR synthesis pipeline.

Every pipeline failure is terminal for the request. Messages are fixed strings
with numeric context only; they never carry the user's text.
"""


class QRError(Exception):
    """Base class for all expected pipeline failures."""

    code = "QRError"
    status = 400
    message = "Failed to generate QR code"

    def __init__(self, message: str | None = None, *, details: str | None = None):
        super().__init__(message or self.message)
        self.details = details

    def to_dict(self, debug: bool = False) -> dict:
        body = {"success": False, "error": str(self), "code": self.code}
        if debug and self.details:
            body["details"] = self.details
        return body


class InvalidInput(QRError):
    code = "InvalidInput"
    message = "Invalid input"


class InvalidText(InvalidInput):
    code = "InvalidText"
    message = "Text must be a non-empty string"


class CapacityExceeded(InvalidText):
    """Text does not fit any QR version at the chosen error-correction level."""

    code = "CapacityExceeded"
    message = "Text is too long to fit in a QR code"


class InvalidColor(InvalidInput):
    code = "InvalidColor"
    message = "Color must be a #RRGGBB hex string or an RGB triple"


class MissingImage(InvalidInput):
    code = "MissingImage"
    message = "Image file is required"


class UnsupportedFormat(QRError):
    code = "UnsupportedFormat"
    message = "Only JPEG, PNG, GIF and WEBP images are allowed"


class DecodeError(QRError):
    code = "DecodeError"
    message = "Failed to process image"


class ResourceLimitExceeded(QRError):
    code = "ResourceLimitExceeded"
    status = 413
    message = "Upload exceeds the allowed size"
