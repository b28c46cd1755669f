"""qrembed: QR codes with an optional centred logo, as a library, CLI and HTTP service."""

__version__ = "0.1.0"
