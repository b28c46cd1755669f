"""Runtime settings read from the environment (and an optional .env file)."""

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from qrembed.logging import get_logger

log = get_logger("config")

MAX_UPLOAD_BYTES = 10 * 1024 * 1024  # 10MB
MAX_IMAGE_PIXELS = 4096 * 4096


@dataclass(frozen=True)
class Settings:
    env: str = "production"
    host: str = "0.0.0.0"
    port: int = 5000
    max_upload_bytes: int = MAX_UPLOAD_BYTES
    max_image_pixels: int = MAX_IMAGE_PIXELS
    log_level: str = "INFO"
    log_file: str | None = None
    cors_origins: str = "*"

    @property
    def debug(self) -> bool:
        return self.env == "development"


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        log.warning("Ignoring non-integer %s, using %d", name, default)
        return default
    if value <= 0:
        log.warning("Ignoring non-positive %s, using %d", name, default)
        return default
    return value


def load_settings(dotenv: bool = True) -> Settings:
    """Build Settings from the process environment.

    QREMBED_ENV takes precedence over FLASK_ENV. Anything other than
    "development" is treated as production.
    """
    if dotenv:
        load_dotenv()

    env = (os.getenv("QREMBED_ENV") or os.getenv("FLASK_ENV") or "production").strip().lower()
    if env != "development":
        env = "production"

    return Settings(
        env=env,
        host=os.getenv("HOST", "0.0.0.0"),
        port=_int_env("PORT", 5000),
        max_upload_bytes=_int_env("QREMBED_MAX_UPLOAD_BYTES", MAX_UPLOAD_BYTES),
        max_image_pixels=_int_env("QREMBED_MAX_IMAGE_PIXELS", MAX_IMAGE_PIXELS),
        log_level=os.getenv("QREMBED_LOG_LEVEL", "INFO"),
        log_file=os.getenv("QREMBED_LOG_FILE") or None,
        cors_origins=os.getenv("QREMBED_CORS_ORIGINS", "*"),
    )
