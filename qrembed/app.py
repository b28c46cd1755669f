"""HTTP service: JSON text QR endpoint and multipart logo QR endpoint."""

import re

from flask import Flask, jsonify, request
from flask_cors import CORS
from werkzeug.exceptions import HTTPException, RequestEntityTooLarge

from qrembed.config import Settings, load_settings
from qrembed.errors import MissingImage, QRError, ResourceLimitExceeded, UnsupportedFormat
from qrembed.logging import audit, get_logger
from qrembed.options import validate_text
from qrembed.pipeline import generate_image_qr, generate_text_qr

log = get_logger("app")

_ALLOWED_UPLOAD = re.compile(r"jpeg|jpg|png|gif|webp")
# room for the text and options form fields next to the file part
_FORM_OVERHEAD_BYTES = 64 * 1024

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}


def _read_upload(file, max_bytes: int) -> bytes:
    """Return the uploaded file's bytes after the name/type/size checks."""
    if file is None or not file.filename:
        raise MissingImage()
    filename = file.filename.lower()
    mimetype = (file.mimetype or "").lower()
    if not (_ALLOWED_UPLOAD.search(filename) and _ALLOWED_UPLOAD.search(mimetype)):
        raise UnsupportedFormat("Only image files are allowed!")
    data = file.read(max_bytes + 1)
    if len(data) > max_bytes:
        raise ResourceLimitExceeded()
    if not data:
        raise MissingImage()
    return data


def create_app(settings: Settings | None = None) -> Flask:
    """Build the Flask application."""
    settings = settings or load_settings()

    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = settings.max_upload_bytes + _FORM_OVERHEAD_BYTES
    app.config["QREMBED_SETTINGS"] = settings

    origins = settings.cors_origins
    CORS(app, origins="*" if origins.strip() == "*" else [o.strip() for o in origins.split(",") if o.strip()])

    @app.before_request
    def log_request():
        # method and path only; query strings and bodies may carry user text
        audit("http.request", logger=log, method=request.method, path=request.path)

    @app.after_request
    def add_security_headers(response):
        for name, value in SECURITY_HEADERS.items():
            response.headers[name] = value
        return response

    @app.route("/api/health")
    def health():
        return jsonify({"status": "ok", "message": "QR Generator API is running"})

    @app.route("/api/qr/test")
    def self_test():
        # served only in development; the default env is production
        if not settings.debug:
            return jsonify({"error": "Not found"}), 404
        result = generate_text_qr("Hello World", {"width": 200})
        return jsonify({
            "success": True,
            "message": "QR generator is working",
            "qrCode": result.data_uri,
        })

    @app.route("/api/qr/text", methods=["POST"])
    def text_qr():
        body = request.get_json(silent=True)
        if not isinstance(body, dict):
            body = {}
        result = generate_text_qr(body.get("text"), body.get("options"))
        return jsonify({
            "success": True,
            "qrCode": result.data_uri,
            "text": result.text,
            "errorCorrectionLevel": result.error_correction,
        })

    @app.route("/api/qr/image", methods=["POST"])
    def image_qr():
        text = validate_text(request.form.get("text"))
        image_bytes = _read_upload(request.files.get("image"), settings.max_upload_bytes)
        result = generate_image_qr(
            text,
            image_bytes,
            request.form.get("options"),
            max_image_pixels=settings.max_image_pixels,
        )
        return jsonify({
            "success": True,
            "qrCode": result.data_uri,
            "text": result.text,
            "errorCorrectionLevel": result.error_correction,
        })

    @app.errorhandler(QRError)
    def handle_qr_error(exc: QRError):
        audit("http.rejected", logger=log, path=request.path, code=exc.code, status=exc.status)
        return jsonify(exc.to_dict(debug=settings.debug)), exc.status

    @app.errorhandler(RequestEntityTooLarge)
    def handle_too_large(exc):
        audit("http.rejected", logger=log, path=request.path, code=ResourceLimitExceeded.code, status=413)
        return jsonify(ResourceLimitExceeded().to_dict()), 413

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        return jsonify({"success": False, "error": exc.name}), exc.code

    @app.errorhandler(Exception)
    def handle_unexpected(exc: Exception):
        log.exception("Unhandled error on %s %s", request.method, request.path)
        body = {"success": False, "error": "Failed to generate QR code"}
        if settings.debug:
            body["details"] = f"{type(exc).__name__}: {exc}"
        return jsonify(body), 500

    return app


if __name__ == "__main__":
    from qrembed.logging import setup_logging

    cfg = load_settings()
    setup_logging(cfg.log_level, log_file=cfg.log_file)
    create_app(cfg).run(host=cfg.host, port=cfg.port, debug=cfg.debug)
