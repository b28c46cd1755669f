"""qrembed CLI: generate, verify and serve QR codes from the command line."""

import argparse
import sys
from pathlib import Path

from PIL import Image, UnidentifiedImageError

from qrembed.errors import QRError
from qrembed.logging import audit, get_logger, setup_logging

log = get_logger("cli")


def _options_from_args(args) -> dict:
    """Collect CLI flags in the same shape a client would send them."""
    raw = {"width": args.width, "margin": args.margin}
    if getattr(args, "ecc", None):
        raw["errorCorrectionLevel"] = args.ecc
    if args.dark:
        raw["darkColor"] = args.dark if args.dark.startswith("#") else f"#{args.dark}"
    if args.light:
        raw["lightColor"] = args.light if args.light.startswith("#") else f"#{args.light}"
    return raw


def _save(result, output: str):
    path = Path(output)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(result.png)
    w, h = result.image.size
    print(f"Generated: {path} ({w}x{h}, V{result.version}-{result.error_correction})")
    if result.scan_ok is not None:
        print(f"  Scan: {'PASS' if result.scan_ok else 'FAIL'}")


def cmd_text(args):
    """Generate a plain QR code."""
    from qrembed.pipeline import generate_text_qr

    result = generate_text_qr(args.text, _options_from_args(args), verify_scan=args.check)
    _save(result, args.output)


def cmd_image(args):
    """Generate a QR code with a centred logo."""
    from qrembed.config import load_settings
    from qrembed.pipeline import generate_image_qr

    settings = load_settings()
    logo = Path(args.logo).read_bytes()
    if len(logo) > settings.max_upload_bytes:
        print(f"Logo exceeds {settings.max_upload_bytes} bytes", file=sys.stderr)
        sys.exit(2)
    result = generate_image_qr(
        args.text, logo, _options_from_args(args),
        max_image_pixels=settings.max_image_pixels,
        verify_scan=args.check,
    )
    _save(result, args.output)


def cmd_verify(args):
    """Verify a QR code image."""
    from qrembed.verify import scan_ok, verify

    try:
        img = Image.open(args.image)
    except (OSError, UnidentifiedImageError) as e:
        print(f"Error: cannot read image {args.image}: {e}", file=sys.stderr)
        sys.exit(2)
    with img:
        results = verify(img, expected_data=args.expected)

    for r in results:
        status = "PASS" if r.success else "FAIL"
        print(f"  [{r.decoder:12s}] {status} | {r.decode_time_ms:6.1f}ms | {r.decoded_data or r.error}")

    sys.exit(0 if scan_ok(results) else 1)


def cmd_serve(args):
    """Start the HTTP service."""
    from dataclasses import replace

    from qrembed.app import create_app
    from qrembed.config import load_settings

    settings = load_settings()
    overrides = {}
    if args.host:
        overrides["host"] = args.host
    if args.port:
        overrides["port"] = args.port
    if args.debug:
        overrides["env"] = "development"
    settings = replace(settings, **overrides)

    app = create_app(settings)
    print(f"Starting QR service on http://{settings.host}:{settings.port}")
    app.run(host=settings.host, port=settings.port, debug=settings.debug)


def _add_render_flags(p: argparse.ArgumentParser):
    p.add_argument("-o", "--output", default="output/qr.png", help="Output file path")
    p.add_argument("--width", type=int, default=500, help="Image width in pixels (200-1000)")
    p.add_argument("--margin", type=int, default=4, help="Quiet zone in modules (1-10)")
    p.add_argument("--dark", default=None, help="Module colour (hex e.g. '000000')")
    p.add_argument("--light", default=None, help="Background colour (hex e.g. 'FFFFFF')")
    p.add_argument("--check", action="store_true", help="Decode the result and report PASS/FAIL")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="qrembed", description="QR codes with an embedded logo")

    parser.add_argument("-V", "--verbose", action="store_true", help="Enable DEBUG-level logging")
    parser.add_argument("--log-file", default=None, help="Write JSON logs to file")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # --- text ---
    p_text = subparsers.add_parser("text", help="Generate a QR code from text")
    p_text.add_argument("text", help="Text or URL to encode")
    p_text.add_argument("-e", "--ecc", default="M", choices=["L", "M", "Q", "H"], help="Error correction level")
    _add_render_flags(p_text)

    # --- image ---
    p_img = subparsers.add_parser("image", help="Generate a QR code with a centred logo (level H)")
    p_img.add_argument("text", help="Text or URL to encode")
    p_img.add_argument("logo", help="Path to a JPEG/PNG/GIF/WEBP logo")
    _add_render_flags(p_img)

    # --- verify ---
    p_ver = subparsers.add_parser("verify", help="Verify a QR code image")
    p_ver.add_argument("image", help="Path to QR code image")
    p_ver.add_argument("--expected", default=None, help="Expected decoded data (fails if mismatch)")

    # --- serve ---
    p_serve = subparsers.add_parser("serve", help="Start the HTTP service")
    p_serve.add_argument("--host", default=None, help="Interface to bind (default from HOST)")
    p_serve.add_argument("--port", type=int, default=None, help="Port to listen on (default from PORT)")
    p_serve.add_argument("--debug", action="store_true", help="Development mode")

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    level = "DEBUG" if args.verbose else "INFO"
    setup_logging(level=level, log_file=args.log_file)
    audit("cli.start", logger=log, command=args.command, verbose=args.verbose)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    commands = {
        "text": cmd_text,
        "image": cmd_image,
        "verify": cmd_verify,
        "serve": cmd_serve,
    }
    try:
        commands[args.command](args)
    except QRError as e:
        print(f"Error [{e.code}]: {e}", file=sys.stderr)
        sys.exit(2)
    audit("cli.done", logger=log, command=args.command)


if __name__ == "__main__":
    main()
