import base64
import io

import pytest
from PIL import Image

from qrembed.app import SECURITY_HEADERS, create_app
from qrembed.config import Settings
from qrembed.verify import scan_ok, verify


def _decode_data_uri(uri):
    assert uri.startswith("data:image/png;base64,")
    return Image.open(io.BytesIO(base64.b64decode(uri.split(",", 1)[1])))


def _upload(text, data, filename="logo.png", mimetype="image/png", options=None):
    form = {"text": text}
    if data is not None:
        form["image"] = (io.BytesIO(data), filename, mimetype)
    if options is not None:
        form["options"] = options
    return form


def test_health(client):
    resp = client.get("/api/health")
    assert resp.status_code == 200
    assert resp.get_json()["status"] == "ok"


def test_security_headers(client):
    resp = client.get("/api/health")
    for name, value in SECURITY_HEADERS.items():
        assert resp.headers[name] == value


def test_text_endpoint(client):
    resp = client.post("/api/qr/text", json={"text": "Hello World", "options": {"width": 300}})
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["success"] is True
    assert body["text"] == "Hello World"
    assert body["errorCorrectionLevel"] == "M"
    img = _decode_data_uri(body["qrCode"])
    assert img.size == (300, 300)
    assert scan_ok(verify(img, expected_data="Hello World"))


def test_text_endpoint_defaults_bad_options(client):
    resp = client.post("/api/qr/text", json={
        "text": "abc",
        "options": {"width": 5000, "margin": -1, "darkColor": "blue", "errorCorrectionLevel": "Z"},
    })
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["errorCorrectionLevel"] == "M"
    assert _decode_data_uri(body["qrCode"]).size == (500, 500)


@pytest.mark.parametrize("payload", [{"text": ""}, {"text": "   "}, {}, {"text": 12}])
def test_text_endpoint_invalid_text(client, payload):
    resp = client.post("/api/qr/text", json=payload)
    assert resp.status_code == 400
    body = resp.get_json()
    assert body["success"] is False
    assert body["code"] == "InvalidText"


def test_text_endpoint_not_json(client):
    resp = client.post("/api/qr/text", data="text=hi", content_type="text/plain")
    assert resp.status_code == 400
    assert resp.get_json()["code"] == "InvalidText"


def test_text_endpoint_capacity(client):
    secret = "s" * 3000
    resp = client.post("/api/qr/text", json={"text": secret, "options": {"errorCorrectionLevel": "H"}})
    assert resp.status_code == 400
    assert resp.get_json()["code"] == "CapacityExceeded"
    assert "sss" not in resp.get_data(as_text=True)


def test_image_endpoint_forces_level_h(client, logo_png):
    form = _upload("https://example.com/abc", logo_png, options='{"errorCorrectionLevel": "L", "width": 400}')
    resp = client.post("/api/qr/image", data=form, content_type="multipart/form-data")
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["errorCorrectionLevel"] == "H"
    img = _decode_data_uri(body["qrCode"])
    assert img.size == (400, 400)
    assert img.mode == "RGBA"


def test_image_endpoint_malformed_options_json(client, logo_png):
    form = _upload("abc", logo_png, options="{not json")
    resp = client.post("/api/qr/image", data=form, content_type="multipart/form-data")
    assert resp.status_code == 200


def test_image_endpoint_missing_image(client):
    resp = client.post("/api/qr/image", data=_upload("abc", None), content_type="multipart/form-data")
    assert resp.status_code == 400
    assert resp.get_json()["code"] == "MissingImage"


def test_image_endpoint_text_checked_first(client):
    resp = client.post("/api/qr/image", data=_upload("", None), content_type="multipart/form-data")
    assert resp.get_json()["code"] == "InvalidText"


@pytest.mark.parametrize("filename, mimetype", [
    ("logo.bmp", "image/bmp"),
    ("logo.png", "application/octet-stream"),
    ("notes.txt", "image/png"),
])
def test_image_endpoint_rejects_non_images(client, logo_png, filename, mimetype):
    form = _upload("abc", logo_png, filename=filename, mimetype=mimetype)
    resp = client.post("/api/qr/image", data=form, content_type="multipart/form-data")
    assert resp.status_code == 400
    assert resp.get_json()["code"] == "UnsupportedFormat"


def test_image_endpoint_corrupt_image(client, noisy_png):
    form = _upload("abc", noisy_png[: len(noisy_png) // 2])
    resp = client.post("/api/qr/image", data=form, content_type="multipart/form-data")
    assert resp.status_code == 400
    body = resp.get_json()
    assert body["code"] == "DecodeError"
    # development mode adds diagnostic detail
    assert "details" in body


def test_error_details_hidden_in_production(prod_client, noisy_png):
    form = _upload("abc", noisy_png[: len(noisy_png) // 2])
    resp = prod_client.post("/api/qr/image", data=form, content_type="multipart/form-data")
    assert resp.status_code == 400
    assert "details" not in resp.get_json()


def test_upload_size_limit():
    app = create_app(Settings(max_upload_bytes=1024))
    client = app.test_client()
    big = b"\x89PNG" + b"\0" * (200 * 1024)
    resp = client.post("/api/qr/image", data=_upload("abc", big), content_type="multipart/form-data")
    assert resp.status_code == 413
    assert resp.get_json()["code"] == "ResourceLimitExceeded"


def test_file_part_size_limit(logo_png):
    app = create_app(Settings(max_upload_bytes=len(logo_png) - 1))
    resp = app.test_client().post("/api/qr/image", data=_upload("abc", logo_png),
                                  content_type="multipart/form-data")
    assert resp.status_code == 413


def test_decoded_pixel_limit(make_png):
    app = create_app(Settings(max_image_pixels=100))
    resp = app.test_client().post("/api/qr/image", data=_upload("abc", make_png((20, 20))),
                                  content_type="multipart/form-data")
    assert resp.status_code == 413
    assert resp.get_json()["code"] == "ResourceLimitExceeded"


def test_self_test_only_in_development(client, prod_client):
    resp = client.get("/api/qr/test")
    assert resp.status_code == 200
    assert _decode_data_uri(resp.get_json()["qrCode"]).size == (200, 200)
    assert prod_client.get("/api/qr/test").status_code == 404


def test_unknown_route_is_json(client):
    resp = client.get("/api/nope")
    assert resp.status_code == 404
    assert resp.get_json()["success"] is False


def test_cors_header(client):
    resp = client.get("/api/health", headers={"Origin": "http://localhost:3000"})
    assert resp.headers.get("Access-Control-Allow-Origin") in ("*", "http://localhost:3000")


def test_text_endpoint_capacity_at_chosen_level(prod_client):
    # fits at level L but not at H
    resp = prod_client.post("/api/qr/text", json={"text": "a" * 1300, "options": {"errorCorrectionLevel": "H"}})
    assert resp.status_code == 400
    assert resp.get_json()["code"] == "CapacityExceeded"


def test_image_endpoint_capacity_at_level_h(prod_client, logo_png):
    form = _upload("a" * 1300, logo_png)
    resp = prod_client.post("/api/qr/image", data=form, content_type="multipart/form-data")
    assert resp.status_code == 400
    assert resp.get_json()["code"] == "CapacityExceeded"
