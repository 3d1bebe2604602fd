import base64

from didauth.utils.qr import build_scan_url, qr_png_base64


def test_scan_url_keeps_field_order_and_encodes_values():
    url = build_scan_url(
        "elaphant",
        {"CallbackUrl": "https://example.test/cb?x=1", "AppName": "My App", "RandomNumber": "123"},
    )

    assert url == (
        "elaphant://identity?CallbackUrl=https%3A%2F%2Fexample.test%2Fcb%3Fx%3D1"
        "&AppName=My+App&RandomNumber=123"
    )


def test_qr_png_base64_is_png():
    png = base64.b64decode(qr_png_base64("elaphant://identity?RandomNumber=1"))
    assert png.startswith(b"\x89PNG\r\n\x1a\n")
