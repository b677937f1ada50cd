"""Tests for downloading rendered QR images."""
import io
from unittest.mock import MagicMock, patch

import pytest
import requests
from PIL import Image

from qr_image_resolver.fetch import FetchError, download_image, fetch_image_bytes, output_format
from qr_image_resolver.resolver import resolve


def _png_bytes(size=8):
    buf = io.BytesIO()
    Image.new("1", (size, size), 1).save(buf, format="PNG")
    return buf.getvalue()


def _response(status_code=200, content=b""):
    response = MagicMock()
    response.status_code = status_code
    response.content = content
    return response


@pytest.fixture
def no_sleep():
    with patch("qr_image_resolver.fetch.time.sleep") as sleep:
        yield sleep


def test_fetch_returns_image_bytes():
    png = _png_bytes()
    ref = resolve("hello")

    with patch("qr_image_resolver.fetch.requests.get", return_value=_response(200, png)) as get:
        assert fetch_image_bytes(ref, timeout=5) == png

    get.assert_called_once_with(ref.url, timeout=5)


def test_server_errors_are_retried(no_sleep):
    png = _png_bytes()
    responses = [_response(503), _response(502), _response(200, png)]

    with patch("qr_image_resolver.fetch.requests.get", side_effect=responses) as get:
        assert fetch_image_bytes(resolve("hello")) == png

    assert get.call_count == 3
    assert [c.args[0] for c in no_sleep.call_args_list] == [2, 4]


def test_connection_errors_are_retried(no_sleep):
    png = _png_bytes()
    side_effect = [requests.ConnectionError("reset"), _response(200, png)]

    with patch("qr_image_resolver.fetch.requests.get", side_effect=side_effect):
        assert fetch_image_bytes(resolve("hello")) == png


def test_retries_exhausted(no_sleep):
    with patch("qr_image_resolver.fetch.requests.get", side_effect=requests.Timeout("slow")) as get:
        with pytest.raises(FetchError, match="after 3 attempts"):
            fetch_image_bytes(resolve("hello"))

    assert get.call_count == 3
    assert no_sleep.call_count == 2


def test_client_errors_are_not_retried(no_sleep):
    with patch("qr_image_resolver.fetch.requests.get", return_value=_response(400)) as get:
        with pytest.raises(FetchError, match="HTTP 400"):
            fetch_image_bytes(resolve("hello"))

    assert get.call_count == 1
    no_sleep.assert_not_called()


def test_non_image_body_is_rejected():
    with patch("qr_image_resolver.fetch.requests.get", return_value=_response(200, b"<html>oops</html>")):
        with pytest.raises(FetchError, match="did not return an image"):
            fetch_image_bytes(resolve("hello"))


def test_download_same_format_writes_bytes(tmp_path):
    png = _png_bytes()
    out = tmp_path / "nested" / "qr.png"

    with patch("qr_image_resolver.fetch.requests.get", return_value=_response(200, png)):
        result = download_image(resolve("hello"), str(out))

    assert result == str(out)
    assert out.read_bytes() == png


def test_download_converts_format(tmp_path):
    out = tmp_path / "qr.jpg"

    with patch("qr_image_resolver.fetch.requests.get", return_value=_response(200, _png_bytes(16))):
        download_image(resolve("hello"), str(out))

    with Image.open(out) as img:
        assert img.format == "JPEG"
        assert img.size == (16, 16)


def test_download_rejects_unknown_extension(tmp_path):
    with patch("qr_image_resolver.fetch.requests.get") as get:
        with pytest.raises(ValueError, match="Unsupported"):
            download_image(resolve("hello"), str(tmp_path / "qr.txt"))

    get.assert_not_called()


def test_dropped_download_is_retried(no_sleep):
    png = _png_bytes()
    side_effect = [requests.exceptions.ChunkedEncodingError("cut"), _response(200, png)]

    with patch("qr_image_resolver.fetch.requests.get", side_effect=side_effect) as get:
        assert fetch_image_bytes(resolve("hello")) == png

    assert get.call_count == 2


def test_dropped_download_retries_exhausted(no_sleep):
    error = requests.exceptions.ChunkedEncodingError("cut")
    with patch("qr_image_resolver.fetch.requests.get", side_effect=error):
        with pytest.raises(FetchError, match="after 3 attempts"):
            fetch_image_bytes(resolve("hello"))


def test_other_request_errors_become_fetch_errors(no_sleep):
    error = requests.TooManyRedirects("loop")
    with patch("qr_image_resolver.fetch.requests.get", side_effect=error) as get:
        with pytest.raises(FetchError, match="loop"):
            fetch_image_bytes(resolve("hello"))

    assert get.call_count == 1
    no_sleep.assert_not_called()


def test_download_rejects_read_only_format(tmp_path):
    with patch("qr_image_resolver.fetch.requests.get") as get:
        with pytest.raises(ValueError, match="Unsupported"):
            download_image(resolve("hello"), str(tmp_path / "qr.psd"))

    get.assert_not_called()


@pytest.mark.parametrize("path", ["qr.png", "QR.JPG", "out/qr.gif"])
def test_output_format_accepts_writable_extensions(path):
    assert output_format(path) in ("PNG", "JPEG", "GIF")


@pytest.mark.parametrize("path", ["qr.psd", "qr.txt", "qr"])
def test_output_format_rejects_unwritable_extensions(path):
    with pytest.raises(ValueError):
        output_format(path)
