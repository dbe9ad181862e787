"""
Tests for image routes
"""

import io
import json
from datetime import datetime, timezone
from email.utils import format_datetime

import pytest
from PIL import Image

from phatmqtt.mqtt import IMAGE_TOPIC
from tests.conftest import make_image


def _put(client, data, content_type="image/png", path="/", **params):
    return client.put(path, content=data, headers={"Content-Type": content_type}, params=params)


def test_get_image_before_upload(client):
    """Nothing uploaded yet: 404, not an error."""
    response = client.get("/image")
    assert response.status_code == 404
    assert "No image cached yet" in response.text


def test_upload_converts_and_serves_paletted_png(client, png_image):
    response = _put(client, png_image)
    assert response.status_code == 201
    data = response.json()
    assert data["content_type"] == "image/png"
    assert len(data["hash"]) == 64

    response = client.get("/image")
    assert response.status_code == 200
    assert response.headers["content-type"] == "image/png"
    assert response.headers["etag"] == f'"{data["hash"]}"'
    assert "last-modified" in response.headers
    with Image.open(io.BytesIO(response.content)) as img:
        assert img.mode == "P"
        assert img.size == (212, 104)


def test_raw_upload_served_unchanged(client):
    jpeg = make_image(image_format="JPEG")
    response = _put(client, jpeg, content_type="image/jpeg", path="/image", raw="true")
    assert response.status_code == 201

    response = client.get("/image")
    assert response.content == jpeg
    assert response.headers["content-type"] == "image/jpeg"


@pytest.mark.parametrize("raw", ["yes-please", "1", "TRUE"])
def test_raw_flag_other_than_true_still_converts(client, raw):
    """Only the literal value true skips conversion; anything else is not an error."""
    jpeg = make_image(image_format="JPEG")
    response = _put(client, jpeg, content_type="image/jpeg", path="/image", raw=raw)
    assert response.status_code == 201
    assert response.json()["content_type"] == "image/png"

    response = client.get("/image")
    with Image.open(io.BytesIO(response.content)) as img:
        assert img.format == "PNG"
        assert img.mode == "P"


def test_wrong_size_rejected_and_previous_image_kept(client, png_image):
    _put(client, png_image)
    before = client.get("/image")

    response = _put(client, make_image((100, 100)))
    assert response.status_code == 406
    assert "100x100" in response.text
    assert response.text.startswith("ERROR:")

    after = client.get("/image")
    assert after.status_code == 200
    assert after.headers["etag"] == before.headers["etag"]


def test_wrong_size_without_previous_image(client):
    response = _put(client, make_image((100, 100)))
    assert response.status_code == 406
    assert client.get("/image").status_code == 404


def test_undecodable_upload_rejected(client):
    response = _put(client, b"hello world")
    assert response.status_code == 406
    assert "undecodable" in response.text


def test_non_image_content_type_rejected(client, png_image):
    response = _put(client, png_image, content_type="application/octet-stream")
    assert response.status_code == 406
    assert "Content-type not image/*" in response.text


def test_if_none_match_returns_not_modified(client, png_image):
    _put(client, png_image)
    etag = client.get("/image").headers["etag"]

    response = client.get("/image", headers={"If-None-Match": etag})
    assert response.status_code == 304
    assert response.content == b""

    response = client.get("/image", headers={"If-None-Match": '"something-else"'})
    assert response.status_code == 200


def test_if_modified_since(client, png_image):
    _put(client, png_image)
    last_modified = client.get("/image").headers["last-modified"]

    response = client.get("/image", headers={"If-Modified-Since": last_modified})
    assert response.status_code == 304

    old = format_datetime(datetime(2000, 1, 1, tzinfo=timezone.utc), usegmt=True)
    response = client.get("/image", headers={"If-Modified-Since": old})
    assert response.status_code == 200


def test_upload_announces_image(client, transport, png_image):
    data = _put(client, png_image).json()

    assert transport.wait_for_attempts(1)
    topic, payload, _, _ = transport.published[0]
    assert topic == IMAGE_TOPIC
    assert json.loads(payload) == {
        "url": "http://phat.test:39391/image",
        "hash": data["hash"],
    }
