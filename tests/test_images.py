import base64

import pytest

from fishlog import crud
from fishlog.crud import IMAGE_KINDS

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16


@pytest.fixture
def catch_id(client, user_id):
    outing_id = client.post("/outings", json={"user_id": user_id, "outing_date": "2024-04-20"}).json()["outing_id"]
    return client.post("/catches", json={"outing_id": outing_id, "species": "Steelhead"}).json()["catch_id"]


def test_upload_file_and_read_back_as_data_uri(client, catch_id):
    r = client.post(
        "/catch_images",
        data={"catch_id": str(catch_id), "caption": "chrome hen"},
        files={"image": ("fish.png", PNG, "image/png")},
    )
    assert r.status_code == 201
    assert r.json()["message"] == "Catch image uploaded"
    image_id = r.json()["image_id"]

    got = client.get(f"/catch_images/image/{image_id}").json()
    assert got["catch_id"] == catch_id
    assert got["image_url"] is None
    assert got["image_type"] == "image/png"
    assert got["caption"] == "chrome hen"
    assert got["image_data"] == "data:image/png;base64," + base64.b64encode(PNG).decode()


def test_listing_omits_payload(client, catch_id):
    client.post("/catch_images", data={"catch_id": str(catch_id)}, files={"image": ("fish.png", PNG, "image/png")})
    client.post("/catch_images", data={"catch_id": str(catch_id), "image_url": "https://example.com/a.jpg"})

    listed = client.get(f"/catch_images/{catch_id}").json()
    assert len(listed) == 2
    assert all("image_data" not in img for img in listed)
    assert listed[1]["image_url"] == "https://example.com/a.jpg"
    assert listed[0]["uploaded_at"] is not None


def test_url_only_image(client, catch_id):
    image_id = client.post(
        "/catch_images", data={"catch_id": str(catch_id), "image_url": "https://example.com/a.jpg"},
    ).json()["image_id"]

    got = client.get(f"/catch_images/image/{image_id}").json()
    assert got["image_url"] == "https://example.com/a.jpg"
    assert got["image_data"] is None

    r = client.get(f"/catch_images/image/{image_id}/file", follow_redirects=False)
    assert r.status_code == 307
    assert r.headers["location"] == "https://example.com/a.jpg"


def test_raw_file_route(client, catch_id):
    image_id = client.post(
        "/catch_images", data={"catch_id": str(catch_id)}, files={"image": ("fish.png", PNG, "image/png")},
    ).json()["image_id"]

    r = client.get(f"/catch_images/image/{image_id}/file")
    assert r.status_code == 200
    assert r.content == PNG
    assert r.headers["content-type"] == "image/png"


def test_upload_needs_parent_and_content(client, catch_id):
    r = client.post("/catch_images", data={"image_url": "https://example.com/a.jpg"})
    assert r.status_code == 400
    assert r.json()["detail"] == "Catch ID is required"

    r = client.post("/catch_images", data={"catch_id": str(catch_id), "caption": "nothing attached"})
    assert r.status_code == 400
    assert r.json()["detail"] == "Either image URL or file upload is required"


def test_upload_to_missing_parent(client):
    r = client.post("/scenery_images", data={"outing_id": "9999", "image_url": "https://example.com/a.jpg"})
    assert r.status_code == 404
    assert r.json()["detail"] == "Outing not found"


def test_upload_size_limit(client, catch_id, monkeypatch):
    from fishlog.main import settings

    monkeypatch.setattr(settings, "max_upload_bytes", 8)
    r = client.post("/catch_images", data={"catch_id": str(catch_id)}, files={"image": ("fish.png", PNG, "image/png")})
    assert r.status_code == 400


def test_scenery_and_location_images(client, user_id, location_id):
    outing_id = client.post("/outings", json={"user_id": user_id, "outing_date": "2024-04-20"}).json()["outing_id"]

    r = client.post("/scenery_images", data={"outing_id": str(outing_id), "image_url": "https://example.com/s.jpg"})
    assert r.json()["message"] == "Scenery image uploaded"
    assert client.get(f"/scenery_images/{outing_id}").json()[0]["outing_id"] == outing_id

    r = client.post("/location_images", data={"location_id": str(location_id)}, files={"image": ("l.png", PNG, "image/png")})
    assert r.json()["message"] == "Location image uploaded"
    got = client.get(f"/location_images/image/{r.json()['image_id']}").json()
    assert got["location_id"] == location_id
    assert got["image_data"].startswith("data:image/png;base64,")


def test_missing_image(client):
    assert client.get("/location_images/image/9999").status_code == 404


def test_upload_without_content_type_is_served_as_octet_stream(client, db, catch_id):
    kind = IMAGE_KINDS["catch"]
    image = crud.create_image(db, kind, catch_id, image_data=b"abc", image_type=None)

    assert image.image_type == "application/octet-stream"
    got = client.get(f"/catch_images/image/{image.image_id}").json()
    assert got["image_data"] == "data:application/octet-stream;base64,YWJj"
    assert client.get(f"/catch_images/image/{image.image_id}/file").headers["content-type"] == "application/octet-stream"


def test_url_only_image_has_no_type(client, db, catch_id):
    image = crud.create_image(db, IMAGE_KINDS["catch"], catch_id, image_url="https://example.com/a.jpg", image_type="image/jpeg")
    assert image.image_type is None
