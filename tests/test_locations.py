from fishlog import models


def test_create_location_derives_coordinates(client):
    r = client.post("/location", json={"location_name": "Bunch Bar", "pinpoint": "45.5,-122.6"})
    assert r.status_code == 201
    body = r.json()
    assert body["message"] == "Location created"
    assert body["latitude"] == 45.5
    assert body["longitude"] == -122.6

    stored = client.get(f"/locations/{body['location_id']}").json()
    assert stored["pinpoint"] == "45.5,-122.6"
    assert stored["latitude"] == 45.5
    assert stored["longitude"] == -122.6
    assert stored["is_secret"] is False


def test_plural_create_route(client):
    r = client.post("/locations", json={"location_name": "Oxbow", "is_secret": True, "lore": "big browns"})
    assert r.status_code == 201
    stored = client.get(f"/locations/{r.json()['location_id']}").json()
    assert stored["is_secret"] is True
    assert stored["lore"] == "big browns"


def test_bad_pinpoint_is_kept_but_coordinates_are_null(client):
    r = client.post("/location", json={"location_name": "Secret hole", "pinpoint": "behind the old mill"})
    assert r.status_code == 201
    assert r.json()["latitude"] is None

    stored = client.get(f"/locations/{r.json()['location_id']}").json()
    assert stored["pinpoint"] == "behind the old mill"
    assert stored["latitude"] is None
    assert stored["longitude"] is None


def test_out_of_range_pinpoint(client):
    r = client.post("/location", json={"location_name": "Nowhere", "pinpoint": "95,10"})
    assert r.json()["latitude"] is None
    assert r.json()["longitude"] is None


def test_location_name_is_required(client):
    r = client.post("/location", json={"region": "Coast"})
    assert r.status_code == 400
    assert r.json()["detail"] == "Must name the spot"

    r = client.post("/location", json={"location_name": ""})
    assert r.status_code == 400


def test_list_and_missing_location(client, location_id):
    listed = client.get("/locations").json()
    assert [loc["location_id"] for loc in listed] == [location_id]

    r = client.get("/locations/9999")
    assert r.status_code == 404
    assert r.json()["detail"] == "Location not found"


def test_update_location_rederives_coordinates(client, location_id):
    r = client.put(f"/locations/{location_id}", json={
        "location_name": "Bunch Bar (north)",
        "region": "Columbia",
        "pinpoint": "46.1, -123.0",
    })
    assert r.status_code == 200
    assert r.json() == {"message": "Location updated", "latitude": 46.1, "longitude": -123.0}

    r = client.put(f"/locations/{location_id}", json={"location_name": "Bunch Bar", "pinpoint": "oops"})
    assert r.json()["latitude"] is None
    assert client.get(f"/locations/{location_id}").json()["longitude"] is None


def test_update_requires_name_and_existing_row(client, location_id):
    r = client.put(f"/locations/{location_id}", json={"pinpoint": "1,2"})
    assert r.status_code == 400
    assert r.json()["detail"] == "Location name is required"

    r = client.put("/locations/9999", json={"location_name": "Ghost"})
    assert r.status_code == 404


def test_delete_location_detaches_outings(client, db, user_id, location_id):
    outing = client.post("/outings", json={
        "user_id": user_id, "location_id": location_id, "outing_date": "2024-04-20",
    }).json()
    client.post("/location_images", data={"location_id": str(location_id), "image_url": "https://example.com/bar.jpg"})

    r = client.delete(f"/locations/{location_id}")
    assert r.status_code == 200
    assert r.json() == {"message": "Location deleted"}

    kept = client.get(f"/outings/{outing['outing_id']}")
    assert kept.status_code == 200
    assert kept.json()["location_id"] is None

    assert db.query(models.Location).count() == 0
    assert db.query(models.LocationImage).count() == 0


def test_delete_missing_location(client):
    r = client.delete("/locations/9999")
    assert r.status_code == 404
