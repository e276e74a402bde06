import io

from app.models.review import Review
from app.models.tour import Tour
from app.models.tour_image import TourImage
from app.services import settings_service
from app.services.cloudinary_client import CloudinaryClient

from conftest import make_booking, make_tour


def _seed(db):
    make_tour(db)
    make_tour(db, slug="goa-weekend", title="Goa Weekend", city="Goa", category="WEEKEND", days=2, base="500")
    make_tour(db, slug="bali-escape", title="Bali Escape", country="Indonesia", city="Ubud",
              category="HONEYMOON", days=6, base="3000")
    make_tour(db, slug="draft", title="Draft", published=False)


def _slugs(resp):
    return sorted(t["slug"] for t in resp.json()["data"])


def test_public_listing_filters(client, db):
    _seed(db)
    assert _slugs(client.get("/api/v1/tours")) == ["bali-escape", "goa-weekend", "kerala-backwaters"]
    assert _slugs(client.get("/api/v1/tours?country=Indonesia")) == ["bali-escape"]
    assert _slugs(client.get("/api/v1/tours?category=weekend")) == ["goa-weekend"]
    assert _slugs(client.get("/api/v1/tours?minPrice=600&maxPrice=2000")) == ["kerala-backwaters"]
    assert _slugs(client.get("/api/v1/tours?minDuration=3&maxDuration=5")) == ["kerala-backwaters"]
    assert _slugs(client.get("/api/v1/tours?search=ubud")) == ["bali-escape"]


def test_public_listing_pagination(client, db):
    _seed(db)
    body = client.get("/api/v1/tours?page=2&limit=2").json()
    assert body["pagination"] == {"page": 2, "limit": 2, "total": 3, "totalPages": 2}
    assert len(body["data"]) == 1
    assert len(body["data"][0]["images"]) == 1


def test_listing_average_rating_counts_approved_only(client, db, tour, customer, other_customer):
    db.add(Review(id="r1", tour_id=tour.id, user_id=customer.id, rating=4, comment="Good", is_approved=True))
    db.add(Review(id="r2", tour_id=tour.id, user_id=other_customer.id, rating=1, comment="Meh", is_approved=False))
    db.commit()
    item = client.get("/api/v1/tours").json()["data"][0]
    assert item["averageRating"] == 4.0
    assert item["_count"]["reviews"] == 2


def test_destinations_group_published_tours(client, db):
    _seed(db)
    data = client.get("/api/v1/tours/destinations").json()["data"]
    assert data == [{"country": "India", "tourCount": 2}, {"country": "Indonesia", "tourCount": 1}]


def test_unpublished_tour_is_hidden(client, db):
    make_tour(db, slug="draft", published=False)
    assert client.get("/api/v1/tours/draft").status_code == 404
    assert client.get("/api/v1/tours/nowhere").json() == {"success": False, "error": "Tour not found"}


def test_tour_detail_carries_itinerary_and_images(client, tour):
    data = client.get(f"/api/v1/tours/{tour.slug}").json()["data"]
    assert data["highlights"] == ["Houseboat stay", "Village walk"]
    assert data["itinerary"][0]["title"] == "Arrival"
    assert data["images"][0]["publicId"] == "tours/kerala1"
    assert data["averageRating"] == 0


TOUR_BODY = {
    "title": "Rajasthan Forts",
    "locationCountry": "India",
    "locationCity": "Jaipur",
    "category": "cultural",
    "durationDays": 5,
    "basePrice": "1500",
    "description": "Palaces and forts of the desert state.",
    "highlights": ["Amber Fort"],
    "itinerary": [{"day": 1, "title": "Jaipur", "description": "City palace"}],
    "isPublished": True,
    "images": [{"public_id": "tours/amber", "secure_url": "https://img.test/amber.jpg"}],
}


def test_admin_creates_tour_with_generated_slug(client, db, admin_headers):
    r = client.post("/api/v1/admin/tours", headers=admin_headers, json=TOUR_BODY)
    assert r.status_code == 201
    data = r.json()["data"]
    assert data["slug"] == "rajasthan-forts"
    assert data["category"] == "CULTURAL"
    assert data["images"][0]["altText"] == "Rajasthan Forts"

    r = client.post("/api/v1/admin/tours", headers=admin_headers, json=TOUR_BODY)
    assert r.status_code == 409


def test_admin_rejects_unknown_category(client, admin_headers):
    r = client.post("/api/v1/admin/tours", headers=admin_headers, json={**TOUR_BODY, "category": "SAFARI"})
    assert r.status_code == 400


def test_update_replaces_images_and_cleans_up_dropped_ones(client, db, tour, admin_headers, monkeypatch):
    settings_service.save_settings(db, {
        "cloudinaryCloudName": "demo", "cloudinaryApiKey": "key", "cloudinaryApiSecret": "secret",
    })
    destroyed = []
    monkeypatch.setattr(CloudinaryClient, "destroy", lambda self, pid: destroyed.append(pid) or {"result": "ok"})

    r = client.put(f"/api/v1/admin/tours/{tour.id}", headers=admin_headers, json={
        "discountPrice": "900",
        "images": [{"public_id": "tours/new1", "secure_url": "https://img.test/new1.jpg", "alt_text": "Sunset"}],
    })
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["discountPrice"] == 900.0
    assert [i["publicId"] for i in data["images"]] == ["tours/new1"]
    assert destroyed == ["tours/kerala1"]

    r = client.put(f"/api/v1/admin/tours/{tour.id}", headers=admin_headers, json={"discountPrice": None})
    assert r.json()["data"]["discountPrice"] is None


def test_delete_tour_refused_while_bookings_exist(client, db, tour, customer, admin_headers):
    make_booking(db, customer, tour)
    assert client.delete(f"/api/v1/admin/tours/{tour.id}", headers=admin_headers).status_code == 409


def test_delete_tour_without_bookings(client, db, tour, admin_headers):
    assert client.delete(f"/api/v1/admin/tours/{tour.id}", headers=admin_headers).status_code == 200
    db.expire_all()
    assert db.get(Tour, tour.id) is None
    assert db.query(TourImage).count() == 0


def test_admin_listing_includes_drafts(client, db, admin_headers):
    _seed(db)
    body = client.get("/api/v1/admin/tours?isPublished=false", headers=admin_headers).json()
    assert [t["slug"] for t in body["data"]] == ["draft"]


def _upload(client, headers, content=b"\x89PNG fake", content_type="image/png"):
    return client.post("/api/v1/admin/upload-image", headers=headers,
                       files={"file": ("photo.png", io.BytesIO(content), content_type)},
                       data={"folder": "tours"})


def test_upload_rejects_non_images_and_large_files(client, admin_headers):
    assert _upload(client, admin_headers, content_type="text/plain").status_code == 400
    big = b"0" * (5 * 1024 * 1024 + 1)
    r = _upload(client, admin_headers, content=big)
    assert r.status_code == 400
    assert r.json()["error"] == "File size must be less than 5MB"


def test_upload_without_credentials(client, admin_headers):
    r = _upload(client, admin_headers)
    assert r.status_code == 500
    assert "not configured" in r.json()["error"]


def test_upload_returns_host_identifiers(client, db, admin_headers, monkeypatch):
    settings_service.save_settings(db, {
        "cloudinaryCloudName": "demo", "cloudinaryApiKey": "key", "cloudinaryApiSecret": "secret",
    })
    calls = []

    def fake_upload(self, content, filename, content_type, folder="travel-agency"):
        calls.append((filename, folder))
        return {"public_id": "tours/photo", "secure_url": "https://res.cloudinary.com/demo/photo.png"}

    monkeypatch.setattr(CloudinaryClient, "upload", fake_upload)
    r = _upload(client, admin_headers)
    assert r.status_code == 200
    assert r.json()["data"]["public_id"] == "tours/photo"
    assert calls == [("photo.png", "tours")]
