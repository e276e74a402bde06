from app.models.review import Review

from conftest import make_booking, auth_headers


def _review(client, headers, tour_id, rating=5, comment="Wonderful trip"):
    return client.post("/api/v1/reviews", headers=headers, json={"tourId": tour_id, "rating": rating, "comment": comment})


def test_review_requires_paid_booking(client, db, tour, customer, customer_headers):
    make_booking(db, customer, tour)
    r = _review(client, customer_headers, tour.id)
    assert r.status_code == 403
    assert db.query(Review).count() == 0


def test_review_is_created_unapproved(client, db, tour, customer, customer_headers):
    make_booking(db, customer, tour, "CONFIRMED", "PAID", paid_with="pay_1")
    r = _review(client, customer_headers, tour.id, rating=4)
    assert r.status_code == 201
    data = r.json()["data"]
    assert data["isApproved"] is False
    assert data["rating"] == 4


def test_duplicate_review_conflicts_and_keeps_original(client, db, tour, customer, customer_headers):
    make_booking(db, customer, tour, "CONFIRMED", "PAID", paid_with="pay_1")
    assert _review(client, customer_headers, tour.id, rating=5, comment="First").status_code == 201

    r = _review(client, customer_headers, tour.id, rating=1, comment="Second")
    assert r.status_code == 409
    assert r.json()["error"] == "You have already reviewed this tour"

    db.expire_all()
    only = db.query(Review).one()
    assert (only.rating, only.comment) == (5, "First")


def test_rating_out_of_range(client, db, tour, customer, customer_headers):
    make_booking(db, customer, tour, "CONFIRMED", "PAID", paid_with="pay_1")
    assert _review(client, customer_headers, tour.id, rating=6).status_code == 400
    assert _review(client, customer_headers, tour.id, rating=0).status_code == 400


def test_only_approved_reviews_are_public(client, db, tour, customer, other_customer, admin):
    make_booking(db, customer, tour, "CONFIRMED", "PAID", paid_with="pay_1")
    make_booking(db, other_customer, tour, "CONFIRMED", "PAID", paid_with="pay_2")
    first = _review(client, auth_headers(customer), tour.id, rating=5).json()["data"]
    _review(client, auth_headers(other_customer), tour.id, rating=2)

    assert client.get(f"/api/v1/tours/{tour.slug}/reviews").json()["data"] == []

    r = client.patch(f"/api/v1/admin/reviews/{first['id']}", headers=auth_headers(admin), json={"isApproved": True})
    assert r.status_code == 200

    public = client.get(f"/api/v1/tours/{tour.slug}/reviews").json()["data"]
    assert [rv["id"] for rv in public] == [first["id"]]
    assert public[0]["user"]["name"] == "John Doe"

    detail = client.get(f"/api/v1/tours/{tour.slug}").json()["data"]
    assert detail["averageRating"] == 5


def test_admin_lists_and_deletes_reviews(client, db, tour, customer, customer_headers, admin_headers):
    make_booking(db, customer, tour, "CONFIRMED", "PAID", paid_with="pay_1")
    review_id = _review(client, customer_headers, tour.id).json()["data"]["id"]

    pending = client.get("/api/v1/admin/reviews?isApproved=false", headers=admin_headers).json()["data"]
    assert [rv["id"] for rv in pending] == [review_id]
    assert pending[0]["tour"]["slug"] == tour.slug

    assert client.delete(f"/api/v1/admin/reviews/{review_id}", headers=admin_headers).status_code == 200
    assert db.query(Review).count() == 0
