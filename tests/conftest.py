import uuid
from datetime import date
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.security import create_access_token, hash_password
from app.db.base import Base
from app.db.session import get_db
from app.main import app
from app.models.booking import Booking
from app.models.payment import Payment
from app.models.tour import Tour
from app.models.tour_image import TourImage
from app.models.user import User
from app.services import email_service, settings_service
from app.services.razorpay_client import RazorpayClient, RazorpayError


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def client(session_factory):
    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def _fresh_settings_cache():
    settings_service.invalidate_cache()
    yield
    settings_service.invalidate_cache()


@pytest.fixture(autouse=True)
def sent_emails(monkeypatch):
    """No real SMTP: record every message that would have gone out."""
    sent = []

    def fake_send(cfg, to_email, subject, body, html=None):
        sent.append({"to": to_email, "subject": subject, "body": body, "html": html})

    monkeypatch.setattr(email_service, "send_email", fake_send)
    return sent


@pytest.fixture
def smtp_configured(db):
    settings_service.save_settings(db, {
        "SMTP_ENABLED": "true",
        "SMTP_EMAIL": "bookings@gofly.test",
        "SMTP_PASSWORD": "app-password",
        "supportEmail": "support@gofly.test",
    })


def make_user(db, email, role="CUSTOMER", name="Test User", password="password123"):
    u = User(
        id=str(uuid.uuid4()),
        email=email,
        name=name,
        role=role,
        password_hash=hash_password(password),
        is_active=True,
    )
    db.add(u)
    db.commit()
    return u


def auth_headers(user):
    return {"Authorization": f"Bearer {create_access_token(user.id, user.role)}"}


@pytest.fixture
def customer(db):
    return make_user(db, "john@example.com", name="John Doe")


@pytest.fixture
def other_customer(db):
    return make_user(db, "jane@example.com", name="Jane Smith")


@pytest.fixture
def admin(db):
    return make_user(db, "admin@travel.com", role="ADMIN", name="Admin User")


@pytest.fixture
def customer_headers(customer):
    return auth_headers(customer)


@pytest.fixture
def admin_headers(admin):
    return auth_headers(admin)


def make_tour(db, slug="kerala-backwaters", base="1000", discount=None, published=True, **kw):
    t = Tour(
        id=str(uuid.uuid4()),
        title=kw.get("title", "Kerala Backwaters"),
        slug=slug,
        location_country=kw.get("country", "India"),
        location_city=kw.get("city", "Alleppey"),
        category=kw.get("category", "FAMILY"),
        duration_days=kw.get("days", 4),
        base_price=Decimal(base),
        discount_price=Decimal(discount) if discount else None,
        max_group_size=20,
        description=kw.get("description", "Houseboat cruise through the backwaters."),
        is_published=published,
    )
    t.highlights = ["Houseboat stay", "Village walk"]
    t.itinerary = [{"day": 1, "title": "Arrival", "description": "Board the houseboat."}]
    db.add(t)
    db.flush()
    db.add(TourImage(id=str(uuid.uuid4()), tour_id=t.id, public_id="tours/kerala1",
                     secure_url="https://img.test/kerala1.jpg", alt_text="Houseboat", sort_order=0))
    db.commit()
    return t


@pytest.fixture
def tour(db):
    return make_tour(db)


def make_booking(db, user, tour, booking_status="PENDING", payment_status="PENDING", order_id=None, paid_with=None):
    b = Booking(
        id=str(uuid.uuid4()),
        reference="BK" + uuid.uuid4().hex[:10].upper(),
        user_id=user.id,
        tour_id=tour.id,
        start_date=date(2030, 1, 10),
        end_date=date(2030, 1, 14),
        adults=2,
        children=1,
        total_amount=Decimal("2500.00"),
        currency="INR",
        booking_status=booking_status,
        payment_status=payment_status,
        gateway_order_id=order_id,
    )
    db.add(b)
    if paid_with:
        db.add(Payment(id=str(uuid.uuid4()), booking_id=b.id, provider="RAZORPAY",
                       provider_payment_id=paid_with, amount=b.total_amount, currency="INR", status="succeeded"))
    db.commit()
    return b


class FakeGateway:
    def __init__(self):
        self.orders = []
        self.refunds = []
        self.fail_refund = False
        self.fail_fetch = False

    def create_order(self, *, amount, currency, receipt):
        order = {"id": f"order_{len(self.orders) + 1:04d}", "amount": int(Decimal(amount) * 100),
                 "currency": currency, "receipt": receipt}
        self.orders.append(order)
        return order

    def fetch_payment(self, payment_id):
        if self.fail_fetch:
            raise RazorpayError("Razorpay 502: upstream unavailable")
        return {"id": payment_id, "status": "captured"}

    def refund_payment(self, payment_id, amount=None):
        if self.fail_refund:
            raise RazorpayError("Razorpay 400: The payment has been fully refunded already")
        refund = {"id": f"rfnd_{len(self.refunds) + 1:04d}", "payment_id": payment_id}
        self.refunds.append(refund)
        return refund


RZP_KEY_ID = "rzp_test_key"
RZP_SECRET = "rzp_test_secret"


@pytest.fixture
def gateway(db, monkeypatch):
    settings_service.save_settings(db, {"RAZORPAY_KEY_ID": RZP_KEY_ID, "RAZORPAY_SECRET_KEY": RZP_SECRET})
    fake = FakeGateway()
    monkeypatch.setattr(RazorpayClient, "create_order", lambda self, **kw: fake.create_order(**kw))
    monkeypatch.setattr(RazorpayClient, "fetch_payment", lambda self, pid: fake.fetch_payment(pid))
    monkeypatch.setattr(RazorpayClient, "refund_payment", lambda self, pid, amount=None: fake.refund_payment(pid, amount))
    return fake
