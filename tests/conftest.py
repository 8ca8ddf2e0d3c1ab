from datetime import datetime

import mongomock
import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

import auth
import notifications
import payments
import uploads
from config import Settings, get_settings
from database import create_document, get_db
from errors import GatewayError, InvalidCredentials
from main import app
from security import create_access_token, get_password_hash


class FakeMailer:
    def __init__(self):
        self.sent = []

    def send_welcome(self, user):
        self.sent.append(("welcome", user.get("email"), None))

    def send_verification(self, user, token):
        self.sent.append(("verification", user.get("email"), token))

    def send_password_reset(self, user, token):
        self.sent.append(("password_reset", user.get("email"), token))

    def last(self, kind):
        return [s for s in self.sent if s[0] == kind][-1]


class FakeGateway:
    def __init__(self):
        self.calls = []
        self.fail = False

    def create_order(self, amount, currency, receipt):
        self.calls.append({"amount": amount, "currency": currency, "receipt": receipt})
        if self.fail:
            raise GatewayError()
        return {"id": "order_test123", "currency": currency, "amount": amount, "receipt": receipt}


class FakePhoneVerifier:
    def __init__(self, phone="+919876543210"):
        self.phone = phone

    def verify(self, token):
        if token != "good-token":
            raise InvalidCredentials("Phone verification failed")
        return self.phone


class FakeImageStore:
    def upload(self, filename, content, content_type):
        return f"https://res.cloudinary.com/demo/image/upload/products/{filename}"


@pytest.fixture
def settings():
    return Settings(
        secret_key="test-secret",
        razorpay_key_id="rzp_test",
        razorpay_key_secret="rzp-secret",
        client_url="http://shop.test",
        app_env="test",
    )


@pytest.fixture
def db():
    return mongomock.MongoClient()["storefront_test"]


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def phone_verifier():
    return FakePhoneVerifier()


@pytest.fixture
def client(db, settings, mailer, gateway, phone_verifier):
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[notifications.get_mailer] = lambda: mailer
    app.dependency_overrides[payments.get_gateway] = lambda: gateway
    app.dependency_overrides[auth.get_phone_verifier] = lambda: phone_verifier
    app.dependency_overrides[uploads.get_image_store] = lambda: FakeImageStore()
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(name="Asha", phone=None, email=None, password="secret123", is_admin=False, **extra):
        counter["n"] += 1
        doc = {
            "name": name,
            "phone": phone or f"90000000{counter['n']:02d}",
            "password_hash": get_password_hash(password),
            "is_admin": is_admin,
            "addresses": [],
            "wishlist": [],
            **extra,
        }
        if email:
            doc["email"] = email
        user_id = create_document(db, "user", doc)
        return db["user"].find_one({"_id": ObjectId(user_id)})

    return _make


@pytest.fixture
def auth_headers(settings):
    def _headers(user):
        return {"Authorization": f"Bearer {create_access_token(user['_id'], settings)}"}

    return _headers


@pytest.fixture
def make_product(db):
    counter = {"n": 0}

    def _make(name=None, price=100.0, **extra):
        counter["n"] += 1
        doc = {
            "name": name or f"Herbal Soap {counter['n']}",
            "category": "Soap",
            "price": price,
            "description": "Handmade",
            "images": [f"/images/p{counter['n']}.jpg"],
            "count_in_stock": 10,
            "is_featured": False,
            "created_at": datetime.utcnow(),
            **extra,
        }
        db["product"].insert_one(doc)
        return doc

    return _make
