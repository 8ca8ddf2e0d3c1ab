from datetime import datetime, timedelta

from auth import to_e164
from security import create_access_token, get_current_user, hash_token, verify_password


def register(client, **overrides):
    body = {"name": "Asha", "phone": "9876543210", "password": "secret123", "email": "asha@example.com"}
    body.update(overrides)
    return client.post("/auth/register", json=body)


def test_register_creates_user_with_hashed_password(client, db, mailer):
    res = register(client)
    assert res.status_code == 201
    data = res.json()
    assert data["token"]
    assert data["phone"] == "9876543210"
    assert data["is_admin"] is False

    stored = db["user"].find_one({"phone": "9876543210"})
    assert stored["password_hash"] != "secret123"
    assert verify_password("secret123", stored["password_hash"])
    assert "is_verified" not in stored
    assert mailer.last("welcome")[1] == "asha@example.com"


def test_register_without_email_omits_field(client, db):
    res = register(client, email=None)
    assert res.status_code == 201
    assert "email" not in db["user"].find_one({"phone": "9876543210"})


def test_register_requires_name_phone_password(client, db):
    res = register(client, password="")
    assert res.status_code == 400
    assert res.json()["message"] == "Please provide name, phone, and password."
    assert db["user"].count_documents({}) == 0


def test_register_duplicate_phone_or_email(client, db):
    assert register(client).status_code == 201

    same_phone = register(client, email="other@example.com")
    assert same_phone.status_code == 400
    assert "already exists" in same_phone.json()["message"]

    same_email = register(client, phone="9000000999")
    assert same_email.status_code == 400
    assert db["user"].count_documents({}) == 1


def test_login_with_phone_or_email(client):
    register(client)
    by_phone = client.post("/auth/login", json={"phone_or_email": "9876543210", "password": "secret123"})
    assert by_phone.status_code == 200
    assert by_phone.json()["token"]

    by_email = client.post("/auth/login", json={"phone_or_email": "ASHA@example.com", "password": "secret123"})
    assert by_email.status_code == 200


def test_login_rejects_bad_credentials(client):
    register(client)
    wrong = client.post("/auth/login", json={"phone_or_email": "9876543210", "password": "nope"})
    assert wrong.status_code == 401
    assert wrong.json()["message"] == "Invalid phone/email or password"

    unknown = client.post("/auth/login", json={"phone_or_email": "1112223334", "password": "secret123"})
    assert unknown.status_code == 401


def test_token_grants_access_to_profile(client):
    token = register(client).json()["token"]
    res = client.get("/users/profile", headers={"Authorization": f"Bearer {token}"})
    assert res.status_code == 200
    assert res.json()["name"] == "Asha"


def test_protected_route_requires_valid_token(client):
    assert client.get("/users/profile").status_code == 401
    res = client.get("/users/profile", headers={"Authorization": "Bearer not-a-jwt"})
    assert res.status_code == 401
    assert set(res.json()) == {"message", "stack"}


def test_email_link_registration_and_verification(client, db, settings, mailer):
    settings.auth_verification = "email_link"

    assert register(client, email=None).status_code == 400

    res = register(client)
    assert res.status_code == 201
    assert "token" not in res.json()
    _, to, raw_token = mailer.last("verification")
    assert to == "asha@example.com"

    stored = db["user"].find_one({"phone": "9876543210"})
    assert stored["is_verified"] is False
    assert stored["email_verification_token"] == hash_token(raw_token)

    login = client.post("/auth/login", json={"phone_or_email": "9876543210", "password": "secret123"})
    assert login.status_code == 403

    verified = client.post("/auth/verify-email", json={"token": raw_token})
    assert verified.status_code == 200
    stored = db["user"].find_one({"phone": "9876543210"})
    assert stored["is_verified"] is True
    assert "email_verification_token" not in stored

    login = client.post("/auth/login", json={"phone_or_email": "9876543210", "password": "secret123"})
    assert login.status_code == 200


def test_verify_email_rejects_unknown_token(client):
    res = client.post("/auth/verify-email", json={"token": "deadbeef"})
    assert res.status_code == 400


def test_phone_otp_registration(client, settings):
    settings.auth_verification = "phone_otp"

    assert register(client).status_code == 400
    assert register(client, firebase_token="bad-token").status_code == 401
    assert register(client, phone="9123456789", firebase_token="good-token").status_code == 401

    res = register(client, firebase_token="good-token")
    assert res.status_code == 201
    assert res.json()["token"]


def test_forgot_password_response_is_identical(client, db, make_user, mailer):
    make_user(phone="9000000001", email="known@example.com")

    known = client.post("/auth/forgot-password", json={"phone_or_email": "known@example.com"})
    unknown = client.post("/auth/forgot-password", json={"phone_or_email": "nobody@example.com"})

    assert known.status_code == unknown.status_code == 200
    assert known.json() == unknown.json()

    _, to, raw_token = mailer.last("password_reset")
    assert to == "known@example.com"
    stored = db["user"].find_one({"phone": "9000000001"})
    assert stored["reset_password_token"] == hash_token(raw_token)
    assert stored["reset_password_token"] != raw_token
    assert stored["reset_password_expires"] > datetime.utcnow()


def test_reset_password_with_token(client, db, make_user, mailer):
    make_user(phone="9000000001", email="known@example.com")
    client.post("/auth/forgot-password", json={"phone_or_email": "9000000001"})
    _, _, raw_token = mailer.last("password_reset")

    res = client.post(f"/auth/reset-password/{raw_token}", json={"password": "brand-new"})
    assert res.status_code == 200

    stored = db["user"].find_one({"phone": "9000000001"})
    assert "reset_password_token" not in stored
    assert "reset_password_expires" not in stored
    login = client.post("/auth/login", json={"phone_or_email": "9000000001", "password": "brand-new"})
    assert login.status_code == 200

    reused = client.post(f"/auth/reset-password/{raw_token}", json={"password": "again"})
    assert reused.status_code == 400


def test_reset_password_fails_after_expiry(client, make_user):
    raw_token = "a" * 64
    make_user(
        phone="9000000001",
        email="known@example.com",
        reset_password_token=hash_token(raw_token),
        reset_password_expires=datetime.utcnow() - timedelta(minutes=1),
    )
    res = client.post(f"/auth/reset-password/{raw_token}", json={"password": "brand-new"})
    assert res.status_code == 400
    assert res.json()["message"] == "Token is invalid or has expired"


def test_reset_password_by_phone(client, make_user):
    make_user(phone="9876543210")
    bad = client.post(
        "/auth/reset-password-phone",
        json={"phone": "9876543210", "firebase_token": "bad-token", "password": "brand-new"},
    )
    assert bad.status_code == 401

    res = client.post(
        "/auth/reset-password-phone",
        json={"phone": "9876543210", "firebase_token": "good-token", "password": "brand-new"},
    )
    assert res.status_code == 200
    login = client.post("/auth/login", json={"phone_or_email": "9876543210", "password": "brand-new"})
    assert login.status_code == 200

    missing = client.post(
        "/auth/reset-password-phone",
        json={"phone": "9111111111", "firebase_token": "good-token", "password": "x"},
    )
    assert missing.status_code == 404


def test_to_e164():
    assert to_e164("98765 43210", "91") == "+919876543210"
    assert to_e164("09876543210", "91") == "+919876543210"
    assert to_e164("+44 98765-43210", "91") == "+449876543210"
    assert to_e164("00449876543210", "91") == "+449876543210"


def test_phone_reset_rejects_same_digits_in_another_country(client, make_user, phone_verifier):
    make_user(phone="9876543210")
    phone_verifier.phone = "+449876543210"

    res = client.post(
        "/auth/reset-password-phone",
        json={"phone": "9876543210", "firebase_token": "good-token", "password": "taken-over"},
    )
    assert res.status_code == 401
    login = client.post("/auth/login", json={"phone_or_email": "9876543210", "password": "taken-over"})
    assert login.status_code == 401


def test_phone_otp_rejects_suffix_of_verified_number(client, db, settings):
    settings.auth_verification = "phone_otp"

    assert register(client, phone="10", firebase_token="good-token").status_code == 401
    assert register(client, phone="43210", firebase_token="good-token").status_code == 401
    assert db["user"].count_documents({}) == 0

    assert register(client, phone="+91 98765 43210", firebase_token="good-token").status_code == 201


def test_default_country_code_is_configurable(client, make_user, settings, phone_verifier):
    settings.default_country_code = "44"
    phone_verifier.phone = "+449876543210"
    make_user(phone="9876543210")

    res = client.post(
        "/auth/reset-password-phone",
        json={"phone": "9876543210", "firebase_token": "good-token", "password": "brand-new"},
    )
    assert res.status_code == 200


def test_get_current_user_resolves_token_synchronously(db, settings, make_user):
    user = make_user(phone="9000000009")
    token = create_access_token(user["_id"], settings)

    current = get_current_user(token=token, db=db, settings=settings)
    assert current["_id"] == user["_id"]
    assert "password_hash" not in current
