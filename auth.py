"""
Auth workflow: registration, login, password reset and email verification.

How a new account proves ownership is chosen by AUTH_VERIFICATION:

- ``password``: no proof, the account is usable immediately
- ``phone_otp``: a Firebase ID token whose phone number matches the one registered
- ``email_link``: a 24 hour verification link mailed to the address given

Reset and verification tokens are stored only as SHA-256 digests.
"""

import logging
from datetime import datetime, timedelta

from bson import ObjectId
from fastapi import APIRouter, BackgroundTasks, Depends
from google.auth import exceptions as google_exceptions
from google.auth.transport import requests as google_requests
from google.oauth2 import id_token
from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from config import Settings, get_settings
from database import create_document, get_db
from errors import (
    DuplicateUser,
    EmailNotVerified,
    InvalidCredentials,
    InvalidOrExpiredToken,
    NotFound,
    ValidationError,
)
from notifications import Mailer, dispatch, get_mailer
from schemas import (
    ForgotPasswordBody,
    LoginBody,
    PhoneResetBody,
    RegisterBody,
    ResetPasswordBody,
    User,
    VerifyEmailBody,
)
from security import create_access_token, get_password_hash, hash_token, new_token, verify_password

log = logging.getLogger(__name__)

EMAIL_VERIFICATION_TTL = timedelta(hours=24)
PASSWORD_RESET_TTL = timedelta(hours=1)
FORGOT_PASSWORD_MESSAGE = "If an account exists for that phone or email, a reset link has been sent."

router = APIRouter(prefix="/auth", tags=["auth"])


class FirebasePhoneVerifier:
    """Checks Firebase phone-auth ID tokens against Google's public certs."""

    def __init__(self, project_id: str):
        self.project_id = project_id

    def verify(self, token: str) -> str:
        try:
            claims = id_token.verify_firebase_token(token, google_requests.Request(), audience=self.project_id)
        except (ValueError, google_exceptions.GoogleAuthError) as e:
            log.info("Firebase token rejected: %s", e)
            raise InvalidCredentials("Phone verification failed") from e
        phone = (claims or {}).get("phone_number")
        if not phone:
            raise InvalidCredentials("Phone verification failed")
        return phone


def get_phone_verifier(settings: Settings = Depends(get_settings)) -> FirebasePhoneVerifier:
    return FirebasePhoneVerifier(settings.firebase_project_id)


def _digits(phone: str) -> str:
    return "".join(ch for ch in phone if ch.isdigit())


def to_e164(phone: str, country_code: str) -> str:
    """Numbers without a "+" or "00" prefix are national and get `country_code`."""
    raw = (phone or "").strip()
    digits = _digits(raw)
    if raw.startswith("+"):
        return "+" + digits
    if digits.startswith("00"):
        return "+" + digits[2:]
    return "+" + _digits(country_code) + digits.lstrip("0")


def verify_phone_ownership(verifier, token: str, phone: str, country_code: str):
    verified = to_e164(verifier.verify(token), country_code)
    claimed = to_e164(phone, country_code)
    if not _digits(phone) or verified != claimed:
        raise InvalidCredentials("Verified phone number does not match")


def find_by_identifier(db: Database, identifier: str):
    identifier = identifier.strip()
    return db["user"].find_one({"$or": [{"phone": identifier}, {"email": identifier.lower()}]})


def user_payload(user: dict) -> dict:
    return {
        "_id": str(user["_id"]),
        "name": user["name"],
        "phone": user["phone"],
        "email": user.get("email"),
        "is_admin": user.get("is_admin", False),
    }


def register_user(db: Database, body: RegisterBody, settings: Settings, verifier=None):
    """Create the account; returns the stored user and a raw verification token (email_link only)."""
    name, phone, password = body.name.strip(), body.phone.strip(), body.password
    if not name or not phone or not password:
        raise ValidationError("Please provide name, phone, and password.")
    email = str(body.email).lower() if body.email else None
    strategy = settings.auth_verification

    if strategy == "email_link" and not email:
        raise ValidationError("Please provide an email address.")
    if strategy == "phone_otp" and not body.firebase_token:
        raise ValidationError("Phone verification token is required.")

    clauses = [{"phone": phone}]
    if email:
        clauses.append({"email": email})
    if db["user"].find_one({"$or": clauses}):
        raise DuplicateUser()

    if strategy == "phone_otp":
        verify_phone_ownership(verifier, body.firebase_token, phone, settings.default_country_code)

    user = User(name=name, phone=phone, email=email, password_hash=get_password_hash(password))
    doc = user.model_dump(exclude_none=True)
    raw_token = None
    if strategy == "email_link":
        raw_token, hashed = new_token()
        doc["is_verified"] = False
        doc["email_verification_token"] = hashed
        doc["email_verification_expires"] = datetime.utcnow() + EMAIL_VERIFICATION_TTL

    try:
        user_id = create_document(db, "user", doc)
    except DuplicateKeyError:
        raise DuplicateUser()
    doc["_id"] = ObjectId(user_id)
    log.info("Registered user %s (%s)", user_id, strategy)
    return doc, raw_token


def authenticate(db: Database, identifier: str, password: str) -> dict:
    if not identifier or not password:
        raise ValidationError("Please provide phone/email and password.")
    user = find_by_identifier(db, identifier)
    if not user or not verify_password(password, user["password_hash"]):
        raise InvalidCredentials()
    if user.get("email") and user.get("is_verified") is False:
        raise EmailNotVerified()
    return user


def start_password_reset(db: Database, identifier: str):
    """Store a reset token for the matching account; None when nothing can be sent."""
    user = find_by_identifier(db, identifier)
    if not user or not user.get("email"):
        log.info("Password reset requested for unknown or email-less account")
        return None
    raw_token, hashed = new_token()
    db["user"].update_one(
        {"_id": user["_id"]},
        {"$set": {
            "reset_password_token": hashed,
            "reset_password_expires": datetime.utcnow() + PASSWORD_RESET_TTL,
            "updated_at": datetime.utcnow(),
        }},
    )
    return user, raw_token


def reset_password(db: Database, raw_token: str, password: str) -> dict:
    now = datetime.utcnow()
    user = db["user"].find_one_and_update(
        {"reset_password_token": hash_token(raw_token), "reset_password_expires": {"$gt": now}},
        {
            "$set": {"password_hash": get_password_hash(password), "updated_at": now},
            "$unset": {"reset_password_token": "", "reset_password_expires": ""},
        },
        return_document=ReturnDocument.AFTER,
    )
    if user is None:
        raise InvalidOrExpiredToken()
    return user


def verify_email(db: Database, raw_token: str) -> dict:
    now = datetime.utcnow()
    user = db["user"].find_one_and_update(
        {"email_verification_token": hash_token(raw_token), "email_verification_expires": {"$gt": now}},
        {
            "$set": {"is_verified": True, "updated_at": now},
            "$unset": {"email_verification_token": "", "email_verification_expires": ""},
        },
        return_document=ReturnDocument.AFTER,
    )
    if user is None:
        raise InvalidOrExpiredToken()
    return user


def reset_password_by_phone(db: Database, body: PhoneResetBody, verifier, country_code: str) -> dict:
    user = db["user"].find_one({"phone": body.phone.strip()})
    if not user:
        raise NotFound("User not found")
    verify_phone_ownership(verifier, body.firebase_token, body.phone, country_code)
    db["user"].update_one(
        {"_id": user["_id"]},
        {"$set": {"password_hash": get_password_hash(body.password), "updated_at": datetime.utcnow()}},
    )
    return user


# ----------------------- Routes -----------------------
@router.post("/register", status_code=201)
def register(
    body: RegisterBody,
    background_tasks: BackgroundTasks,
    db: Database = Depends(get_db),
    settings: Settings = Depends(get_settings),
    mailer: Mailer = Depends(get_mailer),
    verifier: FirebasePhoneVerifier = Depends(get_phone_verifier),
):
    user, raw_token = register_user(db, body, settings, verifier)
    if raw_token:
        dispatch(background_tasks, mailer.send_verification, user, raw_token)
        return {
            **user_payload(user),
            "message": "Registration successful. Please check your email to verify your account.",
        }
    dispatch(background_tasks, mailer.send_welcome, user)
    return {
        **user_payload(user),
        "token": create_access_token(user["_id"], settings),
        "message": "Registration successful. Welcome!",
    }


@router.post("/login")
def login(body: LoginBody, db: Database = Depends(get_db), settings: Settings = Depends(get_settings)):
    user = authenticate(db, body.phone_or_email, body.password)
    return {**user_payload(user), "token": create_access_token(user["_id"], settings)}


@router.post("/forgot-password")
def forgot_password(
    body: ForgotPasswordBody,
    background_tasks: BackgroundTasks,
    db: Database = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    started = start_password_reset(db, body.phone_or_email)
    if started:
        user, raw_token = started
        dispatch(background_tasks, mailer.send_password_reset, user, raw_token)
    return {"message": FORGOT_PASSWORD_MESSAGE}


@router.post("/reset-password/{token}")
def reset_password_route(token: str, body: ResetPasswordBody, db: Database = Depends(get_db)):
    reset_password(db, token, body.password)
    return {"message": "Password has been reset. You can now log in."}


@router.post("/reset-password-phone")
def reset_password_phone(
    body: PhoneResetBody,
    db: Database = Depends(get_db),
    settings: Settings = Depends(get_settings),
    verifier: FirebasePhoneVerifier = Depends(get_phone_verifier),
):
    reset_password_by_phone(db, body, verifier, settings.default_country_code)
    return {"message": "Password has been reset. You can now log in."}


@router.post("/verify-email")
def verify_email_route(body: VerifyEmailBody, db: Database = Depends(get_db)):
    verify_email(db, body.token)
    return {"message": "Email verified successfully. You can now log in."}
