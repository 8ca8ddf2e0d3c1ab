import hashlib
import secrets
from datetime import datetime, timedelta

from bson import ObjectId
from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from pymongo.database import Database

from config import Settings, get_settings
from database import get_db
from errors import Forbidden, InvalidCredentials

ALGORITHM = "HS256"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")

# Fields never returned to clients.
PRIVATE_FIELDS = (
    "password_hash",
    "email_verification_token",
    "email_verification_expires",
    "reset_password_token",
    "reset_password_expires",
)


def verify_password(plain_password, hashed_password):
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password):
    return pwd_context.hash(password)


def hash_token(raw_token: str) -> str:
    return hashlib.sha256(raw_token.encode()).hexdigest()


def new_token() -> tuple[str, str]:
    """Return a (raw, hashed) pair; only the hash is ever stored."""
    raw = secrets.token_hex(32)
    return raw, hash_token(raw)


def create_access_token(user_id: str, settings: Settings, expires_delta: timedelta | None = None):
    expire = datetime.utcnow() + (expires_delta or timedelta(days=settings.access_token_expire_days))
    to_encode = {"sub": str(user_id), "exp": expire}
    return jwt.encode(to_encode, settings.secret_key, algorithm=ALGORITHM)


def strip_private(user: dict) -> dict:
    return {k: v for k, v in user.items() if k not in PRIVATE_FIELDS}


def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Database = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[ALGORITHM])
        user_id: str | None = payload.get("sub")
        if user_id is None:
            raise InvalidCredentials("Not authorized, token failed")
    except JWTError:
        raise InvalidCredentials("Not authorized, token failed")
    if not ObjectId.is_valid(user_id):
        raise InvalidCredentials("Not authorized, token failed")
    user = db["user"].find_one({"_id": ObjectId(user_id)})
    if user is None:
        raise InvalidCredentials("Not authorized, user not found")
    return strip_private(user)


def get_current_admin(current=Depends(get_current_user)):
    if not current.get("is_admin"):
        raise Forbidden("Not authorized as an admin")
    return current
