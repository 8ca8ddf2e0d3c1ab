import os
from functools import lru_cache

from dotenv import load_dotenv
from pydantic import BaseModel

load_dotenv()

AUTH_STRATEGIES = ("password", "phone_otp", "email_link")
STATUS_POLICIES = ("permissive", "strict")


class Settings(BaseModel):
    database_url: str | None = None
    database_name: str | None = None

    secret_key: str = "supersecretkey-change"
    access_token_expire_days: int = 30

    razorpay_key_id: str = ""
    razorpay_key_secret: str = ""

    resend_api_key: str = ""
    mail_from: str = "Storefront <no-reply@example.com>"
    client_url: str = "http://localhost:5173"
    webhook_url: str | None = None

    firebase_project_id: str = ""
    default_country_code: str = "91"

    cloudinary_cloud_name: str = ""
    cloudinary_api_key: str = ""
    cloudinary_api_secret: str = ""

    store_name: str = "Storefront"
    store_address: str = ""
    store_phone: str = ""
    store_gstin: str = ""

    auth_verification: str = "password"
    order_status_policy: str = "permissive"

    app_env: str = "development"
    log_level: str = "INFO"
    port: int = 8000

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @classmethod
    def from_env(cls) -> "Settings":
        env = {
            "database_url": os.getenv("DATABASE_URL"),
            "database_name": os.getenv("DATABASE_NAME"),
            "secret_key": os.getenv("SECRET_KEY"),
            "access_token_expire_days": os.getenv("ACCESS_TOKEN_EXPIRE_DAYS"),
            "razorpay_key_id": os.getenv("RAZORPAY_KEY_ID"),
            "razorpay_key_secret": os.getenv("RAZORPAY_KEY_SECRET"),
            "resend_api_key": os.getenv("RESEND_API_KEY"),
            "mail_from": os.getenv("MAIL_FROM"),
            "client_url": os.getenv("CLIENT_URL"),
            "webhook_url": os.getenv("WEBHOOK_URL"),
            "firebase_project_id": os.getenv("FIREBASE_PROJECT_ID"),
            "default_country_code": os.getenv("DEFAULT_COUNTRY_CODE"),
            "cloudinary_cloud_name": os.getenv("CLOUDINARY_CLOUD_NAME"),
            "cloudinary_api_key": os.getenv("CLOUDINARY_API_KEY"),
            "cloudinary_api_secret": os.getenv("CLOUDINARY_API_SECRET"),
            "store_name": os.getenv("STORE_NAME"),
            "store_address": os.getenv("STORE_ADDRESS"),
            "store_phone": os.getenv("STORE_PHONE"),
            "store_gstin": os.getenv("STORE_GSTIN"),
            "auth_verification": os.getenv("AUTH_VERIFICATION"),
            "order_status_policy": os.getenv("ORDER_STATUS_POLICY"),
            "app_env": os.getenv("APP_ENV"),
            "log_level": os.getenv("LOG_LEVEL"),
            "port": os.getenv("PORT"),
        }
        settings = cls(**{k: v for k, v in env.items() if v not in (None, "")})
        if settings.auth_verification not in AUTH_STRATEGIES:
            raise ValueError(f"AUTH_VERIFICATION must be one of {AUTH_STRATEGIES}")
        if settings.order_status_policy not in STATUS_POLICIES:
            raise ValueError(f"ORDER_STATUS_POLICY must be one of {STATUS_POLICIES}")
        return settings


@lru_cache
def get_settings() -> Settings:
    return Settings.from_env()
