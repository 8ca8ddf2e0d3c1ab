"""
Product image upload to Cloudinary via its signed REST upload API.
"""

import hashlib
import logging
import time

import requests
from fastapi import APIRouter, Depends, File, UploadFile

from config import Settings, get_settings
from errors import ApiError, ValidationError
from security import get_current_admin

log = logging.getLogger(__name__)

CLOUDINARY_API = "https://api.cloudinary.com/v1_1"
UPLOAD_FOLDER = "products"

router = APIRouter(prefix="/upload", tags=["upload"])


class UploadError(ApiError):
    status_code = 500
    default_message = "Image upload failed"


class CloudinaryStore:
    def __init__(self, cloud_name: str, api_key: str, api_secret: str):
        self.cloud_name = cloud_name
        self.api_key = api_key
        self.api_secret = api_secret

    def sign(self, params: dict) -> str:
        to_sign = "&".join(f"{k}={params[k]}" for k in sorted(params))
        return hashlib.sha1(f"{to_sign}{self.api_secret}".encode()).hexdigest()

    def upload(self, filename: str, content: bytes, content_type: str) -> str:
        params = {"folder": UPLOAD_FOLDER, "timestamp": int(time.time())}
        data = {**params, "api_key": self.api_key, "signature": self.sign(params)}
        try:
            response = requests.post(
                f"{CLOUDINARY_API}/{self.cloud_name}/image/upload",
                data=data,
                files={"file": (filename, content, content_type)},
            )
            response.raise_for_status()
            return response.json()["secure_url"]
        except (requests.RequestException, ValueError, KeyError) as e:
            log.error("Cloudinary upload failed: %s", e)
            raise UploadError() from e


def get_image_store(settings: Settings = Depends(get_settings)) -> CloudinaryStore:
    return CloudinaryStore(settings.cloudinary_cloud_name, settings.cloudinary_api_key, settings.cloudinary_api_secret)


@router.post("")
def upload_image(
    image: UploadFile = File(...),
    _: dict = Depends(get_current_admin),
    store: CloudinaryStore = Depends(get_image_store),
):
    if not (image.content_type or "").startswith("image/"):
        raise ValidationError("Only image files can be uploaded")
    content = image.file.read()
    if not content:
        raise ValidationError("Uploaded file is empty")
    url = store.upload(image.filename or "upload", content, image.content_type)
    return {"url": url}
