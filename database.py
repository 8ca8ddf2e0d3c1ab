"""
Database helpers

A single MongoClient is created on first use from DATABASE_URL / DATABASE_NAME.
Route handlers receive the database through the `get_db` dependency so tests
can swap in an in-memory one.
"""

import logging
from datetime import datetime

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import BaseModel
from pymongo import ASCENDING, MongoClient
from pymongo.database import Database

from config import get_settings
from errors import NotFound, ValidationError

log = logging.getLogger(__name__)

_client: MongoClient | None = None


def get_client() -> MongoClient:
    global _client
    if _client is None:
        settings = get_settings()
        if not settings.database_url:
            raise RuntimeError("DATABASE_URL is not set")
        _client = MongoClient(settings.database_url)
    return _client


def get_db() -> Database:
    settings = get_settings()
    if not settings.database_name:
        raise RuntimeError("DATABASE_NAME is not set")
    return get_client()[settings.database_name]


def ensure_indexes(db: Database):
    db["user"].create_index([("phone", ASCENDING)], unique=True)
    db["user"].create_index([("email", ASCENDING)], unique=True, sparse=True)
    db["product"].create_index([("name", ASCENDING)], unique=True)
    db["cart"].create_index([("user", ASCENDING), ("product", ASCENDING)], unique=True)
    db["order"].create_index([("user", ASCENDING), ("created_at", ASCENDING)])
    log.info("Indexes ensured on %s", db.name)


def create_document(db: Database, collection_name: str, data) -> str:
    if isinstance(data, BaseModel):
        data = data.model_dump(exclude_none=True)
    else:
        data = dict(data)
    now = datetime.utcnow()
    data["created_at"] = now
    data["updated_at"] = now
    inserted_id = db[collection_name].insert_one(data).inserted_id
    return str(inserted_id)


def get_documents(db: Database, collection_name: str, filter_dict: dict | None = None, limit: int | None = None):
    cursor = db[collection_name].find(filter_dict or {}).sort("created_at", -1)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def parse_object_id(value, what: str = "Resource") -> ObjectId:
    """Malformed ids are treated as missing entities."""
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        raise NotFound(f"{what} not found")


def require_object_id(value, field: str) -> ObjectId:
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        raise ValidationError(f"Invalid {field}")


def serialize(value):
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, dict):
        return {k: serialize(v) for k, v in value.items()}
    if isinstance(value, list):
        return [serialize(v) for v in value]
    return value
