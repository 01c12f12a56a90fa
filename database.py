"""
MongoDB connection helpers.

``db`` is None unless DATABASE_URL is configured. Collection helpers stamp
created_at / updated_at on insert and convert ObjectIds back to strings.
"""

import functools
import logging
import time
from typing import Any, Dict, Optional, Union

from bson import ObjectId
from pydantic import BaseModel
from pymongo import MongoClient
from pymongo.errors import AutoReconnect, NetworkTimeout

import config
from schemas import utcnow

logger = logging.getLogger(__name__)

client: Optional[MongoClient] = None
db = None

if config.DATABASE_URL:
    client = MongoClient(config.DATABASE_URL, tz_aware=True, serverSelectionTimeoutMS=5000)
    db = client[config.DATABASE_NAME]


def serialize_doc(doc: Dict[str, Any]) -> Dict[str, Any]:
    if not doc:
        return doc
    doc = dict(doc)
    _id = doc.pop("_id", None)
    if _id is not None:
        doc["id"] = str(_id)
    # Convert ObjectId in nested fields if any
    for k, v in list(doc.items()):
        if isinstance(v, ObjectId):
            doc[k] = str(v)
    return doc


def to_object_id(value: str) -> Optional[ObjectId]:
    """Parse an id; anything that is not a valid ObjectId yields None."""
    if isinstance(value, ObjectId):
        return value
    if not isinstance(value, str) or not ObjectId.is_valid(value):
        return None
    return ObjectId(value)


def create_document(database, collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> str:
    if isinstance(data, BaseModel):
        data = data.model_dump()
    doc = dict(data)
    doc.pop("id", None)
    now = utcnow()
    doc.setdefault("created_at", now)
    doc.setdefault("updated_at", now)
    result = database[collection_name].insert_one(doc)
    return str(result.inserted_id)


def retry_reads(func):
    """Retry a read on transient connection errors, with a short linear backoff."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        attempts = max(config.STORAGE_READ_RETRIES, 1)
        for attempt in range(1, attempts + 1):
            try:
                return func(*args, **kwargs)
            except (AutoReconnect, NetworkTimeout) as e:
                if attempt == attempts:
                    raise
                logger.warning("Transient storage error in %s (attempt %d/%d): %s",
                               func.__name__, attempt, attempts, e)
                time.sleep(0.1 * attempt)

    return wrapper
