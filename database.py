"""
Database access for the store API.

The whole store lives in one MongoDB document. Every top-level field of that
document is a collection name (products, orders, banners, settings, coupons,
cart) holding the collection's full current value. Writes replace a field
wholesale; nothing is patched.
"""
import copy
import os
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from pymongo import MongoClient

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME", "storefront")

STORE_COLLECTION = "store"
STORE_DOC_ID = "store"

INITIAL_DATA: Dict[str, Any] = {
    "products": [],
    "orders": [],
    "banners": [],
    "settings": {},
    "coupons": [],
    "cart": [],
}

db = None
if DATABASE_URL:
    _client = MongoClient(DATABASE_URL)
    db = _client[DATABASE_NAME]


class DatabaseUnavailable(RuntimeError):
    pass


def _store():
    if db is None:
        raise DatabaseUnavailable("Database not configured")
    return db[STORE_COLLECTION]


def ensure_initialized() -> None:
    """Create the store document with empty collections if it is missing."""
    _store().update_one(
        {"_id": STORE_DOC_ID},
        {"$setOnInsert": copy.deepcopy(INITIAL_DATA)},
        upsert=True,
    )


def read_collection(key: str) -> Optional[Any]:
    doc = _store().find_one({"_id": STORE_DOC_ID}, {key: 1})
    if not doc:
        return None
    return doc.get(key)


def write_collection(key: str, value: Any) -> None:
    _store().update_one({"_id": STORE_DOC_ID}, {"$set": {key: value}}, upsert=True)


def read_snapshot() -> Dict[str, Any]:
    doc = _store().find_one({"_id": STORE_DOC_ID}) or {}
    doc.pop("_id", None)
    return doc
