"""
MongoDB access for the Health Community API.

A single MongoClient is shared by every request. Collections are named after
the lowercase schema class (see schemas.py).
"""
from datetime import datetime, date, timezone
from typing import Any, Dict, List, Optional, Union

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import BaseModel
from pymongo import MongoClient

from config import DATABASE_URL, DATABASE_NAME

client = MongoClient(DATABASE_URL)
db = client[DATABASE_NAME]


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    # pymongo hands back naive datetimes that are already UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_datetime(value: Union[date, datetime]) -> datetime:
    """BSON has no date type, so calendar dates are stored as UTC midnight."""
    if isinstance(value, datetime):
        return as_utc(value)
    return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)


def to_object_id(value: Any) -> Optional[ObjectId]:
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        return None


def serialize(value: Any) -> Any:
    """Make a stored document JSON friendly (ObjectId -> str, datetimes -> ISO)."""
    if isinstance(value, dict):
        return {k: serialize(v) for k, v in value.items() if k != "password_hash"}
    if isinstance(value, list):
        return [serialize(v) for v in value]
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, datetime):
        return as_utc(value).isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return value


def pagination(total: int, page: int, limit: int) -> Dict[str, int]:
    return {"total": total, "page": page, "limit": limit, "pages": -(-total // limit) if limit else 0}


def create_document(collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> str:
    if isinstance(data, BaseModel):
        data = data.model_dump()
    doc = dict(data)
    stamp = now_utc()
    if not doc.get("created_at"):
        doc["created_at"] = stamp
    doc["updated_at"] = stamp
    result = db[collection_name].insert_one(doc)
    return str(result.inserted_id)


def get_documents(collection_name: str, filter_dict: Optional[Dict[str, Any]] = None,
                  limit: Optional[int] = None, sort: Optional[List] = None) -> List[Dict[str, Any]]:
    cursor = db[collection_name].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    if limit:
        cursor = cursor.limit(limit)
    return [serialize(d) for d in cursor]


def find_by_id(collection_name: str, doc_id: Any) -> Optional[Dict[str, Any]]:
    oid = to_object_id(doc_id)
    if oid is None:
        return None
    return db[collection_name].find_one({"_id": oid})


def update_by_id(collection_name: str, doc_id: Any, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Apply a $set and return the updated document, or None if it does not exist."""
    oid = to_object_id(doc_id)
    if oid is None:
        return None
    fields = {**fields, "updated_at": now_utc()}
    result = db[collection_name].update_one({"_id": oid}, {"$set": fields})
    if result.matched_count == 0:
        return None
    return db[collection_name].find_one({"_id": oid})


def delete_by_id(collection_name: str, doc_id: Any) -> Optional[Dict[str, Any]]:
    oid = to_object_id(doc_id)
    if oid is None:
        return None
    return db[collection_name].find_one_and_delete({"_id": oid})
