from bson import ObjectId
from datetime import datetime


def serialize_value(value):
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return serialize_doc(value)
    if isinstance(value, list):
        return [serialize_value(v) for v in value]
    return value


def serialize_doc(doc: dict | None) -> dict | None:
    if not doc:
        return doc
    return {k: serialize_value(v) for k, v in doc.items()}


def serialize_docs(docs):
    return [serialize_doc(d) for d in docs]


def serialize_record(doc: dict) -> dict:
    """serialize_doc, with `_id` exposed as `id`."""
    data = serialize_doc(doc)
    data["id"] = data.pop("_id")
    return data


def paginate(page: int, limit: int, total: int) -> dict:
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "pages": (total + limit - 1) // limit if limit else 0,
    }
