from datetime import datetime, timezone
from typing import Any, Dict, Mapping

COLLECTION_NAME = "products"


def utcnow() -> datetime:
    """Current UTC time at the millisecond precision MongoDB stores."""
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=(now.microsecond // 1000) * 1000)


def new_product_document(fields: Mapping[str, Any]) -> Dict[str, Any]:
    now = utcnow()
    document = dict(fields)
    document["createdAt"] = now
    document["updatedAt"] = now
    return document


def format_product_info(product: Mapping[str, Any]) -> str:
    return f"{product['name']} - {product['price']} грн ({product['category']})"
