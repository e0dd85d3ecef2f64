from typing import Any, Dict, List, Mapping, Optional
from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ReturnDocument
from app.errors import FieldError, InvalidIdentifier, ValidationFailure
from app.models.product import new_product_document, utcnow
from app.schemas.product import PRODUCT_FIELDS, cleared_required_fields, round_price, validate_product
import logging

logger = logging.getLogger(__name__)


def to_object_id(value: Any) -> ObjectId:
    """Parse a product id, raising InvalidIdentifier for malformed input."""
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        raise InvalidIdentifier("_id", value) from None


class ProductService:
    """Product CRUD against a single MongoDB collection.

    The collection is handed in by the application at startup; the service
    keeps no other state.
    """

    def __init__(self, collection):
        self.collection = collection

    async def list_products(self) -> List[Dict[str, Any]]:
        """Return every product."""
        return await self.collection.find({}).to_list(length=None)

    async def get_product(self, product_id: str) -> Optional[Dict[str, Any]]:
        """Get a product by ID, or None if there is no such product."""
        return await self.collection.find_one({"_id": to_object_id(product_id)})

    async def create_product(self, product_data: Mapping[str, Any]) -> Dict[str, Any]:
        """Validate and store a new product."""
        document = new_product_document(validate_product(product_data))
        result = await self.collection.insert_one(document)
        product = await self.collection.find_one({"_id": result.inserted_id})
        logger.info('Product "%s" was saved successfully', product["name"])
        return product

    async def update_product(
        self,
        product_id: str,
        update_data: Mapping[str, Any]
    ) -> Optional[Dict[str, Any]]:
        """Apply a partial update.

        The patch is merged onto the stored product and the merged result is
        validated as a whole, so an update can never produce a record that a
        create would reject. Only the patched fields are written, so
        concurrent updates of different fields do not overwrite each other.
        Returns None when the product does not exist.
        """
        object_id = to_object_id(product_id)
        existing = await self.collection.find_one({"_id": object_id})
        if not existing:
            return None

        patch = {k: v for k, v in update_data.items() if k in PRODUCT_FIELDS}
        cleared = cleared_required_fields(patch)
        if cleared:
            raise ValidationFailure(cleared)

        merged = {field: existing.get(field) for field in PRODUCT_FIELDS}
        merged.update(patch)
        fields = validate_product(merged)
        changes = {field: fields[field] for field in patch}
        changes["updatedAt"] = utcnow()

        product = await self.collection.find_one_and_update(
            {"_id": object_id},
            {"$set": changes},
            return_document=ReturnDocument.AFTER
        )
        if product:
            logger.info('Product "%s" was saved successfully', product["name"])
        return product

    async def delete_product(self, product_id: str) -> Optional[Dict[str, Any]]:
        """Delete a product and return it as it was before removal."""
        return await self.collection.find_one_and_delete({"_id": to_object_id(product_id)})

    async def find_by_category(self, category: str) -> List[Dict[str, Any]]:
        return await self.collection.find(
            {"category": category.strip().lower()}
        ).to_list(length=None)

    async def find_by_price_range(self, min_price: float, max_price: float) -> List[Dict[str, Any]]:
        return await self.collection.find(
            {"price": {"$gte": min_price, "$lte": max_price}}
        ).to_list(length=None)

    async def apply_discount(self, product_id: str, percentage: float) -> Optional[Dict[str, Any]]:
        """Reduce a product's price by a percentage between 0 and 100."""
        if isinstance(percentage, bool) or not isinstance(percentage, (int, float)) \
                or not 0 <= percentage <= 100:
            raise ValidationFailure([
                FieldError("percentage", "range", "Discount percentage must be between 0 and 100")
            ])

        product = await self.get_product(product_id)
        if not product:
            return None
        price = round_price(product["price"] * (1 - percentage / 100))
        return await self.update_product(product_id, {"price": price})
