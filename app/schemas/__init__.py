from app.schemas.product import ProductDocument, ProductResponse, validate_product

__all__ = [
    "ProductDocument",
    "ProductResponse",
    "validate_product",
]
