from fastapi import APIRouter, Depends, HTTPException, Request
from typing import Any, Dict, List
from app.errors import NotFound
from app.schemas.product import ProductResponse
from app.services.product_service import ProductService
import json

router = APIRouter(prefix="/products", tags=["products"])

PRODUCT_NOT_FOUND = "Product not found"


def get_product_service(request: Request) -> ProductService:
    return request.app.state.product_service


async def json_body(request: Request) -> Dict[str, Any]:
    """Read the request body as a JSON object, leaving field checks to the service."""
    raw = await request.body()
    if raw.strip():
        try:
            payload = json.loads(raw)
        except ValueError:
            raise HTTPException(status_code=400, detail="Malformed JSON in request body") from None
    else:
        payload = {}
    # kept for error responses in development mode
    request.state.body = payload
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Request body must be a JSON object")
    return payload


@router.get("", response_model=List[ProductResponse])
async def list_products(service: ProductService = Depends(get_product_service)):
    """List all products."""
    products = await service.list_products()
    return [ProductResponse.from_document(p) for p in products]


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(
    product_id: str,
    service: ProductService = Depends(get_product_service)
):
    """Get a single product by ID."""
    product = await service.get_product(product_id)
    if not product:
        raise NotFound(PRODUCT_NOT_FOUND)
    return ProductResponse.from_document(product)


@router.post("", response_model=ProductResponse, status_code=201)
async def create_product(
    product_data: Dict[str, Any] = Depends(json_body),
    service: ProductService = Depends(get_product_service)
):
    """Create a new product."""
    product = await service.create_product(product_data)
    return ProductResponse.from_document(product)


@router.patch("/{product_id}", response_model=ProductResponse)
async def update_product(
    product_id: str,
    product_data: Dict[str, Any] = Depends(json_body),
    service: ProductService = Depends(get_product_service)
):
    """Update some fields of a product."""
    product = await service.update_product(product_id, product_data)
    if not product:
        raise NotFound(PRODUCT_NOT_FOUND)
    return ProductResponse.from_document(product)


@router.delete("/{product_id}", response_model=ProductResponse)
async def delete_product(
    product_id: str,
    service: ProductService = Depends(get_product_service)
):
    """Delete a product and return it."""
    product = await service.delete_product(product_id)
    if not product:
        raise NotFound(PRODUCT_NOT_FOUND)
    return ProductResponse.from_document(product)
