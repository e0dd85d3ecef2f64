from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticCustomError
from typing import Any, Dict, List, Literal, Mapping
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from app.errors import FieldError, ValidationFailure

CATEGORIES = ("books", "electronics", "clothing", "other")
DEFAULT_CATEGORY = "other"
MAX_PRICE = 1_000_000
PRODUCT_FIELDS = ("name", "price", "category", "description")
REQUIRED_FIELDS = ("name", "price", "category")

Category = Literal["books", "electronics", "clothing", "other"]

# pydantic error type -> rule name reported to API clients
RULES = {
    "missing": "required",
    "string_type": "type",
    "float_type": "type",
    "float_parsing": "type",
    "finite_number": "type",
    "greater_than_equal": "range",
    "less_than_equal": "range",
    "literal_error": "enum",
    "string_too_short": "length",
    "string_too_long": "length",
}

MESSAGES = {
    ("name", "required"): "Product name is required",
    ("name", "type"): "Product name must be a string",
    ("name", "string_too_short"): "Name must be at least 2 characters long",
    ("name", "string_too_long"): "Name cannot exceed 100 characters",
    ("price", "required"): "Price is required",
    ("price", "type"): "Price must be a number",
    ("price", "greater_than_equal"): "Price must be a positive number",
    ("price", "less_than_equal"): "Price cannot exceed 1,000,000",
    ("category", "required"): "Category is required",
    ("category", "enum"): "{value} is not a valid category. Allowed: " + ", ".join(CATEGORIES),
    ("description", "type"): "Description must be a string",
    ("description", "string_too_long"): "Description cannot exceed 1000 characters",
}


def round_price(value: float) -> float:
    """Round half-up to cents."""
    return float(Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


class ProductDocument(BaseModel):
    """Rules for a complete product record, as stored."""

    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    name: str = Field(..., min_length=2, max_length=100)
    price: float = Field(..., ge=0, le=MAX_PRICE, allow_inf_nan=False)
    category: Category = DEFAULT_CATEGORY
    description: str = Field("", max_length=1000)

    @field_validator("name", mode="before")
    @classmethod
    def trim_name(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip()
            if not value:
                raise PydanticCustomError("missing", "Field required")
        return value

    @field_validator("category", mode="before")
    @classmethod
    def normalize_category(cls, value: Any) -> Any:
        if value is None:
            return DEFAULT_CATEGORY
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("description", mode="before")
    @classmethod
    def default_description(cls, value: Any) -> Any:
        if value is None:
            return ""
        return value

    @field_validator("price")
    @classmethod
    def round_to_cents(cls, value: float) -> float:
        return round_price(value)


def validation_failure_from(exc: ValidationError) -> ValidationFailure:
    """Turn a pydantic error into a ValidationFailure, one entry per field."""
    errors: List[FieldError] = []
    seen = set()
    for error in exc.errors():
        field = ".".join(str(part) for part in error["loc"]) or "body"
        if field in seen:
            continue
        seen.add(field)
        rule = RULES.get(error["type"], "type")
        template = MESSAGES.get((field, error["type"])) or MESSAGES.get((field, rule))
        if template:
            message = template.format(value=error.get("input"))
        else:
            message = f"{field}: {error['msg']}"
        errors.append(FieldError(field, rule, message))
    return ValidationFailure(errors)


def validate_product(data: Mapping[str, Any]) -> Dict[str, Any]:
    """Validate a complete candidate record and return its normalised fields."""
    try:
        document = ProductDocument.model_validate(dict(data))
    except ValidationError as exc:
        raise validation_failure_from(exc) from None
    return document.model_dump()


def cleared_required_fields(patch: Mapping[str, Any]) -> List[FieldError]:
    """Required fields a partial update sets to null.

    Defaults only fill in omitted fields at creation; on an update a null
    for a required field is a violation rather than a reset.
    """
    return [
        FieldError(field, "required", MESSAGES[(field, "required")])
        for field in REQUIRED_FIELDS
        if field in patch and patch[field] is None
    ]


class ProductResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    name: str
    price: float
    category: str
    description: str = ""
    created_at: datetime
    updated_at: datetime

    @field_validator("price")
    @classmethod
    def round_to_cents(cls, value: float) -> float:
        return round_price(value)

    @field_validator("created_at", "updated_at")
    @classmethod
    def as_utc(cls, value: datetime) -> datetime:
        # the driver hands back naive UTC datetimes
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> "ProductResponse":
        data = {key: value for key, value in document.items() if key != "_id"}
        data["id"] = str(document["_id"])
        return cls.model_validate(data)
