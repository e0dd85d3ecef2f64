import math
from datetime import datetime, timezone

import pytest
from bson import ObjectId

from app.errors import ValidationFailure
from app.schemas.product import ProductResponse, round_price, validate_product


def errors_by_field(exc_info):
    return {e.field: e for e in exc_info.value.errors}


def test_normalizes_strings_and_category():
    product = validate_product({
        "name": "  Desk Lamp  ",
        "price": 10,
        "category": "  ELECTRONICS ",
        "description": "  warm light \n",
    })
    assert product == {
        "name": "Desk Lamp",
        "price": 10.0,
        "category": "electronics",
        "description": "warm light",
    }


def test_defaults_for_optional_fields():
    product = validate_product({"name": "Pen", "price": 1.5})
    assert product["category"] == "other"
    assert product["description"] == ""


def test_null_category_and_description_fall_back_to_defaults():
    product = validate_product({"name": "Pen", "price": 1, "category": None, "description": None})
    assert product["category"] == "other"
    assert product["description"] == ""


@pytest.mark.parametrize("price, expected", [
    (19.999, 20.0),
    (10.005, 10.01),
    (0.1 + 0.2, 0.3),
    ("12.345", 12.35),
    (1_000_000, 1_000_000.0),
])
def test_price_is_rounded_to_cents(price, expected):
    assert validate_product({"name": "Pen", "price": price})["price"] == expected


def test_unknown_fields_are_dropped():
    product = validate_product({"name": "Pen", "price": 1, "id": "x", "_id": "y", "color": "red"})
    assert set(product) == {"name", "price", "category", "description"}


def test_reports_every_violated_field():
    with pytest.raises(ValidationFailure) as exc_info:
        validate_product({"name": "P"})

    errors = errors_by_field(exc_info)
    assert set(errors) == {"name", "price"}
    assert errors["name"].rule == "length"
    assert errors["name"].message == "Name must be at least 2 characters long"
    assert errors["price"].rule == "required"
    assert errors["price"].message == "Price is required"


def test_blank_name_counts_as_missing():
    with pytest.raises(ValidationFailure) as exc_info:
        validate_product({"name": "   ", "price": 1})
    error = errors_by_field(exc_info)["name"]
    assert error.rule == "required"
    assert error.message == "Product name is required"


@pytest.mark.parametrize("price, message", [
    (-0.01, "Price must be a positive number"),
    (1_000_000.01, "Price cannot exceed 1,000,000"),
])
def test_price_bounds(price, message):
    with pytest.raises(ValidationFailure) as exc_info:
        validate_product({"name": "Pen", "price": price})
    error = errors_by_field(exc_info)["price"]
    assert error.rule == "range"
    assert error.message == message


@pytest.mark.parametrize("price", ["cheap", math.nan, [1]])
def test_price_must_be_a_number(price):
    with pytest.raises(ValidationFailure) as exc_info:
        validate_product({"name": "Pen", "price": price})
    assert errors_by_field(exc_info)["price"].rule == "type"


@pytest.mark.parametrize("category", ["toys", "book", 5])
def test_category_outside_the_allowed_set(category):
    with pytest.raises(ValidationFailure) as exc_info:
        validate_product({"name": "Pen", "price": 1, "category": category})
    error = errors_by_field(exc_info)["category"]
    assert error.rule == "enum"
    assert error.message.endswith("is not a valid category. Allowed: books, electronics, clothing, other")


def test_length_limits():
    with pytest.raises(ValidationFailure) as exc_info:
        validate_product({"name": "n" * 101, "price": 1, "description": "d" * 1001})
    errors = errors_by_field(exc_info)
    assert errors["name"].message == "Name cannot exceed 100 characters"
    assert errors["description"].message == "Description cannot exceed 1000 characters"


def test_length_is_measured_after_trimming():
    product = validate_product({"name": " " * 10 + "n" * 100 + " " * 10, "price": 1})
    assert product["name"] == "n" * 100


def test_validation_failure_message_joins_field_messages():
    with pytest.raises(ValidationFailure) as exc_info:
        validate_product({})
    assert exc_info.value.message == "Product name is required, Price is required"
    assert exc_info.value.fields == ["name", "price"]


def test_round_price_half_up():
    assert round_price(2.675) == 2.68
    assert round_price(0) == 0.0


def test_response_from_document():
    object_id = ObjectId()
    created = datetime(2026, 1, 2, 3, 4, 5, 6000)
    response = ProductResponse.from_document({
        "_id": object_id,
        "name": "Pen",
        "price": 1.5,
        "category": "other",
        "description": "",
        "createdAt": created,
        "updatedAt": created,
    })

    assert response.id == str(object_id)
    assert response.created_at.tzinfo == timezone.utc
    body = response.model_dump(by_alias=True)
    assert set(body) == {"id", "name", "price", "category", "description", "createdAt", "updatedAt"}
