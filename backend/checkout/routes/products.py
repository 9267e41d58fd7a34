# Overview: Flask API routes for products; catalogue reads, availability probe and internal stock mutation.

# backend/checkout/routes/products.py
"""
Product routes.

Reads only ever expose active products. The inventory PUT is an internal
endpoint (no storefront caller) kept for operations tooling.
"""
from flask import Blueprint, current_app, request

from ..services.catalog_service import get_product, list_products
from ..services.inventory_service import (
    InsufficientInventoryError,
    ProductNotFoundError,
    adjust_inventory,
    check_availability,
)
from ..validation import (
    ValidationError,
    json_object,
    parse_positive_int,
    parse_price_filter,
    parse_variants,
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
def list_products_route():
    """
    List active products.

    Query params:
    - category: case-insensitive substring match
    - minPrice / maxPrice: currency amounts, inclusive
    - inStock: "true" to hide sold-out products
    """
    try:
        min_price = parse_price_filter(request.args.get("minPrice"), "minPrice")
        max_price = parse_price_filter(request.args.get("maxPrice"), "maxPrice")
    except ValidationError as e:
        return e.to_dict(), 400

    try:
        products = list_products(
            category=(request.args.get("category") or "").strip() or None,
            min_price_cents=min_price,
            max_price_cents=max_price,
            in_stock=request.args.get("inStock", "").lower() == "true",
        )
    except Exception:
        current_app.logger.exception("Failed to list products")
        return {"error": "Internal server error"}, 500

    return {"products": [p.to_dict() for p in products], "count": len(products)}


@products_bp.get("/<int:product_id>")
def get_product_route(product_id: int):
    try:
        product = get_product(product_id)
    except ProductNotFoundError as e:
        return {"error": str(e)}, 404
    return product.to_dict()


@products_bp.post("/<int:product_id>/check-availability")
def check_availability_route(product_id: int):
    """
    Pre-checkout stock probe. Never mutates stock.

    Always 200 for a well-formed request; the verdict is in `available`.
    """
    try:
        payload = json_object(request.get_json(silent=True))
        quantity = parse_positive_int(payload.get("quantity"), "quantity")
        variants = parse_variants(payload.get("variants"))
    except ValidationError as e:
        return e.to_dict(), 400

    availability = check_availability(product_id, quantity, variants)
    return availability.to_dict()


@products_bp.put("/<int:product_id>/inventory")
def update_inventory_route(product_id: int):
    """
    Internal stock mutation.

    Body: {quantity: int >= 1, operation: "increase"|"decrease", variants?: [{type, value}]}
    """
    try:
        payload = json_object(request.get_json(silent=True))
        quantity = parse_positive_int(payload.get("quantity"), "quantity")
        variants = parse_variants(payload.get("variants"))
        operation = payload.get("operation")
        result = adjust_inventory(product_id, quantity, operation, variants)
    except ValidationError as e:
        return e.to_dict(), 400
    except ProductNotFoundError as e:
        return {"error": str(e)}, 404
    except InsufficientInventoryError as e:
        return e.to_dict(), 409
    except Exception:
        current_app.logger.exception("Failed to update inventory for product %s", product_id)
        return {"error": "Internal server error"}, 500

    return result
