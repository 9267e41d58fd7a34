# Overview: Service-layer operations for inventory; encapsulates stock checks and counter mutations.

"""
Checkout Inventory Invariants (authoritative)

Counters:
- Product.inventory is the total sellable quantity.
- ProductVariant.stock is a per-option counter (one per color, one per size).
  The two are intentionally decoupled: a sale decrements the product counter
  and each selected variant counter by the same quantity, and a return
  restores all of them, but variant stock is never derived from (or summed
  into) Product.inventory.

Business invariants:
- No counter may ever go negative.
- A reduce is all-or-nothing: either every counter it touches is decremented
  or none are.
- check_availability never mutates anything.

Concurrency:
- Every mutation is a single conditional UPDATE
  (inventory = inventory - q WHERE inventory >= q), so two orders racing for
  the last units cannot both succeed; rowcount tells us who lost.
- Mutations bypass the ORM unit of work; loaded Product/ProductVariant rows
  are expired afterwards so the session re-reads fresh values.
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app
from sqlalchemy import update

from ..extensions import db
from ..models import Product, ProductVariant
from checkout.validation import ConflictError, NotFoundError, ValidationError
from .concurrency import begin_write, run_with_retry


OPERATION_INCREASE = "increase"
OPERATION_DECREASE = "decrease"
VALID_OPERATIONS = (OPERATION_INCREASE, OPERATION_DECREASE)


class ProductNotFoundError(NotFoundError):
    """Product is missing or inactive."""

    def __init__(self, product_id: int):
        super().__init__("Product not found or unavailable")
        self.product_id = product_id


class InsufficientInventoryError(ConflictError):
    """Requested quantity exceeds what is left on a counter."""

    def __init__(
        self,
        message: str,
        *,
        product_id: int | None = None,
        requested: int | None = None,
        available: int | None = None,
        variant: dict | None = None,
    ):
        super().__init__(message)
        self.product_id = product_id
        self.requested = requested
        self.available = available
        self.variant = variant

    def to_dict(self) -> dict:
        details = {"productId": self.product_id, "requested": self.requested, "available": self.available}
        if self.variant:
            details["variant"] = self.variant
        return {"error": str(self), "details": details}


@dataclass
class Availability:
    available: bool
    message: str | None = None
    available_quantity: int | None = None

    def to_dict(self) -> dict:
        data = {"available": self.available, "message": self.message}
        if self.available_quantity is not None:
            data["availableQuantity"] = self.available_quantity
        return data


def get_active_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id, populate_existing=True)
    if product is None or not product.is_active:
        raise ProductNotFoundError(product_id)
    return product


def _current_inventory(product_id: int) -> int:
    return int(db.session.query(Product.inventory).filter(Product.id == product_id).scalar() or 0)


def _current_variant_stock(product_id: int, variant_type: str, value: str) -> int | None:
    return (
        db.session.query(ProductVariant.stock)
        .filter_by(product_id=product_id, type=variant_type, value=value)
        .scalar()
    )


def _expire_stock_rows(product_id: int) -> None:
    """Drop stale counter values held in the identity map for this product."""
    for obj in list(db.session.identity_map.values()):
        if isinstance(obj, Product) and obj.id == product_id:
            db.session.expire(obj)
        elif isinstance(obj, ProductVariant) and obj.product_id == product_id:
            db.session.expire(obj)


def check_availability(product_id: int, quantity: int, selected_variants: list[dict] | None = None) -> Availability:
    """
    Read-only stock probe; fails closed.

    Returns an Availability instead of raising so the storefront can show
    the message before checkout.
    """
    product = db.session.get(Product, product_id, populate_existing=True)
    if product is None or not product.is_active:
        return Availability(False, "Product not found or unavailable")

    if product.inventory < quantity:
        return Availability(
            False,
            f"Only {product.inventory} items available in stock",
            available_quantity=product.inventory,
        )

    for selected in selected_variants or []:
        variant = product.find_variant(selected["type"], selected["value"])
        if variant is None:
            return Availability(False, f"Selected {selected['type']} '{selected['value']}' is not available")
        if variant.stock < quantity:
            return Availability(
                False,
                f"Only {variant.stock} items available for {selected['type']}: {selected['value']}",
                available_quantity=variant.stock,
            )

    return Availability(True, "Product is available", available_quantity=product.inventory)


def apply_reduce(product_id: int, quantity: int, selected_variants: list[dict] | None = None) -> None:
    """
    Decrement product inventory and every selected variant's stock.

    Runs inside the caller's transaction and does not commit. On
    InsufficientInventoryError the caller MUST roll back, which discards any
    counter already decremented by this call.
    """
    if quantity < 1:
        raise ValidationError("quantity must be a positive integer")

    db.session.flush()
    get_active_product(product_id)

    result = db.session.execute(
        update(Product)
        .where(Product.id == product_id, Product.inventory >= quantity)
        .values(inventory=Product.inventory - quantity)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        available = _current_inventory(product_id)
        raise InsufficientInventoryError(
            f"Insufficient inventory. Only {available} items available",
            product_id=product_id,
            requested=quantity,
            available=available,
        )

    for selected in selected_variants or []:
        result = db.session.execute(
            update(ProductVariant)
            .where(
                ProductVariant.product_id == product_id,
                ProductVariant.type == selected["type"],
                ProductVariant.value == selected["value"],
                ProductVariant.stock >= quantity,
            )
            .values(stock=ProductVariant.stock - quantity)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            stock = _current_variant_stock(product_id, selected["type"], selected["value"])
            if stock is None:
                message = f"Selected {selected['type']} '{selected['value']}' is not available"
            else:
                message = f"Insufficient stock for {selected['type']}: {selected['value']}. Only {stock} available"
            raise InsufficientInventoryError(
                message,
                product_id=product_id,
                requested=quantity,
                available=stock or 0,
                variant=dict(selected),
            )

    _expire_stock_rows(product_id)


def apply_increase(product_id: int, quantity: int, selected_variants: list[dict] | None = None) -> None:
    """
    Return stock to the product and its selected variants (no upper bound).

    Inactive products still receive returned stock. Selections that no
    longer match a variant are skipped with a warning.
    """
    if quantity < 1:
        raise ValidationError("quantity must be a positive integer")

    db.session.flush()
    result = db.session.execute(
        update(Product)
        .where(Product.id == product_id)
        .values(inventory=Product.inventory + quantity)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise ProductNotFoundError(product_id)

    for selected in selected_variants or []:
        result = db.session.execute(
            update(ProductVariant)
            .where(
                ProductVariant.product_id == product_id,
                ProductVariant.type == selected["type"],
                ProductVariant.value == selected["value"],
            )
            .values(stock=ProductVariant.stock + quantity)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            current_app.logger.warning(
                "Skipping stock return for missing variant %s=%r on product %s",
                selected["type"], selected["value"], product_id,
            )

    _expire_stock_rows(product_id)


def reduce_inventory(
    product_id: int,
    quantity: int,
    selected_variants: list[dict] | None = None,
    *,
    commit: bool = True,
) -> None:
    """
    Claim stock for a sale.

    Args:
        commit: when False, run inside the caller's transaction (see apply_reduce)

    Raises:
        ProductNotFoundError: product missing or inactive
        InsufficientInventoryError: any counter would go negative (nothing persisted)
    """
    if not commit:
        apply_reduce(product_id, quantity, selected_variants)
        return

    def _op():
        begin_write()
        apply_reduce(product_id, quantity, selected_variants)
        db.session.commit()

    run_with_retry(_op)


def increase_inventory(
    product_id: int,
    quantity: int,
    selected_variants: list[dict] | None = None,
    *,
    commit: bool = True,
) -> None:
    """Inverse of reduce_inventory; always succeeds for existing products."""
    if not commit:
        apply_increase(product_id, quantity, selected_variants)
        return

    def _op():
        begin_write()
        apply_increase(product_id, quantity, selected_variants)
        db.session.commit()

    run_with_retry(_op)


def adjust_inventory(
    product_id: int,
    quantity: int,
    operation: str,
    variants: list[dict] | None = None,
) -> dict:
    """
    Internal stock mutation used by PUT /api/products/:id/inventory.

    Returns:
        {"inventory": int, "variants": [...]} after commit
    """
    if operation not in VALID_OPERATIONS:
        raise ValidationError("Operation must be either increase or decrease")

    get_active_product(product_id)
    if operation == OPERATION_DECREASE:
        reduce_inventory(product_id, quantity, variants)
    else:
        increase_inventory(product_id, quantity, variants)

    product = get_active_product(product_id)
    current_app.logger.info(
        "Inventory %s of %s on product %s; now %s", operation, quantity, product_id, product.inventory
    )
    return {
        "productId": product.id,
        "inventory": product.inventory,
        "variants": [v.to_dict() for v in product.variants],
    }
