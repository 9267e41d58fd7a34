from __future__ import annotations

from ..extensions import db
from checkout.time_utils import to_utc_z

VARIANT_TYPES = ("color", "size")


def cents_to_amount(cents: int | None) -> float | None:
    if cents is None:
        return None
    return round(cents / 100, 2)


class Product(db.Model):
    """
    Sellable product with a store-wide inventory counter.

    INVENTORY DESIGN:
    - `inventory` is the total sellable units and may never go negative
      (enforced by a CHECK constraint and by conditional updates in
      inventory_service).
    - Each ProductVariant carries its own `stock`. Variant stock is a
      per-dimension sub-ledger (colors and sizes are counted separately);
      it is NOT required to sum to `inventory`.

    Counters are only ever mutated through inventory_service, which issues
    single-statement conditional UPDATEs. There is deliberately no
    version_id_col here: stock writes bypass the ORM unit of work.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("inventory >= 0", name="ck_products_inventory_nonneg"),
        db.CheckConstraint("price_cents >= 0", name="ck_products_price_nonneg"),
        db.Index("ix_products_active_category", "is_active", "category"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False, index=True)
    description = db.Column(db.Text, nullable=True)

    # Authoritative storage in cents (frontend may only format for display)
    price_cents = db.Column(db.Integer, nullable=False)

    image = db.Column(db.String(500), nullable=True)
    category = db.Column(db.String(64), nullable=True)
    inventory = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    variants = db.relationship(
        "ProductVariant",
        back_populates="product",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="ProductVariant.id",
    )

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} inventory={self.inventory}>"

    def find_variant(self, variant_type: str, value: str) -> "ProductVariant | None":
        for variant in self.variants:
            if variant.type == variant_type and variant.value == value:
                return variant
        return None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "price": cents_to_amount(self.price_cents),
            "priceCents": self.price_cents,
            "image": self.image,
            "category": self.category,
            "inventory": self.inventory,
            "inStock": self.inventory > 0,
            "variants": [v.to_dict() for v in self.variants],
            "totalVariantStock": sum(v.stock for v in self.variants),
            "isActive": self.is_active,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }


class ProductVariant(db.Model):
    """A selectable option (color or size) with its own stock counter."""
    __tablename__ = "product_variants"
    __table_args__ = (
        db.UniqueConstraint("product_id", "type", "value", name="uq_product_variants_product_type_value"),
        db.CheckConstraint("stock >= 0", name="ck_product_variants_stock_nonneg"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    type = db.Column(db.String(16), nullable=False)  # color | size
    name = db.Column(db.String(64), nullable=False)
    value = db.Column(db.String(64), nullable=False)
    stock = db.Column(db.Integer, nullable=False, default=0)

    product = db.relationship("Product", back_populates="variants")

    def __repr__(self) -> str:
        return f"<ProductVariant {self.type}={self.value!r} stock={self.stock}>"

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "name": self.name,
            "value": self.value,
            "stock": self.stock,
        }
