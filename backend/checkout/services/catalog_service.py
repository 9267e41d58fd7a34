# Overview: Service-layer operations for the product catalogue (reads + sample data).

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Product, ProductVariant
from .inventory_service import ProductNotFoundError


SAMPLE_PRODUCTS = [
    {
        "name": "Premium Wireless Headphones",
        "description": "Wireless headphones with active noise cancellation, 30-hour battery life and memory-foam ear cushions.",
        "price_cents": 19999,
        "image": "https://images.unsplash.com/photo-1505740420928-5e560c06d30e?w=500&h=500&fit=crop",
        "category": "Electronics",
        "inventory": 50,
        "variants": [
            ("color", "Midnight Black", "black", 20),
            ("color", "Pearl White", "white", 15),
            ("color", "Space Gray", "gray", 15),
        ],
    },
    {
        "name": "Smart Fitness Watch Pro",
        "description": "Fitness tracker with heart rate, blood oxygen, sleep tracking, GPS and a 7-day battery.",
        "price_cents": 29999,
        "image": "https://images.unsplash.com/photo-1523275335684-37898b6baf30?w=500&h=500&fit=crop",
        "category": "Electronics",
        "inventory": 35,
        "variants": [
            ("color", "Midnight Black", "black", 12),
            ("color", "Rose Gold", "rose-gold", 10),
            ("color", "Space Gray", "space-gray", 8),
            ("color", "Ocean Blue", "blue", 5),
            ("size", "42mm", "42mm", 18),
            ("size", "46mm", "46mm", 17),
        ],
    },
    {
        "name": "Eco-Friendly Insulated Water Bottle",
        "description": "Triple-wall vacuum insulated stainless steel bottle; hot for 12 hours, cold for 24.",
        "price_cents": 3499,
        "image": "https://images.unsplash.com/photo-1602143407151-7111542de6e8?w=500&h=500&fit=crop",
        "category": "Lifestyle",
        "inventory": 120,
        "variants": [
            ("color", "Ocean Blue", "ocean-blue", 30),
            ("color", "Forest Green", "forest-green", 30),
            ("color", "Sunset Orange", "sunset-orange", 25),
            ("size", "500ml", "500ml", 60),
            ("size", "750ml", "750ml", 60),
        ],
    },
    {
        "name": "Professional Laptop Backpack",
        "description": "Water-resistant backpack with a padded 17\" laptop compartment and USB charging port.",
        "price_cents": 8999,
        "image": "https://images.unsplash.com/photo-1553062407-98eeb64c6a62?w=500&h=500&fit=crop",
        "category": "Accessories",
        "inventory": 75,
        "variants": [
            ("color", "Business Black", "black", 25),
            ("color", "Navy Blue", "navy", 20),
            ("color", "Charcoal Gray", "gray", 15),
        ],
    },
]


def list_products(
    *,
    category: str | None = None,
    min_price_cents: int | None = None,
    max_price_cents: int | None = None,
    in_stock: bool = False,
) -> list[Product]:
    """Active products, newest first. Category matches case-insensitively as a substring."""
    query = db.session.query(Product).filter(Product.is_active.is_(True))
    if category:
        query = query.filter(Product.category.ilike(f"%{category}%"))
    if min_price_cents is not None:
        query = query.filter(Product.price_cents >= min_price_cents)
    if max_price_cents is not None:
        query = query.filter(Product.price_cents <= max_price_cents)
    if in_stock:
        query = query.filter(Product.inventory > 0)
    return query.order_by(Product.created_at.desc(), Product.id.desc()).all()


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None or not product.is_active:
        raise ProductNotFoundError(product_id)
    return product


def seed_catalog(products: list[dict] | None = None) -> list[Product]:
    """
    Insert sample products that are not present yet (matched by name).

    Returns the products created by this call.
    """
    created = []
    for item in products if products is not None else SAMPLE_PRODUCTS:
        if db.session.query(Product.id).filter_by(name=item["name"]).first() is not None:
            continue
        product = Product(
            name=item["name"],
            description=item.get("description"),
            price_cents=item["price_cents"],
            image=item.get("image"),
            category=item.get("category"),
            inventory=item.get("inventory", 0),
            is_active=item.get("is_active", True),
        )
        for variant_type, name, value, stock in item.get("variants", []):
            product.variants.append(ProductVariant(type=variant_type, name=name, value=value, stock=stock))
        db.session.add(product)
        created.append(product)

    db.session.commit()
    if created:
        current_app.logger.info("Seeded %s products", len(created))
    return created
