from .catalog import Product, ProductVariant, VARIANT_TYPES
from .customers import Customer
from .orders import Order, ORDER_STATUSES

__all__ = [
    'Product', 'ProductVariant', 'VARIANT_TYPES',
    'Customer',
    'Order', 'ORDER_STATUSES',
]
