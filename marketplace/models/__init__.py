"""Models package - exports all SQLAlchemy models."""
from marketplace.models.app_user import AppUser
from marketplace.models.product import Product, ProductStatus, status_for_quantity
from marketplace.models.product_photo import ProductPhoto
from marketplace.models.address import Address
from marketplace.models.cart_item import CartItem
from marketplace.models.order import Order
from marketplace.models.order_line import OrderLine

__all__ = [
    'AppUser',
    'Product', 'ProductStatus', 'status_for_quantity', 'ProductPhoto',
    'Address',
    'CartItem',
    'Order', 'OrderLine',
]
