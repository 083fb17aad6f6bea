"""
Inventory ledger - product quantities, lifecycle and photo identifiers.

Status is never written: Product.status is derived from quantity, so every
quantity mutation keeps it consistent by construction.
"""
import logging
from decimal import Decimal, InvalidOperation
from typing import List, Optional

from sqlalchemy import update, delete, exists
from sqlalchemy.orm import Session

from marketplace.models import Product, ProductPhoto, CartItem, OrderLine
from marketplace.exceptions import (
    BusinessLogicError, NotFoundError, ConflictError, InsufficientStockError, NotAvailableError
)
from marketplace.services.user_service import get_user

logger = logging.getLogger(__name__)


def _to_quantity(value) -> int:
    try:
        qty = int(value)
    except (TypeError, ValueError):
        raise BusinessLogicError(f'Invalid quantity: {value}')
    if qty < 0:
        raise BusinessLogicError('Quantity cannot be negative')
    return qty


def _to_price(value) -> Decimal:
    try:
        price = Decimal(str(value)).quantize(Decimal('0.01'))
    except (InvalidOperation, TypeError, ValueError):
        raise BusinessLogicError(f'Invalid price: {value}')
    if price < 0:
        raise BusinessLogicError('Price cannot be negative')
    return price


def create_product(
    session: Session,
    user_id: int,
    name: str,
    price,
    quantity,
    description: Optional[str] = None
) -> Product:
    """Create an active product; its status follows the initial quantity."""
    if not name or not name.strip():
        raise BusinessLogicError('Product name is required')
    get_user(session, user_id)

    product = Product(
        user_id=user_id,
        name=name.strip(),
        description=description,
        price=_to_price(price),
        quantity=_to_quantity(quantity),
        active=True
    )
    session.add(product)
    session.commit()
    logger.info(f"[INVENTORY] Product {product.id} created by user {user_id} with quantity {product.quantity}")
    return product


def get_product(session: Session, product_id: int) -> Product:
    product = session.query(Product).filter(Product.id == product_id).first()
    if not product:
        raise NotFoundError(f'No product: {product_id}')
    return product


def set_quantity(session: Session, product_id: int, new_qty) -> Product:
    """
    Overwrite the available quantity of a product.

    Callers decide whether the product may be edited (e.g. sold products);
    this only rejects negative values.
    """
    qty = _to_quantity(new_qty)
    try:
        product = session.query(Product).filter(Product.id == product_id).with_for_update().first()
        if not product:
            raise NotFoundError(f'No product: {product_id}')

        product.quantity = qty
        session.commit()
        return product
    except Exception:
        session.rollback()
        raise


def has_quantity(session: Session, product_id: int, requested_qty) -> bool:
    """Pre-commit gate only: nothing is reserved between this check and the debit."""
    product = get_product(session, product_id)
    return product.quantity >= int(requested_qty)


def is_active(session: Session, product_id: int) -> bool:
    return bool(get_product(session, product_id).active)


def debit_quantity(session: Session, product_id: int, qty: int) -> None:
    """
    Atomically take qty units out of stock inside the caller's transaction.

    The guard lives in the UPDATE itself, so two concurrent debits can never
    take the quantity below zero: the loser matches no row.
    Does not commit.
    """
    result = session.execute(
        update(Product)
        .where(Product.id == product_id, Product.active == True, Product.quantity >= qty)
        .values(quantity=Product.quantity - qty)
    )
    if result.rowcount != 1:
        row = session.query(Product.name, Product.quantity, Product.active).filter(
            Product.id == product_id
        ).first()
        if row is None:
            raise NotFoundError(f'No product: {product_id}')
        if not row.active:
            raise NotAvailableError(product_id, row.name)
        raise InsufficientStockError(product_id, qty, row.quantity)


def has_ever_been_sold(session: Session, product_id: int) -> bool:
    return session.query(exists().where(OrderLine.product_id == product_id)).scalar()


def soft_remove(session: Session, product_id: int) -> Product:
    """Deactivate a product and pull it out of every cart (no backorders)."""
    try:
        product = session.query(Product).filter(Product.id == product_id).with_for_update().first()
        if not product:
            raise NotFoundError(f'No product: {product_id}')

        product.active = False
        removed = session.execute(
            delete(CartItem).where(CartItem.product_id == product_id)
        ).rowcount
        session.commit()
        logger.info(f"[INVENTORY] Product {product_id} deactivated, removed from {removed} cart(s)")
        return product
    except Exception:
        session.rollback()
        raise


def hard_remove(session: Session, product_id: int) -> None:
    """Delete a product that never appeared in an order."""
    try:
        product = session.query(Product).filter(Product.id == product_id).with_for_update().first()
        if not product:
            raise NotFoundError(f'No product: {product_id}')

        if has_ever_been_sold(session, product_id):
            raise ConflictError(f"You can't delete product {product_id}: it has already been sold")

        session.execute(delete(CartItem).where(CartItem.product_id == product_id))
        session.delete(product)
        session.commit()
        logger.info(f"[INVENTORY] Product {product_id} deleted")
    except Exception:
        session.rollback()
        raise


# =====================================================
# PHOTO IDENTIFIERS
# =====================================================

def add_photo(session: Session, product_id: int, path: str) -> ProductPhoto:
    if not path or not path.strip():
        raise BusinessLogicError('Photo path is required')

    get_product(session, product_id)
    photo = ProductPhoto(product_id=product_id, path=path.strip())
    session.add(photo)
    session.commit()
    return photo


def list_photos(session: Session, product_id: int) -> List[ProductPhoto]:
    return session.query(ProductPhoto).filter(
        ProductPhoto.product_id == product_id
    ).order_by(ProductPhoto.id).all()


def remove_photo(session: Session, product_id: int, photo_id: int) -> str:
    """Forget one photo key and return it so the caller can purge the image store."""
    photo = session.query(ProductPhoto).filter(ProductPhoto.id == photo_id).first()
    if not photo:
        raise NotFoundError(f'No photo: {photo_id}')
    if photo.product_id != product_id:
        raise BusinessLogicError(f'Photo {photo_id} does not belong to product {product_id}')

    path = photo.path
    session.delete(photo)
    session.commit()
    return path


def remove_all_photos(session: Session, product_id: int) -> List[str]:
    paths = [photo.path for photo in list_photos(session, product_id)]
    session.execute(delete(ProductPhoto).where(ProductPhoto.product_id == product_id))
    session.commit()
    return paths
