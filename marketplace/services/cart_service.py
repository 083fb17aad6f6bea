"""Cart service - per-user staged line items validated against the inventory ledger."""
import logging
from typing import Dict, Any, List

from sqlalchemy import and_, delete
from sqlalchemy.orm import Session

from marketplace.models import CartItem, Product, Address
from marketplace.exceptions import (
    BusinessLogicError, NotFoundError, InsufficientStockError, NotAvailableError
)
from marketplace.services import inventory_service
from marketplace.services.user_service import lock_user

logger = logging.getLogger(__name__)


def _positive_quantity(value) -> int:
    try:
        qty = int(value)
    except (TypeError, ValueError):
        raise BusinessLogicError(f'Invalid quantity: {value}')
    if qty <= 0:
        raise BusinessLogicError('Quantity must be greater than 0')
    return qty


def _apply_quantity(session: Session, item: CartItem, quantity: int) -> CartItem:
    """Validate quantity against the product's current stock, then set it. No commit."""
    product = inventory_service.get_product(session, item.product_id)
    if not product.active:
        raise NotAvailableError(product.id, product.name)
    if not inventory_service.has_quantity(session, product.id, quantity):
        raise InsufficientStockError(product.id, quantity, product.quantity)

    item.quantity = quantity
    return item


def get_item(session: Session, cart_item_id: int) -> CartItem:
    item = session.query(CartItem).filter(CartItem.id == cart_item_id).first()
    if not item:
        raise NotFoundError(f'No cartItem: {cart_item_id}')
    return item


def add_item(session: Session, user_id: int, product_id: int, quantity) -> CartItem:
    """
    Add a product to the user's cart.

    A second add of the same product merges into the existing row and the
    summed quantity must still be in stock; otherwise nothing changes.
    """
    qty = _positive_quantity(quantity)
    try:
        lock_user(session, user_id)

        product = inventory_service.get_product(session, product_id)
        if not product.active:
            raise NotAvailableError(product.id, product.name)

        item = session.query(CartItem).filter(
            CartItem.user_id == user_id,
            CartItem.product_id == product_id
        ).first()

        if item:
            _apply_quantity(session, item, item.quantity + qty)
        else:
            if not inventory_service.has_quantity(session, product_id, qty):
                raise InsufficientStockError(product_id, qty, product.quantity)
            item = CartItem(user_id=user_id, product_id=product_id, quantity=qty)
            session.add(item)

        session.commit()
        return item
    except Exception:
        session.rollback()
        raise


def update_quantity(session: Session, cart_item_id: int, quantity) -> CartItem:
    """Replace the quantity of a cart item after re-checking stock."""
    qty = _positive_quantity(quantity)
    try:
        item = get_item(session, cart_item_id)
        _apply_quantity(session, item, qty)
        session.commit()
        return item
    except Exception:
        session.rollback()
        raise


def remove_item(session: Session, cart_item_id: int) -> bool:
    """Delete a cart item. Returns False when it was already gone."""
    removed = session.execute(delete(CartItem).where(CartItem.id == cart_item_id)).rowcount
    session.commit()
    return removed > 0


def remove_all_for_product(session: Session, product_id: int) -> int:
    """Delete the product from every cart. A product in no cart is not an error."""
    removed = session.execute(delete(CartItem).where(CartItem.product_id == product_id)).rowcount
    session.commit()
    return removed


def list_for_owner(session: Session, user_id: int) -> Dict[str, Any]:
    """
    Cart of user_id in add order, joined with product data and the seller's
    default-address location.

    An item whose seller has no default address cannot be shown with a
    location; it is left out of `items` and reported in `unlisted_item_ids`.
    """
    rows = session.query(CartItem, Product, Address).join(
        Product, CartItem.product_id == Product.id
    ).outerjoin(
        Address, and_(Address.user_id == Product.user_id, Address.is_default == True)
    ).filter(
        CartItem.user_id == user_id
    ).order_by(CartItem.created_at, CartItem.id).all()

    items: List[Dict[str, Any]] = []
    unlisted: List[int] = []
    for item, product, seller_address in rows:
        if seller_address is None:
            unlisted.append(item.id)
            continue

        data = item.to_dict()
        data.update({
            'name': product.name,
            'price': str(product.price),
            'availableQuantity': product.quantity,
            'status': product.status.value,
            'active': product.active,
            'sellerId': product.user_id,
            'sellerCity': seller_address.city,
            'sellerState': seller_address.state,
            'sellerZipcode': seller_address.zipcode,
        })
        items.append(data)

    if unlisted:
        logger.warning(
            f"[CART] User {user_id}: {len(unlisted)} item(s) hidden, seller has no default address: {unlisted}"
        )

    return {'items': items, 'unlisted_item_ids': unlisted}
