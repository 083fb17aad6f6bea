"""
Checkout service - converts cart line items into an order.

Order rows, inventory debits and cart cleanup are written in ONE transaction.
Any failure rolls everything back, so a failed checkout leaves the database
exactly as if it never started.
"""
import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, List, Optional

from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from marketplace.models import Order, OrderLine, CartItem, Product
from marketplace.exceptions import (
    MarketplaceError, BusinessLogicError, NotFoundError, UnauthorizedError,
    InsufficientStockError, NotAvailableError, CheckoutFailedError
)
from marketplace.blueprints.metrics import checkouts_total
from marketplace.services import inventory_service

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckoutLine:
    """One cart row as seen at checkout time."""
    cart_item_id: int
    product_id: int
    quantity: int
    unit_price: Decimal
    buyer_id: int

    @property
    def line_total(self) -> Decimal:
        return (Decimal(str(self.unit_price)) * self.quantity).quantize(Decimal('0.01'))


def snapshot_from_cart(session: Session, buyer_id: int, cart_item_ids: Optional[Iterable[int]] = None) -> List[CheckoutLine]:
    """
    Build checkout lines from the buyer's cart rows with current product prices.

    With cart_item_ids only those rows are taken; rows of another user are refused.
    """
    query = session.query(CartItem, Product).join(Product, CartItem.product_id == Product.id)

    if cart_item_ids is not None:
        wanted = [int(cid) for cid in cart_item_ids]
        rows = query.filter(CartItem.id.in_(wanted)).order_by(CartItem.created_at, CartItem.id).all()
        found = {item.id for item, _ in rows}
        missing = [cid for cid in wanted if cid not in found]
        if missing:
            raise NotFoundError(f'No cartItem: {", ".join(str(cid) for cid in missing)}')
    else:
        rows = query.filter(CartItem.user_id == buyer_id).order_by(CartItem.created_at, CartItem.id).all()

    if not rows:
        raise BusinessLogicError('The cart is empty')

    return [
        CheckoutLine(
            cart_item_id=item.id,
            product_id=product.id,
            quantity=item.quantity,
            unit_price=product.price,
            buyer_id=item.user_id
        )
        for item, product in rows
    ]


def commit_checkout(session: Session, buyer_id: int, lines: List[CheckoutLine]) -> int:
    """
    Commit a checkout for buyer_id and return the new order id.

    Steps (single transaction):
    1. Validate every line against the buyer and the current stock
    2. Insert the order with a fresh transaction id (total == subtotal)
    3. Per line, in order: insert the order line, debit inventory with a
       guarded UPDATE, delete the originating cart row
    4. Commit

    Raises:
        UnauthorizedError: a line belongs to another buyer
        NotAvailableError / InsufficientStockError: a product cannot be sold
        CheckoutFailedError: the database rejected a write; nothing was kept
    """
    if not lines:
        raise BusinessLogicError('The cart is empty')

    try:
        _validate_lines(session, buyer_id, lines)

        subtotal = sum((line.line_total for line in lines), Decimal('0.00'))
        # Tax and shipping are not computed yet, total is the subtotal
        total = subtotal

        order = Order(
            buyer_id=buyer_id,
            transaction_id=str(uuid.uuid4()),
            subtotal=subtotal,
            tax=Decimal('0'),
            shipping_price=Decimal('0'),
            total=total
        )
        session.add(order)
        session.flush()

        for line in lines:
            session.add(OrderLine(
                order_id=order.id,
                product_id=line.product_id,
                quantity=line.quantity,
                unit_price=line.unit_price,
                total=line.line_total
            ))
            session.flush()

            inventory_service.debit_quantity(session, line.product_id, line.quantity)
            _consume_cart_row(session, buyer_id, line)

        session.commit()

    except MarketplaceError as e:
        session.rollback()
        _record_checkout('rejected')
        logger.info(f"[CHECKOUT] Rejected for buyer {buyer_id}: {e.message}")
        raise
    except SQLAlchemyError as e:
        session.rollback()
        _record_checkout('failed')
        logger.error(f"[CHECKOUT] Failed for buyer {buyer_id}, rolled back: {e}", exc_info=True)
        raise CheckoutFailedError() from e

    _record_checkout('success')
    logger.info(
        f"[CHECKOUT] Order {order.id} created for buyer {buyer_id} "
        f"(transaction {order.transaction_id}, {len(lines)} line(s), total {total})"
    )
    return order.id


# =====================================================
# PRIVATE HELPERS
# =====================================================

def _validate_lines(session: Session, buyer_id: int, lines: List[CheckoutLine]) -> None:
    """Pre-commit gate. The guarded debit still decides under concurrency."""
    for line in lines:
        if int(line.buyer_id) != int(buyer_id):
            raise UnauthorizedError('Cart belongs to another user.')
        if int(line.quantity) <= 0:
            raise BusinessLogicError('Quantity must be greater than 0')

        product = inventory_service.get_product(session, line.product_id)
        if not product.active:
            raise NotAvailableError(product.id, product.name)
        if not inventory_service.has_quantity(session, product.id, line.quantity):
            raise InsufficientStockError(product.id, line.quantity, product.quantity)


def _consume_cart_row(session: Session, buyer_id: int, line: CheckoutLine) -> None:
    """Remove the cart row behind a line. Cleanup only: problems are logged, never raised."""
    try:
        with session.begin_nested():
            removed = session.execute(
                delete(CartItem).where(
                    CartItem.id == line.cart_item_id,
                    CartItem.user_id == buyer_id
                )
            ).rowcount
    except SQLAlchemyError as e:
        logger.warning(f"[CHECKOUT] Could not remove cartItem {line.cart_item_id}: {e}")
        return

    if not removed:
        logger.warning(f"[CHECKOUT] cartItem {line.cart_item_id} was already gone for buyer {buyer_id}")


def _record_checkout(result: str) -> None:
    checkouts_total.labels(result=result).inc()
