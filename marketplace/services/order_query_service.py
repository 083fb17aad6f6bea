"""Order query service - buyer and seller views of committed orders."""
from collections import defaultdict
from decimal import Decimal
from typing import Dict, Any, List, Optional

from sqlalchemy import and_
from sqlalchemy.orm import Session, aliased

from marketplace.models import Order, OrderLine, Product, AppUser, Address


def _line_to_dict(line: OrderLine, product: Product, seller: AppUser, address: Optional[Address]) -> Dict[str, Any]:
    return {
        'productId': line.product_id,
        'name': product.name,
        'seller': product.user_id,
        'quantity': line.quantity,
        'unitPrice': str(line.unit_price),
        'total': str(line.total),
        'sellerFirstName': seller.first_name,
        'sellerLastName': seller.last_name,
        'sellerEmail': seller.email,
        # None when the seller currently has no default address
        'productAddress': address.address if address else None,
        'productCity': address.city if address else None,
        'productState': address.state if address else None,
        'productZipcode': address.zipcode if address else None,
    }


def _order_header(order: Order, buyer: AppUser) -> Dict[str, Any]:
    return {
        'id': order.id,
        'date': order.created_at.isoformat() if order.created_at else None,
        'buyerId': order.buyer_id,
        'transactionId': order.transaction_id,
        'buyerFirstName': buyer.first_name,
        'buyerLastName': buyer.last_name,
        'buyerEmail': buyer.email,
    }


def _lines_by_order(session: Session, order_ids: List[int], seller_id: Optional[int] = None) -> Dict[int, List[Dict[str, Any]]]:
    """Lines of the given orders joined with product, seller and seller's default address."""
    if not order_ids:
        return {}

    Seller = aliased(AppUser)
    query = session.query(OrderLine, Product, Seller, Address).join(
        Product, OrderLine.product_id == Product.id
    ).join(
        Seller, Seller.id == Product.user_id
    ).outerjoin(
        Address, and_(Address.user_id == Product.user_id, Address.is_default == True)
    ).filter(
        OrderLine.order_id.in_(order_ids)
    )

    if seller_id is not None:
        query = query.filter(Product.user_id == seller_id)

    grouped = defaultdict(list)
    for line, product, seller, address in query.order_by(OrderLine.order_id, OrderLine.id).all():
        grouped[line.order_id].append(_line_to_dict(line, product, seller, address))
    return grouped


def orders_for_buyer(session: Session, user_id: int) -> List[Dict[str, Any]]:
    """Every order bought by user_id with all of its lines."""
    rows = session.query(Order, AppUser).join(
        AppUser, AppUser.id == Order.buyer_id
    ).filter(
        Order.buyer_id == user_id
    ).order_by(Order.created_at, Order.id).all()

    lines = _lines_by_order(session, [order.id for order, _ in rows])

    orders = []
    for order, buyer in rows:
        data = _order_header(order, buyer)
        data.update({
            'subtotal': str(order.subtotal),
            'tax': str(order.tax),
            'shippingPrice': str(order.shipping_price),
            'total': str(order.total),
            'products': lines.get(order.id, []),
        })
        orders.append(data)
    return orders


def orders_for_seller(session: Session, user_id: int) -> List[Dict[str, Any]]:
    """
    Orders containing at least one product sold by user_id.

    Only the seller's own lines are returned; lines of other sellers in a
    shared order and the order-wide totals stay hidden.
    """
    order_ids = [
        row.order_id for row in session.query(OrderLine.order_id).join(
            Product, OrderLine.product_id == Product.id
        ).filter(
            Product.user_id == user_id
        ).distinct().all()
    ]
    if not order_ids:
        return []

    rows = session.query(Order, AppUser).join(
        AppUser, AppUser.id == Order.buyer_id
    ).filter(
        Order.id.in_(order_ids)
    ).order_by(Order.created_at, Order.id).all()

    lines = _lines_by_order(session, order_ids, seller_id=user_id)

    orders = []
    for order, buyer in rows:
        seller_lines = lines.get(order.id, [])
        data = _order_header(order, buyer)
        data.update({
            'sellerTotal': str(sum((Decimal(line['total']) for line in seller_lines), Decimal('0.00'))),
            'products': seller_lines,
        })
        orders.append(data)
    return orders
