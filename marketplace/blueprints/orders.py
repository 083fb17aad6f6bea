"""Orders blueprint - checkout and order history."""
from flask import Blueprint, g
from marketplace.database import get_session
from marketplace.models import Order
from marketplace.services import order_query_service
from marketplace.services.checkout_service import commit_checkout, snapshot_from_cart
from marketplace.middleware import require_login
from marketplace.utils.payload import get_json_body
from marketplace.exceptions import BusinessLogicError

orders_bp = Blueprint('orders', __name__)


@orders_bp.route('/checkout', methods=['POST'])
@require_login
def checkout():
    """
    POST /checkout { cartItemIds? } => { orderId, transactionId, message }

    Without cartItemIds the whole cart is checked out. Prices are always
    taken from the products, never from the request.
    """
    data = get_json_body()
    cart_item_ids = data.get('cartItemIds')
    if cart_item_ids is not None and not isinstance(cart_item_ids, list):
        raise BusinessLogicError('cartItemIds must be a list')

    session = get_session()
    lines = snapshot_from_cart(session, g.user_id, cart_item_ids)
    order_id = commit_checkout(session, g.user_id, lines)

    order = session.query(Order).filter(Order.id == order_id).one()
    return {
        'orderId': order.id,
        'transactionId': order.transaction_id,
        'total': str(order.total),
        'message': f'Order {order.id} successfully created.'
    }, 201


@orders_bp.route('/orders/buyer', methods=['GET'])
@require_login
def orders_as_buyer():
    return {'orders': order_query_service.orders_for_buyer(get_session(), g.user_id)}


@orders_bp.route('/orders/seller', methods=['GET'])
@require_login
def orders_as_seller():
    return {'orders': order_query_service.orders_for_seller(get_session(), g.user_id)}
