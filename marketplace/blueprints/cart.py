"""Cart blueprint - staged items of the logged in user."""
from flask import Blueprint, g
from marketplace.database import get_session
from marketplace.models import CartItem
from marketplace.services import cart_service
from marketplace.middleware import require_login, ensure_owner
from marketplace.utils.payload import get_json_body, require_fields

cart_bp = Blueprint('cart', __name__, url_prefix='/cart')


@cart_bp.route('', methods=['POST'])
@require_login
def add_item():
    """POST /cart { productId, quantity } => { cartItem }"""
    data = get_json_body()
    require_fields(data, ('productId', 'quantity'))

    item = cart_service.add_item(get_session(), g.user_id, int(data['productId']), data['quantity'])
    return {'cartItem': item.to_dict()}, 201


@cart_bp.route('', methods=['GET'])
@require_login
def list_items():
    """GET /cart => { cart: [...], unlisted: [cartItemId, ...] }"""
    listing = cart_service.list_for_owner(get_session(), g.user_id)
    return {'cart': listing['items'], 'unlisted': listing['unlisted_item_ids']}


@cart_bp.route('/<int:cart_item_id>', methods=['PATCH'])
@require_login
def update_item(cart_item_id: int):
    """PATCH /cart/<id> { quantity } => { updatedCartItem }"""
    data = get_json_body()
    require_fields(data, ('quantity',))

    session = get_session()
    ensure_owner(cart_service.get_item(session, cart_item_id).user_id)
    item = cart_service.update_quantity(session, cart_item_id, data['quantity'])
    return {'updatedCartItem': item.to_dict()}


@cart_bp.route('/<int:cart_item_id>', methods=['DELETE'])
@require_login
def remove_item(cart_item_id: int):
    """DELETE /cart/<id> => { deleted }. Deleting an item that is already gone succeeds."""
    session = get_session()
    item = session.query(CartItem).filter(CartItem.id == cart_item_id).first()
    if item:
        ensure_owner(item.user_id)
        cart_service.remove_item(session, cart_item_id)
    return {'deleted': cart_item_id}
