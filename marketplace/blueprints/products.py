"""Products blueprint - inventory ledger operations for sellers."""
from flask import Blueprint, g
from marketplace.database import get_session
from marketplace.services import inventory_service
from marketplace.middleware import require_login, ensure_owner
from marketplace.utils.payload import get_json_body, require_fields

products_bp = Blueprint('products', __name__, url_prefix='/products')


def _owned_product(session, product_id: int):
    product = inventory_service.get_product(session, product_id)
    ensure_owner(product.user_id)
    return product


@products_bp.route('', methods=['POST'])
@require_login
def create_product():
    """POST /products { name, price, quantity, description } => { product }"""
    data = get_json_body()
    require_fields(data, ('name', 'price', 'quantity'))

    product = inventory_service.create_product(
        get_session(),
        g.user_id,
        data['name'],
        data['price'],
        data['quantity'],
        description=data.get('description')
    )
    return {'product': product.to_dict()}, 201


@products_bp.route('/<int:product_id>', methods=['GET'])
def get_product(product_id: int):
    product = inventory_service.get_product(get_session(), product_id)
    return {'product': product.to_dict()}


@products_bp.route('/<int:product_id>/quantity', methods=['PATCH'])
@require_login
def set_quantity(product_id: int):
    """PATCH /products/<id>/quantity { quantity } => { product }"""
    data = get_json_body()
    require_fields(data, ('quantity',))

    session = get_session()
    _owned_product(session, product_id)
    product = inventory_service.set_quantity(session, product_id, data['quantity'])
    return {'product': product.to_dict()}


@products_bp.route('/<int:product_id>', methods=['DELETE'])
@require_login
def deactivate_product(product_id: int):
    """Soft delete: the product stays for order history and leaves every cart."""
    session = get_session()
    _owned_product(session, product_id)
    inventory_service.soft_remove(session, product_id)
    return {'deactivated': product_id}


@products_bp.route('/<int:product_id>/hard', methods=['DELETE'])
@require_login
def delete_product(product_id: int):
    """Hard delete, only for products that were never sold (409 otherwise)."""
    session = get_session()
    _owned_product(session, product_id)
    inventory_service.hard_remove(session, product_id)
    return {'deleted': product_id}


@products_bp.route('/<int:product_id>/photos', methods=['POST'])
@require_login
def add_photo(product_id: int):
    """POST /products/<id>/photos { path } => { productPhoto }"""
    data = get_json_body()
    require_fields(data, ('path',))

    session = get_session()
    _owned_product(session, product_id)
    photo = inventory_service.add_photo(session, product_id, data['path'])
    return {'productPhoto': photo.to_dict()}, 201


@products_bp.route('/<int:product_id>/photos/<int:photo_id>', methods=['DELETE'])
@require_login
def remove_photo(product_id: int, photo_id: int):
    session = get_session()
    _owned_product(session, product_id)
    path = inventory_service.remove_photo(session, product_id, photo_id)
    return {'deletedProductPhoto': photo_id, 'path': path}


@products_bp.route('/<int:product_id>/photos', methods=['DELETE'])
@require_login
def remove_all_photos(product_id: int):
    session = get_session()
    _owned_product(session, product_id)
    paths = inventory_service.remove_all_photos(session, product_id)
    return {'deletedAllProductPhotos': product_id, 'paths': paths}
