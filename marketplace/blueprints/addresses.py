"""Addresses blueprint - address book of the logged in user."""
from flask import Blueprint, g
from marketplace.database import get_session
from marketplace.services import address_service
from marketplace.middleware import require_login, ensure_owner
from marketplace.utils.payload import get_json_body, require_fields, parse_flag

addresses_bp = Blueprint('addresses', __name__, url_prefix='/addresses')


def _address_fields(data: dict) -> dict:
    """Map the JSON payload onto registry fields."""
    fields = {name: data[name] for name in address_service.ADDRESS_FIELDS if name in data}
    if 'isDefault' in data:
        fields['is_default'] = parse_flag(data['isDefault'])
    return fields


@addresses_bp.route('', methods=['POST'])
@require_login
def create_address():
    """POST /addresses { address, city, state, zipcode, isDefault } => { address }"""
    data = get_json_body()
    require_fields(data, address_service.ADDRESS_FIELDS)

    address = address_service.create(get_session(), g.user_id, _address_fields(data))
    return {'address': address.to_dict()}, 201


@addresses_bp.route('', methods=['GET'])
@require_login
def list_addresses():
    """GET /addresses => { addresses: [...] } (default first)"""
    addresses = address_service.list_for_user(get_session(), g.user_id)
    return {'addresses': [address.to_dict() for address in addresses]}


@addresses_bp.route('/<int:address_id>', methods=['PATCH'])
@require_login
def update_address(address_id: int):
    """PATCH /addresses/<id> { address, city, state, zipcode, isDefault } => { updatedAddress }"""
    session = get_session()
    ensure_owner(address_service.get_address(session, address_id).user_id)

    address = address_service.update(session, address_id, _address_fields(get_json_body()))
    return {'updatedAddress': address.to_dict()}


@addresses_bp.route('/<int:address_id>/default', methods=['POST'])
@require_login
def set_default_address(address_id: int):
    session = get_session()
    ensure_owner(address_service.get_address(session, address_id).user_id)

    address = address_service.set_default(session, address_id)
    return {'defaultAddress': address.to_dict()}


@addresses_bp.route('/<int:address_id>', methods=['DELETE'])
@require_login
def delete_address(address_id: int):
    session = get_session()
    ensure_owner(address_service.get_address(session, address_id).user_id)

    address_service.remove(session, address_id)
    return {'deleted': address_id}
