"""
Address registry - per-user addresses with a single default.

Invariant: once a user has at least one address, exactly one of them is the
default. Every mutation locks the owner's row first, so concurrent default
changes for the same user run one after the other. The demotion is a single
UPDATE and the partial unique index on (user_id) WHERE is_default backs it up.
"""
import logging
from typing import Dict, Any, List, Optional

from sqlalchemy import update as update_stmt
from sqlalchemy.orm import Session

from marketplace.models import Address
from marketplace.exceptions import BusinessLogicError, NotFoundError, InvalidStateError
from marketplace.services.user_service import lock_user
from marketplace.utils.payload import parse_flag

logger = logging.getLogger(__name__)

ADDRESS_FIELDS = ('address', 'city', 'state', 'zipcode')


def _clean_fields(fields: Dict[str, Any], required: bool) -> Dict[str, str]:
    cleaned = {}
    for name in ADDRESS_FIELDS:
        if name not in fields:
            continue
        value = (fields.get(name) or '').strip()
        if not value:
            raise BusinessLogicError(f'Address field "{name}" cannot be empty')
        cleaned[name] = value

    if required:
        missing = [name for name in ADDRESS_FIELDS if name not in cleaned]
        if missing:
            raise BusinessLogicError(f'Missing address fields: {", ".join(missing)}')
    return cleaned


def _demote_others(session: Session, user_id: int, keep_id: Optional[int] = None) -> int:
    """Clear is_default on every address of the user except keep_id, in one statement."""
    stmt = update_stmt(Address).where(Address.user_id == user_id, Address.is_default == True)
    if keep_id is not None:
        stmt = stmt.where(Address.id != keep_id)
    result = session.execute(stmt.values(is_default=False))
    # Demotion must reach the database before the promotion, the unique index sees both
    session.flush()
    return result.rowcount


def get_address(session: Session, address_id: int) -> Address:
    address = session.query(Address).filter(Address.id == address_id).first()
    if not address:
        raise NotFoundError(f'No address: {address_id}')
    return address


def _lock_address(session: Session, address_id: int) -> Address:
    """
    Lock the owner of address_id, then reload the address under that lock.

    A row removed before the lock was taken raises NotFoundError.
    """
    user_id = session.query(Address.user_id).filter(Address.id == address_id).scalar()
    if user_id is None:
        raise NotFoundError(f'No address: {address_id}')
    lock_user(session, user_id)

    address = session.query(Address).filter(Address.id == address_id).populate_existing().first()
    if not address:
        raise NotFoundError(f'No address: {address_id}')
    return address


def list_for_user(session: Session, user_id: int) -> List[Address]:
    """All addresses of a user, default first."""
    return session.query(Address).filter(
        Address.user_id == user_id
    ).order_by(Address.is_default.desc(), Address.id).all()


def get_default(session: Session, user_id: int) -> Optional[Address]:
    return session.query(Address).filter(
        Address.user_id == user_id,
        Address.is_default == True
    ).first()


def create(session: Session, user_id: int, fields: Dict[str, Any]) -> Address:
    """
    Create an address for user_id.

    The first address of a user is always the default, whatever was requested.
    A new default demotes the previous one.
    """
    data = _clean_fields(fields, required=True)
    try:
        lock_user(session, user_id)

        has_addresses = session.query(Address.id).filter(Address.user_id == user_id).first() is not None
        make_default = parse_flag(fields.get('is_default')) or not has_addresses

        if make_default:
            _demote_others(session, user_id)

        address = Address(user_id=user_id, is_default=make_default, **data)
        session.add(address)
        session.commit()
        logger.info(f"[ADDRESS] Address {address.id} created for user {user_id} (default={make_default})")
        return address
    except Exception:
        session.rollback()
        raise


def set_default(session: Session, address_id: int) -> Address:
    """Make address_id the only default of its owner."""
    try:
        address = _lock_address(session, address_id)

        demoted = _demote_others(session, address.user_id, keep_id=address.id)
        address.is_default = True
        session.commit()
        logger.info(f"[ADDRESS] Address {address_id} is now default for user {address.user_id} ({demoted} demoted)")
        return address
    except Exception:
        session.rollback()
        raise


def update(session: Session, address_id: int, patch: Dict[str, Any]) -> Address:
    """
    Partial update. Setting is_default=True demotes the siblings; clearing the
    flag on the current default is rejected, a replacement must be promoted instead.
    """
    data = _clean_fields(patch, required=False)
    try:
        address = _lock_address(session, address_id)

        wants_default = parse_flag(patch['is_default']) if 'is_default' in patch else None
        if wants_default is True:
            _demote_others(session, address.user_id, keep_id=address.id)
            address.is_default = True
        elif wants_default is False and address.is_default:
            raise InvalidStateError('You must keep one default address')

        if not address.is_default and get_default(session, address.user_id) is None:
            raise InvalidStateError('You must keep one default address')

        for name, value in data.items():
            setattr(address, name, value)

        session.commit()
        return address
    except Exception:
        session.rollback()
        raise


def remove(session: Session, address_id: int) -> None:
    """Delete a non-default address."""
    try:
        address = _lock_address(session, address_id)

        if address.is_default:
            raise InvalidStateError(
                'The default address cannot be removed. Choose another default address first'
            )

        session.delete(address)
        session.commit()
        logger.info(f"[ADDRESS] Address {address_id} removed for user {address.user_id}")
    except Exception:
        session.rollback()
        raise
