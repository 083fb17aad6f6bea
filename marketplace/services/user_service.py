"""User lookups shared by the cart, address and checkout services."""
from sqlalchemy.orm import Session
from marketplace.models import AppUser
from marketplace.exceptions import BusinessLogicError, NotFoundError


def get_user(session: Session, user_id: int) -> AppUser:
    """Return the user or raise NotFoundError."""
    user = session.query(AppUser).filter(AppUser.id == user_id).first()
    if not user:
        raise NotFoundError(f'No user: {user_id}')
    return user


def lock_user(session: Session, user_id: int) -> AppUser:
    """
    Lock the user row FOR UPDATE for the rest of the current transaction.

    Per-user mutations (default address, cart merge) take this lock so they
    serialize even when the user has no child rows to lock yet.
    """
    user = session.query(AppUser).filter(AppUser.id == user_id).with_for_update().first()
    if not user:
        raise NotFoundError(f'No user: {user_id}')
    return user


def create_user(session: Session, first_name: str, last_name: str, email: str, photo: str = None) -> AppUser:
    """Register the identity of a user authenticated elsewhere."""
    email = (email or '').strip().lower()
    if not email:
        raise BusinessLogicError('Email is required')

    if session.query(AppUser).filter(AppUser.email == email).first():
        raise BusinessLogicError(f'Duplicate email: {email}')

    user = AppUser(first_name=first_name, last_name=last_name, email=email, photo=photo)
    session.add(user)
    session.commit()
    return user
