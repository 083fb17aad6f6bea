"""AppUser model - marketplace members who buy and sell."""
from sqlalchemy import Column, String, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from marketplace.database import Base, BigId


class AppUser(Base):
    """AppUser model. Credentials live in the auth service, only identity is stored here."""

    __tablename__ = 'app_user'

    id = Column(BigId, primary_key=True, autoincrement=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False, unique=True)
    photo = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    addresses = relationship('Address', back_populates='user', cascade='all, delete-orphan')
    products = relationship('Product', back_populates='owner')

    def __repr__(self):
        return f"<AppUser(id={self.id}, email='{self.email}')>"
