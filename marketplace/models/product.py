"""Product model (inventory ledger entry)."""
import enum

from sqlalchemy import Column, String, Text, Boolean, Integer, Numeric, DateTime, ForeignKey, CheckConstraint, case
from sqlalchemy.orm import relationship
from sqlalchemy.ext.hybrid import hybrid_property
from sqlalchemy.sql import func
from marketplace.database import Base, BigId


class ProductStatus(str, enum.Enum):
    """Stock status, always derived from quantity."""
    AVAILABLE = 'available'
    OUT_OF_STOCK = 'out_of_stock'


def status_for_quantity(quantity) -> ProductStatus:
    """out_of_stock iff quantity == 0."""
    if int(quantity or 0) == 0:
        return ProductStatus.OUT_OF_STOCK
    return ProductStatus.AVAILABLE


class Product(Base):
    """Product listed by a user."""

    __tablename__ = 'product'
    __table_args__ = (
        CheckConstraint('quantity >= 0', name='ck_product_quantity_non_negative'),
        CheckConstraint('price >= 0', name='ck_product_price_non_negative'),
    )

    id = Column(BigId, primary_key=True, autoincrement=True)
    user_id = Column(BigId, ForeignKey('app_user.id'), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    quantity = Column(Integer, nullable=False, default=0)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    owner = relationship('AppUser', back_populates='products')
    photos = relationship('ProductPhoto', back_populates='product', cascade='all, delete-orphan')

    @hybrid_property
    def status(self):
        return status_for_quantity(self.quantity)

    @status.expression
    def status(cls):
        return case(
            (cls.quantity == 0, ProductStatus.OUT_OF_STOCK.value),
            else_=ProductStatus.AVAILABLE.value
        )

    def to_dict(self):
        return {
            'id': self.id,
            'userId': self.user_id,
            'name': self.name,
            'description': self.description,
            'price': str(self.price),
            'quantity': self.quantity,
            'active': self.active,
            'status': self.status.value,
            'photos': [photo.to_dict() for photo in self.photos],
        }

    def __repr__(self):
        return f"<Product(id={self.id}, name='{self.name}', quantity={self.quantity})>"
