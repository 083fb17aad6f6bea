"""Cart Item model."""
from sqlalchemy import Column, Integer, DateTime, ForeignKey, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from marketplace.database import Base, BigId


class CartItem(Base):
    """Item staged in a user's cart. One row per (user, product)."""

    __tablename__ = 'cart_item'
    __table_args__ = (
        UniqueConstraint('user_id', 'product_id', name='uq_cart_item_user_product'),
        CheckConstraint('quantity > 0', name='ck_cart_item_quantity_positive'),
    )

    id = Column(BigId, primary_key=True, autoincrement=True)
    user_id = Column(BigId, ForeignKey('app_user.id'), nullable=False, index=True)
    product_id = Column(BigId, ForeignKey('product.id', ondelete='CASCADE'), nullable=False)
    quantity = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    product = relationship('Product')

    def to_dict(self):
        return {
            'id': self.id,
            'userId': self.user_id,
            'productId': self.product_id,
            'quantity': self.quantity,
            'date': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<CartItem(id={self.id}, product_id={self.product_id}, quantity={self.quantity})>"
