"""Order model."""
from sqlalchemy import Column, String, Numeric, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from marketplace.database import Base, BigId


class Order(Base):
    """Order committed from a cart. Immutable once created."""

    __tablename__ = 'orders'

    id = Column(BigId, primary_key=True, autoincrement=True)
    buyer_id = Column(BigId, ForeignKey('app_user.id'), nullable=False, index=True)
    # Opaque, globally unique, generated at commit time
    transaction_id = Column(String(64), nullable=False, unique=True)
    subtotal = Column(Numeric(12, 2), nullable=False)
    tax = Column(Numeric(12, 2), nullable=False, default=0, server_default='0')
    shipping_price = Column(Numeric(12, 2), nullable=False, default=0, server_default='0')
    total = Column(Numeric(12, 2), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    buyer = relationship('AppUser')
    lines = relationship('OrderLine', back_populates='order', cascade='all, delete-orphan',
                         passive_deletes=True, order_by='OrderLine.id')

    def __repr__(self):
        return f"<Order(id={self.id}, transaction_id='{self.transaction_id}', total={self.total})>"
