"""Product Photo model."""
from sqlalchemy import Column, String, ForeignKey
from sqlalchemy.orm import relationship
from marketplace.database import Base, BigId


class ProductPhoto(Base):
    """Image-store key attached to a product. Binary content never reaches this service."""

    __tablename__ = 'product_photo'

    id = Column(BigId, primary_key=True, autoincrement=True)
    product_id = Column(BigId, ForeignKey('product.id', ondelete='CASCADE'), nullable=False, index=True)
    path = Column(String(255), nullable=False)

    product = relationship('Product', back_populates='photos')

    def to_dict(self):
        return {'id': self.id, 'productId': self.product_id, 'path': self.path}

    def __repr__(self):
        return f"<ProductPhoto(id={self.id}, product_id={self.product_id}, path='{self.path}')>"
