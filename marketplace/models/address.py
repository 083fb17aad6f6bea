"""Address model."""
from sqlalchemy import Column, String, Boolean, ForeignKey, Index, text
from sqlalchemy.orm import relationship
from marketplace.database import Base, BigId


class Address(Base):
    """User address. Exactly one default per user once the user has any address."""

    __tablename__ = 'address'
    __table_args__ = (
        # The store itself refuses a second default for the same user
        Index(
            'uq_address_one_default_per_user', 'user_id',
            unique=True,
            postgresql_where=text('is_default'),
            sqlite_where=text('is_default = 1'),
        ),
    )

    id = Column(BigId, primary_key=True, autoincrement=True)
    user_id = Column(BigId, ForeignKey('app_user.id'), nullable=False, index=True)
    address = Column(String(255), nullable=False)
    city = Column(String(100), nullable=False)
    state = Column(String(100), nullable=False)
    zipcode = Column(String(20), nullable=False)
    is_default = Column(Boolean, nullable=False, default=False)

    user = relationship('AppUser', back_populates='addresses')

    def to_dict(self):
        return {
            'id': self.id,
            'userId': self.user_id,
            'address': self.address,
            'city': self.city,
            'state': self.state,
            'zipcode': self.zipcode,
            'isDefault': self.is_default,
        }

    def __repr__(self):
        return f"<Address(id={self.id}, user_id={self.user_id}, is_default={self.is_default})>"
