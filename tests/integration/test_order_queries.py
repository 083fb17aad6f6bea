"""
Integration tests for buyer and seller order views.
"""

from decimal import Decimal
from marketplace.models import CartItem, Address
from marketplace.services import order_query_service
from marketplace.services.checkout_service import commit_checkout, snapshot_from_cart


def _shared_order(session, buyer, product, product2):
    """One order with a line from each seller."""
    session.add_all([
        CartItem(user_id=buyer.id, product_id=product.id, quantity=1),
        CartItem(user_id=buyer.id, product_id=product2.id, quantity=2),
    ])
    session.commit()
    return commit_checkout(session, buyer.id, snapshot_from_cart(session, buyer.id))


class TestBuyerView:

    def test_buyer_sees_every_line(self, session, buyer, product, product2):
        order_id = _shared_order(session, buyer, product, product2)

        orders = order_query_service.orders_for_buyer(session, buyer.id)

        assert len(orders) == 1
        order = orders[0]
        assert order['id'] == order_id
        assert order['total'] == '19.00'
        assert order['buyerEmail'] == buyer.email
        assert [line['productId'] for line in order['products']] == [product.id, product2.id]
        assert order['products'][0]['productCity'] == 'Springfield'
        assert order['products'][1]['sellerFirstName'] == 'Other'

    def test_no_orders(self, session, buyer):
        assert order_query_service.orders_for_buyer(session, buyer.id) == []


class TestSellerView:

    def test_seller_sees_only_own_lines(self, session, buyer, seller, seller2, product, product2):
        order_id = _shared_order(session, buyer, product, product2)

        orders = order_query_service.orders_for_seller(session, seller.id)

        assert len(orders) == 1
        order = orders[0]
        assert order['id'] == order_id
        assert [line['productId'] for line in order['products']] == [product.id]
        assert order['sellerTotal'] == '10.00'
        assert 'total' not in order

        other = order_query_service.orders_for_seller(session, seller2.id)
        assert [line['productId'] for line in other[0]['products']] == [product2.id]
        assert other[0]['sellerTotal'] == '9.00'

    def test_buyer_is_not_a_seller(self, session, buyer, product, product2):
        _shared_order(session, buyer, product, product2)
        assert order_query_service.orders_for_seller(session, buyer.id) == []

    def test_seller_without_default_address(self, session, buyer, seller, product, product2):
        """Location fields are empty when the seller has no default address anymore."""
        _shared_order(session, buyer, product, product2)
        session.query(Address).filter(Address.user_id == seller.id).delete()
        session.commit()

        orders = order_query_service.orders_for_seller(session, seller.id)

        line = orders[0]['products'][0]
        assert line['unitPrice'] == '10.00'
        assert line['productAddress'] is None
        assert line['productCity'] is None
