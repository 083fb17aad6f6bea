"""
Critical integration tests for the order commit.
A checkout either persists the order, its lines, the inventory debits and the
cart cleanup together, or none of them.
"""

import threading
from decimal import Decimal

import pytest
from sqlalchemy import event
from sqlalchemy.exc import IntegrityError, OperationalError
from marketplace.blueprints.metrics import registry
from marketplace.database import get_session
from marketplace.models import Order, OrderLine, CartItem, Product
from marketplace.services import checkout_service, inventory_service
from marketplace.services.checkout_service import CheckoutLine, commit_checkout, snapshot_from_cart
from marketplace.exceptions import (
    BusinessLogicError, NotFoundError, UnauthorizedError, InsufficientStockError,
    NotAvailableError, CheckoutFailedError
)


def _quantity(session, product_id):
    return session.query(Product.quantity).filter(Product.id == product_id).scalar()


class TestSnapshot:

    def test_snapshot_uses_current_prices(self, session, buyer, product, cart_item):
        product.price = Decimal('12.00')
        session.commit()

        lines = snapshot_from_cart(session, buyer.id)

        assert len(lines) == 1
        assert lines[0].cart_item_id == cart_item.id
        assert lines[0].unit_price == Decimal('12.00')
        assert lines[0].line_total == Decimal('24.00')

    def test_snapshot_empty_cart(self, session, buyer):
        with pytest.raises(BusinessLogicError):
            snapshot_from_cart(session, buyer.id)

    def test_snapshot_unknown_item(self, session, buyer, cart_item):
        with pytest.raises(NotFoundError):
            snapshot_from_cart(session, buyer.id, [cart_item.id, 999999])


class TestCommitCheckout:

    def test_successful_checkout(self, session, buyer, product, product2):
        session.add_all([
            CartItem(user_id=buyer.id, product_id=product.id, quantity=2),
            CartItem(user_id=buyer.id, product_id=product2.id, quantity=3),
        ])
        session.commit()

        order_id = commit_checkout(session, buyer.id, snapshot_from_cart(session, buyer.id))

        order = session.query(Order).filter(Order.id == order_id).one()
        assert order.buyer_id == buyer.id
        assert order.subtotal == Decimal('33.50')
        assert order.total == order.subtotal
        assert order.tax == Decimal('0')
        assert order.transaction_id

        assert [(line.product_id, line.quantity, line.unit_price) for line in order.lines] == [
            (product.id, 2, Decimal('10.00')),
            (product2.id, 3, Decimal('4.50')),
        ]
        assert _quantity(session, product.id) == 3
        assert _quantity(session, product2.id) == 0
        assert session.query(CartItem).filter(CartItem.user_id == buyer.id).count() == 0

    def test_transaction_ids_are_unique(self, session, buyer, product):
        ids = set()
        for _ in range(2):
            session.add(CartItem(user_id=buyer.id, product_id=product.id, quantity=1))
            session.commit()
            order_id = commit_checkout(session, buyer.id, snapshot_from_cart(session, buyer.id))
            ids.add(session.query(Order.transaction_id).filter(Order.id == order_id).scalar())
        assert len(ids) == 2

    def test_order_price_is_frozen(self, session, buyer, product, cart_item):
        order_id = commit_checkout(session, buyer.id, snapshot_from_cart(session, buyer.id))

        product.price = Decimal('99.00')
        session.commit()

        line = session.query(OrderLine).filter(OrderLine.order_id == order_id).one()
        assert line.unit_price == Decimal('10.00')

    def test_other_users_cart_refused(self, session, buyer, seller2, product, cart_item):
        lines = snapshot_from_cart(session, buyer.id)

        with pytest.raises(UnauthorizedError):
            commit_checkout(session, seller2.id, lines)

        assert session.query(Order).count() == 0
        assert _quantity(session, product.id) == 5

    def test_insufficient_stock(self, session, buyer, product, cart_item):
        lines = snapshot_from_cart(session, buyer.id)
        inventory_service.set_quantity(session, product.id, 1)

        with pytest.raises(InsufficientStockError):
            commit_checkout(session, buyer.id, lines)

        assert session.query(Order).count() == 0
        assert session.query(CartItem).count() == 1

    def test_inactive_product(self, session, buyer, product, cart_item):
        lines = snapshot_from_cart(session, buyer.id)
        product.active = False
        session.commit()

        with pytest.raises(NotAvailableError):
            commit_checkout(session, buyer.id, lines)
        assert session.query(Order).count() == 0

    def test_missing_cart_row_does_not_fail(self, session, buyer, product):
        """The cart row vanished after the snapshot: the order still commits."""
        lines = [CheckoutLine(
            cart_item_id=999999, product_id=product.id, quantity=1,
            unit_price=Decimal('10.00'), buyer_id=buyer.id
        )]

        order_id = commit_checkout(session, buyer.id, lines)

        assert session.query(Order).filter(Order.id == order_id).count() == 1
        assert _quantity(session, product.id) == 4

    def test_failure_on_second_line_rolls_back(self, session, buyer, product, product2, monkeypatch):
        """Line 1 was written and debited when line 2 fails: nothing survives."""
        session.add_all([
            CartItem(user_id=buyer.id, product_id=product.id, quantity=2),
            CartItem(user_id=buyer.id, product_id=product2.id, quantity=1),
        ])
        session.commit()
        lines = snapshot_from_cart(session, buyer.id)

        real_debit = inventory_service.debit_quantity
        calls = []

        def flaky_debit(sess, product_id, qty):
            calls.append(product_id)
            if len(calls) == 2:
                raise OperationalError('UPDATE product', {}, Exception('connection lost'))
            return real_debit(sess, product_id, qty)

        monkeypatch.setattr(checkout_service.inventory_service, 'debit_quantity', flaky_debit)

        with pytest.raises(CheckoutFailedError):
            commit_checkout(session, buyer.id, lines)

        assert calls == [product.id, product2.id]
        assert session.query(Order).count() == 0
        assert session.query(OrderLine).count() == 0
        assert session.query(CartItem).filter(CartItem.user_id == buyer.id).count() == 2
        assert _quantity(session, product.id) == 5
        assert _quantity(session, product2.id) == 3

    def test_failed_line_insert_rolls_back(self, session, buyer, product, product2):
        """The second OrderLine insert fails after line 1 was written and debited."""
        session.add_all([
            CartItem(user_id=buyer.id, product_id=product.id, quantity=2),
            CartItem(user_id=buyer.id, product_id=product2.id, quantity=1),
        ])
        session.commit()
        lines = snapshot_from_cart(session, buyer.id)
        inserted = []

        def reject_second_line(mapper, connection, target):
            inserted.append(target.product_id)
            if len(inserted) == 2:
                raise IntegrityError('INSERT INTO order_line', {}, Exception('constraint failed'))

        event.listen(OrderLine, 'before_insert', reject_second_line)
        try:
            with pytest.raises(CheckoutFailedError):
                commit_checkout(session, buyer.id, lines)
        finally:
            event.remove(OrderLine, 'before_insert', reject_second_line)

        assert inserted == [product.id, product2.id]
        assert session.query(Order).count() == 0
        assert session.query(OrderLine).count() == 0
        assert session.query(CartItem).filter(CartItem.user_id == buyer.id).count() == 2
        assert _quantity(session, product.id) == 5
        assert _quantity(session, product2.id) == 3

    def test_outcomes_are_counted(self, session, buyer, product, cart_item):
        def count(result):
            return registry.get_sample_value('marketplace_checkouts_total', {'result': result}) or 0

        before_success, before_rejected = count('success'), count('rejected')

        commit_checkout(session, buyer.id, snapshot_from_cart(session, buyer.id))
        with pytest.raises(BusinessLogicError):
            commit_checkout(session, buyer.id, [CheckoutLine(
                cart_item_id=0, product_id=product.id, quantity=0,
                unit_price=Decimal('10.00'), buyer_id=buyer.id
            )])

        assert count('success') == before_success + 1
        assert count('rejected') == before_rejected + 1

    def test_empty_lines(self, session, buyer):
        with pytest.raises(BusinessLogicError):
            commit_checkout(session, buyer.id, [])


class TestConcurrentCheckout:

    def test_two_buyers_race_for_last_units(self, app, session, buyer, seller2, product):
        """Stock 5, two checkouts of 3: exactly one order, quantity 2."""
        product_id = product.id
        buyer_ids = [buyer.id, seller2.id]
        for user_id in buyer_ids:
            session.add(CartItem(user_id=user_id, product_id=product_id, quantity=3))
        session.commit()
        session.close()

        results = []
        errors = []
        barrier = threading.Barrier(2, timeout=30)

        def checkout(user_id):
            worker_session = get_session()
            try:
                lines = snapshot_from_cart(worker_session, user_id)
                worker_session.rollback()
                barrier.wait()
                results.append(commit_checkout(worker_session, user_id, lines))
            except InsufficientStockError as e:
                errors.append(e)
            finally:
                worker_session.remove()

        threads = [threading.Thread(target=checkout, args=(uid,)) for uid in buyer_ids]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(results) == 1
        assert len(errors) == 1
        assert _quantity(session, product_id) == 2
        assert session.query(Order).count() == 1
        # The loser keeps its cart row
        assert session.query(CartItem).count() == 1
