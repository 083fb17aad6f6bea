import pytest
import os
import tempfile
import uuid
from decimal import Decimal

# Tests run against a throwaway SQLite file unless a database is provided (e.g. by Docker)
if 'TEST_DATABASE_URL' not in os.environ:
    os.environ['TEST_DATABASE_URL'] = 'sqlite:///' + os.path.join(
        tempfile.gettempdir(), f'marketplace_test_{os.getpid()}.db'
    )

from marketplace import create_app
from marketplace.database import Base, create_all, drop_all, get_session
from marketplace.models import AppUser, Product, Address, CartItem


@pytest.fixture(scope='session')
def app():
    """Create application instance for testing."""
    app = create_app('config.TestConfig')
    drop_all()
    create_all()
    yield app
    get_session().remove()
    drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def session(app):
    """Create database session for testing; every table is emptied afterwards."""
    session = get_session()
    yield session
    session.rollback()
    for table in reversed(Base.metadata.sorted_tables):
        session.execute(table.delete())
    session.commit()
    session.remove()


def _make_user(session, first_name):
    suffix = str(uuid.uuid4())[:8]
    user = AppUser(
        first_name=first_name,
        last_name='Test',
        email=f'{first_name.lower()}-{suffix}@test.com'
    )
    session.add(user)
    session.commit()
    return user


@pytest.fixture(scope='function')
def buyer(session):
    """User who fills a cart and checks out."""
    return _make_user(session, 'Buyer')


@pytest.fixture(scope='function')
def seller(session):
    """User who lists products."""
    return _make_user(session, 'Seller')


@pytest.fixture(scope='function')
def seller2(session):
    """Second seller for shared-order tests."""
    return _make_user(session, 'Other')


@pytest.fixture(scope='function')
def seller_address(session, seller):
    """Default address of the seller (gives its products a location)."""
    address = Address(
        user_id=seller.id,
        address='123 Market St',
        city='Springfield',
        state='IL',
        zipcode='62701',
        is_default=True
    )
    session.add(address)
    session.commit()
    return address


@pytest.fixture(scope='function')
def seller2_address(session, seller2):
    address = Address(
        user_id=seller2.id,
        address='9 Harbor Rd',
        city='Portland',
        state='ME',
        zipcode='04101',
        is_default=True
    )
    session.add(address)
    session.commit()
    return address


@pytest.fixture(scope='function')
def product(session, seller, seller_address):
    """Active product with 5 units at 10.00."""
    product = Product(
        user_id=seller.id,
        name='Desk Lamp',
        price=Decimal('10.00'),
        quantity=5,
        active=True
    )
    session.add(product)
    session.commit()
    return product


@pytest.fixture(scope='function')
def product2(session, seller2, seller2_address):
    """Active product of the second seller with 3 units at 4.50."""
    product = Product(
        user_id=seller2.id,
        name='Notebook',
        price=Decimal('4.50'),
        quantity=3,
        active=True
    )
    session.add(product)
    session.commit()
    return product


@pytest.fixture(scope='function')
def cart_item(session, buyer, product):
    """Two units of product in the buyer's cart."""
    item = CartItem(user_id=buyer.id, product_id=product.id, quantity=2)
    session.add(item)
    session.commit()
    return item


@pytest.fixture(scope='function')
def authenticated_client(client, buyer):
    """Client logged in as the buyer."""
    # Read before session_transaction, its teardown detaches fixture objects
    buyer_id = buyer.id
    with client.session_transaction() as sess:
        sess['user_id'] = buyer_id
    return client


@pytest.fixture(scope='function')
def seller_client(app, seller):
    """Second client logged in as the seller."""
    seller_id = seller.id
    client = app.test_client()
    with client.session_transaction() as sess:
        sess['user_id'] = seller_id
    return client
