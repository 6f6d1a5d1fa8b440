"""
Shared pytest fixtures and configuration for all tests.

Provides common fixtures for Flask application testing, database sessions,
authentication, and test data initialization.
"""

import pytest
import sys
import os
from decimal import Decimal
from datetime import date, timedelta

# Add the project root to the path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from pos_dashboard import create_app
from pos_dashboard.models import db, seed_loyalty_tiers


@pytest.fixture(scope='session')
def app_factory():
    """Factory fixture for creating test app instances."""
    def _create_app(config='testing'):
        app = create_app(config)
        app.config['WTF_CSRF_ENABLED'] = False
        app.config['SERVER_NAME'] = 'localhost'
        app.config['TESTING'] = True
        app.config['SQLALCHEMY_DATABASE_URI'] = 'sqlite:///:memory:'
        app.config['ITEMS_PER_PAGE'] = 20
        return app
    return _create_app


@pytest.fixture(scope='session')
def app(app_factory):
    """Create application for testing session."""
    return app_factory()


@pytest.fixture(scope='function')
def fresh_app(app_factory):
    """Create a fresh application for each test with clean database."""
    app = app_factory()

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(fresh_app):
    """Create a test client for each test."""
    return fresh_app.test_client()


@pytest.fixture(scope='function')
def db_session(fresh_app):
    """Provide a database session for testing."""
    with fresh_app.app_context():
        yield db.session
        db.session.rollback()


@pytest.fixture(scope='function')
def init_database(fresh_app):
    """
    Initialize database with test data.

    Creates:
    - Loyalty tiers (Bronze, Silver, Gold, Platinum)
    - Users (admin, manager, cashier, inactive)
    - Products (two 5% GST lines, out-of-stock, expiring, inactive)
    - Customers (Gold with 1200 points, Bronze with 100, new with 0)
    """
    from pos_dashboard.models import User, Product, Customer

    with fresh_app.app_context():
        seed_loyalty_tiers()

        users = [
            ('admin', 'Admin User', 'admin', True),
            ('manager', 'Manager User', 'manager', True),
            ('cashier', 'Cashier User', 'cashier', True),
            ('inactive', 'Inactive User', 'cashier', False),
        ]
        for username, full_name, role, active in users:
            user = User(
                username=username,
                email=f'{username}@test.com',
                full_name=full_name,
                role=role,
                is_active=active
            )
            user.set_password(f'{username}123')
            db.session.add(user)

        products = [
            Product(
                code='PRD001',
                barcode='1234567890123',
                name='Green Tea',
                category='Beverages',
                cost_price=Decimal('15.00'),
                price=Decimal('25.00'),
                gst=Decimal('5'),
                stock=100,
                min_stock_level=10,
                is_active=True
            ),
            Product(
                code='PRD002',
                barcode='1234567890124',
                name='Honey Jar',
                category='Grocery',
                cost_price=Decimal('40.00'),
                price=Decimal('60.00'),
                gst=Decimal('5'),
                stock=3,
                min_stock_level=5,
                is_active=True
            ),
            Product(
                code='PRD003',
                barcode='1234567890125',
                name='Rose Soap',
                category='Household',
                cost_price=Decimal('20.00'),
                price=Decimal('40.00'),
                gst=Decimal('18'),
                stock=0,  # Out of stock
                min_stock_level=10,
                is_active=True
            ),
            Product(
                code='PRD004',
                barcode='1234567890126',
                name='Fresh Milk',
                category='Dairy',
                cost_price=Decimal('20.00'),
                price=Decimal('28.00'),
                gst=Decimal('0'),
                stock=30,
                min_stock_level=5,
                expiry_date=date.today() + timedelta(days=3),
                is_active=True
            ),
            Product(
                code='PRD_INACTIVE',
                barcode='9999999999999',
                name='Discontinued Product',
                cost_price=Decimal('100.00'),
                price=Decimal('200.00'),
                stock=10,
                is_active=False
            ),
        ]
        db.session.add_all(products)

        customers = [
            Customer(name='John Doe', phone='03001234567', email='john@test.com', total_points=1200),
            Customer(name='Jane Smith', phone='03001234568', total_points=100),
            Customer(name='New Customer', phone='03007654321', total_points=0),
        ]
        db.session.add_all(customers)

        db.session.commit()
        yield

        # Cleanup is handled by fresh_app fixture


def _product(code):
    from pos_dashboard.models import Product
    return Product.query.filter_by(code=code).first()


def _customer(phone):
    from pos_dashboard.models import Customer
    return Customer.query.filter_by(phone=phone).first()


@pytest.fixture
def tea(init_database):
    """25.00 at 5% GST, 100 in stock."""
    return _product('PRD001')


@pytest.fixture
def honey(init_database):
    """60.00 at 5% GST, 3 in stock (below its minimum of 5)."""
    return _product('PRD002')


@pytest.fixture
def soap(init_database):
    """Out of stock."""
    return _product('PRD003')


@pytest.fixture
def milk(init_database):
    """Expires in 3 days."""
    return _product('PRD004')


@pytest.fixture
def gold_customer(init_database):
    """1200 points: Gold tier, 10% discount, 1.5x points."""
    return _customer('03001234567')


@pytest.fixture
def bronze_customer(init_database):
    """100 points: Bronze tier, no discount."""
    return _customer('03001234568')


@pytest.fixture
def auth_admin(client, init_database):
    """
    Login as admin user and return authenticated client.
    Admin has access to all features.
    """
    client.post('/auth/login', data={
        'username': 'admin',
        'password': 'admin123'
    }, follow_redirects=True)
    return client


@pytest.fixture
def auth_manager(client, init_database):
    """
    Login as manager user and return authenticated client.
    Manager adds catalog, discount, stock and report access.
    """
    client.post('/auth/login', data={
        'username': 'manager',
        'password': 'manager123'
    }, follow_redirects=True)
    return client


@pytest.fixture
def auth_cashier(client, init_database):
    """
    Login as cashier user and return authenticated client.
    Cashier has billing and customer lookup only.
    """
    client.post('/auth/login', data={
        'username': 'cashier',
        'password': 'cashier123'
    }, follow_redirects=True)
    return client


# Pytest configuration
def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "security: marks tests as security-related"
    )
    config.addinivalue_line(
        "markers", "api: marks tests as API endpoint tests"
    )
    config.addinivalue_line(
        "markers", "auth: marks tests as authentication tests"
    )


def pytest_collection_modifyitems(config, items):
    """Automatically add markers based on test class/function names."""
    for item in items:
        # Add security marker to security tests
        keywords = ['injection', 'csrf', 'sql', 'security', 'permission']
        if any(kw in item.name.lower() for kw in keywords):
            item.add_marker(pytest.mark.security)

        # Add auth marker to authentication tests
        if 'auth' in item.name.lower() or 'login' in item.name.lower():
            item.add_marker(pytest.mark.auth)
