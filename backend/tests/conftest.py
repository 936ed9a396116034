"""
Pytest fixtures for the phone shop backend tests.

Provides the app on an in-memory database, a per-test clean slate, signed-in
admin / seller headers and small entity factories.
"""

from decimal import Decimal

import pytest
from phoneshop import create_app
from phoneshop.extensions import db
from phoneshop.models import (
    Category, Customer, ExpenseCategory, IMEI, Product, Supplier, User,
)
from phoneshop.services import sale_service, session_service
from phoneshop.services.auth_service import hash_password


ADMIN_PHONE = "09123456789"
SELLER_PHONE = "09987654321"
PASSWORD = "password123"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def client(app, db_session):
    """Create test client."""
    return app.test_client()


# =============================================================================
# USERS & AUTH
# =============================================================================

def _make_user(name: str, phone: str, role: str) -> User:
    user = User(
        name=name,
        phone=phone,
        role=role,
        status="ACTIVE",
        password_hash=hash_password(PASSWORD),
    )
    db.session.add(user)
    db.session.commit()
    return user


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def admin_user(db_session):
    return _make_user("Admin", ADMIN_PHONE, "ADMIN")


@pytest.fixture
def seller_user(db_session):
    return _make_user("Seller", SELLER_PHONE, "SELLER")


@pytest.fixture
def admin_headers(admin_user):
    _, token = session_service.create_session(admin_user.id)
    return auth_headers(token)


@pytest.fixture
def seller_headers(seller_user):
    _, token = session_service.create_session(seller_user.id)
    return auth_headers(token)


# =============================================================================
# FACTORIES
# =============================================================================

@pytest.fixture
def make_category(db_session):
    counter = {"n": 0}

    def _make(name: str | None = None) -> Category:
        counter["n"] += 1
        category = Category(name=name or f"Category {counter['n']}")
        db_session.add(category)
        db_session.commit()
        return category

    return _make


@pytest.fixture
def make_product(db_session, make_category):
    counter = {"n": 0}

    def _make(*, stock: int = 10, price: str = "100.00", cost_price: str = "80.00", category=None, **fields) -> Product:
        counter["n"] += 1
        product = Product(
            name=fields.pop("name", f"Phone {counter['n']}"),
            brand=fields.pop("brand", "Acme"),
            model=fields.pop("model", f"A{counter['n']}"),
            barcode=fields.pop("barcode", f"BC{counter['n']:06d}"),
            price=Decimal(price),
            cost_price=Decimal(cost_price),
            stock=stock,
            category_id=(category or make_category()).id,
            **fields,
        )
        db_session.add(product)
        db_session.commit()
        return product

    return _make


@pytest.fixture
def make_imei(db_session):
    counter = {"n": 0}

    def _make(product: Product, *, status: str = "IN_STOCK", imei: str | None = None) -> IMEI:
        counter["n"] += 1
        row = IMEI(imei=imei or f"35000000000{counter['n']:04d}", product_id=product.id, status=status)
        db_session.add(row)
        db_session.commit()
        return row

    return _make


@pytest.fixture
def make_customer(db_session):
    counter = {"n": 0}

    def _make(*, name: str | None = None, phone: str | None = None) -> Customer:
        counter["n"] += 1
        customer = Customer(name=name or f"Customer {counter['n']}", phone=phone or f"0940000{counter['n']:04d}")
        db_session.add(customer)
        db_session.commit()
        return customer

    return _make


@pytest.fixture
def make_supplier(db_session):
    def _make(name: str = "Mega Distribution") -> Supplier:
        supplier = Supplier(name=name)
        db_session.add(supplier)
        db_session.commit()
        return supplier

    return _make


@pytest.fixture
def make_expense_category(db_session):
    def _make(name: str = "Utilities") -> ExpenseCategory:
        category = ExpenseCategory(name=name)
        db_session.add(category)
        db_session.commit()
        return category

    return _make


@pytest.fixture
def make_sale(db_session):
    """Check out one line through the sale service (stock and IMEI bookkeeping included)."""

    def _make(product: Product, *, quantity: int = 1, imei: IMEI | None = None, customer=None, unit_price: str = "100.00"):
        total = Decimal(unit_price) * quantity
        item = {"product_id": product.id, "quantity": quantity, "unit_price": unit_price}
        if imei is not None:
            item["imei_id"] = imei.id
        payload = {
            "subtotal": str(total),
            "total_amount": str(total),
            "paid_amount": str(total),
            "payment_method": "CASH",
            "items": [item],
        }
        if customer is not None:
            payload["customer_id"] = customer.id
        return sale_service.create_sale(payload)

    return _make
