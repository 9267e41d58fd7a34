"""
Pytest fixtures for checkout backend tests.

Provides an in-memory database app, test client, catalogue fixtures and
ready-made checkout payloads.
"""

import pytest

from checkout import create_app
from checkout.extensions import db, mail
from checkout.models import Product, ProductVariant
from checkout.time_utils import utcnow


# Luhn-valid test cards; the simulated gateway decides on the trailing digits
CARD_APPROVED = "4111111111111111"        # odd last digit
CARD_APPROVED_EVEN = "4242424242424242"   # even, no special suffix
CARD_DECLINED_BANK = "4000000000000010"   # ...10
CARD_DECLINED_FUNDS = "4000000000000804"  # ...4
CARD_GATEWAY_ERROR = "4000000000000200"   # ...00
CARD_ENDING_99 = "4000000000000499"     # ...99, but odd so approved
CARD_AMEX = "378282246310005"
CARD_MASTERCARD = "5555555555554444"
CARD_DISCOVER = "6011111111111117"
CARD_UNKNOWN_BRAND = "9000000000000001"
CARD_BAD_LUHN = "4242424242424241"


def future_expiry(years: int = 3) -> str:
    return f"12/{(utcnow().year + years) % 100:02d}"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'MAIL_SUPPRESS_SEND': True,
        'TAX_RATE_BPS': 0,
        'PAYMENT_LATENCY_MIN_MS': 0,
        'PAYMENT_LATENCY_MAX_MS': 0,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        db.session.rollback()
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()
        mail.outbox.clear()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def product(db_session):
    """Headphones with 5 units; black has 5, white has 2; one size option."""
    product = Product(
        name="Premium Wireless Headphones",
        description="Noise-cancelling headphones",
        price_cents=19999,
        image="https://example.test/headphones.jpg",
        category="Electronics",
        inventory=5,
        is_active=True,
    )
    product.variants = [
        ProductVariant(type="color", name="Midnight Black", value="black", stock=5),
        ProductVariant(type="color", name="Pearl White", value="white", stock=2),
        ProductVariant(type="size", name="Standard", value="standard", stock=5),
    ]
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def inactive_product(db_session):
    product = Product(name="Retired Speaker", price_cents=4999, category="Electronics", inventory=10, is_active=False)
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture
def customer_payload():
    return {
        "fullName": "Asha Verma",
        "email": "Asha.Verma@Example.com",
        "phone": "+91 98765 43210",
        "address": {
            "street": "12 MG Road, Indiranagar",
            "city": "Bengaluru",
            "state": "Karnataka",
            "zipCode": "560038",
            "country": "India",
        },
    }


@pytest.fixture
def order_payload(product, customer_payload):
    """Builds a POST /api/orders body; override pieces via keyword args."""
    def _build(
        *,
        quantity=1,
        variants=None,
        card_number=CARD_APPROVED,
        cvv="123",
        transaction_result="approved",
        email=None,
        product_id=None,
    ):
        customer = dict(customer_payload)
        if email:
            customer["email"] = email
        payload = {
            "customer": customer,
            "product": {
                "productId": product_id if product_id is not None else product.id,
                "quantity": quantity,
                "selectedVariants": variants if variants is not None else [],
            },
            "paymentInfo": {
                "cardNumber": card_number,
                "expiryDate": future_expiry(),
                "cvv": cvv,
                "cardholderName": "Asha Verma",
            },
        }
        if transaction_result is not None:
            payload["transactionResult"] = transaction_result
        return payload

    return _build
