"""
Pytest fixtures for DRIV'N COOK backend tests.

Provides the test database, users with their franchises, a small catalog
with stock, fake mail and Stripe gateways, and the test client.
"""

import pytest

from drivncook import create_app
from drivncook.extensions import db
from drivncook.models import (
    Franchise,
    Product,
    ProductCategory,
    Stock,
    User,
    Warehouse,
)
from drivncook.services import mail_service, payment_gateway
from drivncook.services.auth_service import hash_password

PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
        'MAIL_ENABLED': False,
        'ADMIN_EMAIL': '',
        'APP_BASE_URL': 'http://testserver',
        'STRIPE_SECRET_KEY': 'sk_test_dummy',
        'STRIPE_ENTRY_FEE_WEBHOOK_SECRET': 'whsec_entry_fee',
        'STRIPE_ORDERS_WEBHOOK_SECRET': 'whsec_orders',
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
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


def make_user(db_session, email: str, role: str, *, is_active: bool = True, **kwargs) -> User:
    user = User(
        email=email,
        password_hash=hash_password(PASSWORD),
        role=role,
        is_active=is_active,
        first_name=kwargs.pop("first_name", "Test"),
        last_name=kwargs.pop("last_name", role.title()),
        **kwargs,
    )
    db_session.add(user)
    db_session.commit()
    return user


def make_franchise(db_session, user: User, *, siret: str, status: str = "ACTIVE", **kwargs) -> Franchise:
    values = {
        "business_name": f"Food Truck {siret[-3:]}",
        "address": "12 rue de la Paix",
        "city": "Paris",
        "postal_code": "75002",
        "region": "Île-de-France",
        "contact_email": f"contact-{siret[-3:]}@trucks.test",
        "contact_phone": "0601020304",
        "entry_fee_cents": 5_000_000,
        "royalty_rate": 4.0,
        "kbis_document_url": "https://files.test/kbis.pdf",
        "id_card_document_url": "https://files.test/id.pdf",
    }
    values.update(kwargs)
    franchise = Franchise(user_id=user.id, siret_number=siret, status=status, **values)
    db_session.add(franchise)
    db_session.commit()
    return franchise


@pytest.fixture(scope='function')
def admin_user(db_session):
    """Head office administrator."""
    return make_user(db_session, "admin@drivncook.test", "ADMIN")


@pytest.fixture(scope='function')
def super_admin(db_session):
    return make_user(db_session, "root@drivncook.test", "SUPER_ADMIN")


@pytest.fixture(scope='function')
def franchisee(db_session):
    """Active franchisee owning an ACTIVE franchise with its documents."""
    user = make_user(db_session, "owner@trucks.test", "FRANCHISEE")
    make_franchise(db_session, user, siret="12345678900011")
    return user


@pytest.fixture(scope='function')
def franchise(franchisee):
    return franchisee.franchise


@pytest.fixture(scope='function')
def other_franchisee(db_session):
    """Franchisee of a second, unrelated franchise."""
    user = make_user(db_session, "other@trucks.test", "FRANCHISEE")
    make_franchise(db_session, user, siret="98765432100022")
    return user


@pytest.fixture(scope='function')
def other_franchise(other_franchisee):
    return other_franchisee.franchise


@pytest.fixture(scope='function')
def category(db_session):
    cat = ProductCategory(name="Viandes", is_active=True)
    db_session.add(cat)
    db_session.commit()
    return cat


@pytest.fixture(scope='function')
def product(db_session, category):
    prod = Product(
        name="Steak haché",
        sku="VIA-001",
        unit_price_cents=1000,
        unit="kg",
        min_stock=5,
        category_id=category.id,
        is_active=True,
    )
    db_session.add(prod)
    db_session.commit()
    return prod


@pytest.fixture(scope='function')
def warehouse(db_session):
    wh = Warehouse(
        name="Entrepôt Ivry",
        address="5 quai de Seine",
        city="Ivry-sur-Seine",
        postal_code="94200",
        region="Île-de-France",
        capacity=10_000,
        is_active=True,
    )
    db_session.add(wh)
    db_session.commit()
    return wh


@pytest.fixture(scope='function')
def stock(db_session, product, warehouse):
    """100 units, nothing reserved."""
    row = Stock(product_id=product.id, warehouse_id=warehouse.id, quantity=100, reserved_qty=0)
    db_session.add(row)
    db_session.commit()
    return row


class FakeMailer:
    """Records messages instead of talking to SMTP."""

    def __init__(self):
        self.sent = []
        self.fail = False

    def __call__(self, recipients, subject, text, html=None, attachments=None):
        if self.fail:
            raise mail_service.MailDeliveryError("SMTP indisponible")
        self.sent.append({
            "recipients": list(recipients),
            "subject": subject,
            "text": text,
            "attachments": attachments or [],
        })
        return True


@pytest.fixture(scope='function')
def mailer(monkeypatch):
    fake = FakeMailer()
    monkeypatch.setattr(mail_service, "send_email", fake)
    return fake


class FakeStripe:
    """
    In-memory stand-in for the payment gateway.

    Intents are stored by id so tests can flip their status; webhook
    events are accepted when the signature header is "valid".
    """

    def __init__(self):
        self.intents = {}
        self.sessions = {}

    def create_payment_intent(self, *, amount_cents, metadata, description=None):
        intent_id = f"pi_test_{len(self.intents) + 1}"
        self.intents[intent_id] = {
            "id": intent_id,
            "status": "requires_payment_method",
            "amount": amount_cents,
            "metadata": {k: str(v) for k, v in metadata.items()},
        }
        return {"id": intent_id, "client_secret": f"{intent_id}_secret", "status": "requires_payment_method"}

    def create_checkout_session(self, *, amount_cents, product_name, metadata, success_url, cancel_url,
                                customer_email=None):
        session_id = f"cs_test_{len(self.sessions) + 1}"
        self.sessions[session_id] = {
            "amount": amount_cents,
            "metadata": {k: str(v) for k, v in metadata.items()},
            "success_url": success_url,
        }
        return {"id": session_id, "url": f"https://checkout.stripe.test/{session_id}"}

    def retrieve_payment_intent(self, payment_intent_id):
        return dict(self.intents[payment_intent_id])

    def succeed(self, payment_intent_id):
        self.intents[payment_intent_id]["status"] = "succeeded"

    def construct_webhook_event(self, payload, signature, secret):
        import json
        if signature != "valid":
            raise payment_gateway.WebhookSignatureError("bad signature")
        return json.loads(payload)


@pytest.fixture(scope='function')
def fake_stripe(monkeypatch):
    fake = FakeStripe()
    for name in (
        "create_payment_intent",
        "create_checkout_session",
        "retrieve_payment_intent",
        "construct_webhook_event",
    ):
        monkeypatch.setattr(payment_gateway, name, getattr(fake, name))
    return fake


def get_auth_token(client, email: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'email': email,
        'password': password
    })
    if response.status_code == 200:
        return response.get_json()['data']['token']
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


def login(client, user: User) -> dict:
    return auth_headers(get_auth_token(client, user.email))
