"""
Pytest fixtures for ResellerPro backend tests.

Every test gets a fresh in-memory database with the plan catalog seeded,
two resellers (A and B) for isolation checks, and bearer tokens for both.
"""

import bcrypt
import pytest

from resellerpro import create_app
from resellerpro.extensions import db
from resellerpro.models import Product, Customer, Enquiry, Subscription
from resellerpro.services import auth_service, billing_service, plan_service, session_service


PASSWORD = "Password123!"
ADMIN_PASSWORD = "AdminPass123!"
WEBHOOK_SECRET = "whsec_test"
CRON_SECRET = "cron-test-secret"


@pytest.fixture(scope='function')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
        'MAIL_SUPPRESS_SEND': True,
        'RAZORPAY_KEY_ID': 'mock',
        'RAZORPAY_KEY_SECRET': 'mock-secret',
        'RAZORPAY_WEBHOOK_SECRET': WEBHOOK_SECRET,
        'CRON_SECRET': CRON_SECRET,
        'ADMIN_USERNAME': 'admin',
        'ADMIN_PASSWORD_HASH': bcrypt.hashpw(ADMIN_PASSWORD.encode("utf-8"), bcrypt.gensalt(rounds=4)).decode("utf-8"),
        'ADMIN_SESSION_SECRET': 'admin-test-secret',
        'APP_URL': 'https://app.resellerpro.test',
    })

    with app.app_context():
        db.create_all()
        plan_service.seed_plans()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def profile_a(app):
    """Reseller A on the free plan."""
    return auth_service.signup(email="asha@shop-a.in", password=PASSWORD, full_name="Asha Rao", phone="9876543210")


@pytest.fixture(scope='function')
def profile_b(app):
    """Reseller B on the free plan."""
    return auth_service.signup(email="bilal@shop-b.in", password=PASSWORD, full_name="Bilal Khan", phone="9123456780")


@pytest.fixture(scope='function')
def token_a(profile_a):
    _session, token = session_service.create_session(profile_a.id, user_agent="pytest")
    return token


@pytest.fixture(scope='function')
def token_b(profile_b):
    _session, token = session_service.create_session(profile_b.id, user_agent="pytest")
    return token


@pytest.fixture(scope='function')
def headers_a(token_a):
    return auth_headers(token_a)


@pytest.fixture(scope='function')
def headers_b(token_b):
    return auth_headers(token_b)


@pytest.fixture(scope='function')
def product_a(profile_a):
    product = Product(
        user_id=profile_a.id,
        name="Cotton Kurti",
        category="Apparel",
        sku="KURTI-001",
        cost_price_paise=30000,
        selling_price_paise=49900,
        stock_quantity=20,
        stock_status="in_stock",
        images=[],
    )
    db.session.add(product)
    db.session.commit()
    return product


@pytest.fixture(scope='function')
def product_b(profile_b):
    product = Product(
        user_id=profile_b.id,
        name="Steel Bottle",
        sku="BOTTLE-001",
        cost_price_paise=15000,
        selling_price_paise=25000,
        images=[],
    )
    db.session.add(product)
    db.session.commit()
    return product


@pytest.fixture(scope='function')
def customer_a(profile_a):
    customer = Customer(user_id=profile_a.id, name="Meena Iyer", phone="9000000001", customer_type="active")
    db.session.add(customer)
    db.session.commit()
    return customer


@pytest.fixture(scope='function')
def enquiry_a(profile_a):
    enquiry = Enquiry(
        user_id=profile_a.id,
        customer_name="Ravi Verma",
        phone="9000000002",
        message="Is the kurti available in XL?",
        status="new",
    )
    db.session.add(enquiry)
    db.session.commit()
    return enquiry


def set_plan(profile, plan_name: str) -> Subscription:
    """Put a reseller on a paid plan for one month."""
    sub = billing_service.activate_plan(profile.id, plan_service.get_plan_by_name(plan_name))
    db.session.commit()
    return sub


def get_auth_token(client, email: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'email': email,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}
