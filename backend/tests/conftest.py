"""
Pytest fixtures for GymPOS backend tests.

Provides test database setup, branch/user/item factories and a logged-in
test client.
"""

from decimal import Decimal

import pytest

from gympos import create_app
from gympos.extensions import db
from gympos.models import Branch, Company
from gympos.services import permission_service
from gympos.services.auth_service import create_default_roles, create_user
from gympos.services.inventory_service import create_item


TEST_PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'LEDGER_RETRY_ATTEMPTS': 3,
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


@pytest.fixture(scope='function')
def setup_roles(db_session):
    """Setup default roles and permissions."""
    create_default_roles()
    permission_service.initialize_permissions()
    permission_service.assign_default_role_permissions()
    db_session.commit()


@pytest.fixture(scope='function')
def company(db_session):
    company = Company(
        name="Iron Temple Ltd",
        registration_number="REG-100",
        vat_number="VAT-100",
        address="1 Main Street",
    )
    db_session.add(company)
    db_session.commit()
    return company


@pytest.fixture(scope='function')
def branch(db_session, company):
    branch = Branch(company_id=company.id, name="Downtown")
    db_session.add(branch)
    db_session.commit()
    return branch


@pytest.fixture(scope='function')
def other_branch(db_session, company):
    branch = Branch(company_id=company.id, name="Uptown")
    db_session.add(branch)
    db_session.commit()
    return branch


def _make_user(name, email, role, branch_ids):
    return create_user(
        name=name,
        email=email,
        password=TEST_PASSWORD,
        role_name=role,
        branch_ids=branch_ids,
        bcrypt_rounds=4,
    )


@pytest.fixture(scope='function')
def admin_user(setup_roles, branch):
    return _make_user("Admin", "admin@gympos.test", "admin", [branch.id])


@pytest.fixture(scope='function')
def staff_user(setup_roles, branch):
    return _make_user("Front Desk", "staff@gympos.test", "staff", [branch.id])


@pytest.fixture(scope='function')
def make_item(db_session):
    """Factory: create an item through the service (beginning balance included)."""
    counter = {"n": 0}

    def _make(quantity=0, price="10.00", cost="4.00", branch_id=None, name=None, sku=None):
        counter["n"] += 1
        return create_item(
            name=name or f"Item {counter['n']}",
            sku=sku or f"SKU-{counter['n']:04d}",
            price=Decimal(price),
            cost=Decimal(cost),
            quantity=quantity,
            branch_id=branch_id,
        )

    return _make


def get_auth_token(client, email: str, password: str = TEST_PASSWORD) -> str:
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


@pytest.fixture(scope='function')
def admin_headers(client, admin_user):
    return auth_headers(get_auth_token(client, admin_user.email))


@pytest.fixture(scope='function')
def staff_headers(client, staff_user):
    return auth_headers(get_auth_token(client, staff_user.email))
