"""
Pytest fixtures for labor slip backend tests.

Provides test database setup, two companies for isolation checks, a
back-office user with a membership, and helpers for authenticated requests.
"""

import pytest
from laborslip import create_app
from laborslip.extensions import db
from laborslip.models import Company, ContactProfile, User, CompanyMembership
from laborslip.services.auth_service import hash_password
from laborslip.services import report_service


TEST_PASSWORD = "Password123"

SIGNATURE = "data:image/png;base64,iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="


@pytest.fixture(scope='session')
def app(tmp_path_factory):
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'UPLOAD_FOLDER': str(tmp_path_factory.mktemp("uploads")),
        'PUBLIC_BASE_URL': 'https://slips.example.com',
        'LINE_CHANNEL_ACCESS_TOKEN': None,
        'LINE_API_BASE': 'https://line.test',
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
def company_a(db_session):
    """Create Company A (first tenant)."""
    company = Company(name="甲公司股份有限公司", tax_id="12345678", responsible_person="王大明")
    db_session.add(company)
    db_session.commit()
    return company


@pytest.fixture(scope='function')
def company_b(db_session):
    """Create Company B (second tenant)."""
    company = Company(name="乙工作室", tax_id="87654321")
    db_session.add(company)
    db_session.commit()
    return company


@pytest.fixture(scope='function')
def user_a(db_session, company_a):
    """Create User A with access to Company A only."""
    user = User(
        username="user_a",
        email="user_a@example.com",
        password_hash=hash_password(TEST_PASSWORD),
    )
    db_session.add(user)
    db_session.commit()

    db_session.add(CompanyMembership(user_id=user.id, company_id=company_a.id))
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def complete_contact(db_session, company_a):
    """A profile with every field needed to skip the full signing form."""
    contact = ContactProfile(
        company_id=company_a.id,
        name="陳小華",
        id_number="A123456789",
        phone="0912345678",
        address="台北市信義區松高路1號",
        bank_name="台灣銀行",
        bank_branch="信義分行",
        bank_account="123456789012",
        is_union_member=False,
        id_card_front_url="https://slips.example.com/files/attachments/front.jpg",
        id_card_back_url="https://slips.example.com/files/attachments/back.jpg",
        bank_book_url="https://slips.example.com/files/attachments/book.jpg",
    )
    db_session.add(contact)
    db_session.commit()
    return contact


@pytest.fixture(scope='function')
def pending_report(db_session, company_a):
    """A pending 9A report without a linked contact."""
    return report_service.create_report(company_a.id, {
        "payee_name": "林講師",
        "income_type": "9A",
        "gross_amount": 50000,
        "payment_date": "2026-03-15",
        "description": "三月份講座",
    })


@pytest.fixture
def sign_payload():
    """Factory for a complete signing submission."""
    def _make(**overrides) -> dict:
        payload = {
            "name": "林講師",
            "id_number": "b223456789",
            "phone": "0922333444",
            "address": "新北市板橋區文化路100號",
            "bank_name": "中華郵政",
            "bank_account": "0001234567890",
            "signature_data": SIGNATURE,
        }
        payload.update(overrides)
        return payload
    return _make


def get_auth_token(client, username: str, password: str) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'username': username,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str, company_id: int | None = None) -> dict:
    """Helper to create Authorization (and company) headers."""
    headers = {'Authorization': f'Bearer {token}'}
    if company_id is not None:
        headers['X-Company-Id'] = str(company_id)
    return headers


@pytest.fixture(scope='function')
def token_a(client, user_a):
    return get_auth_token(client, "user_a", TEST_PASSWORD)


@pytest.fixture(scope='function')
def headers_a(token_a, company_a):
    """User A acting for Company A."""
    return auth_headers(token_a, company_a.id)
