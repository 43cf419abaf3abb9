"""
Shared test fixtures.

Entity snapshots, an in-memory blob storage and an in-memory entity
gateway so the pipeline can run without Supabase or a populated database.
"""

import sys
from datetime import datetime
from pathlib import Path

import pytest
from flask import g

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from services.documents import (
    ApplicationSnapshot,
    CompanySnapshot,
    DocumentLoader,
    EntityNotFoundError,
    PropertySnapshot,
    StyleSheet,
)

COMPANY_ID = 'c0a1b2c3-0000-4000-8000-000000000001'
OTHER_COMPANY_ID = 'c0a1b2c3-0000-4000-8000-000000000002'
PROPERTY_ID = 'a1b2c3d4-1111-4111-8111-000000000001'
APPLICATION_ID = 'f9e8d7c6-2222-4222-8222-000000000001'

GENERATED_AT = datetime(2025, 3, 14, 17, 30, 0)


# =============================================================================
# SNAPSHOTS
# =============================================================================

def make_company(**overrides) -> CompanySnapshot:
    data = dict(
        id=COMPANY_ID,
        name='Maple Property Group',
        address='500 Main St, Austin, TX 78701',
        phone='5125550100',
        email='leasing@maplepg.com',
        brand_color='#0f766e',
    )
    data.update(overrides)
    return CompanySnapshot(**data)


def make_property(**overrides) -> PropertySnapshot:
    data = dict(
        id=PROPERTY_ID,
        company_id=COMPANY_ID,
        address='742 Evergreen Terrace',
        rent=2000.0,
        unit_number='4B',
        bedrooms=2,
        bathrooms=1.5,
        square_feet=950,
        description='Bright corner unit with oak floors.\n\nSteps from the park.',
        lockbox_code='4821',
        amenities=('In-unit laundry', 'Rooftop deck', 'Bike storage'),
        building_name='Evergreen Lofts',
        status='available',
    )
    data.update(overrides)
    return PropertySnapshot(**data)


def make_application(**overrides) -> ApplicationSnapshot:
    data = dict(
        id=APPLICATION_ID,
        company_id=COMPANY_ID,
        applicant_name='Jordan Avery',
        property_id=PROPERTY_ID,
        applicant_email='jordan.avery@example.com',
        applicant_phone='5125550199',
        monthly_income=6000.0,
        monthly_debt=400.0,
        credit_score=700,
        employer='Lakeside Health',
        status='submitted',
    )
    data.update(overrides)
    return ApplicationSnapshot(**data)


# =============================================================================
# FAKES
# =============================================================================

class InMemoryStorage:
    """Blob storage kept in a dict. Flags make individual calls fail."""

    def __init__(self, fail_upload=False, fail_url=False):
        self.blobs = {}
        self.fail_upload = fail_upload
        self.fail_url = fail_url

    def upload(self, storage_path, data, content_type):
        if self.fail_upload:
            raise ConnectionError("storage.example.internal:443 connection reset")
        self.blobs[storage_path] = data

    def signed_url(self, storage_path):
        if self.fail_url:
            raise ConnectionError("signing service unavailable")
        return f"https://storage.test/generated-documents/{storage_path}?token=signed"

    def download(self, storage_path):
        return self.blobs[storage_path]


class MemoryHistoryIndex:
    """History index kept in a list, newest last."""

    def __init__(self, fail_add=False):
        self.entries = []
        self.fail_add = fail_add

    def add(self, entry):
        if self.fail_add:
            raise RuntimeError("database is locked")
        self.entries.append(entry)

    def list(self, owner=None, document_type=None, limit=50):
        entries = [
            e for e in self.entries
            if (owner is None or e.company_id == owner)
            and (document_type is None or e.document_type == document_type)
        ]
        entries.sort(key=lambda e: e.created_at, reverse=True)
        return entries[:limit]

    def get(self, document_id, owner):
        return next(
            (e for e in self.entries if e.document_id == document_id and e.company_id == owner),
            None
        )


class FakeGateway:
    """Entity gateway over in-memory snapshots, scoped by company like the real one."""

    def __init__(self, properties=(), applications=(), companies=()):
        self.properties = {p.id: p for p in properties}
        self.applications = {a.id: a for a in applications}
        self.companies = {c.id: c for c in companies}

    def get_property(self, property_id, company_id):
        found = self.properties.get(property_id)
        if found is None or found.company_id != company_id:
            raise EntityNotFoundError('property', property_id)
        return found

    def get_application(self, application_id, company_id):
        found = self.applications.get(application_id)
        if found is None or found.company_id != company_id:
            raise EntityNotFoundError('application', application_id)
        return found

    def get_company(self, company_id):
        found = self.companies.get(company_id)
        if found is None:
            raise EntityNotFoundError('company', company_id)
        return found


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def documents_loaded():
    """Load all document definitions."""
    DocumentLoader.clear()
    DocumentLoader.load_all()
    yield
    DocumentLoader.clear()


@pytest.fixture
def style():
    return StyleSheet.load()


@pytest.fixture
def gateway():
    return FakeGateway(
        properties=[make_property()],
        applications=[make_application()],
        companies=[make_company()],
    )


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def app(storage):
    """Flask app on an in-memory SQLite database with blob storage kept in memory."""
    from app import create_app
    from models import db

    app = create_app('config.TestConfig', storage=storage)

    # Requests reuse this fixture's app context, so `g` outlives a request;
    # drop Flask-Login's cached user so each request loads its own.
    @app.before_request
    def _reset_login_user():
        g.pop('_login_user', None)

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()
    DocumentLoader.clear()
