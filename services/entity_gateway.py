# services/entity_gateway.py
"""
Entity Gateway

Read-only access to the records documents are generated from. Every
lookup is scoped to the requesting company; a record belonging to another
company is reported exactly like a missing one.

Returns frozen snapshots, never ORM objects, so nothing downstream can
lazy-load or mutate database state.
"""

import logging
from decimal import Decimal

from services.documents.exceptions import EntityNotFoundError
from services.documents.types import (
    ApplicationSnapshot,
    CompanySnapshot,
    ENTITY_APPLICATION,
    ENTITY_COMPANY,
    ENTITY_PROPERTY,
    PropertySnapshot,
)

logger = logging.getLogger(__name__)


# =============================================================================
# QUERY HELPERS
# =============================================================================

def company_query(model, company_id: str):
    """
    Return query filtered to one company.

    Args:
        model: SQLAlchemy model class with company_id column
        company_id: Company the caller is acting for

    Returns:
        Query object filtered to the specified company
    """
    return model.query.filter_by(company_id=company_id)


def _number(value):
    """Numeric columns come back as Decimal; snapshots carry floats."""
    if isinstance(value, Decimal):
        return float(value)
    return value


class EntityGateway:
    """
    SQLAlchemy-backed entity gateway.

    Usage:
        gateway = EntityGateway()
        prop = gateway.get_property(property_id, current_user.company_id)
    """

    def get_property(self, property_id: str, company_id: str) -> PropertySnapshot:
        from models import Property

        record = company_query(Property, company_id).filter_by(id=property_id).first()
        if record is None:
            logger.debug(f"Property {property_id} not found for company {company_id}")
            raise EntityNotFoundError(ENTITY_PROPERTY, property_id)

        return PropertySnapshot(
            id=record.id,
            company_id=record.company_id,
            address=record.address,
            rent=_number(record.rent),
            unit_number=record.unit_number,
            bedrooms=record.bedrooms,
            bathrooms=_number(record.bathrooms),
            square_feet=record.square_feet,
            description=record.description,
            lockbox_code=record.lockbox_code,
            amenities=tuple(record.amenities or ()),
            building_name=record.building_name,
            status=record.status
        )

    def get_application(self, application_id: str, company_id: str) -> ApplicationSnapshot:
        from models import Application

        record = company_query(Application, company_id).filter_by(id=application_id).first()
        if record is None:
            logger.debug(f"Application {application_id} not found for company {company_id}")
            raise EntityNotFoundError(ENTITY_APPLICATION, application_id)

        return ApplicationSnapshot(
            id=record.id,
            company_id=record.company_id,
            applicant_name=record.applicant_name,
            property_id=record.property_id,
            applicant_email=record.applicant_email,
            applicant_phone=record.applicant_phone,
            monthly_income=_number(record.monthly_income),
            monthly_debt=_number(record.monthly_debt),
            credit_score=record.credit_score,
            employer=record.employer,
            status=record.status
        )

    def get_company(self, company_id: str) -> CompanySnapshot:
        from models import Company, db

        record = db.session.get(Company, company_id)
        if record is None:
            raise EntityNotFoundError(ENTITY_COMPANY, company_id)

        return CompanySnapshot(
            id=record.id,
            name=record.name,
            address=record.address,
            phone=record.phone,
            email=record.email,
            logo_url=record.logo_url,
            brand_color=record.brand_color
        )
