# models.py
import uuid
from datetime import datetime

import pytz
from flask_sqlalchemy import SQLAlchemy
from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash

db = SQLAlchemy()


def new_id():
    return str(uuid.uuid4())


def utc_now():
    """Naive UTC, the form every timestamp column stores."""
    return datetime.now(pytz.utc).replace(tzinfo=None)


class Company(db.Model):
    """A tenant. Every property, application and generated document belongs to one."""
    __tablename__ = 'companies'

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    name = db.Column(db.String(200), nullable=False)
    address = db.Column(db.String(300))
    phone = db.Column(db.String(20))
    email = db.Column(db.String(120))
    logo_url = db.Column(db.String(500))
    brand_color = db.Column(db.String(7))  # "#RRGGBB", overrides the print accent
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)

    def __repr__(self):
        return f'<Company {self.name}>'


class User(UserMixin, db.Model):
    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.String(36), db.ForeignKey('companies.id'), nullable=False, index=True)
    username = db.Column(db.String(80), unique=True, nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False)
    password_hash = db.Column(db.String(256))
    first_name = db.Column(db.String(80), nullable=False)
    last_name = db.Column(db.String(80), nullable=False)
    role = db.Column(db.String(20), nullable=False, default='agent')
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)

    company = db.relationship('Company', backref=db.backref('users', lazy=True))

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)


class Property(db.Model):
    __tablename__ = 'properties'

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    company_id = db.Column(db.String(36), db.ForeignKey('companies.id'), nullable=False, index=True)
    address = db.Column(db.String(300), nullable=False)
    unit_number = db.Column(db.String(20))
    building_name = db.Column(db.String(200))
    rent = db.Column(db.Numeric(10, 2))
    bedrooms = db.Column(db.Integer)
    bathrooms = db.Column(db.Numeric(3, 1))
    square_feet = db.Column(db.Integer)
    description = db.Column(db.Text)
    lockbox_code = db.Column(db.String(50))
    amenities = db.Column(db.JSON, default=list)
    status = db.Column(db.String(30), default='available')
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now,
                           onupdate=utc_now)

    company = db.relationship('Company', backref=db.backref('properties', lazy=True))

    def __repr__(self):
        return f'<Property {self.address}>'


class Application(db.Model):
    __tablename__ = 'applications'

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    company_id = db.Column(db.String(36), db.ForeignKey('companies.id'), nullable=False, index=True)
    property_id = db.Column(db.String(36), db.ForeignKey('properties.id', ondelete='SET NULL'))
    applicant_name = db.Column(db.String(200), nullable=False)
    applicant_email = db.Column(db.String(120))
    applicant_phone = db.Column(db.String(20))
    employer = db.Column(db.String(200))
    monthly_income = db.Column(db.Numeric(10, 2))
    monthly_debt = db.Column(db.Numeric(10, 2))
    credit_score = db.Column(db.Integer)
    status = db.Column(db.String(30), default='submitted')
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)

    property = db.relationship('Property', backref=db.backref('applications', lazy=True))

    def __repr__(self):
        return f'<Application {self.applicant_name}>'


class GeneratedDocument(db.Model):
    """
    History index of generated documents. Append-only: rows are inserted
    once per generation and never updated.
    """
    __tablename__ = 'generated_documents'

    id = db.Column(db.String(36), primary_key=True)
    company_id = db.Column(db.String(36), nullable=False, index=True)
    document_type = db.Column(db.String(40), nullable=False, index=True)
    title = db.Column(db.String(300), nullable=False)
    url = db.Column(db.Text, nullable=False)
    storage_path = db.Column(db.String(500), nullable=False)
    size_bytes = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, index=True)

    def __repr__(self):
        return f'<GeneratedDocument {self.document_type} {self.id}>'
