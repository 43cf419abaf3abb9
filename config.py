import os
from datetime import timedelta

from dotenv import load_dotenv

load_dotenv()

BASE_DIR = os.path.dirname(os.path.abspath(__file__))


class Config:
    # Environment
    FLASK_ENV = os.getenv('FLASK_ENV', 'development')

    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    SQLALCHEMY_DATABASE_URI = os.getenv('DATABASE_URL', 'sqlite:///propflow.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    PERMANENT_SESSION_LIFETIME = timedelta(minutes=30)

    # Supabase storage
    SUPABASE_URL = os.getenv('SUPABASE_URL')
    SUPABASE_KEY = os.getenv('SUPABASE_KEY')
    GENERATED_DOCUMENTS_BUCKET = os.getenv('GENERATED_DOCUMENTS_BUCKET', 'generated-documents')
    DOCUMENT_URL_EXPIRES_IN = int(os.getenv('DOCUMENT_URL_EXPIRES_IN', 7 * 24 * 3600))

    # Document rendering
    DOCUMENT_TIMEZONE = os.getenv('DOCUMENT_TIMEZONE', 'America/Chicago')
    DOCUMENT_STYLESHEET = os.getenv(
        'DOCUMENT_STYLESHEET',
        os.path.join(BASE_DIR, 'documents', 'styles', 'default.yml')
    )
    # Overrides the footer brand line from the style sheet when set
    DOCUMENT_BRAND_LINE = os.getenv('DOCUMENT_BRAND_LINE')

    # Generated copy (property highlights, lease intros)
    OPENAI_API_KEY = os.getenv('OPENAI_API_KEY')
    DOCUMENT_AI_ENABLED = os.getenv('DOCUMENT_AI_ENABLED', 'false').lower() == 'true'

    # History listing
    HISTORY_DEFAULT_LIMIT = int(os.getenv('HISTORY_DEFAULT_LIMIT', 50))
    HISTORY_MAX_LIMIT = int(os.getenv('HISTORY_MAX_LIMIT', 200))

    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = 'test-secret-key'
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    LOGIN_DISABLED = False
    DOCUMENT_AI_ENABLED = False
