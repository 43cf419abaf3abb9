import logging

from flask import Flask
from flask_login import LoginManager

from models import db, User
from routes import register_blueprints
from services.entity_gateway import EntityGateway
from services.supabase_storage import SupabaseBlobStorage
from services.documents import (
    ArtifactStore,
    DocumentCopywriter,
    DocumentLoader,
    DocumentPipeline,
    SqlAlchemyHistoryIndex,
    StyleSheet,
)


def build_pipeline(app, storage=None):
    """Wire the document pipeline from app config. `storage` replaces Supabase in tests."""
    style = StyleSheet.load(app.config['DOCUMENT_STYLESHEET'])
    style = style.with_brand_line(app.config.get('DOCUMENT_BRAND_LINE'))

    if storage is None:
        storage = SupabaseBlobStorage(
            bucket=app.config['GENERATED_DOCUMENTS_BUCKET'],
            expires_in=app.config['DOCUMENT_URL_EXPIRES_IN']
        )

    store = ArtifactStore(
        storage,
        SqlAlchemyHistoryIndex(),
        default_limit=app.config['HISTORY_DEFAULT_LIMIT'],
        max_limit=app.config['HISTORY_MAX_LIMIT']
    )
    return DocumentPipeline(
        EntityGateway(),
        store,
        style,
        timezone=app.config['DOCUMENT_TIMEZONE'],
        copywriter=DocumentCopywriter(
            enabled=app.config.get('DOCUMENT_AI_ENABLED', False),
            api_key=app.config.get('OPENAI_API_KEY')
        )
    )


def create_app(config_object='config.Config', storage=None):
    app = Flask(__name__)
    app.config.from_object(config_object)

    logging.basicConfig(
        level=app.config.get('LOG_LEVEL', 'INFO'),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    # Initialize extensions
    db.init_app(app)

    login_manager = LoginManager()
    login_manager.init_app(app)

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    # Fail fast on bad document definitions or style sheet
    DocumentLoader.load_all()
    app.extensions['document_pipeline'] = build_pipeline(app, storage)

    register_blueprints(app)

    return app


if __name__ == '__main__':
    app = create_app()
    with app.app_context():
        db.create_all()
    app.run(host='0.0.0.0', port=5005, debug=True)
