from .documents import documents_bp

def register_blueprints(app):
    app.register_blueprint(documents_bp)
