# routes/documents.py
"""
Document generation routes.

JSON endpoints the dashboard's document generator talks to: generate,
preview, history, retrieval and the catalogue of document types. The
owner of every request is the signed-in user's company.
"""

import logging
from io import BytesIO

from flask import Blueprint, current_app, jsonify, request, send_file
from flask_login import current_user, login_required

from services.documents import (
    DocumentLoader,
    DocumentType,
    EntityNotFoundError,
    LayoutError,
    PersistError,
    ValidationError,
    get_pipeline,
    parse_request,
)
from services.supabase_storage import format_file_size

logger = logging.getLogger(__name__)

documents_bp = Blueprint('documents', __name__, url_prefix='/documents')


def _posted_data() -> dict:
    """JSON bodies and regular form posts are both accepted."""
    data = request.get_json(silent=True)
    if data is None:
        data = request.form.to_dict()
    return data


def _document_type(value) -> DocumentType:
    try:
        return DocumentType(value)
    except ValueError:
        raise ValidationError(
            f"Unknown document type: {value}",
            invalid_fields={'type': 'unknown document type'}
        )


def _entry_json(entry) -> dict:
    data = entry.to_dict()
    data['size'] = format_file_size(entry.size_bytes)
    return data


# =============================================================================
# ERROR HANDLING
# =============================================================================

@documents_bp.errorhandler(ValidationError)
def handle_validation_error(e):
    response = {'success': False, 'error': str(e)}
    response.update(e.to_dict())
    return jsonify(response), 400


@documents_bp.errorhandler(EntityNotFoundError)
def handle_not_found(e):
    return jsonify({'success': False, 'error': 'Document not found'}), 404


@documents_bp.errorhandler(LayoutError)
@documents_bp.errorhandler(PersistError)
def handle_generation_failure(e):
    # Infrastructure details stay in the log; the client gets the id to quote
    return jsonify({
        'success': False,
        'error': 'Document generation failed. Please try again or contact support.',
        'correlation_id': e.correlation_id,
    }), 500


# =============================================================================
# GENERATION
# =============================================================================

@documents_bp.route('/generate', methods=['POST'])
@login_required
def generate_document():
    """Generate a document, store it and record it in history."""
    data = _posted_data()
    document_type = _document_type(data.get('type'))
    document_request = parse_request(document_type, data)

    entry = get_pipeline().generate(document_request, owner=current_user.company_id)

    return jsonify({'success': True, 'document': _entry_json(entry)}), 201


@documents_bp.route('/preview', methods=['POST'])
@login_required
def preview_document():
    """Resolve and build a document for on-screen preview. Nothing is stored."""
    data = _posted_data()
    document_type = _document_type(data.get('type'))
    document_request = parse_request(document_type, data)

    node = get_pipeline().preview(document_request, owner=current_user.company_id)

    return jsonify({'success': True, 'preview': node.to_dict()})


# =============================================================================
# HISTORY & RETRIEVAL
# =============================================================================

@documents_bp.route('', methods=['GET'])
@login_required
def list_documents():
    """Generated documents for the current company, newest first."""
    type_param = request.args.get('type')
    document_type = _document_type(type_param) if type_param else None

    limit = request.args.get('limit', current_app.config.get('HISTORY_DEFAULT_LIMIT', 50))
    try:
        limit = int(limit)
    except (TypeError, ValueError):
        raise ValidationError("limit must be a whole number", invalid_fields={'limit': 'not a number'})

    entries = get_pipeline().store.list_history(
        owner=current_user.company_id,
        document_type=document_type,
        limit=limit
    )
    return jsonify({'success': True, 'documents': [_entry_json(e) for e in entries]})


@documents_bp.route('/types', methods=['GET'])
@login_required
def list_document_types():
    """The document types that can be generated, in display order."""
    types = []
    for definition in DocumentLoader.get_sorted():
        types.append({
            'type': definition.slug,
            'name': definition.name,
            'description': definition.description,
            'color': definition.display.color,
            'icon': definition.display.icon,
            'entities': list(definition.entities),
            'fields': [
                {
                    'key': f.key,
                    'label': f.label,
                    'kind': f.kind.value,
                    'required': f.required,
                    'auto_filled': f.source is not None,
                }
                for f in definition.fields
            ],
        })
    return jsonify({'success': True, 'types': types})


@documents_bp.route('/<document_id>', methods=['GET'])
@login_required
def get_document(document_id):
    """A history entry with a freshly signed URL; stored URLs expire."""
    store = get_pipeline().store
    entry = store.get_entry(document_id, current_user.company_id)
    if entry is None:
        return jsonify({'success': False, 'error': 'Document not found'}), 404

    data = _entry_json(entry)
    data['url'] = store.fresh_url(document_id, current_user.company_id)
    return jsonify({'success': True, 'document': data})


@documents_bp.route('/<document_id>/download', methods=['GET'])
@login_required
def download_document(document_id):
    """Stream the stored PDF."""
    store = get_pipeline().store
    entry = store.get_entry(document_id, current_user.company_id)
    if entry is None:
        return jsonify({'success': False, 'error': 'Document not found'}), 404

    data = store.retrieve(document_id, current_user.company_id)
    return send_file(
        BytesIO(data),
        mimetype='application/pdf',
        as_attachment=True,
        download_name=f"{entry.document_type.value}_{entry.document_id[:8]}.pdf"
    )
