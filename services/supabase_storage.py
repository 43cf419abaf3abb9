"""
Supabase Storage Service for Generated Documents

Handles uploads, signed URLs, downloads and deletions of rendered
documents using Supabase Storage. Files are stored privately and accessed
via signed URLs.
"""

import logging
import os
from datetime import datetime
from typing import Optional

from supabase import create_client, Client

logger = logging.getLogger(__name__)

# Supabase client singleton
_supabase_client: Client = None

# Bucket names
GENERATED_DOCUMENTS_BUCKET = 'generated-documents'

# Default signed URL lifetime: 7 days
DEFAULT_URL_EXPIRES_IN = 7 * 24 * 3600


def get_supabase_client() -> Client:
    """
    Get or create the Supabase client.
    Uses SUPABASE_URL and SUPABASE_KEY from environment.
    """
    global _supabase_client

    if _supabase_client is None:
        supabase_url = os.getenv('SUPABASE_URL')
        supabase_key = os.getenv('SUPABASE_KEY')

        if not supabase_url or not supabase_key:
            raise ValueError(
                "SUPABASE_URL and SUPABASE_KEY environment variables are required. "
                "Get these from your Supabase project settings."
            )

        _supabase_client = create_client(supabase_url, supabase_key)

    return _supabase_client


def generate_document_storage_path(owner: str, document_type: str, document_id: str,
                                   created_at: datetime, extension: str = 'pdf') -> str:
    """
    Storage path for a generated document.

    Organized by owner, then document type, with a sortable timestamp
    prefix: "{owner}/{type}/{YYYYmmddTHHMMSS}_{document_id}.pdf"
    """
    stamp = created_at.strftime('%Y%m%dT%H%M%S')
    return f"{owner}/{document_type}/{stamp}_{document_id}.{extension}"


def upload_file(bucket: str, storage_path: str, file_data: bytes, content_type: str = None) -> dict:
    """
    Upload a file to a Supabase Storage bucket.

    Args:
        bucket: Target bucket name
        storage_path: Path within the bucket
        file_data: The file content as bytes
        content_type: MIME type of the file (optional)

    Returns:
        dict with 'path', 'filename', 'size' keys on success

    Raises:
        Exception on upload failure
    """
    client = get_supabase_client()

    file_options = {}
    if content_type:
        file_options['content-type'] = content_type

    client.storage.from_(bucket).upload(
        path=storage_path,
        file=file_data,
        file_options=file_options
    )

    return {
        'path': storage_path,
        'filename': storage_path.rsplit('/', 1)[-1],
        'size': len(file_data)
    }


def get_signed_url(bucket: str, storage_path: str, expires_in: int = 3600) -> str:
    """
    Generate a signed URL for private file access.

    Args:
        bucket: Bucket name containing the file
        storage_path: The path to the file in storage
        expires_in: URL expiry time in seconds (default: 1 hour)

    Returns:
        Signed URL string
    """
    client = get_supabase_client()

    response = client.storage.from_(bucket).create_signed_url(
        path=storage_path,
        expires_in=expires_in
    )

    # Older clients return 'signedURL', newer ones 'signedUrl'
    url = response.get('signedURL') or response.get('signedUrl')
    if not url:
        raise ValueError(f"No signed URL returned for {storage_path}")
    return url


def download_file(bucket: str, storage_path: str) -> bytes:
    """Download a file's bytes from Supabase Storage."""
    client = get_supabase_client()
    return client.storage.from_(bucket).download(storage_path)


def format_file_size(size_bytes: int) -> str:
    """
    Format file size in human-readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted string (e.g., "1.5 MB")
    """
    if not size_bytes:
        return 'Unknown'

    for unit in ['B', 'KB', 'MB', 'GB']:
        if size_bytes < 1024:
            return f"{size_bytes:.1f} {unit}"
        size_bytes /= 1024

    return f"{size_bytes:.1f} TB"


class SupabaseBlobStorage:
    """
    Blob storage backed by one Supabase bucket.

    This is the storage the artifact store writes to in production; tests
    substitute an in-memory object with the same three methods.
    """

    def __init__(self, bucket: str = GENERATED_DOCUMENTS_BUCKET, expires_in: Optional[int] = None):
        self.bucket = bucket
        self.expires_in = expires_in or DEFAULT_URL_EXPIRES_IN

    def upload(self, storage_path: str, data: bytes, content_type: str) -> None:
        upload_file(self.bucket, storage_path, data, content_type)

    def signed_url(self, storage_path: str) -> str:
        return get_signed_url(self.bucket, storage_path, self.expires_in)

    def download(self, storage_path: str) -> bytes:
        return download_file(self.bucket, storage_path)
