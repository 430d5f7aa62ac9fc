"""Supabase Storage service for chat attachments.

Files go to the ``chat_attachments`` bucket; when that bucket rejects the
upload (missing, policy) the ``user-content`` bucket is tried next. Object
paths are ``<user_id>/<random>-<millis>.<ext>`` so each user owns a folder.
"""

import logging
import secrets
import time
from typing import Optional, Tuple
from urllib.parse import urlparse, unquote

from flask import current_app

from taskloop.constants import ATTACHMENT_MAX_SIZE, ATTACHMENT_BUCKETS
from taskloop.services.errors import ValidationFailed, PermissionDenied, StorageUnavailable

logger = logging.getLogger(__name__)

PUBLIC_PATH_MARKER = '/storage/v1/object/public/'

# Supabase client (lazy initialization)
_supabase_client = None


def get_supabase_client():
    """Get or create Supabase client (lazy initialization)."""
    global _supabase_client

    if _supabase_client is None:
        url = current_app.config.get('SUPABASE_URL')
        key = current_app.config.get('SUPABASE_SERVICE_KEY')

        if not url or not key:
            logger.warning('Supabase credentials not configured. Storage will not work.')
            return None

        try:
            from supabase import create_client
            _supabase_client = create_client(url, key)
            logger.info('Supabase client initialized successfully')
        except Exception as e:
            logger.error(f'Failed to initialize Supabase client: {e}')
            return None

    return _supabase_client


def is_storage_configured() -> bool:
    """Check if Supabase storage is properly configured."""
    return get_supabase_client() is not None


def build_object_path(user_id: int, file_name: str, now_ms: Optional[int] = None) -> str:
    ext = file_name.rsplit('.', 1)[-1].lower() if '.' in file_name else 'bin'
    now_ms = now_ms if now_ms is not None else int(time.time() * 1000)
    return f'{user_id}/{secrets.token_hex(8)}-{now_ms}.{ext}'


def upload_file(
    bucket: str,
    path: str,
    file_data: bytes,
    content_type: str = 'application/octet-stream'
) -> Tuple[Optional[str], Optional[str]]:
    """Upload bytes to one bucket.

    Returns:
        Tuple of (public_url, error_message)
    """
    client = get_supabase_client()

    if client is None:
        return None, 'Storage service not configured'

    try:
        logger.info(f'Uploading file to {bucket}/{path} ({content_type})')

        client.storage.from_(bucket).upload(
            path=path,
            file=file_data,
            file_options={'content-type': content_type}
        )
        public_url = client.storage.from_(bucket).get_public_url(path)

        logger.info(f'File uploaded successfully: {public_url}')
        return public_url, None

    except Exception as e:
        error_msg = str(e)
        logger.error(f'Upload to {bucket} failed: {error_msg}')
        return None, error_msg


def upload_attachment(user_id: int, file_data: bytes, file_name: str, content_type: Optional[str] = None) -> dict:
    """Upload a chat attachment, trying each bucket in turn.

    Returns the attachment metadata a message stores:
    ``{'name', 'type', 'url', 'size', 'bucket', 'path'}``.
    """
    if not file_data:
        raise ValidationFailed('File is empty')
    if len(file_data) > ATTACHMENT_MAX_SIZE:
        raise ValidationFailed('File too large. Maximum size: 5MB')

    if not is_storage_configured():
        raise StorageUnavailable('Storage service not configured')

    content_type = content_type or 'application/octet-stream'
    path = build_object_path(user_id, file_name)

    errors = []
    for bucket in ATTACHMENT_BUCKETS:
        url, error = upload_file(bucket, path, file_data, content_type)
        if url:
            return {
                'name': file_name,
                'type': content_type,
                'url': url,
                'size': len(file_data),
                'bucket': bucket,
                'path': path,
            }
        errors.append(f'{bucket}: {error}')
        logger.warning(f'Bucket {bucket} rejected upload for user {user_id}, trying next')

    raise StorageUnavailable('Failed to upload file', attempts=errors)


def parse_public_url(file_url: str) -> Tuple[Optional[str], Optional[str]]:
    """Split a public object URL into (bucket, path)."""
    parsed_path = unquote(urlparse(file_url).path)
    if PUBLIC_PATH_MARKER not in parsed_path:
        return None, None
    remainder = parsed_path.split(PUBLIC_PATH_MARKER, 1)[1]
    if '/' not in remainder:
        return None, None
    bucket, path = remainder.split('/', 1)
    return bucket, path


def delete_attachment(user_id: int, file_url: str) -> Tuple[str, str]:
    """Delete one of the caller's uploads. Returns (bucket, path)."""
    bucket, path = parse_public_url(file_url or '')
    if bucket not in ATTACHMENT_BUCKETS or not path:
        raise ValidationFailed('Not an attachment URL')
    if not path.startswith(f'{user_id}/') or '..' in path.split('/'):
        raise PermissionDenied('You can only delete your own files')

    client = get_supabase_client()
    if client is None:
        raise StorageUnavailable('Storage service not configured')

    try:
        logger.info(f'Deleting file from {bucket}/{path}')
        client.storage.from_(bucket).remove([path])
    except Exception as e:
        logger.error(f'Delete failed: {e}')
        raise StorageUnavailable('Failed to delete file')

    logger.info(f'File deleted successfully: {bucket}/{path}')
    return bucket, path
