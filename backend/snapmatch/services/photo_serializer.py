"""Photo response serialization with signed preview URLs"""
from datetime import datetime
from typing import Any, Dict, Optional

from snapmatch.models.photo import Photo
from snapmatch.services.storage.s3_service import StorageService, get_storage_service


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def serialize_photo(photo: Photo, storage: Optional[StorageService] = None) -> Dict[str, Any]:
    """Build the API representation of a photo, including a 1 hour preview URL"""
    if storage is None:
        storage = get_storage_service()

    return {
        "id": photo.id,
        "eventId": photo.event_id,
        "status": photo.status,
        "isUploaded": bool(photo.is_uploaded),
        "mimeType": photo.mime_type,
        "fileSize": photo.file_size,
        "width": photo.width,
        "height": photo.height,
        "capturedAt": _iso(photo.captured_at),
        "publishedAt": _iso(photo.published_at),
        "createdAt": _iso(photo.created_at),
        "updatedAt": _iso(photo.updated_at),
        "previewUrl": storage.generate_download_url(photo.storage_key),
    }
