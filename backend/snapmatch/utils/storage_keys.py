"""Object storage key helpers"""
import re
import secrets
from datetime import datetime, timezone

MAX_FILENAME_LENGTH = 120


def sanitize_filename(filename: str) -> str:
    """Lowercase and reduce a client filename to [a-z0-9._-]"""
    cleaned = re.sub(r'[^a-z0-9._-]+', '-', (filename or '').lower())
    cleaned = re.sub(r'-+', '-', cleaned).strip('-')
    return cleaned[:MAX_FILENAME_LENGTH] or "photo.jpg"


def create_photo_storage_key(event_id: str, filename: str) -> str:
    """Build a unique object key for an original photo upload

    Format: events/{event_id}/original/{timestamp}-{random}-{filename}
    """
    timestamp = datetime.now(timezone.utc).strftime('%Y-%m-%dT%H-%M-%S-%f')
    suffix = secrets.token_hex(4)
    return f"events/{event_id}/original/{timestamp}-{suffix}-{sanitize_filename(filename)}"
