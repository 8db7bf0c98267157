"""Photographer photo lifecycle: upload, complete, publish, unpublish, delete"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from snapmatch.core.errors import NotFound, ValidationFailure
from snapmatch.models.base import utcnow
from snapmatch.models.event import Event
from snapmatch.models.photo import Photo, PhotoStatus
from snapmatch.services.event_service import publish_photo_update
from snapmatch.services.face.index import has_indexed_face, index_photo_face, remove_photo_faces
from snapmatch.services.face.provider import RekognitionFaceProvider, get_face_provider
from snapmatch.services.photo_serializer import serialize_photo
from snapmatch.services.realtime.event_bus import EventBus, PhotoUpdateType
from snapmatch.services.storage.s3_service import StorageService, get_storage_service
from snapmatch.utils.storage_keys import create_photo_storage_key

logger = logging.getLogger(__name__)


def assert_event_owner(db: Session, event_id: str, owner_id: str) -> Event:
    """Load an event owned by ``owner_id``; anything else is reported as missing"""
    event = db.query(Event).filter(Event.id == event_id, Event.owner_id == owner_id).first()
    if not event:
        raise NotFound("Event not found")
    return event


def get_event_photo(db: Session, event: Event, photo_id: str) -> Photo:
    photo = db.query(Photo).filter(Photo.id == photo_id, Photo.event_id == event.id).first()
    if not photo:
        raise NotFound("Photo not found")
    return photo


def create_upload(
    db: Session,
    event: Event,
    file_name: str,
    mime_type: str,
    file_size: int,
    width: Optional[int] = None,
    height: Optional[int] = None,
    captured_at: Optional[datetime] = None,
    storage: Optional[StorageService] = None
) -> Dict[str, Any]:
    """Create a draft photo and a presigned PUT URL for its original"""
    if storage is None:
        storage = get_storage_service()

    storage_key = create_photo_storage_key(event.id, file_name)
    upload_url = storage.generate_upload_url(storage_key, content_type=mime_type)

    photo = Photo(
        event_id=event.id,
        storage_key=storage_key,
        mime_type=mime_type,
        file_size=file_size,
        width=width,
        height=height,
        captured_at=captured_at,
        status=PhotoStatus.DRAFT.value,
        is_uploaded=False
    )
    db.add(photo)
    db.commit()
    db.refresh(photo)
    logger.info(f"Created draft photo {photo.id} in event {event.id} ({storage_key})")

    return {
        "upload": {
            "method": "PUT",
            "url": upload_url,
            "headers": {"Content-Type": mime_type},
        },
        "photo": {
            "id": photo.id,
            "eventId": photo.event_id,
            "status": photo.status,
            "isUploaded": photo.is_uploaded,
        },
    }


def complete_upload(
    db: Session,
    bus: EventBus,
    event: Event,
    photo_id: str,
    provider: Optional[RekognitionFaceProvider] = None,
    storage: Optional[StorageService] = None
) -> Dict[str, Any]:
    """Mark the original as uploaded, index its face, and notify viewers"""
    photo = get_event_photo(db, event, photo_id)
    photo.is_uploaded = True
    photo.uploaded_at = utcnow()
    db.commit()
    db.refresh(photo)

    face_indexing = index_photo_face(db, photo, provider)
    db.refresh(photo)
    publish_photo_update(bus, event.id, photo.id, PhotoUpdateType.UPLOADED)

    return {"photo": serialize_photo(photo, storage), "faceIndexing": face_indexing.to_dict()}


def publish_photo(
    db: Session,
    bus: EventBus,
    event: Event,
    photo_id: str,
    provider: Optional[RekognitionFaceProvider] = None,
    storage: Optional[StorageService] = None
) -> Dict[str, Any]:
    """Publish an uploaded photo, indexing it first if it has no face yet"""
    photo = get_event_photo(db, event, photo_id)
    if not photo.is_uploaded:
        raise ValidationFailure("Photo upload is not complete")

    photo.status = PhotoStatus.PUBLISHED.value
    photo.published_at = utcnow()
    db.commit()
    db.refresh(photo)

    if provider is None:
        provider = get_face_provider()
    face_indexing = None
    provider_name = provider.name if provider is not None else None
    if not has_indexed_face(db, photo, provider_name):
        face_indexing = index_photo_face(db, photo, provider).to_dict()
        db.refresh(photo)

    publish_photo_update(bus, event.id, photo.id, PhotoUpdateType.PUBLISHED)

    response = {"photo": serialize_photo(photo, storage)}
    if face_indexing is not None:
        response["faceIndexing"] = face_indexing
    return response


def unpublish_photo(
    db: Session,
    bus: EventBus,
    event: Event,
    photo_id: str,
    storage: Optional[StorageService] = None
) -> Dict[str, Any]:
    photo = get_event_photo(db, event, photo_id)
    photo.status = PhotoStatus.DRAFT.value
    photo.published_at = None
    db.commit()
    db.refresh(photo)

    publish_photo_update(bus, event.id, photo.id, PhotoUpdateType.UNPUBLISHED)
    return {"photo": serialize_photo(photo, storage)}


def list_photos(
    db: Session,
    event: Event,
    status: str = "all",
    storage: Optional[StorageService] = None
) -> List[Dict[str, Any]]:
    """Uploaded photos of an event, newest first, optionally filtered by status"""
    query = db.query(Photo).filter(Photo.event_id == event.id, Photo.is_uploaded.is_(True))
    if status != "all":
        query = query.filter(Photo.status == PhotoStatus(status).value)
    photos = query.order_by(Photo.created_at.desc()).all()
    return [serialize_photo(photo, storage) for photo in photos]


def list_published_photos(db: Session, event: Event, storage: Optional[StorageService] = None) -> List[Dict[str, Any]]:
    """Guest gallery: uploaded and published, most recently published first"""
    photos = (
        db.query(Photo)
        .filter(
            Photo.event_id == event.id,
            Photo.is_uploaded.is_(True),
            Photo.status == PhotoStatus.PUBLISHED.value
        )
        .order_by(Photo.published_at.desc(), Photo.created_at.desc())
        .all()
    )
    return [serialize_photo(photo, storage) for photo in photos]


def delete_photo(
    db: Session,
    bus: EventBus,
    event: Event,
    photo_id: str,
    provider: Optional[RekognitionFaceProvider] = None
) -> None:
    """Delete a photo together with its face records"""
    photo = get_event_photo(db, event, photo_id)
    was_visible = photo.is_guest_visible

    removed = remove_photo_faces(db, photo, provider)
    db.delete(photo)
    db.commit()
    logger.info(f"Deleted photo {photo_id} from event {event.id} ({removed} face record(s))")

    if was_visible:
        publish_photo_update(bus, event.id, photo_id, PhotoUpdateType.UNPUBLISHED)
