"""Photographer photo API routes"""
import logging
from typing import Literal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from snapmatch.api.deps import get_event_bus
from snapmatch.core.security import require_photographer
from snapmatch.db.session import get_db
from snapmatch.models.user import User
from snapmatch.schemas.photos import UploadInitRequest
from snapmatch.services import photo_service
from snapmatch.services.realtime.event_bus import EventBus

router = APIRouter(prefix="/api/events", tags=["photos"])
logger = logging.getLogger(__name__)


@router.post("/{event_id}/photos/upload-url", status_code=201)
def create_upload_url(
    event_id: str,
    request_data: UploadInitRequest,
    user: User = Depends(require_photographer),
    db: Session = Depends(get_db)
):
    """Create a draft photo and a presigned upload URL"""
    event = photo_service.assert_event_owner(db, event_id, user.id)
    return photo_service.create_upload(
        db,
        event,
        file_name=request_data.file_name,
        mime_type=request_data.mime_type,
        file_size=request_data.file_size,
        width=request_data.width,
        height=request_data.height,
        captured_at=request_data.captured_at
    )


@router.post("/{event_id}/photos/{photo_id}/complete")
def complete_upload(
    event_id: str,
    photo_id: str,
    user: User = Depends(require_photographer),
    db: Session = Depends(get_db),
    bus: EventBus = Depends(get_event_bus)
):
    """Mark an upload complete and index its face"""
    event = photo_service.assert_event_owner(db, event_id, user.id)
    return photo_service.complete_upload(db, bus, event, photo_id)


@router.get("/{event_id}/photos")
def list_photos(
    event_id: str,
    status: Literal["all", "draft", "published"] = Query("all"),
    user: User = Depends(require_photographer),
    db: Session = Depends(get_db)
):
    """Uploaded photos of an event"""
    event = photo_service.assert_event_owner(db, event_id, user.id)
    return {"photos": photo_service.list_photos(db, event, status)}


@router.post("/{event_id}/photos/{photo_id}/publish")
def publish_photo(
    event_id: str,
    photo_id: str,
    user: User = Depends(require_photographer),
    db: Session = Depends(get_db),
    bus: EventBus = Depends(get_event_bus)
):
    event = photo_service.assert_event_owner(db, event_id, user.id)
    return photo_service.publish_photo(db, bus, event, photo_id)


@router.post("/{event_id}/photos/{photo_id}/unpublish")
def unpublish_photo(
    event_id: str,
    photo_id: str,
    user: User = Depends(require_photographer),
    db: Session = Depends(get_db),
    bus: EventBus = Depends(get_event_bus)
):
    event = photo_service.assert_event_owner(db, event_id, user.id)
    return photo_service.unpublish_photo(db, bus, event, photo_id)


@router.delete("/{event_id}/photos/{photo_id}")
def delete_photo(
    event_id: str,
    photo_id: str,
    user: User = Depends(require_photographer),
    db: Session = Depends(get_db),
    bus: EventBus = Depends(get_event_bus)
):
    event = photo_service.assert_event_owner(db, event_id, user.id)
    photo_service.delete_photo(db, bus, event, photo_id)
    return {"deleted": True, "photoId": photo_id}
