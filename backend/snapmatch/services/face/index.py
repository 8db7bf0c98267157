"""Face index: keeps at most one provider face per photo"""
import logging
from typing import Dict, Optional

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from snapmatch.core.metrics import face_index_results_counter
from snapmatch.models.base import utcnow
from snapmatch.models.face_record import FaceRecord
from snapmatch.models.photo import Photo
from snapmatch.services.face.provider import (
    FaceProviderError, RekognitionFaceProvider, get_face_provider
)
from snapmatch.services.face.results import FaceIndexResult, FaceIndexStatus

face_logger = logging.getLogger("face")

NOT_CONFIGURED_MESSAGE = "Face search is not configured."

# Stored on the photo between clearing the old face and storing the new one
FACE_INDEX_PENDING = "pending"


def _result(status: FaceIndexStatus, message: Optional[str] = None) -> FaceIndexResult:
    face_index_results_counter.labels(status=status.value).inc()
    return FaceIndexResult(status=status, message=message)


def _delete_provider_faces(provider: RekognitionFaceProvider, face_ids, photo_id: str, reason: str) -> None:
    """Best-effort provider cleanup; a failure leaves orphans that never resolve to a photo"""
    if not face_ids:
        return
    try:
        provider.delete_faces(face_ids)
    except FaceProviderError as e:
        face_logger.warning(f"Could not delete {len(face_ids)} {reason} face(s) for photo {photo_id}: {e}")


def remove_photo_faces(db: Session, photo: Photo, provider: Optional[RekognitionFaceProvider] = None) -> int:
    """Delete every FaceRecord of a photo locally and (best effort) at the provider

    Does not commit; callers own the transaction.
    """
    if provider is None:
        provider = get_face_provider()

    records = db.query(FaceRecord).filter(FaceRecord.photo_id == photo.id).all()
    if provider is not None:
        face_ids = [r.external_id for r in records if r.provider == provider.name]
        _delete_provider_faces(provider, face_ids, photo.id, "indexed")

    for record in records:
        db.delete(record)
    db.flush()
    return len(records)


def index_photo_face(db: Session, photo: Photo, provider: Optional[RekognitionFaceProvider] = None) -> FaceIndexResult:
    """Index the face of an uploaded photo, replacing any previous FaceRecord

    Never raises: provider and database faults come back as ``error``.
    """
    if provider is None:
        provider = get_face_provider()
    if provider is None:
        return _result(FaceIndexStatus.DISABLED, NOT_CONFIGURED_MESSAGE)

    try:
        provider.ensure_collection()

        # Delete-then-recreate keeps one record per photo. A crash after this
        # commit leaves zero records and a pending photo until the next pass.
        existing = db.query(FaceRecord).filter(
            FaceRecord.photo_id == photo.id,
            FaceRecord.provider == provider.name
        ).all()
        _delete_provider_faces(provider, [r.external_id for r in existing], photo.id, "previous")
        for record in existing:
            db.delete(record)
        photo.face_index_status = FACE_INDEX_PENDING
        photo.face_index_attempted_at = utcnow()
        db.commit()

        faces = provider.index_face(photo.id, photo.storage_key)
        if not faces:
            photo.face_index_status = FaceIndexStatus.NO_FACE_DETECTED.value
            db.commit()
            face_logger.info(f"No face detected in photo {photo.id}")
            return _result(FaceIndexStatus.NO_FACE_DETECTED, "No clear face detected in this photo.")

        first_face, extra_faces = faces[0], faces[1:]
        if extra_faces:
            face_logger.info(f"Photo {photo.id} returned {len(faces)} faces; keeping the first")
            _delete_provider_faces(provider, [f.face_id for f in extra_faces], photo.id, "extra")

        db.add(FaceRecord(
            photo_id=photo.id,
            provider=provider.name,
            external_id=first_face.face_id,
            confidence=first_face.confidence
        ))
        photo.face_index_status = FaceIndexStatus.INDEXED.value
        db.commit()
        face_logger.info(f"Indexed face {first_face.face_id} for photo {photo.id}")
        return _result(FaceIndexStatus.INDEXED)

    except FaceProviderError as e:
        db.rollback()
        face_logger.error(f"Face indexing failed for photo {photo.id}: {e}")
        return _result(FaceIndexStatus.ERROR, str(e))
    except SQLAlchemyError as e:
        db.rollback()
        face_logger.error(f"Face record update failed for photo {photo.id}: {e}", exc_info=True)
        return _result(FaceIndexStatus.ERROR, "Unable to index face.")


def has_indexed_face(db: Session, photo: Photo, provider_name: Optional[str] = None) -> bool:
    query = db.query(FaceRecord.id).filter(FaceRecord.photo_id == photo.id)
    if provider_name:
        query = query.filter(FaceRecord.provider == provider_name)
    return query.first() is not None


def reindex_missing_faces(
    db: Session,
    provider: Optional[RekognitionFaceProvider] = None,
    batch_size: int = 50
) -> Dict[str, int]:
    """Re-index uploaded photos that have no FaceRecord

    Safe to run repeatedly. Photos already found to hold no face are skipped;
    the rest are taken least recently attempted first, so photos that keep
    failing cannot starve newer ones out of a bounded batch.
    """
    if provider is None:
        provider = get_face_provider()
    if provider is None:
        return {}

    indexed_photo_ids = db.query(FaceRecord.photo_id).filter(FaceRecord.provider == provider.name)
    photos = (
        db.query(Photo)
        .filter(
            Photo.is_uploaded.is_(True),
            ~Photo.id.in_(indexed_photo_ids),
            or_(
                Photo.face_index_status.is_(None),
                Photo.face_index_status != FaceIndexStatus.NO_FACE_DETECTED.value
            )
        )
        .order_by(
            Photo.face_index_attempted_at.asc().nulls_first(),
            Photo.uploaded_at.asc(),
            Photo.created_at.asc()
        )
        .limit(batch_size)
        .all()
    )

    counts: Dict[str, int] = {}
    for photo in photos:
        result = index_photo_face(db, photo, provider)
        counts[result.status.value] = counts.get(result.status.value, 0) + 1

    if photos:
        face_logger.info(f"Face reconcile pass over {len(photos)} photo(s): {counts}")
    return counts
