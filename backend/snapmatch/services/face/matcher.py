"""Selfie matcher: ranks an event's published photos against a selfie"""
import logging
from typing import Dict, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from snapmatch.core.config import settings
from snapmatch.core.errors import SnapmatchError, ValidationFailure
from snapmatch.core.metrics import selfie_search_results_counter
from snapmatch.models.face_record import FaceRecord
from snapmatch.models.photo import Photo, PhotoStatus
from snapmatch.services.face.index import NOT_CONFIGURED_MESSAGE
from snapmatch.services.face.provider import (
    FaceProviderError, InvalidImageError, RekognitionFaceProvider, get_face_provider
)
from snapmatch.services.face.results import SelfieMatch, SelfieSearchResult, SelfieSearchStatus
from snapmatch.services.photo_serializer import serialize_photo
from snapmatch.services.storage.s3_service import StorageService

face_logger = logging.getLogger("face")

MAX_SEARCH_FACES = 50
NO_FACE_IN_SELFIE_MESSAGE = "No face detected in the selfie."


def _result(status: SelfieSearchStatus, matches=None, message: Optional[str] = None) -> SelfieSearchResult:
    selfie_search_results_counter.labels(status=status.value).inc()
    return SelfieSearchResult(status=status, matches=matches or [], message=message)


def find_selfie_matches(
    db: Session,
    event_id: str,
    selfie_bytes: bytes,
    limit: int,
    provider: Optional[RekognitionFaceProvider] = None,
    storage: Optional[StorageService] = None
) -> SelfieSearchResult:
    """Find the event's published photos whose indexed face matches the selfie

    Read-only. Results are deduplicated per photo, sorted by descending
    similarity and truncated to ``limit``. Provider and database faults come
    back as ``error``; only an out-of-range ``limit`` raises.
    """
    if not 1 <= limit <= MAX_SEARCH_FACES:
        raise ValidationFailure(f"limit must be between 1 and {MAX_SEARCH_FACES}")

    if provider is None:
        provider = get_face_provider()
    if provider is None:
        return _result(SelfieSearchStatus.DISABLED, message=NOT_CONFIGURED_MESSAGE)

    try:
        provider.ensure_collection()
        face_matches = provider.search_by_image(
            selfie_bytes,
            max_faces=MAX_SEARCH_FACES,
            min_similarity=settings.FACE_MATCH_THRESHOLD
        )

        if not face_matches:
            return _result(SelfieSearchStatus.NO_MATCHES)

        # The provider can report one face handle more than once; keep its best score
        similarity_by_face_id: Dict[str, float] = {}
        for match in face_matches:
            if not match.face_id or not isinstance(match.similarity, (int, float)):
                continue
            previous = similarity_by_face_id.get(match.face_id)
            if previous is None or match.similarity > previous:
                similarity_by_face_id[match.face_id] = float(match.similarity)

        if not similarity_by_face_id:
            return _result(SelfieSearchStatus.NO_FACE_DETECTED, message=NO_FACE_IN_SELFIE_MESSAGE)

        rows = (
            db.query(FaceRecord, Photo)
            .join(Photo, FaceRecord.photo_id == Photo.id)
            .filter(
                FaceRecord.provider == provider.name,
                FaceRecord.external_id.in_(list(similarity_by_face_id.keys())),
                Photo.event_id == event_id,
                Photo.status == PhotoStatus.PUBLISHED.value,
                Photo.is_uploaded.is_(True)
            )
            .all()
        )

        if not rows:
            return _result(SelfieSearchStatus.NO_MATCHES)

        best_by_photo_id: Dict[str, Tuple[float, Photo]] = {}
        for face_record, photo in rows:
            similarity = similarity_by_face_id.get(face_record.external_id, 0.0)
            previous = best_by_photo_id.get(photo.id)
            if previous is None or similarity > previous[0]:
                best_by_photo_id[photo.id] = (similarity, photo)

        top_matches = sorted(best_by_photo_id.values(), key=lambda item: item[0], reverse=True)[:limit]

        matches = [
            SelfieMatch(similarity=similarity, photo=serialize_photo(photo, storage))
            for similarity, photo in top_matches
        ]
        face_logger.info(f"Selfie search in event {event_id}: {len(matches)} match(es)")
        return _result(SelfieSearchStatus.OK, matches)

    except InvalidImageError:
        return _result(SelfieSearchStatus.NO_FACE_DETECTED, message=NO_FACE_IN_SELFIE_MESSAGE)
    except FaceProviderError as e:
        face_logger.error(f"Selfie search failed for event {event_id}: {e}")
        return _result(SelfieSearchStatus.ERROR, message=str(e))
    except (SnapmatchError, SQLAlchemyError) as e:
        face_logger.error(f"Selfie search failed for event {event_id}: {e}", exc_info=True)
        return _result(SelfieSearchStatus.ERROR, message="Face match search failed.")
