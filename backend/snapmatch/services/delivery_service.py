"""Delivery gate: authorizes paid downloads and mints signed URLs"""
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from snapmatch.core.errors import Forbidden, NotFound, SnapmatchError
from snapmatch.core.metrics import downloads_counter
from snapmatch.models.photo import Photo, PhotoStatus
from snapmatch.services.entitlement_service import resolve_entitlement
from snapmatch.services.grant_service import verify_access_grant
from snapmatch.services.storage.s3_service import (
    PURCHASE_DOWNLOAD_URL_EXPIRATION, StorageService, get_storage_service
)

delivery_logger = logging.getLogger("delivery")


@dataclass(frozen=True)
class DownloadLink:
    photo_id: str
    download_url: str

    def to_dict(self) -> Dict[str, str]:
        return {"photoId": self.photo_id, "downloadUrl": self.download_url}


def _denied(kind: str, error: SnapmatchError) -> SnapmatchError:
    downloads_counter.labels(kind=kind, result=type(error).__name__).inc()
    return error


def authorize_download(
    db: Session,
    purchase_id: str,
    token: Optional[str],
    photo_id: str,
    storage: Optional[StorageService] = None
) -> DownloadLink:
    """Authorize one photo download for a purchase

    Raises:
        Unauthorized: Missing/invalid grant or grant for another purchase
        NotFound: Unknown purchase, or photo not uploaded in the purchase's event
        PaymentRequired: Purchase not paid
        Forbidden: Photo not covered by the purchase
    """
    try:
        verify_access_grant(purchase_id, token)
        entitlement = resolve_entitlement(db, purchase_id)

        if not entitlement.covers(photo_id):
            raise Forbidden("Photo is not included in this purchase.")

        photo = db.query(Photo).filter(
            Photo.id == photo_id,
            Photo.event_id == entitlement.purchase.event_id,
            Photo.is_uploaded.is_(True)
        ).first()
        if not photo:
            raise NotFound("Photo not found.")
    except SnapmatchError as e:
        raise _denied("photo", e)

    if storage is None:
        storage = get_storage_service()
    url = storage.generate_download_url(photo.storage_key, expires_in=PURCHASE_DOWNLOAD_URL_EXPIRATION)

    downloads_counter.labels(kind="photo", result="authorized").inc()
    delivery_logger.info(f"Authorized download of photo {photo.id} for purchase {purchase_id}")
    return DownloadLink(photo_id=photo.id, download_url=url)


def authorize_bundle_download(
    db: Session,
    purchase_id: str,
    token: Optional[str],
    storage: Optional[StorageService] = None
) -> List[DownloadLink]:
    """Authorize the all-photos bundle: every published, uploaded photo of the event now

    Raises:
        Unauthorized, NotFound, PaymentRequired: As for ``authorize_download``
        Forbidden: The purchase has no all-photos item
    """
    try:
        verify_access_grant(purchase_id, token)
        entitlement = resolve_entitlement(db, purchase_id)
        if not entitlement.has_all_photos:
            raise Forbidden("All-photos bundle was not purchased.")
    except SnapmatchError as e:
        raise _denied("bundle", e)

    photos = (
        db.query(Photo)
        .filter(
            Photo.event_id == entitlement.purchase.event_id,
            Photo.is_uploaded.is_(True),
            Photo.status == PhotoStatus.PUBLISHED.value
        )
        .order_by(Photo.published_at.desc(), Photo.created_at.desc())
        .all()
    )

    if storage is None:
        storage = get_storage_service()
    links = [
        DownloadLink(
            photo_id=photo.id,
            download_url=storage.generate_download_url(photo.storage_key, expires_in=PURCHASE_DOWNLOAD_URL_EXPIRATION)
        )
        for photo in photos
    ]

    downloads_counter.labels(kind="bundle", result="authorized").inc()
    delivery_logger.info(f"Authorized bundle of {len(links)} photo(s) for purchase {purchase_id}")
    return links
