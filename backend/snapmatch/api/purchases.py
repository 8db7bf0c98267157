"""Purchase API routes: session exchange and paid downloads"""
import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from snapmatch.core.errors import NotFound, PaymentRequired
from snapmatch.core.security import extract_grant_token
from snapmatch.db.session import get_db
from snapmatch.models.purchase import PurchaseStatus
from snapmatch.services.delivery_service import authorize_bundle_download, authorize_download
from snapmatch.services.entitlement_service import (
    build_entitlement, get_purchase_by_session, summarize_purchase
)
from snapmatch.services.grant_service import GRANT_TTL_SECONDS, issue_access_grant

router = APIRouter(prefix="/api/purchases", tags=["purchases"])
logger = logging.getLogger(__name__)


@router.get("/session/{session_id}")
def exchange_checkout_session(session_id: str, db: Session = Depends(get_db)):
    """Trade a completed checkout session id for a purchase access token"""
    purchase = get_purchase_by_session(db, session_id)
    if not purchase:
        raise NotFound("Purchase not found.")
    if purchase.status != PurchaseStatus.PAID.value:
        raise PaymentRequired("Payment is not complete yet.", status=purchase.status)

    return {
        "purchase": summarize_purchase(build_entitlement(purchase)),
        "accessToken": issue_access_grant(purchase.id),
        "expiresIn": GRANT_TTL_SECONDS,
    }


@router.get("/{purchase_id}/download/photo/{photo_id}")
def download_photo(purchase_id: str, photo_id: str, request: Request, db: Session = Depends(get_db)):
    """Signed download URL for one purchased photo"""
    link = authorize_download(db, purchase_id, extract_grant_token(request), photo_id)
    return link.to_dict()


@router.get("/{purchase_id}/download/all")
def download_all(purchase_id: str, request: Request, db: Session = Depends(get_db)):
    """Signed download URLs for every published photo of an all-photos purchase"""
    links = authorize_bundle_download(db, purchase_id, extract_grant_token(request))
    return {"count": len(links), "files": [link.to_dict() for link in links]}
