"""Public event API routes: gallery, live stream, checkout, and selfie search"""
import asyncio
import json
import logging

from fastapi import APIRouter, Depends, File, HTTPException, Query, Request, UploadFile
from fastapi.responses import JSONResponse, StreamingResponse
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from snapmatch.api.deps import get_event_bus
from snapmatch.core.config import settings
from snapmatch.core.security import rate_limit_selfie_search
from snapmatch.db.session import get_db
from snapmatch.schemas.checkout import CheckoutRequest
from snapmatch.services.checkout_service import get_event_by_slug, start_checkout
from snapmatch.services.face.matcher import MAX_SEARCH_FACES, find_selfie_matches
from snapmatch.services.face.results import SelfieSearchStatus
from snapmatch.services.photo_service import list_published_photos
from snapmatch.services.realtime.event_bus import EventBus, topic_for_event

router = APIRouter(prefix="/api/public/events", tags=["public"])
logger = logging.getLogger(__name__)
realtime_logger = logging.getLogger("realtime")

SSE_RETRY_MS = 4000
SSE_KEEPALIVE_SECONDS = 25
DEFAULT_MATCH_LIMIT = 24


@router.get("/{slug}")
def get_public_event(slug: str, db: Session = Depends(get_db)):
    """Get the public details of an event"""
    event = get_event_by_slug(db, slug)
    return {
        "event": {
            "id": event.id,
            "name": event.name,
            "slug": event.slug,
            "eventDate": event.event_date.isoformat() if event.event_date else None,
            "venue": event.venue,
            "pricePhoto": event.price_photo,
            "priceAll": event.price_all,
        }
    }


@router.get("/{slug}/photos")
def get_public_photos(slug: str, db: Session = Depends(get_db)):
    """Published gallery of an event"""
    event = get_event_by_slug(db, slug)
    return {"photos": list_published_photos(db, event)}


async def photo_update_stream(request: Request, bus: EventBus, event_id: str, keepalive_seconds: float = SSE_KEEPALIVE_SECONDS):
    """Server-sent events for one viewer; unsubscribes when the client goes away"""
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue = asyncio.Queue()

    def on_update(message):
        loop.call_soon_threadsafe(queue.put_nowait, message)

    subscription = bus.subscribe(topic_for_event(event_id), on_update)
    realtime_logger.info(f"Live viewer connected to event {event_id}")
    try:
        yield f"retry: {SSE_RETRY_MS}\n\n"
        while True:
            if await request.is_disconnected():
                break
            try:
                message = await asyncio.wait_for(queue.get(), timeout=keepalive_seconds)
            except asyncio.TimeoutError:
                yield ": keepalive\n\n"
                continue
            yield f"data: {json.dumps(message)}\n\n"
    finally:
        subscription.cancel()
        realtime_logger.info(f"Live viewer disconnected from event {event_id}")


@router.get("/{slug}/stream")
async def stream_event_updates(
    slug: str,
    request: Request,
    db: Session = Depends(get_db),
    bus: EventBus = Depends(get_event_bus)
):
    """Live gallery updates as server-sent events"""
    event = await run_in_threadpool(get_event_by_slug, db, slug)
    return StreamingResponse(
        photo_update_stream(request, bus, event.id),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache, no-transform",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        }
    )


@router.post("/{slug}/checkout", status_code=201)
def create_checkout(slug: str, request_data: CheckoutRequest, db: Session = Depends(get_db)):
    """Start a Stripe checkout for one photo or the whole event"""
    event = get_event_by_slug(db, slug)
    return start_checkout(
        db,
        event,
        request_data.item_type,
        request_data.email,
        photo_id=request_data.photo_id
    )


@router.post("/{slug}/find-me", dependencies=[Depends(rate_limit_selfie_search)])
def find_me(
    slug: str,
    selfie: UploadFile = File(None),
    limit: int = Query(DEFAULT_MATCH_LIMIT, ge=1, le=MAX_SEARCH_FACES),
    db: Session = Depends(get_db)
):
    """Rank the event's published photos against an uploaded selfie

    The selfie is held in memory for the provider call only.
    """
    if selfie is None:
        raise HTTPException(400, "Selfie image is required in field 'selfie'.")
    if not (selfie.content_type or "").startswith("image/"):
        raise HTTPException(400, "Only image uploads are allowed for selfie matching.")

    selfie_bytes = selfie.file.read(settings.SELFIE_MAX_BYTES + 1)
    if not selfie_bytes:
        raise HTTPException(400, "Selfie image is empty.")
    if len(selfie_bytes) > settings.SELFIE_MAX_BYTES:
        raise HTTPException(400, "Selfie image is too large.")

    event = get_event_by_slug(db, slug)
    result = find_selfie_matches(db, event.id, selfie_bytes, limit)

    if result.status == SelfieSearchStatus.DISABLED:
        return JSONResponse(
            status_code=503,
            content={"error": result.message or "Face search is currently unavailable."}
        )
    if result.status == SelfieSearchStatus.ERROR:
        return JSONResponse(
            status_code=502,
            content={"error": result.message or "Face search failed."}
        )

    return result.to_dict()
