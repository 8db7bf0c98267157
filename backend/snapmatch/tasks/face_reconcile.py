"""Background pass that re-indexes uploaded photos left without a face record"""
import asyncio
import logging

from starlette.concurrency import run_in_threadpool

from snapmatch.core.config import settings
from snapmatch.db.session import SessionLocal
from snapmatch.services.face.index import reindex_missing_faces

face_logger = logging.getLogger("face")


def run_reconcile_pass(batch_size: int = 50) -> dict:
    db = SessionLocal()
    try:
        return reindex_missing_faces(db, batch_size=batch_size)
    finally:
        db.close()


async def face_reconcile_task(interval: int = None):
    """Repeat the reconcile pass every ``FACE_RECONCILE_INTERVAL`` seconds

    Repairs photos whose re-index was interrupted between clearing the old
    face and storing the new one.
    """
    interval = interval or settings.FACE_RECONCILE_INTERVAL
    face_logger.info(f"Face reconcile task started (every {interval}s)")
    while True:
        await asyncio.sleep(interval)
        try:
            counts = await run_in_threadpool(run_reconcile_pass)
            if counts:
                face_logger.info(f"Face reconcile pass finished: {counts}")
        except Exception as e:
            face_logger.error(f"Error in face reconcile task: {e}", exc_info=True)
