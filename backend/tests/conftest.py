"""Shared pytest fixtures for test suite"""
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Generator
from unittest.mock import Mock, patch
from uuid import uuid4

import pytest

# Settings are read once at import; configure before importing the app
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["PURCHASE_ACCESS_TOKEN_SECRET"] = "test-purchase-secret"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_snapmatch"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_snapmatch"
os.environ["S3_BUCKET"] = "snapmatch-test"
os.environ["AWS_REKOGNITION_COLLECTION_ID"] = "snapmatch-test-faces"
os.environ["REALTIME_BROKER"] = "memory"
os.environ["FACE_RECONCILE_INTERVAL"] = "0"
os.environ["OTEL_EXPORTER_OTLP_ENDPOINT"] = ""

# Add backend directory to Python path
backend_dir = Path(__file__).parent.parent
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

import fakeredis
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from snapmatch.core.security import issue_photographer_token
from snapmatch.db import redis as redis_module
from snapmatch.db.session import get_db
from snapmatch.main import app
from snapmatch.models import (
    Base, Event, EventStatus, FaceRecord, Photo, PhotoStatus, Purchase, PurchaseItem,
    PurchaseItemType, PurchaseStatus, User
)
from snapmatch.services.face import provider as provider_module
from snapmatch.services.face.provider import FACE_PROVIDER, IndexedFace
from snapmatch.services.realtime.event_bus import EventBus
from snapmatch.services.storage import s3_service


# SQLite in-memory database for testing
TEST_DATABASE_URL = "sqlite:///:memory:"

# Create test engine with StaticPool for in-memory database
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

# Create test session factory
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


class FakeStorage:
    """Deterministic presigned URLs"""

    bucket = "snapmatch-test"

    def __init__(self):
        self.upload_keys = []

    def generate_upload_url(self, object_key, content_type=None, expires_in=None):
        self.upload_keys.append(object_key)
        return f"https://storage.test/upload/{object_key}"

    def generate_download_url(self, object_key, expires_in=s3_service.DOWNLOAD_URL_EXPIRATION):
        return f"https://storage.test/{object_key}?expires={expires_in}"


class FakeFaceProvider:
    """In-memory stand-in for the Rekognition collection"""

    name = FACE_PROVIDER

    def __init__(self):
        self.faces_by_photo = {}
        self.search_results = []
        self.search_error = None
        self.index_error = None
        self.indexed = []
        self.deleted = []
        self._next_face = 0

    def ensure_collection(self):
        return None

    def index_face(self, photo_id, storage_key):
        if self.index_error:
            raise self.index_error
        self.indexed.append(photo_id)
        if photo_id in self.faces_by_photo:
            return list(self.faces_by_photo[photo_id])
        self._next_face += 1
        return [IndexedFace(face_id=f"face-{self._next_face}", confidence=99.5)]

    def delete_faces(self, face_ids):
        self.deleted.extend(face_ids)

    def search_by_image(self, image_bytes, max_faces, min_similarity):
        if self.search_error:
            raise self.search_error
        return list(self.search_results)


@pytest.fixture(scope="function")
def db_session() -> Generator[Session, None, None]:
    """Create a fresh SQLite in-memory database session for each test"""
    # Create all tables
    Base.metadata.create_all(bind=test_engine)

    # Create session
    session = TestSessionLocal()

    try:
        yield session
    finally:
        session.close()
        # Drop all tables after test
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture(scope="function")
def mock_redis():
    """Mock Redis client using fakeredis"""
    fake_redis = fakeredis.FakeStrictRedis(server=fakeredis.FakeServer(), decode_responses=True)
    with patch.object(redis_module, "_client", fake_redis):
        yield fake_redis


@pytest.fixture(autouse=True)
def face_provider() -> Generator[FakeFaceProvider, None, None]:
    provider = FakeFaceProvider()
    with patch.object(provider_module, "_face_provider", provider):
        yield provider


@pytest.fixture(autouse=True)
def storage() -> Generator[FakeStorage, None, None]:
    fake_storage = FakeStorage()
    with patch.object(s3_service, "_storage_service", fake_storage):
        yield fake_storage


@pytest.fixture(scope="function")
def bus() -> Generator[EventBus, None, None]:
    event_bus = EventBus()
    yield event_bus
    event_bus.close()


@pytest.fixture(scope="function")
def client(db_session: Session, mock_redis) -> Generator[TestClient, None, None]:
    """FastAPI test client with test database and mocked Redis"""

    # Override get_db dependency to use test database
    def override_get_db():
        try:
            yield db_session
        finally:
            pass  # Don't close session here, handled by fixture

    app.dependency_overrides[get_db] = override_get_db

    try:
        # Disable OpenTelemetry and schema creation in tests
        with patch("snapmatch.main.initialize_otel", return_value=False):
            with patch("snapmatch.main.init_db"):
                with TestClient(app) as test_client:
                    yield test_client
    finally:
        # Cleanup - always clear overrides
        app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def checkout_session_mock():
    """Stripe checkout session creation returning a fixed session"""
    session = Mock()
    session.id = "cs_test_123"
    session.url = "https://checkout.stripe.com/c/pay/cs_test_123"
    with patch("snapmatch.services.stripe_service.stripe.checkout.Session.create", return_value=session) as create:
        yield create


@pytest.fixture(scope="function")
def construct_event_mock():
    """Stripe webhook signature verification"""
    with patch("snapmatch.services.stripe_service.stripe.Webhook.construct_event") as construct:
        yield construct


@pytest.fixture(scope="function")
def photographer(db_session: Session) -> User:
    user = User(email="lens@example.com")
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture(scope="function")
def other_photographer(db_session: Session) -> User:
    user = User(email="other-lens@example.com")
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture(scope="function")
def auth_headers(photographer: User) -> dict:
    return {"Authorization": f"Bearer {issue_photographer_token(photographer.id)}"}


def _create_event(db: Session, owner: User, slug: str, name: str) -> Event:
    event = Event(
        owner_id=owner.id,
        name=name,
        slug=slug,
        event_date=datetime(2026, 6, 20, 18, 0, tzinfo=timezone.utc),
        venue="Harbor Hall",
        status=EventStatus.LIVE.value,
        price_photo=500,
        price_all=2500
    )
    db.add(event)
    db.commit()
    db.refresh(event)
    return event


@pytest.fixture(scope="function")
def event(db_session: Session, photographer: User) -> Event:
    return _create_event(db_session, photographer, "summer-gala", "Summer Gala")


@pytest.fixture(scope="function")
def other_event(db_session: Session, other_photographer: User) -> Event:
    return _create_event(db_session, other_photographer, "winter-ball", "Winter Ball")


@pytest.fixture(scope="function")
def make_photo(db_session: Session):
    """Factory for photos; published and uploaded unless told otherwise"""
    def _make_photo(event: Event, status: str = PhotoStatus.PUBLISHED.value, uploaded: bool = True, published_at=None):
        now = datetime.now(timezone.utc)
        photo = Photo(
            event_id=event.id,
            storage_key=f"events/{event.id}/original/{uuid4().hex}-photo.jpg",
            mime_type="image/jpeg",
            file_size=2048,
            status=status,
            is_uploaded=uploaded,
            uploaded_at=now if uploaded else None,
            published_at=(published_at or now) if status == PhotoStatus.PUBLISHED.value else None
        )
        db_session.add(photo)
        db_session.commit()
        db_session.refresh(photo)
        return photo
    return _make_photo


@pytest.fixture(scope="function")
def add_face(db_session: Session):
    """Attach an indexed face handle to a photo"""
    def _add_face(photo: Photo, external_id: str) -> FaceRecord:
        record = FaceRecord(photo_id=photo.id, provider=FACE_PROVIDER, external_id=external_id, confidence=99.0)
        db_session.add(record)
        db_session.commit()
        return record
    return _add_face


@pytest.fixture(scope="function")
def make_purchase(db_session: Session):
    """Factory for purchases with one item"""
    def _make_purchase(
        event: Event,
        status: str = PurchaseStatus.PAID.value,
        item_type: str = PurchaseItemType.ALL_PHOTOS.value,
        photo_id: str = None,
        session_id: str = None
    ) -> Purchase:
        amount = event.price_all if item_type == PurchaseItemType.ALL_PHOTOS.value else event.price_photo
        purchase = Purchase(
            event_id=event.id,
            buyer_email="guest@example.com",
            stripe_session_id=session_id or f"cs_{uuid4().hex}",
            status=status,
            amount_total=amount,
            currency="usd"
        )
        purchase.items.append(PurchaseItem(item_type=item_type, photo_id=photo_id, amount=amount))
        db_session.add(purchase)
        db_session.commit()
        db_session.refresh(purchase)
        return purchase
    return _make_purchase
