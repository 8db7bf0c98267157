"""Rekognition and S3 adapter tests"""
import boto3
import pytest
from botocore.stub import Stubber

from snapmatch.core.config import settings
from snapmatch.core.errors import NotConfigured
from snapmatch.services.face.provider import (
    FaceMatch, FaceProviderError, IndexedFace, InvalidImageError, RekognitionFaceProvider
)
from snapmatch.services.face.matcher import find_selfie_matches
from snapmatch.services.face.results import SelfieSearchStatus
from snapmatch.services.storage.s3_service import StorageService


@pytest.fixture
def rekognition():
    client = boto3.client(
        "rekognition",
        region_name="us-east-1",
        aws_access_key_id="testing",
        aws_secret_access_key="testing"
    )
    with Stubber(client) as stubber:
        yield client, stubber
        stubber.assert_no_pending_responses()


@pytest.fixture
def provider(rekognition):
    client, _ = rekognition
    return RekognitionFaceProvider("faces", "photos-bucket", "us-east-1", client=client)


@pytest.mark.high
class TestRekognitionFaceProvider:
    """Test the Rekognition collection adapter"""

    def test_existing_collection_is_ready(self, provider, rekognition):
        _, stubber = rekognition
        stubber.add_response("describe_collection", {"FaceCount": 3}, {"CollectionId": "faces"})

        provider.ensure_collection()
        provider.ensure_collection()

        assert provider.collection_ready

    def test_missing_collection_is_created(self, provider, rekognition):
        _, stubber = rekognition
        stubber.add_client_error("describe_collection", service_error_code="ResourceNotFoundException")
        stubber.add_response("create_collection", {"StatusCode": 200}, {"CollectionId": "faces"})

        provider.ensure_collection()

        assert provider.collection_ready

    def test_concurrent_creation_counts_as_ready(self, provider, rekognition):
        _, stubber = rekognition
        stubber.add_client_error("describe_collection", service_error_code="ResourceNotFoundException")
        stubber.add_client_error("create_collection", service_error_code="ResourceAlreadyExistsException")

        provider.ensure_collection()

        assert provider.collection_ready

    def test_index_requests_a_single_face(self, provider, rekognition):
        _, stubber = rekognition
        stubber.add_response(
            "index_faces",
            {"FaceRecords": [{"Face": {"FaceId": "f-1", "Confidence": 99.8}}]},
            {
                "CollectionId": "faces",
                "ExternalImageId": "photo-1",
                "MaxFaces": 1,
                "Image": {"S3Object": {"Bucket": "photos-bucket", "Name": "events/e1/original/a.jpg"}},
            }
        )

        faces = provider.index_face("photo-1", "events/e1/original/a.jpg")

        assert faces == [IndexedFace(face_id="f-1", confidence=99.8)]

    def test_search_returns_matches(self, provider, rekognition):
        _, stubber = rekognition
        stubber.add_response(
            "search_faces_by_image",
            {"FaceMatches": [{"Similarity": 91.2, "Face": {"FaceId": "F1"}}]},
            {
                "CollectionId": "faces",
                "Image": {"Bytes": b"selfie"},
                "MaxFaces": 50,
                "FaceMatchThreshold": 80.0,
            }
        )

        matches = provider.search_by_image(b"selfie", max_faces=50, min_similarity=80.0)

        assert matches == [FaceMatch(face_id="F1", similarity=91.2)]

    def test_faceless_selfie_is_invalid_image(self, provider, rekognition):
        _, stubber = rekognition
        stubber.add_client_error("search_faces_by_image", service_error_code="InvalidParameterException")

        with pytest.raises(InvalidImageError):
            provider.search_by_image(b"selfie", max_faces=50, min_similarity=80.0)

    def test_bad_collection_parameter_is_not_an_image_error(self, provider, rekognition):
        _, stubber = rekognition
        stubber.add_client_error("describe_collection", service_error_code="InvalidParameterException")

        with pytest.raises(FaceProviderError) as exc_info:
            provider.ensure_collection()
        assert type(exc_info.value) is FaceProviderError
        assert not provider.collection_ready

    def test_bad_collection_parameter_makes_selfie_search_an_error(self, provider, rekognition, db_session, event):
        _, stubber = rekognition
        stubber.add_client_error("describe_collection", service_error_code="InvalidParameterException")

        result = find_selfie_matches(db_session, event.id, b"selfie", limit=10, provider=provider)

        assert result.status == SelfieSearchStatus.ERROR

    def test_faceless_photo_is_invalid_image_on_index(self, provider, rekognition):
        _, stubber = rekognition
        stubber.add_client_error("index_faces", service_error_code="InvalidParameterException")

        with pytest.raises(InvalidImageError):
            provider.index_face("photo-1", "events/e1/original/a.jpg")

    def test_other_errors_are_provider_errors(self, provider, rekognition):
        _, stubber = rekognition
        stubber.add_client_error("delete_faces", service_error_code="ThrottlingException")

        with pytest.raises(FaceProviderError) as exc_info:
            provider.delete_faces(["f-1"])
        assert not isinstance(exc_info.value, InvalidImageError)

    def test_delete_nothing_skips_call(self, provider):
        provider.delete_faces([None, ""])


@pytest.mark.medium
class TestStorageService:
    """Test presigned URL generation"""

    def test_requires_bucket(self, monkeypatch):
        monkeypatch.setattr(settings, "S3_BUCKET", "")
        with pytest.raises(NotConfigured):
            StorageService()

    def test_presigned_urls(self, monkeypatch):
        monkeypatch.setattr(settings, "S3_ACCESS_KEY_ID", "testing")
        monkeypatch.setattr(settings, "S3_SECRET_ACCESS_KEY", "testing")
        service = StorageService()

        upload_url = service.generate_upload_url("events/e1/original/a.jpg", content_type="image/jpeg")
        download_url = service.generate_download_url("events/e1/original/a.jpg", expires_in=600)

        assert "events/e1/original/a.jpg" in upload_url
        assert "X-Amz-Expires=900" in upload_url
        assert "X-Amz-Expires=600" in download_url

    def test_empty_key_rejected(self, monkeypatch):
        monkeypatch.setattr(settings, "S3_ACCESS_KEY_ID", "testing")
        monkeypatch.setattr(settings, "S3_SECRET_ACCESS_KEY", "testing")
        with pytest.raises(ValueError):
            StorageService().generate_download_url("")
