"""AWS Rekognition face collection adapter"""
import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from snapmatch.core.config import settings
from snapmatch.core.errors import UpstreamFailure

logger = logging.getLogger(__name__)

FACE_PROVIDER = "aws-rekognition"


class FaceProviderError(UpstreamFailure):
    """Rekognition call failed"""


class InvalidImageError(FaceProviderError):
    """Rekognition rejected the image parameters (no usable face in the image)"""


@dataclass(frozen=True)
class IndexedFace:
    face_id: str
    confidence: Optional[float] = None


@dataclass(frozen=True)
class FaceMatch:
    face_id: Optional[str]
    similarity: Optional[float]


def _error_code(error: ClientError) -> str:
    return error.response.get("Error", {}).get("Code", "")


# Only these calls carry an image; elsewhere InvalidParameterException is a bad request
IMAGE_ACTIONS = ("IndexFaces", "SearchFacesByImage")


def _translate(error: Exception, action: str) -> FaceProviderError:
    if (
        action in IMAGE_ACTIONS
        and isinstance(error, ClientError)
        and _error_code(error) == "InvalidParameterException"
    ):
        return InvalidImageError(f"{action} rejected the image: {error}")
    return FaceProviderError(f"{action} failed: {error}")


class RekognitionFaceProvider:
    """One shared Rekognition collection per deployment"""

    name = FACE_PROVIDER

    def __init__(self, collection_id: str, bucket: str, region: str, client=None):
        self.collection_id = collection_id
        self.bucket = bucket
        self.region = region
        self._client = client
        self._collection_ready = False

    @property
    def client(self):
        if self._client is None:
            client_kwargs = {"region_name": self.region}
            if settings.S3_ACCESS_KEY_ID and settings.S3_SECRET_ACCESS_KEY:
                client_kwargs["aws_access_key_id"] = settings.S3_ACCESS_KEY_ID
                client_kwargs["aws_secret_access_key"] = settings.S3_SECRET_ACCESS_KEY
            self._client = boto3.client("rekognition", **client_kwargs)
        return self._client

    @property
    def collection_ready(self) -> bool:
        return self._collection_ready

    def ensure_collection(self) -> None:
        """Create the collection on first use; cached as ready afterwards

        Concurrent first callers may both try to create it; an
        "already exists" answer counts as ready.
        """
        if self._collection_ready:
            return

        try:
            self.client.describe_collection(CollectionId=self.collection_id)
            self._collection_ready = True
            return
        except ClientError as e:
            if _error_code(e) != "ResourceNotFoundException":
                raise _translate(e, "DescribeCollection")
        except BotoCoreError as e:
            raise _translate(e, "DescribeCollection")

        try:
            self.client.create_collection(CollectionId=self.collection_id)
            logger.info(f"Created Rekognition collection {self.collection_id}")
        except ClientError as e:
            if _error_code(e) != "ResourceAlreadyExistsException":
                raise _translate(e, "CreateCollection")
        except BotoCoreError as e:
            raise _translate(e, "CreateCollection")

        self._collection_ready = True

    def index_face(self, photo_id: str, storage_key: str) -> List[IndexedFace]:
        """Index the face(s) found in a stored photo, requesting at most one"""
        try:
            response = self.client.index_faces(
                CollectionId=self.collection_id,
                ExternalImageId=photo_id,
                MaxFaces=1,
                Image={"S3Object": {"Bucket": self.bucket, "Name": storage_key}}
            )
        except (ClientError, BotoCoreError) as e:
            raise _translate(e, "IndexFaces")

        faces = []
        for record in response.get("FaceRecords") or []:
            face = record.get("Face") or {}
            face_id = face.get("FaceId")
            if face_id:
                faces.append(IndexedFace(face_id=face_id, confidence=face.get("Confidence")))
        return faces

    def delete_faces(self, face_ids: Iterable[str]) -> None:
        face_ids = [face_id for face_id in face_ids if face_id]
        if not face_ids:
            return
        try:
            self.client.delete_faces(CollectionId=self.collection_id, FaceIds=face_ids)
        except (ClientError, BotoCoreError) as e:
            raise _translate(e, "DeleteFaces")

    def search_by_image(self, image_bytes: bytes, max_faces: int, min_similarity: float) -> List[FaceMatch]:
        """Search the collection for faces similar to the largest face in the image

        Raises:
            InvalidImageError: If the image has no usable face
            FaceProviderError: For any other provider failure
        """
        try:
            response = self.client.search_faces_by_image(
                CollectionId=self.collection_id,
                Image={"Bytes": image_bytes},
                MaxFaces=max_faces,
                FaceMatchThreshold=min_similarity
            )
        except (ClientError, BotoCoreError) as e:
            raise _translate(e, "SearchFacesByImage")

        return [
            FaceMatch(
                face_id=(match.get("Face") or {}).get("FaceId"),
                similarity=match.get("Similarity")
            )
            for match in response.get("FaceMatches") or []
        ]


# Global provider instance (lazy initialization)
_face_provider: Optional[RekognitionFaceProvider] = None


def get_face_provider() -> Optional[RekognitionFaceProvider]:
    """Get the configured face provider, or None when face search is disabled"""
    global _face_provider
    if not settings.face_search_enabled:
        return None
    if _face_provider is None:
        _face_provider = RekognitionFaceProvider(
            collection_id=settings.AWS_REKOGNITION_COLLECTION_ID,
            bucket=settings.S3_BUCKET,
            region=settings.rekognition_region
        )
    return _face_provider
