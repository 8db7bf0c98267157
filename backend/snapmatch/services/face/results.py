"""Typed outcomes of face indexing and selfie search"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class FaceIndexStatus(str, Enum):
    INDEXED = "indexed"
    NO_FACE_DETECTED = "no_face_detected"
    DISABLED = "disabled"
    ERROR = "error"


class SelfieSearchStatus(str, Enum):
    OK = "ok"
    NO_MATCHES = "no_matches"
    NO_FACE_DETECTED = "no_face_detected"
    DISABLED = "disabled"
    ERROR = "error"


@dataclass(frozen=True)
class FaceIndexResult:
    status: FaceIndexStatus
    message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {"status": self.status.value}
        if self.message:
            data["message"] = self.message
        return data


@dataclass(frozen=True)
class SelfieMatch:
    similarity: float
    photo: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        return {"similarity": self.similarity, "photo": self.photo}


@dataclass(frozen=True)
class SelfieSearchResult:
    status: SelfieSearchStatus
    matches: List[SelfieMatch] = field(default_factory=list)
    message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "matches": [match.to_dict() for match in self.matches],
            "count": len(self.matches),
            "message": self.message,
        }
