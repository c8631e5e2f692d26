from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Literal, Optional, Tuple

import numpy as np

# Detector acquisition failures.
NO_FACE = "NO_FACE"
AMBIGUOUS_FACE = "AMBIGUOUS_FACE"
TOO_DARK = "TOO_DARK"
POOR_POSITION = "POOR_POSITION"
# Template / verification failures.
NO_ENROLLMENT = "NO_ENROLLMENT"
MALFORMED_TEMPLATE = "MALFORMED_TEMPLATE"
VERIFICATION_FAILED = "VERIFICATION_FAILED"
# Abuse guard rejections.
RATE_LIMITED = "RATE_LIMITED"
BLOCKED = "BLOCKED"

QualityError = Literal["TOO_DARK", "POOR_POSITION"]
EnrollmentState = Literal["collecting", "complete"]


class DescriptorLengthError(ValueError):
    """Descriptor dimensionality does not match the configured encoder."""


class EnrollmentClosedError(RuntimeError):
    """Raised when a sample is added to an already completed session."""


@dataclass(frozen=True)
class FaceDetection:
    # (x1, y1, x2, y2) bounding box in image coordinates.
    bbox: Tuple[int, int, int, int]
    # Raw descriptor from the encoder, None if it could not be computed.
    descriptor: Optional[np.ndarray] = None
    # Quality gate outcome; None means the crop passed.
    quality_error: Optional[QualityError] = None


@dataclass(frozen=True)
class MatchResult:
    # Highest similarity across templates (0.0 when nothing matched).
    best_similarity: float
    # Index of the best template, -1 if none scored above zero.
    best_index: int
    # Euclidean distance to every template in order.
    all_distances: List[float] = field(default_factory=list)


@dataclass(frozen=True)
class VerificationResult:
    accepted: bool
    similarity: float
    reason: Optional[str] = None
    best_index: int = -1


@dataclass(frozen=True)
class EnrollmentProgress:
    state: EnrollmentState
    # Number of samples accepted so far (index of the next sample to capture).
    sample_index: int
    total_required: int
    # Acquisition failure for this capture, if any.
    reason: Optional[str] = None


@dataclass(frozen=True)
class GuardDecision:
    is_spam: bool
    blocked: bool = False
    reason: Optional[str] = None
    # Seconds until the active block lifts; 0.0 when not blocked.
    retry_after: float = 0.0


@dataclass(frozen=True)
class GeoLocation:
    latitude: float
    longitude: float
    # Reported accuracy radius in meters.
    accuracy_m: float

    def to_dict(self) -> Dict[str, float]:
        return {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "accuracy_m": self.accuracy_m,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, object]) -> "GeoLocation":
        return cls(
            latitude=float(payload["latitude"]),  # type: ignore[arg-type]
            longitude=float(payload["longitude"]),  # type: ignore[arg-type]
            accuracy_m=float(payload["accuracy_m"]),  # type: ignore[arg-type]
        )


@dataclass(frozen=True)
class AttendanceRecord:
    # Deterministic id for idempotent persistence.
    event_id: str
    user_id: str
    # UTC timestamp string (ISO-8601).
    timestamp_utc: str
    location: GeoLocation
    # Similarity of the accepted match.
    similarity: float
    # Faces present in the captured frame (always 1 for accepted check-ins).
    face_count: int = 1

    def to_dict(self) -> Dict[str, object]:
        return {
            "event_id": self.event_id,
            "user_id": self.user_id,
            "timestamp_utc": self.timestamp_utc,
            "location": self.location.to_dict(),
            "similarity": self.similarity,
            "face_count": self.face_count,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, object]) -> "AttendanceRecord":
        return cls(
            event_id=str(payload["event_id"]),
            user_id=str(payload["user_id"]),
            timestamp_utc=str(payload["timestamp_utc"]),
            location=GeoLocation.from_dict(payload["location"]),  # type: ignore[arg-type]
            similarity=float(payload["similarity"]),  # type: ignore[arg-type]
            face_count=int(payload.get("face_count", 1)),  # type: ignore[arg-type]
        )


@dataclass(frozen=True)
class CheckinOutcome:
    accepted: bool
    similarity: float
    reason: Optional[str] = None
    # Persisted record when the check-in was accepted.
    record: Optional[AttendanceRecord] = None
    # Seconds until a guard block lifts.
    retry_after: float = 0.0
