from __future__ import annotations

import logging
from datetime import datetime, timezone
from hashlib import sha1
from typing import Callable, Dict, Optional, Sequence

import numpy as np

from .abuse_guard import AbuseGuard
from .attendance_store import AttendanceStore
from .checkin_config import CheckinConfig
from .enrollment import EnrollmentSession, check_descriptor
from .face_types import (
    AMBIGUOUS_FACE,
    MALFORMED_TEMPLATE,
    NO_ENROLLMENT,
    NO_FACE,
    POOR_POSITION,
    VERIFICATION_FAILED,
    AttendanceRecord,
    CheckinOutcome,
    EnrollmentProgress,
    FaceDetection,
    GeoLocation,
    GuardDecision,
    VerificationResult,
)
from .rate_limiter import KeyedLocks, RateLimiter
from .similarity import best_match
from .template_codec import is_well_formed, restore
from .template_store import TemplateStore

logger = logging.getLogger(__name__)


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _make_event_id(user_id: str, timestamp_utc: str) -> str:
    """Stable deterministic ID used for idempotent record persistence."""
    base = f"{user_id}|{timestamp_utc}"
    return sha1(base.encode("utf-8")).hexdigest()[:16]


def build_guard(config: CheckinConfig) -> AbuseGuard:
    limiter = RateLimiter(
        max_attempts=config.max_attempts, window_sec=config.window_sec
    )
    return AbuseGuard(
        rate_limiter=limiter,
        burst_window_sec=config.burst_window_sec,
        burst_limit=config.burst_limit,
        block_duration_sec=config.block_duration_sec,
        sweep_interval_sec=config.sweep_interval_sec,
    )


class CheckinEngine:
    def __init__(
        self,
        store: TemplateStore,
        guard: Optional[AbuseGuard] = None,
        attendance: Optional[AttendanceStore] = None,
        config: Optional[CheckinConfig] = None,
        now_fn: Callable[[], str] = _utc_now,
    ) -> None:
        self.store = store
        self.config = config or CheckinConfig()
        self.guard = guard or build_guard(self.config)
        self.attendance = attendance
        self._now_fn = now_fn
        self._sessions: Dict[str, EnrollmentSession] = {}
        self._enroll_locks = KeyedLocks()

    # Verification

    def verify(self, user_id: str, descriptor: np.ndarray) -> VerificationResult:
        live = check_descriptor(descriptor, self.config.descriptor_dim)
        flattened = self.store.load(user_id)
        if flattened is None:
            return VerificationResult(
                accepted=False, similarity=0.0, reason=NO_ENROLLMENT
            )
        if not is_well_formed(flattened):
            return VerificationResult(
                accepted=False, similarity=0.0, reason=MALFORMED_TEMPLATE
            )
        templates = restore(flattened)
        if not templates:
            return VerificationResult(
                accepted=False, similarity=0.0, reason=NO_ENROLLMENT
            )

        match = best_match(live, templates, threshold=self.config.distance_threshold)
        accepted = (
            match.best_index >= 0
            and match.best_similarity >= self.config.required_similarity
        )
        logger.debug(
            "verify %s: similarity=%.3f index=%d accepted=%s",
            user_id,
            match.best_similarity,
            match.best_index,
            accepted,
        )
        return VerificationResult(
            accepted=accepted,
            similarity=match.best_similarity,
            reason=None if accepted else VERIFICATION_FAILED,
            best_index=match.best_index,
        )

    def verify_detections(
        self, user_id: str, detections: Sequence[FaceDetection]
    ) -> VerificationResult:
        failure = self._acquisition_failure(detections)
        if failure is not None:
            return VerificationResult(accepted=False, similarity=0.0, reason=failure)
        return self.verify(user_id, detections[0].descriptor)  # type: ignore[arg-type]

    # Enrollment

    def _session(self, user_id: str) -> EnrollmentSession:
        session = self._sessions.get(user_id)
        if session is None:
            session = EnrollmentSession(
                user_id,
                required=self.config.samples_required,
                descriptor_dim=self.config.descriptor_dim,
            )
            self._sessions[user_id] = session
        return session

    def enrollment_session(self, user_id: str) -> EnrollmentSession:
        with self._enroll_locks.hold(user_id):
            return self._session(user_id)

    def enroll(self, user_id: str, descriptor: np.ndarray) -> EnrollmentProgress:
        with self._enroll_locks.hold(user_id):
            session = self._session(user_id)
            progress = session.add_sample(descriptor)
            if progress.state == "complete":
                self.store.save(user_id, session.flattened)  # type: ignore[arg-type]
                # A later enroll() starts a new session that replaces this set.
                del self._sessions[user_id]
                logger.info("enrolled %s with %d templates", user_id, session.required)
        return progress

    def enroll_detections(
        self, user_id: str, detections: Sequence[FaceDetection]
    ) -> EnrollmentProgress:
        failure = self._acquisition_failure(detections)
        if failure is not None:
            with self._enroll_locks.hold(user_id):
                return self._session(user_id).progress(reason=failure)
        return self.enroll(user_id, detections[0].descriptor)  # type: ignore[arg-type]

    def reset_enrollment(self, user_id: str) -> None:
        with self._enroll_locks.hold(user_id):
            session = self._sessions.pop(user_id, None)
            if session is not None:
                session.reset()

    # Abuse guard

    def guard_check(self, user_id: str, action: str) -> GuardDecision:
        return self.guard.check_attempt(user_id, action)

    def attempts_remaining(self, user_id: str) -> int:
        return self.guard.remaining_attempts(user_id)

    # Full check-in

    def check_in(
        self,
        user_id: str,
        detections: Sequence[FaceDetection],
        location: GeoLocation,
    ) -> CheckinOutcome:
        decision = self.guard_check(user_id, "attendance")
        if decision.is_spam:
            return CheckinOutcome(
                accepted=False,
                similarity=0.0,
                reason=decision.reason,
                retry_after=decision.retry_after,
            )

        result = self.verify_detections(user_id, detections)
        if not result.accepted:
            return CheckinOutcome(
                accepted=False, similarity=result.similarity, reason=result.reason
            )

        timestamp = self._now_fn()
        record = AttendanceRecord(
            event_id=_make_event_id(user_id, timestamp),
            user_id=user_id,
            timestamp_utc=timestamp,
            location=location,
            similarity=result.similarity,
            face_count=len(detections),
        )
        if self.attendance is not None:
            self.attendance.record(record)
        logger.info(
            "check-in recorded for %s (similarity=%.3f)", user_id, result.similarity
        )
        return CheckinOutcome(
            accepted=True, similarity=result.similarity, record=record
        )

    @staticmethod
    def _acquisition_failure(detections: Sequence[FaceDetection]) -> Optional[str]:
        if not detections:
            return NO_FACE
        if len(detections) > 1:
            return AMBIGUOUS_FACE
        face = detections[0]
        if face.quality_error is not None:
            return face.quality_error
        if face.descriptor is None:
            return POOR_POSITION
        return None
