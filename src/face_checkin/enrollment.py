from __future__ import annotations

import logging
from typing import Dict, List, Optional

import numpy as np

from .face_types import (
    DescriptorLengthError,
    EnrollmentClosedError,
    EnrollmentProgress,
    EnrollmentState,
)
from .similarity import as_unit
from .template_codec import flatten

logger = logging.getLogger(__name__)

# Prompts shown while collecting each sample; not checked numerically.
POSE_INSTRUCTIONS = (
    "Look straight at the camera",
    "Turn your face slightly to the left",
    "Turn your face slightly to the right",
    "Tilt your head up slightly",
    "Tilt your head down slightly",
)


def check_descriptor(descriptor: np.ndarray, descriptor_dim: int) -> np.ndarray:
    arr = np.asarray(descriptor, dtype=np.float32)
    if arr.ndim != 1 or arr.shape[0] != descriptor_dim:
        raise DescriptorLengthError(
            f"Expected descriptor of length {descriptor_dim}, got shape {arr.shape}"
        )
    return arr


class EnrollmentSession:
    """Collects pose-diverse samples for one identity until the set is full."""

    def __init__(
        self, user_id: str, required: int = 5, descriptor_dim: int = 512
    ) -> None:
        if required < 1:
            raise ValueError("required must be at least 1")
        self.user_id = user_id
        self.required = required
        self.descriptor_dim = descriptor_dim
        self._samples: List[np.ndarray] = []
        self.flattened: Optional[Dict[str, object]] = None

    @property
    def state(self) -> EnrollmentState:
        return "complete" if self.flattened is not None else "collecting"

    @property
    def sample_index(self) -> int:
        return len(self._samples)

    @property
    def instruction(self) -> str:
        if self.state == "complete":
            return ""
        return POSE_INSTRUCTIONS[self.sample_index % len(POSE_INSTRUCTIONS)]

    def progress(self, reason: Optional[str] = None) -> EnrollmentProgress:
        return EnrollmentProgress(
            state=self.state,
            sample_index=self.sample_index,
            total_required=self.required,
            reason=reason,
        )

    def add_sample(self, descriptor: np.ndarray) -> EnrollmentProgress:
        if self.state == "complete":
            raise EnrollmentClosedError(
                f"Enrollment for {self.user_id} is already complete"
            )
        arr = check_descriptor(descriptor, self.descriptor_dim)
        self._samples.append(as_unit(arr))
        logger.debug(
            "enrollment %s: sample %d/%d",
            self.user_id,
            self.sample_index,
            self.required,
        )
        if self.sample_index >= self.required:
            self.flattened = flatten(self._samples)
        return self.progress()

    def reset(self) -> None:
        if self.state == "complete":
            raise EnrollmentClosedError(
                f"Enrollment for {self.user_id} is already complete"
            )
        self._samples = []
