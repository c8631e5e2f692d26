from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence

import cv2
import numpy as np

from .face_types import POOR_POSITION, TOO_DARK, FaceDetection, QualityError


@dataclass
class FaceEncoderConfig:
    min_face_size: int = 80
    model_name: str = "buffalo_l"
    providers: Sequence[str] = ("CPUExecutionProvider",)
    det_size: int = 640
    # Mean luma (0-255) of the face crop below which the frame is too dark.
    dark_threshold: float = 40.0


def mean_luminance(crop: np.ndarray) -> float:
    if crop.size == 0:
        return 0.0
    if crop.ndim == 2:
        gray = crop
    else:
        # BT.601 weights, same as 0.299 R + 0.587 G + 0.114 B.
        gray = cv2.cvtColor(crop, cv2.COLOR_BGR2GRAY)
    return float(gray.mean())


def quality_error(
    frame: np.ndarray,
    bbox: Sequence[int],
    min_face_size: int,
    dark_threshold: float,
) -> Optional[QualityError]:
    """Brightness/positioning gate applied to a single detected face."""
    x1, y1, x2, y2 = bbox
    if min(x2 - x1, y2 - y1) < min_face_size:
        return POOR_POSITION
    crop = frame[y1:y2, x1:x2]
    if crop.size == 0:
        return POOR_POSITION
    if mean_luminance(crop) < dark_threshold:
        return TOO_DARK
    return None


class FaceEncoder:
    """Face detection + descriptor extraction backed by InsightFace."""

    def __init__(self, config: Optional[FaceEncoderConfig] = None) -> None:
        self.config = config or FaceEncoderConfig()
        try:
            from insightface.app import FaceAnalysis
        except ImportError as exc:
            raise ImportError(
                "insightface is required. Install with: pip install insightface onnxruntime"
            ) from exc

        self._app = FaceAnalysis(
            name=self.config.model_name, providers=list(self.config.providers)
        )
        # ctx_id=-1 uses CPU; det_size controls the detector input size.
        self._app.prepare(ctx_id=-1, det_size=(self.config.det_size, self.config.det_size))

    def detect(self, frame: np.ndarray) -> List[FaceDetection]:
        faces = self._app.get(frame)
        detections: List[FaceDetection] = []
        for face in faces:
            x1, y1, x2, y2 = face.bbox.astype(int).tolist()
            x1 = max(0, x1)
            y1 = max(0, y1)
            x2 = min(frame.shape[1], x2)
            y2 = min(frame.shape[0], y2)
            error = quality_error(
                frame,
                (x1, y1, x2, y2),
                self.config.min_face_size,
                self.config.dark_threshold,
            )
            embedding = getattr(face, "embedding", None)
            descriptor = None
            if error is None and embedding is not None:
                descriptor = np.asarray(embedding, dtype=np.float32)
            detections.append(
                FaceDetection(
                    bbox=(x1, y1, x2, y2),
                    descriptor=descriptor,
                    quality_error=error,
                )
            )
        return detections
