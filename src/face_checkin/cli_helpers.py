from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterator, List, Optional, Tuple

import cv2
import numpy as np
from rich.table import Table

from .face_types import (
    AMBIGUOUS_FACE,
    BLOCKED,
    MALFORMED_TEMPLATE,
    NO_ENROLLMENT,
    NO_FACE,
    POOR_POSITION,
    RATE_LIMITED,
    TOO_DARK,
    VERIFICATION_FAILED,
    AttendanceRecord,
)

REASON_MESSAGES = {
    NO_FACE: "No face detected. Position your face in front of the camera.",
    AMBIGUOUS_FACE: "Multiple faces detected. Ensure only your face is visible.",
    TOO_DARK: "Too dark. Improve lighting and try again.",
    POOR_POSITION: "Face could not be read. Keep your face centered and close enough.",
    NO_ENROLLMENT: "No enrolled face found. Run the enroll command first.",
    MALFORMED_TEMPLATE: "Stored templates are unreadable. Enroll again.",
    VERIFICATION_FAILED: "Face verification failed. No matching face found.",
    RATE_LIMITED: "Too many attempts. Please try again later.",
    BLOCKED: "Temporarily blocked due to suspicious activity.",
}


def describe_reason(reason: Optional[str]) -> str:
    if reason is None:
        return ""
    return REASON_MESSAGES.get(reason, reason)


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def open_video_source(source: str) -> cv2.VideoCapture:
    # Bare digits select a camera index.
    cap = cv2.VideoCapture(int(source) if source.isdigit() else source)
    if not cap.isOpened():
        raise RuntimeError(f"Unable to open video source {source}")
    return cap


def iter_frames(
    source: str, frame_step: int = 1, limit_frames: Optional[int] = None
) -> Iterator[Tuple[int, np.ndarray]]:
    cap = open_video_source(source)
    frame_idx = 0
    try:
        while True:
            if limit_frames is not None and frame_idx >= limit_frames:
                break
            ok, frame = cap.read()
            if not ok or frame is None:
                break
            if frame_idx % max(1, frame_step) == 0:
                yield frame_idx, frame
            frame_idx += 1
    finally:
        cap.release()


def default_store_path() -> Path:
    return Path("profiles/face_templates.json")


def default_attendance_path() -> Path:
    return Path("profiles/attendance.json")


def records_table(records: List[AttendanceRecord]) -> Table:
    table = Table(title="Attendance")
    for column in ("Time (UTC)", "User", "Location", "Similarity"):
        table.add_column(column)
    for record in records:
        loc = record.location
        table.add_row(
            record.timestamp_utc,
            record.user_id,
            f"{loc.latitude:.6f}, {loc.longitude:.6f} (±{round(loc.accuracy_m)}m)",
            f"{record.similarity * 100:.1f}%",
        )
    return table
