from __future__ import annotations

import math
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from .attendance_store import AttendanceStore
from .checkin_config import CheckinConfig
from .checkin_engine import CheckinEngine
from .cli_helpers import (
    configure_logging,
    default_attendance_path,
    default_store_path,
    describe_reason,
    iter_frames,
    records_table,
)
from .face_encoder import FaceEncoder
from .face_types import GeoLocation
from .template_store import TemplateStore

app = typer.Typer(add_completion=False, help="Face-verified attendance check-in.")


@app.callback()
def main(
    verbose: bool = typer.Option(
        False, "--verbose/--quiet", help="Print debug logs from the verification core."
    ),
) -> None:
    configure_logging(verbose)


def _build_engine(
    store_path: Path, attendance_path: Optional[Path] = None
) -> CheckinEngine:
    store = TemplateStore(store_path)
    attendance = AttendanceStore(attendance_path) if attendance_path else None
    return CheckinEngine(store=store, attendance=attendance, config=CheckinConfig())


@app.command()
def enroll(
    user_id: str = typer.Argument(..., help="User ID to enroll."),
    source: str = typer.Argument(..., help="Path to video file or camera index."),
    store_path: Path = typer.Option(
        default_store_path(), "--store", help="Template store path."
    ),
    prompt: bool = typer.Option(
        True,
        "--prompt/--no-prompt",
        help="Wait for Enter before each capture. Without prompts, frames are sampled "
        "every --frame-step frames and the attempt guard is skipped.",
    ),
    frame_step: int = typer.Option(
        15, "--frame-step", help="Frames between captures when not prompting."
    ),
    limit_frames: Optional[int] = typer.Option(
        None, "--limit-frames", help="Stop after N frames."
    ),
) -> None:
    engine = _build_engine(store_path)
    encoder = FaceEncoder()
    session = engine.enrollment_session(user_id)
    total = session.required
    typer.secho(f"Enrolling {user_id}: {total} samples required", fg=typer.colors.BLUE)

    step = 1 if prompt else frame_step
    for _, frame in iter_frames(source, frame_step=step, limit_frames=limit_frames):
        if prompt:
            typer.prompt(
                f"[{session.sample_index + 1}/{total}] {session.instruction}. Press Enter",
                default="",
                show_default=False,
            )
            decision = engine.guard_check(user_id, "enrollment")
            if decision.is_spam:
                typer.secho(describe_reason(decision.reason), fg=typer.colors.RED)
                raise typer.Exit(code=1)
        progress = engine.enroll_detections(user_id, encoder.detect(frame))
        if progress.reason is not None:
            typer.secho(describe_reason(progress.reason), fg=typer.colors.YELLOW)
            continue
        if progress.state == "complete":
            typer.secho(
                f"Enrolled {user_id} with {progress.total_required} samples",
                fg=typer.colors.GREEN,
            )
            return
        typer.secho(
            f"Captured sample {progress.sample_index} of {progress.total_required}",
            fg=typer.colors.CYAN,
        )

    typer.secho(
        f"Enrollment incomplete: source ended after {session.sample_index} of {total} samples",
        fg=typer.colors.YELLOW,
    )
    raise typer.Exit(code=1)


@app.command("check-in")
def check_in(
    user_id: str = typer.Argument(..., help="User ID checking in."),
    source: str = typer.Argument(..., help="Path to video file or camera index."),
    latitude: float = typer.Option(..., "--lat", help="Latitude of the check-in."),
    longitude: float = typer.Option(..., "--lng", help="Longitude of the check-in."),
    accuracy: float = typer.Option(
        0.0, "--accuracy", help="Location accuracy radius in meters."
    ),
    store_path: Path = typer.Option(
        default_store_path(), "--store", help="Template store path."
    ),
    attendance_path: Path = typer.Option(
        default_attendance_path(), "--attendance", help="Attendance record path."
    ),
    max_frames: int = typer.Option(
        30, "--max-frames", help="Frames to scan for a face before giving up."
    ),
) -> None:
    engine = _build_engine(store_path, attendance_path)
    encoder = FaceEncoder()
    location = GeoLocation(latitude=latitude, longitude=longitude, accuracy_m=accuracy)

    # Use the first frame that shows any face so the attempt counts only once.
    detections = []
    for _, frame in iter_frames(source, limit_frames=max_frames):
        detections = encoder.detect(frame)
        if detections:
            break

    previous = engine.attendance.last_check_in(user_id) if engine.attendance else None
    outcome = engine.check_in(user_id, detections, location)
    if not outcome.accepted:
        message = describe_reason(outcome.reason)
        if outcome.similarity > 0:
            message += f" (Similarity: {outcome.similarity * 100:.1f}%)"
        if outcome.retry_after > 0:
            message += f". Try again in {math.ceil(outcome.retry_after / 60)} minute(s)"
        typer.secho(message, fg=typer.colors.RED)
        raise typer.Exit(code=1)
    typer.secho(
        f"Attendance recorded for {user_id} (Face similarity: {outcome.similarity * 100:.1f}%)",
        fg=typer.colors.GREEN,
    )
    if previous is not None:
        typer.echo(f"Previous check-in: {previous.timestamp_utc}")


@app.command()
def history(
    user_id: Optional[str] = typer.Argument(None, help="Only show this user."),
    attendance_path: Path = typer.Option(
        default_attendance_path(), "--attendance", help="Attendance record path."
    ),
) -> None:
    store = AttendanceStore(attendance_path)
    records = store.history(user_id)
    if not records:
        typer.secho("No attendance records", fg=typer.colors.YELLOW)
        return
    Console().print(records_table(records))


@app.command()
def list_users(
    store_path: Path = typer.Option(
        default_store_path(), "--store", help="Template store path."
    ),
) -> None:
    store = TemplateStore(store_path)
    for user_id in store.list_users():
        typer.echo(user_id)


@app.command()
def delete_user(
    user_id: str = typer.Argument(..., help="User ID to delete from the store."),
    store_path: Path = typer.Option(
        default_store_path(), "--store", help="Template store path."
    ),
) -> None:
    store = TemplateStore(store_path)
    if store.delete_user(user_id):
        typer.secho(f"Deleted {user_id}", fg=typer.colors.GREEN)
    else:
        typer.secho(f"User {user_id} not found", fg=typer.colors.YELLOW)


def run() -> None:
    app()


if __name__ == "__main__":
    run()
