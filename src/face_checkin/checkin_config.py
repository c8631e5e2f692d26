from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class CheckinConfig:
    # Encoder output size (buffalo_l yields 512-d embeddings).
    descriptor_dim: int = 512

    # Matching thresholds
    distance_threshold: float = 0.6  # distance at which similarity saturates to 0
    required_similarity: float = 0.6  # minimum similarity to accept an identity

    # Enrollment
    samples_required: int = 5

    # Sliding-window rate limit
    max_attempts: int = 6
    window_sec: float = 60.0

    # Burst detection and blocking
    burst_window_sec: float = 5.0
    burst_limit: int = 3
    block_duration_sec: float = 15 * 60.0
    # How often idle per-user guard state is reclaimed.
    sweep_interval_sec: float = 60.0
