import numpy as np
import pytest

from face_checkin.enrollment import POSE_INSTRUCTIONS, EnrollmentSession
from face_checkin.face_types import DescriptorLengthError, EnrollmentClosedError


def _vec(*values):
    return np.asarray(values, dtype=np.float32)


def test_session_collects_until_required():
    session = EnrollmentSession("alice", required=3, descriptor_dim=2)
    first = session.add_sample(_vec(1.0, 0.0))
    assert first.state == "collecting"
    assert first.sample_index == 1
    assert session.flattened is None

    session.add_sample(_vec(0.0, 2.0))
    last = session.add_sample(_vec(3.0, 4.0))
    assert last.state == "complete"
    assert last.sample_index == 3
    assert last.total_required == 3
    assert session.flattened["count"] == 3
    # Samples are stored normalized.
    assert session.flattened["templates"][2]["features"] == pytest.approx([0.6, 0.8])


def test_complete_session_is_terminal():
    session = EnrollmentSession("alice", required=1, descriptor_dim=2)
    session.add_sample(_vec(1.0, 0.0))
    with pytest.raises(EnrollmentClosedError):
        session.add_sample(_vec(0.0, 1.0))
    with pytest.raises(EnrollmentClosedError):
        session.reset()


def test_wrong_length_is_rejected_without_advancing():
    session = EnrollmentSession("alice", required=2, descriptor_dim=3)
    with pytest.raises(DescriptorLengthError):
        session.add_sample(_vec(1.0, 0.0))
    assert session.sample_index == 0


def test_reset_clears_samples():
    session = EnrollmentSession("alice", required=5, descriptor_dim=2)
    session.add_sample(_vec(1.0, 0.0))
    session.add_sample(_vec(0.0, 1.0))
    session.reset()
    assert session.sample_index == 0
    assert session.state == "collecting"
    assert session.instruction == POSE_INSTRUCTIONS[0]


def test_instruction_follows_sample_index():
    session = EnrollmentSession("alice", required=5, descriptor_dim=2)
    session.add_sample(_vec(1.0, 0.0))
    assert session.instruction == POSE_INSTRUCTIONS[1]
