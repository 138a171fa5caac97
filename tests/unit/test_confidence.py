"""Unit tests for reply confidence scoring."""

import pytest

from replyloop.core.confidence import score_confidence

pytestmark = pytest.mark.unit


def test_empty_reply_without_sources_is_baseline():
    assert score_confidence("", []) == pytest.approx(0.7)


def test_length_and_sources_add_up():
    assert score_confidence("字" * 500, [1, 2]) == pytest.approx(0.7 + 0.05 + 0.02)


def test_capped_at_095():
    assert score_confidence("x" * 10_000, list(range(50))) == 0.95
    assert score_confidence("x" * 3_000, []) == 0.95


def test_monotonic_in_length_and_sources():
    base = score_confidence("短回覆", [1])
    assert score_confidence("短回覆" * 10, [1]) > base
    assert score_confidence("短回覆", [1, 2, 3]) > base
