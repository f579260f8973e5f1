import pytest

from nrkit.errors import TimeStepError
from nrkit.time.request import TimeStepRequest, TimeStepRequestProcessor


def test_previous_step_is_kept_without_requests():
    processor = TimeStepRequestProcessor(True)
    assert processor.new_step_size_goal() is None
    assert processor.step_size(0.0, 0.1) == pytest.approx(0.1)


def test_forward_requests_take_the_most_restrictive_value():
    processor = TimeStepRequestProcessor(True)
    processor.process(TimeStepRequest(size_goal=0.5))
    processor.process(TimeStepRequest(size_goal=0.3))
    assert processor.new_step_size_goal() == pytest.approx(0.3)
    assert processor.step_size(0.0, 0.1) == pytest.approx(0.3)
    processor.process(TimeStepRequest(size=0.2))
    assert processor.step_size(0.0, 0.1) == pytest.approx(0.2)
    processor.process(TimeStepRequest(end=0.15))
    assert processor.step_size(0.0, 0.1) == pytest.approx(0.15)
    assert processor.step_size(0.1, 0.1) == pytest.approx(0.05)


def test_end_at_or_before_step_start_is_ignored():
    processor = TimeStepRequestProcessor(True)
    processor.process(TimeStepRequest(size_goal=0.4, end=1.0))
    assert processor.step_size(1.0, 0.1) == pytest.approx(0.4)
    assert processor.step_size(2.0, 0.1) == pytest.approx(0.4)


def test_backward_requests_follow_the_direction_of_time():
    processor = TimeStepRequestProcessor(False)
    processor.process(TimeStepRequest(size_goal=-0.5))
    processor.process(TimeStepRequest(size=-0.2))
    assert processor.step_size(1.0, -0.1) == pytest.approx(-0.2)
    processor.process(TimeStepRequest(end=0.9))
    assert processor.step_size(1.0, -0.1) == pytest.approx(-0.1)


def test_sizes_against_the_direction_of_time_are_rejected():
    with pytest.raises(TimeStepError):
        TimeStepRequestProcessor(True).process(TimeStepRequest(size_goal=-0.1))
    with pytest.raises(TimeStepError):
        TimeStepRequestProcessor(False).process(TimeStepRequest(size=0.1))


def test_hard_limits():
    processor = TimeStepRequestProcessor(True)
    processor.process(TimeStepRequest(size_hard_limit=0.1, end_hard_limit=0.5))
    assert processor.step_size(0.0, 1.0) == pytest.approx(0.1)
    assert processor.step_size(0.45, 1.0) == pytest.approx(0.05)
    processor.error_on_hard_limit(0.1, 0.1)
    with pytest.raises(TimeStepError):
        processor.error_on_hard_limit(0.2, 0.2)
    with pytest.raises(TimeStepError):
        processor.error_on_hard_limit(0.1, 0.6)
