import pytest

from config.config import RunOptions, Timings
from fakes import FakeGuidePage


@pytest.fixture
def timings():
    """Every wait shrunk to a few milliseconds."""
    return Timings(
        step_timeout=200,
        multistep_action_surcharge=10,
        guided_substep_surcharge=20,
        control_appear_timeout=30,
        control_enable_timeout=30,
        scroll_settle=1,
        post_click_settle=1,
        completion_poll_interval=2,
        requirements_check_timeout=30,
        requirements_poll_interval=2,
        fix_timeout=20,
        post_fix_settle=1,
        location_fix_settle=2,
        guided_executing_timeout=40,
        guided_prompt_timeout=40,
        guided_substep_timeout=60,
        guided_poll_interval=2,
        hover_dwell=1,
        formfill_debounce=1,
        formfill_validation_timeout=20,
        session_timeout=20,
    )


@pytest.fixture
def page():
    return FakeGuidePage()


@pytest.fixture
def options(timings):
    return RunOptions(timings=timings)
