# parser/contract.py
# Test ids and attributes exposed by whatever renders an interactive guide.
import re


STEP_TESTID_PREFIX = "interactive-step-"
SECTION_TESTID_PREFIX = "interactive-section-"

STEP_SELECTOR = f'[data-testid^="{STEP_TESTID_PREFIX}"]'
SECTION_SELECTOR = f'[data-testid^="{SECTION_TESTID_PREFIX}"]'

# Step element attributes
ATTR_TARGET_ACTION = "data-targetaction"
ATTR_REF_TARGET = "data-reftarget"
ATTR_INTERNAL_ACTIONS = "data-internal-actions"
ATTR_SUBSTEP_TOTAL = "data-test-substep-total"
ATTR_SUBSTEP_INDEX = "data-test-substep-index"
ATTR_STEP_STATE = "data-test-step-state"
ATTR_FIX_TYPE = "data-test-fix-type"
ATTR_TEST_ID = "data-testid"

# Guided prompt (comment box)
PROMPT_SELECTOR = ".interactive-comment-box"
# Prompt buttons by accessible name; continue and skip share a CSS class
PROMPT_CONTINUE_LABEL = re.compile(r"^Continue")
PROMPT_SKIP_LABEL = "Skip"
ATTR_PROMPT_ACTION = "data-test-action"
ATTR_PROMPT_REF_TARGET = "data-test-reftarget"
ATTR_PROMPT_TARGET_VALUE = "data-test-target-value"
ATTR_PROMPT_FORM_STATE = "data-test-form-state"

REQUIREMENT_SPINNER_SELECTOR = ".interactive-requirement-spinner"

# Trailing control labels rendered inside the requirement explanation
EXPLANATION_CONTROL_LABELS = ("Fix this", "Retry", "Skip")


def step(step_id: str) -> str:
    return f"{STEP_TESTID_PREFIX}{step_id}"


def section(section_id: str) -> str:
    return f"{SECTION_TESTID_PREFIX}{section_id}"


def do_it_button(step_id: str) -> str:
    return f"interactive-do-it-{step_id}"


def step_completed(step_id: str) -> str:
    return f"interactive-step-completed-{step_id}"


def skip_button(step_id: str) -> str:
    return f"interactive-skip-{step_id}"


def requirement_check(step_id: str) -> str:
    return f"interactive-requirement-{step_id}"


def requirement_fix_button(step_id: str) -> str:
    return f"interactive-requirement-fix-{step_id}"


def requirement_retry_button(step_id: str) -> str:
    return f"interactive-requirement-retry-{step_id}"


def requirement_skip_button(step_id: str) -> str:
    return f"interactive-requirement-skip-{step_id}"


def strip_prefix(test_id: str, prefix: str) -> str:
    return test_id[len(prefix):] if test_id.startswith(prefix) else test_id
