# requirements/detector.py
import logging
import re
from typing import Optional

from config.config import DEFAULT_TIMINGS, Timings
from parser import contract
from parser.dsl_models import TestableStep
from parser.statuses import FixKind, RequirementStatus
from stage_hand.polling import poll_until
from stage_hand.result import RequirementResult

logger = logging.getLogger(__name__)

_TRAILING_LABELS = re.compile(
    r"(?:\s*(?:" + "|".join(re.escape(label) for label in contract.EXPLANATION_CONTROL_LABELS) + r"))+\s*$"
)
# refresh glyph rendered next to the retry control
_REFRESH_GLYPH = "⟳"

_NAV_REF_MARKERS = ("grafana:nav-menu", "nav-item")


def clean_explanation(text: Optional[str]) -> Optional[str]:
    if text is None:
        return None
    cleaned = _TRAILING_LABELS.sub("", text.replace(_REFRESH_GLYPH, "").strip()).strip()
    return cleaned or None


def infer_fix_kind(
    explanation: Optional[str],
    target_action: Optional[str] = None,
    ref_target: Optional[str] = None,
    explicit: Optional[str] = None,
) -> FixKind:
    """
    Best-effort guess of what the fix control will do.

    The page may state it outright through data-test-fix-type; otherwise
    the explanation wording, then the step's own action and target, are
    used. Falls back to NAVIGATION.
    """
    if explicit:
        try:
            return FixKind(explicit)
        except ValueError:
            logger.debug(f"Unrecognised fix type '{explicit}', inferring instead")

    text = (explanation or "").lower()

    if "navigation" in text or "menu" in text:
        if "expand" in text or "section" in text:
            return FixKind.EXPAND_PARENT_NAVIGATION
        return FixKind.NAVIGATION
    if "page" in text or "navigate" in text:
        return FixKind.LOCATION
    if "scroll" in text or "discover" in text:
        return FixKind.LAZY_SCROLL

    if target_action == "navigate":
        return FixKind.LOCATION
    if ref_target and any(marker in ref_target for marker in _NAV_REF_MARKERS):
        return FixKind.NAVIGATION

    return FixKind.NAVIGATION


async def is_checking(page, step_id: str) -> bool:
    explanation_id = contract.requirement_check(step_id)
    if await page.count(explanation_id) == 0:
        return False
    return await page.contains(explanation_id, contract.REQUIREMENT_SPINNER_SELECTOR)


async def wait_for_requirements_check(page, step_id: str, timings: Timings = DEFAULT_TIMINGS) -> bool:
    """Wait for an in-flight requirement check to finish. False on timeout."""

    async def _settled():
        return not await is_checking(page, step_id)

    done = await poll_until(page, _settled, timings.requirements_check_timeout, timings.requirements_poll_interval)
    if not done:
        logger.warning(f"⚠ Requirements check still running for step {step_id} after {timings.requirements_check_timeout}ms")
    return done


async def detect_requirements(page, step: TestableStep) -> RequirementResult:
    if step.is_pre_completed:
        return RequirementResult(
            requirements_met=True,
            status=RequirementStatus.MET,
            skippable=step.skippable,
        )

    step_id = step.step_id

    do_it = contract.do_it_button(step_id)
    has_action_control = await page.count(do_it) > 0
    action_enabled = has_action_control and await page.is_enabled(do_it)

    explanation_id = contract.requirement_check(step_id)
    has_explanation = await page.count(explanation_id) > 0
    checking = has_explanation and await page.contains(explanation_id, contract.REQUIREMENT_SPINNER_SELECTOR)

    explanation_text = None
    if has_explanation and not checking:
        explanation_text = clean_explanation(await page.text_of(explanation_id))

    has_fix = await page.count(contract.requirement_fix_button(step_id)) > 0
    has_retry = await page.count(contract.requirement_retry_button(step_id)) > 0
    has_skip = await page.count(contract.requirement_skip_button(step_id)) > 0

    fix_kind = None
    if has_fix:
        fix_kind = infer_fix_kind(
            explanation_text,
            step.target_action,
            step.ref_target,
            explicit=await page.step_attribute(step_id, contract.ATTR_FIX_TYPE),
        )

    if checking:
        status, met = RequirementStatus.CHECKING, False
    elif action_enabled and not has_explanation:
        status, met = RequirementStatus.MET, True
    elif has_explanation or has_fix or has_retry or has_skip:
        status, met = RequirementStatus.UNMET, False
    elif has_action_control:
        # disabled with no explanation, usually waiting on an earlier step
        status, met = RequirementStatus.UNKNOWN, False
    else:
        status, met = RequirementStatus.UNKNOWN, True

    return RequirementResult(
        requirements_met=met,
        status=status,
        skippable=step.skippable,
        has_fix_control=has_fix,
        fix_kind=fix_kind,
        explanation_text=explanation_text,
        is_checking=checking,
        has_skip_control=has_skip,
        has_retry_control=has_retry,
    )


def describe(result: RequirementResult) -> str:
    icon = {
        RequirementStatus.MET: "✓",
        RequirementStatus.UNMET: "✗",
        RequirementStatus.CHECKING: "⟳",
        RequirementStatus.UNKNOWN: "?",
    }[result.status]

    message = f"{icon} Requirements {result.status.value}"
    if result.has_fix_control:
        message += f" (fix: {result.fix_kind.value if result.fix_kind else 'available'})"
    if result.has_skip_control:
        message += " (skippable)"
    if result.explanation_text:
        message += f" - {result.explanation_text}"
    return message
