# parser/step_discovery.py
import json
import logging
import time
from typing import Optional, Tuple

from parser import contract
from parser.dsl_models import StepDiscoveryResult, TestableStep

logger = logging.getLogger(__name__)

# Assumed action count for a multistep whose action list cannot be read
MULTISTEP_FALLBACK_ACTION_COUNT = 3


def parse_internal_action_count(raw: Optional[str]) -> int:
    if not raw:
        return MULTISTEP_FALLBACK_ACTION_COUNT
    try:
        actions = json.loads(raw)
    except ValueError:
        return MULTISTEP_FALLBACK_ACTION_COUNT
    return len(actions) if isinstance(actions, list) else 0


def infer_guided(target_action: Optional[str], substep_total: Optional[str]) -> Tuple[bool, Optional[int]]:
    """
    Guided when declared as such, or when a substep total is exposed and no
    action type is set. Multisteps also expose a substep total and are never
    guided.
    """
    try:
        total = int(substep_total) if substep_total not in (None, "") else None
    except ValueError:
        total = None
    has_total = total is not None and total >= 1

    unset = not target_action
    is_guided = target_action == "guided" or (has_total and unset and target_action != "multistep")
    if not is_guided:
        return False, None
    return True, total if has_total else 1


async def _is_skippable(page, step_id: str, is_pre_completed: bool, target_action: Optional[str]) -> bool:
    if target_action == "noop":
        return False
    # The skip control stops rendering once a step completes, so a completed
    # step is reported as not skippable.
    if is_pre_completed:
        return False
    return await page.count(contract.skip_button(step_id)) > 0


async def discover(page) -> StepDiscoveryResult:
    started = time.monotonic()
    steps = []

    elements = await page.step_elements()
    for position, element in enumerate(elements):
        test_id = await page.element_attribute(element, contract.ATTR_TEST_ID)
        if not test_id:
            logger.warning(f"Step at index {position} has no data-testid, skipping")
            continue

        step_id = contract.strip_prefix(test_id, contract.STEP_TESTID_PREFIX)

        # lazily rendered controls (skip button) only exist once scrolled to
        try:
            await page.scroll_element_into_view(element)
        except Exception as e:
            logger.debug(f"scroll into view failed for {step_id}: {e}")

        target_action = await page.element_attribute(element, contract.ATTR_TARGET_ACTION) or None
        ref_target = await page.element_attribute(element, contract.ATTR_REF_TARGET) or None

        has_action_control = await page.count(contract.do_it_button(step_id)) > 0
        is_pre_completed = await page.is_visible(contract.step_completed(step_id))
        skippable = await _is_skippable(page, step_id, is_pre_completed, target_action)
        section_id = await page.element_section_id(element)

        is_multistep = target_action == "multistep"
        internal_action_count = 0
        if is_multistep:
            internal_action_count = parse_internal_action_count(
                await page.element_attribute(element, contract.ATTR_INTERNAL_ACTIONS)
            )

        is_guided, guided_step_count = infer_guided(
            target_action,
            await page.element_attribute(element, contract.ATTR_SUBSTEP_TOTAL),
        )

        steps.append(
            TestableStep(
                step_id=step_id,
                index=position,
                section_id=section_id,
                skippable=skippable,
                has_action_control=has_action_control,
                is_pre_completed=is_pre_completed,
                target_action=target_action,
                ref_target=ref_target,
                is_multistep=is_multistep,
                internal_action_count=internal_action_count,
                is_guided=is_guided,
                guided_step_count=guided_step_count,
            )
        )

    return StepDiscoveryResult(steps=steps, duration_ms=int((time.monotonic() - started) * 1000))


def log_discovery_results(result: StepDiscoveryResult, verbose: bool = False) -> None:
    multisteps = sum(1 for s in result.steps if s.is_multistep)
    guided = sum(1 for s in result.steps if s.is_guided)

    logger.info(
        f"📋 Discovered {result.total_steps} steps "
        f"({result.pre_completed_count} pre-completed, "
        f"{result.no_action_control_count} without action control, "
        f"{multisteps} multistep, {guided} guided) in {result.duration_ms}ms"
    )
    if not verbose:
        return

    for step in result.steps:
        flags = [
            "pre-completed" if step.is_pre_completed else None,
            "no-button" if not step.has_action_control else None,
            "skippable" if step.skippable else None,
            f"multistep:{step.internal_action_count}" if step.is_multistep else None,
            f"guided:{step.guided_step_count}" if step.is_guided else None,
            f"target:{step.ref_target[:30]}" if step.ref_target else None,
        ]
        flags_str = ", ".join(f for f in flags if f)
        action = f" [{step.target_action}]" if step.target_action else ""
        section = f" in section:{step.section_id}" if step.section_id else ""
        logger.info(f"   {step.index + 1}. {step.step_id}{action}{section}" + (f" ({flags_str})" if flags_str else ""))
