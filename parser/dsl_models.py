# parser/dsl_models.py
from dataclasses import dataclass, field
from typing import List, Optional

from parser import contract


@dataclass(frozen=True)
class TestableStep:
    step_id: str
    index: int
    skippable: bool = False
    has_action_control: bool = True
    is_pre_completed: bool = False
    section_id: Optional[str] = None
    target_action: Optional[str] = None
    ref_target: Optional[str] = None
    is_multistep: bool = False
    internal_action_count: int = 0
    is_guided: bool = False
    # None unless is_guided; >= 1 when set
    guided_step_count: Optional[int] = None

    # not collected by pytest despite the name
    __test__ = False

    @property
    def test_id(self) -> str:
        return contract.step(self.step_id)


@dataclass(frozen=True)
class StepDiscoveryResult:
    steps: List[TestableStep] = field(default_factory=list)
    duration_ms: int = 0

    @property
    def total_steps(self) -> int:
        return len(self.steps)

    @property
    def pre_completed_count(self) -> int:
        return sum(1 for s in self.steps if s.is_pre_completed)

    @property
    def no_action_control_count(self) -> int:
        return sum(1 for s in self.steps if not s.has_action_control)
