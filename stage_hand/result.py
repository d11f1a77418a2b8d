from dataclasses import dataclass, field
from typing import List, Optional

from parser.statuses import (
    AbortReason,
    ErrorClassification,
    FixKind,
    RequirementStatus,
    SkipReason,
    StepStatus,
)


@dataclass(frozen=True)
class ArtifactPaths:
    screenshot: Optional[str] = None
    screenshot_pre: Optional[str] = None
    dom: Optional[str] = None
    console: Optional[str] = None

    def is_empty(self) -> bool:
        return not (self.screenshot or self.screenshot_pre or self.dom or self.console)


@dataclass(frozen=True)
class RequirementResult:
    requirements_met: bool
    status: RequirementStatus
    skippable: bool
    has_fix_control: bool = False
    fix_kind: Optional[FixKind] = None
    explanation_text: Optional[str] = None
    is_checking: bool = False
    has_skip_control: bool = False
    has_retry_control: bool = False


@dataclass(frozen=True)
class FixAttemptResult:
    attempt_number: int
    duration_ms: int
    success: bool
    requirements_met: bool
    error: Optional[str] = None


@dataclass(frozen=True)
class FixResult:
    success: bool
    attempts: List[FixAttemptResult]
    total_duration_ms: int
    final_status: RequirementStatus
    failure_reason: Optional[str] = None

    @property
    def total_attempts(self) -> int:
        return len(self.attempts)


# ─────────── step results ───────────
# One class per terminal status. Fields that only make sense for one status
# live on that class; the others read them as None.


@dataclass(frozen=True)
class StepTestResult:
    step_id: str
    duration_ms: int
    current_url: str
    skippable: bool
    console_errors: List[str] = field(default_factory=list)

    status = None

    @property
    def error(self) -> Optional[str]:
        return None

    @property
    def skip_reason(self) -> Optional[SkipReason]:
        return None

    @property
    def classification(self) -> Optional[ErrorClassification]:
        return None

    @property
    def artifacts(self) -> Optional[ArtifactPaths]:
        return None


@dataclass(frozen=True)
class PassedResult(StepTestResult):
    step_artifacts: Optional[ArtifactPaths] = None

    status = StepStatus.PASSED

    @property
    def artifacts(self) -> Optional[ArtifactPaths]:
        return self.step_artifacts


@dataclass(frozen=True)
class FailedResult(StepTestResult):
    message: str = ""
    error_class: ErrorClassification = ErrorClassification.UNKNOWN
    step_artifacts: Optional[ArtifactPaths] = None

    status = StepStatus.FAILED

    @property
    def error(self) -> Optional[str]:
        return self.message

    @property
    def classification(self) -> Optional[ErrorClassification]:
        return self.error_class

    @property
    def artifacts(self) -> Optional[ArtifactPaths]:
        return self.step_artifacts


@dataclass(frozen=True)
class SkippedResult(StepTestResult):
    reason: SkipReason = SkipReason.PRE_COMPLETED

    status = StepStatus.SKIPPED

    @property
    def skip_reason(self) -> Optional[SkipReason]:
        return self.reason


@dataclass(frozen=True)
class NotReachedResult(StepTestResult):
    # Only set when the run stopped on session expiry
    abort_class: Optional[ErrorClassification] = None

    status = StepStatus.NOT_REACHED

    @property
    def classification(self) -> Optional[ErrorClassification]:
        return self.abort_class


@dataclass
class AllStepsResult:
    results: List[StepTestResult] = field(default_factory=list)
    aborted: bool = False
    abort_reason: Optional[AbortReason] = None
    abort_message: Optional[str] = None
    final_screenshot: Optional[str] = None


@dataclass(frozen=True)
class RunSummary:
    total: int
    passed: int
    failed: int
    skipped: int
    not_reached: int
    mandatory_failed: int
    skippable_failed: int
    total_duration_ms: int

    @property
    def success(self) -> bool:
        # skippable failures never fail the run
        return self.mandatory_failed == 0
