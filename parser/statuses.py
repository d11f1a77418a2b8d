from enum import Enum


class StepStatus(Enum):
    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"
    NOT_REACHED = "not_reached"


class SkipReason(Enum):
    PRE_COMPLETED = "pre_completed"
    NO_ACTION_CONTROL = "no_action_control"
    REQUIREMENTS_UNMET = "requirements_unmet"


class AbortReason(Enum):
    AUTH_EXPIRED = "AUTH_EXPIRED"
    MANDATORY_FAILURE = "MANDATORY_FAILURE"


class ErrorClassification(Enum):
    CONTENT_DRIFT = "content-drift"
    PRODUCT_REGRESSION = "product-regression"
    INFRASTRUCTURE = "infrastructure"
    UNKNOWN = "unknown"


class RequirementStatus(Enum):
    MET = "met"
    UNMET = "unmet"
    CHECKING = "checking"
    UNKNOWN = "unknown"


class FixKind(Enum):
    NAVIGATION = "navigation"
    LOCATION = "location"
    EXPAND_PARENT_NAVIGATION = "expand-parent-navigation"
    LAZY_SCROLL = "lazy-scroll"


class StepState(Enum):
    """Lifecycle state exposed by a step element (data-test-step-state)."""
    IDLE = "idle"
    EXECUTING = "executing"
    COMPLETED = "completed"
    ERROR = "error"
    CANCELLED = "cancelled"

    @classmethod
    def parse(cls, raw):
        try:
            return cls(raw)
        except ValueError:
            return None


class ExitCode(Enum):
    SUCCESS = 0
    TEST_FAILURE = 1
    CONFIGURATION_ERROR = 2
    HOST_UNREACHABLE = 3
    AUTH_FAILURE = 4
