import logging
import os
import sys
from dataclasses import dataclass, field
from typing import Callable, Optional

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    base_url: str = "http://localhost:3000"
    artifacts_dir: Optional[str] = None
    headless: bool = True
    session_check_path: str = "/api/user"
    plugin_id: str = "grafana-pathfinder-app"
    model_name: str = "google/gemini-2.5-flash"
    model_api_key: Optional[str] = None

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            base_url=os.getenv("GUIDE_RUNNER_BASE_URL", cls.base_url),
            artifacts_dir=os.getenv("GUIDE_RUNNER_ARTIFACTS_DIR") or None,
            headless=_env_bool("GUIDE_RUNNER_HEADLESS", cls.headless),
            session_check_path=os.getenv("GUIDE_RUNNER_SESSION_PATH", cls.session_check_path),
            plugin_id=os.getenv("GUIDE_RUNNER_PLUGIN_ID", cls.plugin_id),
            model_name=os.getenv("STAGEHAND_MODEL_NAME", cls.model_name),
            model_api_key=os.getenv("GEMINI_API_KEY") or None,
        )


@dataclass(frozen=True)
class Timings:
    """Every timeout, delay and poll interval the engine uses, in milliseconds."""

    step_timeout: int = 30000
    multistep_action_surcharge: int = 5000
    guided_substep_surcharge: int = 10000

    # action control
    control_appear_timeout: int = 15000
    control_enable_timeout: int = 10000
    scroll_settle: int = 300
    post_click_settle: int = 500
    completion_poll_interval: int = 250

    # requirements
    requirements_check_timeout: int = 10000
    requirements_poll_interval: int = 200
    fix_timeout: int = 10000
    post_fix_settle: int = 1000
    location_fix_settle: int = 2000

    # guided
    guided_executing_timeout: int = 5000
    guided_prompt_timeout: int = 5000
    guided_substep_timeout: int = 15000
    guided_poll_interval: int = 200
    guided_skip_fraction: float = 0.8
    hover_dwell: int = 500
    formfill_debounce: int = 300
    formfill_validation_timeout: int = 3000

    session_timeout: int = 5000


DEFAULT_TIMINGS = Timings()

DEFAULT_SESSION_CHECK_INTERVAL = 5
MAX_FIX_ATTEMPTS = 3


@dataclass
class RunOptions:
    timeout_ms: Optional[int] = None
    verbose: bool = False
    stop_on_mandatory_failure: bool = True
    session_check_interval: int = DEFAULT_SESSION_CHECK_INTERVAL
    artifacts_dir: Optional[str] = None
    always_screenshot: bool = False
    # (result, step_index, total_steps) -> None
    on_step_complete: Optional[Callable] = None
    max_fix_attempts: int = MAX_FIX_ATTEMPTS
    timings: Timings = field(default_factory=Timings)


def setup_logging(verbose: bool = False) -> logging.Logger:
    root = logging.getLogger()
    root.setLevel(logging.DEBUG if verbose else logging.INFO)

    if not any(getattr(h, "_guide_runner", False) for h in root.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter("[%(asctime)s] [%(levelname)s] %(message)s"))
        handler._guide_runner = True
        root.addHandler(handler)
    return root
