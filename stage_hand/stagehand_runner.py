# stage_hand/stagehand_runner.py
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from stagehand import Stagehand, StagehandConfig

from config.config import Settings
from parser.guide_loader import LoadedGuide
from stage_hand.guide_page import GuidePage

logger = logging.getLogger(__name__)

# localStorage slot the docs panel reads the bundled test guide from
E2E_TEST_GUIDE_KEY = "grafana-pathfinder-app-e2e-test-guide"
AUTO_OPEN_EVENT = "pathfinder-auto-open-docs"
BUNDLED_GUIDE_URL = "bundled:e2e-test"

FIRST_STEP_TIMEOUT_MS = 15000
LOAD_IDLE_TIMEOUT_MS = 10000

_INJECT_GUIDE = "({ key, json }) => localStorage.setItem(key, json)"
_OPEN_GUIDE = """({ event, url, title }) => {
    document.dispatchEvent(new CustomEvent(event, { detail: { url, title } }));
}"""


@asynccontextmanager
async def guide_session(settings: Settings) -> AsyncIterator[GuidePage]:
    """Launch a local browser through Stagehand and yield its page wrapped as a GuidePage."""
    logger.info("🚀 Start Stagehand session")

    config = StagehandConfig(
        env="LOCAL",
        model_name=settings.model_name,
        model_api_key=settings.model_api_key,
        local_browser_launch_options={"headless": settings.headless},
        verbose=1,
    )

    stagehand = Stagehand(config)
    try:
        await stagehand.init()
        page = stagehand.page
        await page.set_viewport_size({"width": 1280, "height": 980})
        yield GuidePage(page)
    finally:
        await stagehand.close()
        logger.info("Stagehand session closed")


async def open_guide(page: GuidePage, base_url: str, guide: Optional[LoadedGuide] = None) -> bool:
    """
    Navigate to the host application and bring a guide on screen.

    With a guide document, it is written to localStorage and the docs panel
    is asked to open it. Without one, `base_url` is expected to already
    render the guide. Returns False if no step appears in time.
    """
    await page.goto(base_url)
    await page.wait_for_idle(LOAD_IDLE_TIMEOUT_MS)

    if guide is not None:
        logger.info(f"📥 Injecting guide '{guide.title}' from {guide.path}")
        await page.evaluate(_INJECT_GUIDE, {"key": E2E_TEST_GUIDE_KEY, "json": guide.raw_json})
        await page.evaluate(_OPEN_GUIDE, {"event": AUTO_OPEN_EVENT, "url": BUNDLED_GUIDE_URL, "title": guide.title})

    visible = await page.wait_for_first_step(FIRST_STEP_TIMEOUT_MS)
    if not visible:
        logger.error(f"❌ No interactive step rendered within {FIRST_STEP_TIMEOUT_MS}ms")
    return visible
