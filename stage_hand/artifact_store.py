import json
import logging
from pathlib import Path
from typing import List, Optional

from stage_hand.result import ArtifactPaths

logger = logging.getLogger(__name__)

FINAL_SCREENSHOT_NAME = "execution-final.png"


class ArtifactCollector:
    """
    Writes screenshots, DOM snapshots and console logs for a run.

    Every capture is best effort: a failure is logged and the next capture
    still runs.
    """

    def __init__(self, directory: str):
        self.path = Path(directory)

    def _ensure_dir(self) -> bool:
        try:
            self.path.mkdir(parents=True, exist_ok=True)
            return True
        except OSError as e:
            logger.warning(f"⚠ Could not create artifacts directory {self.path}: {e}")
            return False

    async def _screenshot(self, page, filename: str) -> Optional[str]:
        target = self.path / filename
        try:
            await page.screenshot(str(target))
            return str(target)
        except Exception as e:
            logger.warning(f"⚠ Failed to capture screenshot {filename}: {e}")
            return None

    async def on_failure(self, page, step_id: str, console_errors: List[str]) -> Optional[ArtifactPaths]:
        if not self._ensure_dir():
            return None

        screenshot = await self._screenshot(page, f"{step_id}-failure.png")

        dom = None
        dom_path = self.path / f"{step_id}-dom.html"
        try:
            html = await page.content()
            dom_path.write_text(html, encoding="utf-8")
            dom = str(dom_path)
        except Exception as e:
            logger.warning(f"⚠ Failed to capture DOM snapshot: {e}")

        console = None
        if console_errors:
            console_path = self.path / f"{step_id}-console.json"
            try:
                console_path.write_text(json.dumps(console_errors, indent=2), encoding="utf-8")
                console = str(console_path)
            except OSError as e:
                logger.warning(f"⚠ Failed to write console errors: {e}")

        artifacts = ArtifactPaths(screenshot=screenshot, dom=dom, console=console)
        return None if artifacts.is_empty() else artifacts

    async def on_success(self, page, step_id: str) -> Optional[ArtifactPaths]:
        if not self._ensure_dir():
            return None
        screenshot = await self._screenshot(page, f"{step_id}-success.png")
        return ArtifactPaths(screenshot=screenshot) if screenshot else None

    async def pre_step(self, page, step_id: str) -> Optional[str]:
        if not self._ensure_dir():
            return None
        return await self._screenshot(page, f"{step_id}-pre.png")

    async def final(self, page) -> Optional[str]:
        if not self._ensure_dir():
            return None
        return await self._screenshot(page, FINAL_SCREENSHOT_NAME)
