# parser/guide_loader.py
import json
import os
from dataclasses import dataclass

DEFAULT_GUIDE_TITLE = "E2E Test Guide"


@dataclass(frozen=True)
class LoadedGuide:
    path: str
    title: str
    raw_json: str


class GuideLoader:

    def __init__(self, guide_dir: str = "."):
        self.guide_dir = guide_dir

    def load(self, guide_name: str) -> LoadedGuide:
        """
        Load a guide JSON document from disk.
        Raises FileNotFoundError / ValueError for a missing or malformed file.
        """
        filename = guide_name if guide_name.endswith(".json") else f"{guide_name}.json"
        path = filename if os.path.isabs(filename) else os.path.join(self.guide_dir, filename)

        if not os.path.exists(path):
            raise FileNotFoundError(f"Guide not found: {path}")

        with open(path, encoding="utf-8") as f:
            content = f.read()

        try:
            guide = json.loads(content)
        except ValueError as e:
            raise ValueError(f"Guide is not valid JSON: {path}: {e}") from e

        if not isinstance(guide, dict):
            raise ValueError(f"Guide must be a JSON object: {path}")

        return LoadedGuide(
            path=path,
            title=guide.get("title") or DEFAULT_GUIDE_TITLE,
            raw_json=content,
        )
