from dataclasses import dataclass
from typing import Optional

from parser import contract


@dataclass(frozen=True)
class SubstepPrompt:
    action: Optional[str]
    ref_target: Optional[str]
    target_value: Optional[str]
    has_continue_control: bool = False

    @classmethod
    async def read(cls, page) -> "SubstepPrompt":
        return cls(
            action=await page.prompt_attribute(contract.ATTR_PROMPT_ACTION) or None,
            ref_target=await page.prompt_attribute(contract.ATTR_PROMPT_REF_TARGET) or None,
            target_value=await page.prompt_attribute(contract.ATTR_PROMPT_TARGET_VALUE),
            has_continue_control=await page.prompt_has_control(contract.PROMPT_CONTINUE_LABEL),
        )

    def describe(self) -> str:
        target = f" → {self.ref_target}" if self.ref_target else ""
        return f"{self.action or 'unknown'}{target}"
