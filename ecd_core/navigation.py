"""
Navigation State Verifier

A click on "next" proves nothing by itself. A transition counts only when
every destination marker of the step is visible and none of its origin
markers is. Checks are read-only, so verifying twice gives the same answer
on an unchanged page.
"""

import logging

from ecd_core.field_registry import FormStep
from ecd_core.retry import await_condition

logger = logging.getLogger(__name__)


class NavigationVerifier:

    def __init__(self, form_page, timeout: float = 5.0, interval: float = 0.3):
        self.form_page = form_page
        self.timeout = timeout
        self.interval = interval

    async def check(self, step: FormStep) -> bool:
        """Single read of the page markers for leaving ``step``."""
        for marker in step.destination_markers:
            if await self.form_page.count_visible(marker) == 0:
                return False
        for marker in step.origin_markers:
            if await self.form_page.count_visible(marker) > 0:
                return False
        return True

    async def verify(self, step: FormStep) -> bool:
        """Poll check() until it holds or the timeout elapses."""
        if not step.destination_markers and not step.origin_markers:
            return True
        ok = await await_condition(lambda: self.check(step), timeout=self.timeout, interval=self.interval)
        if ok:
            logger.info(f"✅ Left step '{step.name}'")
        else:
            logger.warning(f"Transition out of '{step.name}' not observed within {self.timeout:.1f}s")
        return ok
