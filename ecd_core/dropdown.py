"""
Dropdown Resolution Engine

Selects an option in a custom select whose option list renders only after
an open action. Each attempt opens the widget (three strategies), matches
the wanted value against the rendered options, commits the choice and reads
the displayed selection back. Failure is returned, never raised.
"""

import asyncio
import logging
import re
from typing import Dict, List, Optional

from ecd_core.errors import DropdownOpenFailure, OptionNotFound
from ecd_core.models import DropdownResult, ResolvedField, RetryPolicy
from ecd_core.retry import await_condition, try_strategies

logger = logging.getLogger(__name__)

CODE_VALUE = re.compile(r"^[A-Z0-9]{2,3}$")


def _code_prefix(label: str) -> str:
    return label.split(" - ", 1)[0].strip() if " - " in label else ""


def match_option(options: List[Dict[str, str]], value: str) -> Optional[int]:
    """
    Index of the option that best matches value, or None.

    Tiers, first hit wins: exact title, substring title, exact or substring
    visible text, then ``CODE - NAME`` labels matched on the code. A bare
    code (``US``) is tried on the code prefix before any substring tier so
    it cannot land inside an unrelated name.
    """
    value = (value or "").strip()
    if not value:
        return None
    titles = [(o.get("title") or "").strip() for o in options]
    texts = [(o.get("text") or "").strip() for o in options]

    def exact_title():
        return next((i for i, t in enumerate(titles) if t == value), None)

    def substring_title():
        return next((i for i, t in enumerate(titles) if t and value in t), None)

    def text_match():
        hit = next((i for i, t in enumerate(texts) if t == value), None)
        if hit is None:
            hit = next((i for i, t in enumerate(texts) if t and value in t), None)
        return hit

    def code_prefix():
        wanted = _code_prefix(value) or value
        for i, (title, text) in enumerate(zip(titles, texts)):
            if wanted and wanted in (_code_prefix(title), _code_prefix(text)):
                return i
        return None

    tiers = [exact_title, substring_title, text_match, code_prefix]
    if CODE_VALUE.match(value):
        tiers = [exact_title, code_prefix, substring_title, text_match]
    for tier in tiers:
        hit = tier()
        if hit is not None:
            return hit
    return None


def selection_matches(shown: str, value: str, option: Dict[str, str]) -> bool:
    """The widget shows the committed option: its label, or the wanted value itself."""
    shown = (shown or "").strip()
    if not shown:
        return False
    wanted = value.strip()
    candidates = {wanted, (option.get("title") or "").strip(), (option.get("text") or "").strip()}
    candidates.discard("")
    if shown.casefold() in {c.casefold() for c in candidates}:
        return True
    return bool(wanted) and _code_prefix(shown) == wanted


class DropdownEngine:
    """Drives one AntSelectDriver with bounded retries."""

    def __init__(
        self,
        driver,
        open_poll_timeout: float = 1.5,
        poll_interval: float = 0.3,
        settle_delay: float = 0.3,
        policy: Optional[RetryPolicy] = None,
    ):
        self.driver = driver
        self.open_poll_timeout = open_poll_timeout
        self.poll_interval = poll_interval
        self.settle_delay = settle_delay
        # Overrides the per-field policy when set
        self.policy = policy

    async def _opened(self, list_id: Optional[str]) -> bool:
        async def _any_list():
            if list_id and await self.driver.is_list_open(list_id):
                return True
            return await self.driver.is_list_open(None)

        return await await_condition(_any_list, timeout=self.open_poll_timeout, interval=self.poll_interval)

    async def open(self, field: ResolvedField) -> Optional[str]:
        """Try each open strategy in turn; returns the one that produced a visible list."""
        loc = field.locator

        async def _click():
            await self.driver.click_control(loc)
            return await self._opened(field.list_id)

        async def _container():
            return await self.driver.click_container(loc) and await self._opened(field.list_id)

        async def _pointer():
            return await self.driver.dispatch_pointer(loc) and await self._opened(field.list_id)

        return await try_strategies([("click", _click), ("container", _container), ("pointer", _pointer)])

    async def select(self, field: ResolvedField) -> DropdownResult:
        value = str(field.value)
        policy = self.policy or field.retry_policy
        last_failure = "open"
        available: List[str] = []
        open_strategy = None

        for attempt in range(1, policy.max_attempts + 1):
            last_failure = "open"
            try:
                await self.driver.close()
                open_strategy = await self.open(field)
                if open_strategy is None:
                    last_failure = "open"
                    logger.debug(f"{field.key}: dropdown did not open (attempt {attempt})")
                else:
                    last_failure = "match"
                    scope = field.list_id
                    options = await self.driver.read_options(scope) if scope else []
                    index = match_option(options, value)
                    if index is None:
                        scope = None
                        options = await self.driver.read_options(None)
                        index = match_option(options, value)
                    if index is None:
                        last_failure = "match"
                        available = [o.get("title") or o.get("text") or "" for o in options]
                        logger.debug(f"{field.key}: no option for '{value}' among {len(options)} (attempt {attempt})")
                        await self.driver.close()
                    else:
                        option = options[index]
                        await self.driver.click_option(index, scope)
                        await self.driver.close()
                        await asyncio.sleep(self.settle_delay)
                        shown = await self.driver.read_selection(field.locator)
                        if selection_matches(shown, value, option):
                            logger.info(f"✅ {field.key} = '{shown}' ({open_strategy}, attempt {attempt})")
                            return DropdownResult(
                                field_key=field.key,
                                success=True,
                                attempts=attempt,
                                matched_text=shown,
                                open_strategy=open_strategy,
                            )
                        last_failure = "commit"
                        logger.debug(f"{field.key}: selection shows '{shown}', wanted '{value}' (attempt {attempt})")
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.debug(f"{field.key}: attempt {attempt} raised {e}")

            if attempt < policy.max_attempts:
                await asyncio.sleep(policy.delay)

        attempts = policy.max_attempts
        if last_failure == "open":
            error = DropdownOpenFailure(field.key, attempts)
        else:
            error = OptionNotFound(field.key, value, attempts, available)
        logger.warning(f"❌ {error.message}")
        return DropdownResult(
            field_key=field.key,
            success=False,
            attempts=attempts,
            open_strategy=open_strategy,
            error=error,
        )
