"""Apply resolved field values to the live page, one path per widget kind."""

import asyncio
import logging
from typing import Optional

from ecd_core.errors import FieldError
from ecd_core.models import FieldKind, ResolvedField

logger = logging.getLogger(__name__)


class FieldFillFailed(FieldError):
    code = "FIELD_FILL_FAILED"


class FieldFiller:
    """
    Routes a ResolvedField to the right page operation.

    Select fields go through the dropdown engine; text, checkbox and radio
    fields go through the page adapter. Applying the same field twice is
    harmless, which is what lets the repair loop reuse this path.
    """

    def __init__(self, form_page, dropdowns):
        self.form_page = form_page
        self.dropdowns = dropdowns

    async def apply(self, field: ResolvedField) -> Optional[FieldError]:
        """Return None when the value is on the page, else the error describing why not."""
        if field.kind == FieldKind.SELECT:
            result = await self.dropdowns.select(field)
            return None if result.success else result.error

        if field.kind == FieldKind.TEXT:
            return await self._fill_text(field)

        if field.kind == FieldKind.CHECKBOX:
            ok = await self.form_page.set_checkbox(field.locator, bool(field.value))
            return None if ok else FieldFillFailed(field.key, f"Could not set checkbox '{field.key}'", 1)

        if field.kind == FieldKind.RADIO_GROUP:
            ok = await self.form_page.choose_radio(field.locator, bool(field.value))
            answer = "yes" if field.value else "no"
            if ok:
                logger.info(f"✅ {field.key} = {answer}")
                return None
            return FieldFillFailed(field.key, f"Could not answer '{field.key}' with {answer}", 1)

        raise ValueError(f"Unsupported field kind: {field.kind}")

    async def _fill_text(self, field: ResolvedField) -> Optional[FieldError]:
        value = str(field.value)
        locators = field.optional_locators or (field.locator,)
        policy = field.retry_policy
        found = False
        for locator in locators:
            if field.optional and not await self.form_page.exists(locator):
                continue
            found = True
            for attempt in range(1, policy.max_attempts + 1):
                if await self.form_page.fill_text(locator, value):
                    logger.info(f"✅ {field.key} filled ({locator})")
                    return None
                logger.debug(f"{field.key}: fill attempt {attempt} on {locator} failed")
                if attempt < policy.max_attempts:
                    await asyncio.sleep(policy.delay)
            if not field.optional:
                break
        if field.optional and not found:
            # Absent on this variant of the form.
            logger.info(f"ℹ️ {field.key} not present on page, skipped")
            return None
        return FieldFillFailed(
            field.key, f"Could not fill '{field.key}' after {policy.max_attempts} attempts", policy.max_attempts
        )
