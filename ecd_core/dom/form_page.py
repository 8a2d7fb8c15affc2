"""
Page adapter for the e-CD form.

All DOM scripting used by the pipeline lives here: robust text filling,
checkbox and radio handling, wizard buttons, the live validation scan and
the confirmation dialog. Everything returns plain values (bool, str, dict)
so the components above can run against an in-memory fake in tests.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from ecd_core.retry import navigate_with_retry, try_strategies

logger = logging.getLogger(__name__)

# Same visibility rule everywhere: laid out, displayed and not hidden.
VISIBLE_JS = """
(el) => !!el && el.offsetParent !== null
  && getComputedStyle(el).display !== 'none'
  && getComputedStyle(el).visibility !== 'hidden'
"""

DIALOG_SELECTOR = ".ant-modal:not(.ant-modal-hidden)"
ARTIFACT_CONTAINER = "#myqrcode"
ARTIFACT_IMAGE = "#myqrcode .ant-qrcode"
DOWNLOAD_BUTTONS = (
    "button .anticon-download",
    ".ant-modal button.ant-btn-primary",
    '.ant-modal button[type="button"]',
)
SUCCESS_WORDS = ("Terima kasih", "sukses", "berhasil")

SCAN_JS = """
() => {
  const visible = (el) => !!el && el.offsetParent !== null
    && getComputedStyle(el).display !== 'none'
    && getComputedStyle(el).visibility !== 'hidden';
  const out = {invalid: [], messages: [], empty_required: [], unchecked_radio_groups: []};

  document.querySelectorAll('.ant-form-item-has-error, input[aria-invalid="true"], .ant-form-item-explain-error')
    .forEach((node) => {
      const item = node.closest('.ant-form-item');
      let ref = node.id || node.getAttribute('name');
      if (!ref && item) {
        const inner = item.querySelector('input[id], select[id], textarea[id]');
        ref = inner ? inner.id : '';
      }
      if (!ref || ref === 'undefined') return;
      const explain = item ? item.querySelector('.ant-form-item-explain-error') : null;
      out.invalid.push({id: ref, message: explain ? explain.textContent.trim() : 'validation error'});
    });

  document.querySelectorAll('.ant-alert-error, .ant-message-error, .ant-notification-error, .ant-form-item-explain-error')
    .forEach((node) => {
      const text = (node.textContent || '').trim();
      if (text && visible(node)) out.messages.push(text);
    });

  document.querySelectorAll('input[aria-required="true"], input[required], select[required]')
    .forEach((el) => {
      if (!visible(el) || el.disabled) return;
      if (el.value && el.value.trim() !== '') return;
      const select = el.closest('.ant-select');
      if (select) {
        const item = el.closest('.ant-form-item');
        const shown = (item && item.querySelector('.ant-select-selection-item'))
          || select.querySelector('.ant-select-selection-item');
        if (shown && shown.textContent.trim()) return;
      }
      const ref = el.id || el.getAttribute('name');
      if (ref && ref !== 'undefined') out.empty_required.push({id: ref, is_select: !!select});
    });

  const groups = {};
  document.querySelectorAll('input[type="radio"]').forEach((r) => {
    if (!visible(r)) return;
    const name = r.getAttribute('name') || '';
    groups[name] = groups[name] || r.checked;
  });
  Object.keys(groups).forEach((name) => { if (!groups[name]) out.unchecked_radio_groups.push(name); });
  return out;
}
"""

DIALOG_JS = """
() => {
  const body = document.querySelector('.ant-modal-body');
  if (!body) return null;
  const msg = body.querySelector('span.ant-typography');
  const headings = Array.from(body.querySelectorAll('h4')).map((h) => ({
    text: (h.textContent || '').trim(),
    centered: h.style.textAlign === 'center' || getComputedStyle(h).textAlign === 'center',
  }));
  return {message: msg ? msg.textContent.trim() : '', headings};
}
"""


class FormPage:
    """Thin wrapper over a Playwright page exposing form-level operations."""

    def __init__(self, page, input_timeout_ms: int = 3000):
        self.page = page
        self.input_timeout_ms = input_timeout_ms

    @property
    def url(self) -> str:
        return self.page.url

    async def goto(self, url: str, timeout_ms: int, max_attempts: int = 3) -> bool:
        ok = await navigate_with_retry(
            self.page, url, timeout=timeout_ms, wait_until="domcontentloaded", max_attempts=max_attempts
        )
        try:
            await self.page.wait_for_selector("button, input", state="attached", timeout=timeout_ms)
        except Exception as e:
            logger.debug(f"No interactive elements after load: {e}")
        return ok

    async def exists(self, selector: str) -> bool:
        return await self.page.query_selector(selector) is not None

    async def is_visible(self, selector: str) -> bool:
        el = await self.page.query_selector(selector)
        if el is None:
            return False
        return bool(await el.evaluate(VISIBLE_JS))

    async def count_visible(self, selector: str) -> int:
        return int(await self.page.evaluate(
            f"(sel) => Array.from(document.querySelectorAll(sel)).filter({VISIBLE_JS}).length",
            selector,
        ))

    async def fill_text(self, selector: str, value: str) -> bool:
        """Fill an input using fill, then type, then a direct DOM value set."""
        if not await self.exists(selector):
            logger.debug(f"Input {selector} not on page")
            return False

        async def _fill():
            await self.page.fill(selector, value, timeout=self.input_timeout_ms)
            await self._trigger_field_events(selector)
            return True

        async def _type():
            await self.page.evaluate(
                "(sel) => { const el = document.querySelector(sel); if (el) el.value = ''; }",
                selector,
            )
            await self.page.type(selector, value, delay=20, timeout=self.input_timeout_ms)
            await self._trigger_field_events(selector)
            return True

        async def _dom_set():
            return await self.page.evaluate(
                """(args) => {
                  const el = document.querySelector(args.sel);
                  if (!el) return false;
                  const setter = Object.getOwnPropertyDescriptor(window.HTMLInputElement.prototype, 'value');
                  if (setter && setter.set) setter.set.call(el, args.val); else el.value = args.val;
                  el.dispatchEvent(new Event('input', {bubbles:true}));
                  el.dispatchEvent(new Event('change', {bubbles:true}));
                  el.blur();
                  return true;
                }""",
                {"sel": selector, "val": value},
            )

        used = await try_strategies([("fill", _fill), ("type", _type), ("dom", _dom_set)])
        if used:
            logger.debug(f"Filled {selector} via {used}")
        return used is not None

    async def _trigger_field_events(self, selector: str) -> None:
        """Trigger input/change/blur events on a field to activate client-side validation."""
        await self.page.evaluate(
            """(sel) => {
              const el = document.querySelector(sel);
              if (el) {
                el.dispatchEvent(new Event('input', {bubbles:true}));
                el.dispatchEvent(new Event('change', {bubbles:true}));
                el.blur();
              }
            }""",
            selector,
        )

    async def set_checkbox(self, selector: str, checked: bool = True) -> bool:
        if await self.is_checked(selector) == checked:
            return True
        try:
            await self.page.set_checked(selector, checked, timeout=self.input_timeout_ms)
            return True
        except Exception:
            try:
                await self.page.click(selector, timeout=self.input_timeout_ms)
                return await self.is_checked(selector) == checked
            except Exception as e:
                logger.debug(f"Checkbox {selector} not toggled: {e}")
                return False

    async def is_checked(self, selector: str) -> bool:
        el = await self.page.query_selector(selector)
        if el is None:
            return False
        return bool(await el.evaluate("(el) => !!el.checked"))

    async def choose_radio(self, locator: str, value: bool) -> bool:
        """Pick yes/no in a radio group: by value attribute first, else position (yes first)."""
        radios = await self.page.query_selector_all(locator)
        if not radios:
            return False
        wanted = ("true", "ya", "yes", "y", "1") if value else ("false", "tidak", "no", "n", "0")
        target = None
        for radio in radios:
            attr = ((await radio.get_attribute("value")) or "").strip().lower()
            if attr in wanted:
                target = radio
                break
        if target is None:
            index = 0 if value else 1
            target = radios[min(index, len(radios) - 1)]
        try:
            await target.click()
        except Exception:
            await target.evaluate("(el) => el.click()")
        return bool(await target.evaluate("(el) => !!el.checked"))

    async def click_button(self, words: Sequence[str]) -> bool:
        """Click the first visible enabled button whose text contains any of the words."""
        for button in await self.page.query_selector_all("button"):
            info = await button.evaluate(
                f"""(el) => ({{
                  text: (el.textContent || '').toLowerCase().trim(),
                  visible: ({VISIBLE_JS})(el),
                  disabled: !!el.disabled,
                }})"""
            )
            if info["visible"] and not info["disabled"] and any(w in info["text"] for w in words):
                await button.click()
                logger.debug(f"Clicked button '{info['text']}'")
                return True
        return False

    async def click_add_button(self, text: str) -> bool:
        """Click the row "add" button: primary buttons with the text or a plus icon, then any button with the text."""
        selectors = (
            "button.ant-btn-primary",
            'button[type="button"].ant-btn-primary',
            f'button[title*="{text}"]',
            'button[title*="Add"]',
        )
        needle = text.lower()
        for selector in selectors + ("button",):
            for button in await self.page.query_selector_all(selector):
                info = await button.evaluate(
                    """(el) => ({
                      text: (el.textContent || '').toLowerCase().trim(),
                      visible: el.offsetParent !== null,
                      disabled: !!el.disabled,
                      danger: el.classList.contains('ant-btn-dangerous'),
                      plus: !!el.querySelector('.anticon-plus, .anticon-plus-circle'),
                      del: !!el.querySelector('.anticon-delete'),
                    })"""
                )
                if not info["visible"] or info["disabled"] or info["danger"]:
                    continue
                if selector == "button":
                    hit = needle in info["text"] and not info["del"]
                else:
                    hit = needle in info["text"] or info["plus"]
                if hit:
                    await button.click()
                    return True
        return False

    async def scan_validation(self) -> Dict[str, List[Any]]:
        """Raw findings: invalid controls, error texts, empty required controls, unchecked radio groups."""
        return await self.page.evaluate(SCAN_JS)

    async def dialog_state(self) -> Dict[str, bool]:
        return await self.page.evaluate(
            """(args) => {
              const text = document.body ? document.body.innerText : '';
              return {
                confirmation_dialog_present: !!document.querySelector(args.dialog),
                artifact_container_present: !!document.querySelector(args.container),
                success_text_present: args.words.some((w) => text.includes(w)),
              };
            }""",
            {"dialog": DIALOG_SELECTOR, "container": ARTIFACT_CONTAINER, "words": list(SUCCESS_WORDS)},
        )

    async def read_dialog(self) -> Optional[Dict[str, Any]]:
        return await self.page.evaluate(DIALOG_JS)

    async def click_download(self) -> bool:
        for selector in DOWNLOAD_BUTTONS:
            try:
                el = await self.page.wait_for_selector(selector, state="visible", timeout=2000)
            except Exception:
                continue
            if el is not None:
                await el.click()
                logger.debug(f"Download control clicked via {selector}")
                return True
        return False

    async def wait_for_download(self, dest_dir: Path, timeout_ms: int) -> Optional[Path]:
        """Wait for the next browser download event and save it into dest_dir."""
        download = await self.page.wait_for_event("download", timeout=timeout_ms)
        target = Path(dest_dir) / (download.suggested_filename or "download.png")
        await download.save_as(str(target))
        return target

    async def screenshot_element(self, selector: str = ARTIFACT_IMAGE) -> Optional[bytes]:
        el = await self.page.query_selector(selector)
        if el is None and selector != ARTIFACT_CONTAINER:
            el = await self.page.query_selector(ARTIFACT_CONTAINER)
        if el is None:
            return None
        return await el.screenshot(type="png")

    async def screenshot_page(self) -> bytes:
        return await self.page.screenshot(full_page=True, type="png")

    async def visible_text(self, limit: int = 1000) -> str:
        text = await self.page.evaluate("() => document.body ? document.body.innerText : ''")
        return (text or "")[:limit]
