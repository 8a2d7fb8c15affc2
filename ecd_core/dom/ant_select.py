"""Primitives for the site's custom select widget (Ant Design ``.ant-select``)."""

import logging
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

OPEN_DROPDOWN = ".ant-select-dropdown:not(.ant-select-dropdown-hidden)"

OPTIONS_JS = """
(args) => {
  const visible = (el) => !!el && el.offsetParent !== null
    && getComputedStyle(el).display !== 'none'
    && getComputedStyle(el).visibility !== 'hidden';
  let roots = [];
  if (args.listId) {
    const list = document.getElementById(args.listId);
    const dd = list ? list.closest('.ant-select-dropdown') : null;
    if (dd && !dd.classList.contains('ant-select-dropdown-hidden')) roots = [dd];
  } else {
    roots = Array.from(document.querySelectorAll(args.open)).filter(visible);
  }
  const out = [];
  roots.forEach((root) => root.querySelectorAll('.ant-select-item-option, .ant-select-item').forEach((opt) => {
    if (opt.classList.contains('ant-select-item-group')) return;
    out.push({title: opt.getAttribute('title') || '', text: (opt.textContent || '').trim()});
  }));
  return out;
}
"""


class AntSelectDriver:
    """Open, read, pick and read back a single custom select."""

    def __init__(self, page):
        self.page = page

    async def click_control(self, locator: str) -> bool:
        await self.page.click(locator, timeout=2000)
        return True

    async def click_container(self, locator: str) -> bool:
        return bool(await self.page.evaluate(
            """(sel) => {
              const input = document.querySelector(sel);
              const root = input ? input.closest('.ant-select') : null;
              if (!root) return false;
              const target = root.querySelector('.ant-select-selector') || root;
              target.dispatchEvent(new MouseEvent('mousedown', {bubbles: true}));
              target.click();
              return true;
            }""",
            locator,
        ))

    async def dispatch_pointer(self, locator: str) -> bool:
        return bool(await self.page.evaluate(
            """(sel) => {
              const input = document.querySelector(sel);
              if (!input) return false;
              input.focus();
              const root = input.closest('.ant-select') || input;
              const target = root.querySelector('.ant-select-selector') || root;
              ['pointerdown', 'mousedown', 'pointerup', 'mouseup', 'click'].forEach((type) => {
                target.dispatchEvent(new MouseEvent(type, {bubbles: true, cancelable: true, view: window}));
              });
              return true;
            }""",
            locator,
        ))

    async def is_list_open(self, list_id: Optional[str] = None) -> bool:
        return bool(await self.read_options(list_id))

    async def read_options(self, list_id: Optional[str] = None) -> List[Dict[str, str]]:
        """Options of this field's list when list_id is given, else of any open list."""
        return await self.page.evaluate(OPTIONS_JS, {"listId": list_id, "open": OPEN_DROPDOWN})

    async def click_option(self, index: int, list_id: Optional[str] = None) -> bool:
        return bool(await self.page.evaluate(
            """(args) => {
              let roots;
              if (args.listId) {
                const list = document.getElementById(args.listId);
                roots = list ? [list.closest('.ant-select-dropdown')] : [];
              } else {
                roots = Array.from(document.querySelectorAll(args.open)).filter((el) => el.offsetParent !== null);
              }
              const opts = [];
              roots.forEach((root) => root && root.querySelectorAll('.ant-select-item-option, .ant-select-item')
                .forEach((opt) => { if (!opt.classList.contains('ant-select-item-group')) opts.push(opt); }));
              const opt = opts[args.index];
              if (!opt) return false;
              opt.scrollIntoView({block: 'nearest'});
              opt.dispatchEvent(new MouseEvent('mousedown', {bubbles: true}));
              opt.click();
              return true;
            }""",
            {"listId": list_id, "open": OPEN_DROPDOWN, "index": index},
        ))

    async def close(self) -> None:
        await self.page.evaluate("() => document.body.click()")

    async def read_selection(self, locator: str) -> str:
        return await self.page.evaluate(
            """(sel) => {
              const input = document.querySelector(sel);
              if (!input) return '';
              const item = input.closest('.ant-form-item');
              const shown = (item && item.querySelector('.ant-select-selection-item'))
                || (input.closest('.ant-select') && input.closest('.ant-select').querySelector('.ant-select-selection-item'));
              if (!shown) return '';
              return (shown.getAttribute('title') || shown.textContent || '').trim();
            }""",
            locator,
        )
