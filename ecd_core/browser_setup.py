#!/usr/bin/env python3
import logging
import subprocess
import sys
from pathlib import Path
from typing import Dict, Optional

from ecd_core.errors import BrowserLaunchError

logger = logging.getLogger(__name__)


def _ensure_playwright_browsers():
    """Check if Playwright browsers are installed, auto-install if missing."""
    cache_dir = Path.home() / ".cache" / "ms-playwright"
    chromium_dirs = list(cache_dir.glob("chromium*")) if cache_dir.exists() else []

    for d in chromium_dirs:
        if (d / "chrome-linux" / "chrome").exists() or \
           (d / "chrome-linux" / "headless_shell").exists():
            return

    logger.info("🔧 Playwright browsers not found. Installing automatically...")
    try:
        result = subprocess.run(
            [sys.executable, "-m", "playwright", "install", "chromium"],
            capture_output=True,
            text=True,
            timeout=300
        )
        if result.returncode == 0:
            logger.info("✅ Playwright browsers installed successfully!")
        else:
            logger.warning(f"⚠️ Playwright install warning: {result.stderr[:200]}")
    except subprocess.TimeoutExpired:
        logger.warning("⚠️ Playwright install timed out, continuing anyway...")
    except OSError as e:
        logger.warning(f"⚠️ Failed to auto-install Playwright: {e}")


class BrowserSession:
    """Playwright objects for one submission attempt; close() releases all of them."""

    def __init__(self, playwright, browser, context, page):
        self.playwright = playwright
        self.browser = browser
        self.context = context
        self.page = page

    async def close(self):
        for closer in (self.context.close, self.browser.close, self.playwright.stop):
            try:
                await closer()
            except Exception as e:
                logger.debug(f"Browser cleanup: {e}")


async def setup_playwright(config, headers: Optional[Dict[str, str]] = None) -> BrowserSession:
    """Launch Chromium with downloads enabled and return a ready page."""
    from playwright.async_api import async_playwright

    _ensure_playwright_browsers()

    download_dir = Path(config.download_dir)
    download_dir.mkdir(parents=True, exist_ok=True)

    playwright = await async_playwright().start()
    launch_args = {
        "headless": bool(config.headless),
        "downloads_path": str(download_dir.resolve()),
        "args": [
            "--no-sandbox",
            "--disable-dev-shm-usage",
            "--disable-blink-features=AutomationControlled",
        ],
    }
    if config.proxy:
        launch_args["proxy"] = {"server": config.proxy}

    try:
        try:
            browser = await playwright.chromium.launch(**launch_args)
        except Exception as e:
            if "Executable doesn't exist" not in str(e):
                raise
            logger.info("🔧 Browser missing, forcing reinstall...")
            subprocess.run(
                [sys.executable, "-m", "playwright", "install", "chromium"],
                capture_output=True,
                timeout=300
            )
            browser = await playwright.chromium.launch(**launch_args)
    except Exception as e:
        await playwright.stop()
        raise BrowserLaunchError(f"Could not launch browser: {e}") from e

    extra_headers: Dict[str, str] = {
        "Accept-Language": f"{config.locale},id;q=0.9,en;q=0.8",
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    }
    if headers:
        extra_headers.update(headers)
    context = await browser.new_context(
        viewport={"width": 1366, "height": 900},
        locale=config.locale,
        timezone_id=config.timezone_id,
        extra_http_headers=extra_headers,
        accept_downloads=True,
    )
    context.set_default_timeout(config.page_load_timeout_ms)
    page = await context.new_page()
    return BrowserSession(playwright, browser, context, page)
