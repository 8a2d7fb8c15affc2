import json
import socket
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Tuple
from urllib.parse import urlparse

import requests

from ecd_core.models import DiagnosticSnapshot

_LOGGER_CACHE: Dict[str, logging.Logger] = {}

DIAGNOSTIC_PREFIX = "qr-extraction-error"


def get_logger(name: str) -> logging.Logger:
    """Return a configured logger.

    Respects ECD_DEBUG env var to set DEBUG/INFO level.
    Ensures we don't duplicate handlers across multiple imports.
    """
    lg = _LOGGER_CACHE.get(name)
    if lg:
        return lg
    lg = logging.getLogger(name)
    # Configure only if not configured yet
    if not lg.handlers:
        level = logging.DEBUG if str(os.getenv("ECD_DEBUG", "false")).lower() == "true" else logging.INFO
        lg.setLevel(level)
        handler = logging.StreamHandler()
        handler.setLevel(level)
        fmt = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        handler.setFormatter(fmt)
        lg.addHandler(handler)
        lg.propagate = False
    _LOGGER_CACHE[name] = lg
    return lg


logger = get_logger(__name__)


def diagnose_url_issue(url: str) -> Dict[str, Any]:
    """DNS and HTTP reachability of the target site, for navigation failures."""
    out: Dict[str, Any] = {"url": url}
    host = urlparse(url).hostname or ""
    out["host"] = host
    try:
        infos = socket.getaddrinfo(host, None)
        out["dns_resolves"] = True
        out["ips"] = sorted({i[4][0] for i in infos})
    except OSError as e:
        out["dns_resolves"] = False
        out["dns_error"] = str(e)
        return out
    try:
        r = requests.get(url, timeout=6, allow_redirects=True)
        out["https_check"] = {"status": r.status_code}
    except requests.exceptions.SSLError as e:
        out["https_check"] = {"ssl_error": str(e)}
    except requests.exceptions.RequestException as e:
        out["https_check"] = {"error": str(e)}
    return out


async def capture_diagnostics(
    form_page,
    diag_dir: Path,
    error: Optional[BaseException] = None,
) -> Tuple[Optional[DiagnosticSnapshot], Optional[Path]]:
    """
    Record what the page looked like when extraction failed.

    Writes ``qr-extraction-error-<ts>.png`` (full page) and a ``.json`` with
    the error, URL, the first 1000 characters of visible text and presence
    flags. Best effort: every step is optional and nothing is raised.
    """
    moment = datetime.now()
    snapshot = DiagnosticSnapshot(screenshot=None, visible_text="", timestamp=moment,
                                  error=str(error) if error else None)
    try:
        snapshot.page_url = form_page.url
    except Exception:
        pass
    try:
        snapshot.screenshot = await form_page.screenshot_page()
    except Exception as e:
        logger.debug(f"Diagnostic screenshot failed: {e}")
    try:
        snapshot.visible_text = await form_page.visible_text(1000)
    except Exception as e:
        logger.debug(f"Diagnostic text capture failed: {e}")
    try:
        snapshot.flags = dict(await form_page.dialog_state())
    except Exception as e:
        logger.debug(f"Diagnostic flag check failed: {e}")

    try:
        diag_dir = Path(diag_dir)
        diag_dir.mkdir(parents=True, exist_ok=True)
        stem = f"{DIAGNOSTIC_PREFIX}-{moment.strftime('%Y%m%d-%H%M%S-%f')}"
        shot_path = None
        if snapshot.screenshot:
            shot_path = diag_dir / f"{stem}.png"
            shot_path.write_bytes(snapshot.screenshot)
        json_path = diag_dir / f"{stem}.json"
        with open(json_path, "w", encoding="utf-8") as f:
            json.dump({
                "error": snapshot.error,
                "timestamp": moment.isoformat(),
                "pageUrl": snapshot.page_url,
                "pageText": snapshot.visible_text[:1000],
                "screenshotPath": str(shot_path) if shot_path else None,
                "flags": snapshot.flags,
            }, f, ensure_ascii=False, indent=2)
        logger.info(f"🩺 Diagnostics saved: {json_path}")
        return snapshot, json_path
    except Exception as e:
        logger.warning(f"Could not write diagnostics: {e}")
        return snapshot, None
