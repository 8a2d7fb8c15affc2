#!/usr/bin/env python3
from dataclasses import dataclass, replace
import os
from pathlib import Path
from typing import Any, Dict, Optional
from dotenv import load_dotenv

load_dotenv()

ECD_URL = "https://ecd.beacukai.go.id/"


@dataclass
class Config:
    """Application configuration"""
    target_url: str = os.getenv("ECD_TARGET_URL", ECD_URL)
    fallback_url: str = os.getenv("ECD_FALLBACK_URL", ECD_URL)
    headless: bool = os.getenv("ECD_HEADLESS", "true").lower() == "true"
    enable_debug: bool = os.getenv("ECD_DEBUG", "false").lower() == "true"
    api_port: int = int(os.getenv("ECD_API_PORT", os.getenv("API_PORT", "8000")))
    locale: str = os.getenv("ECD_LOCALE", "en-US")
    timezone_id: str = os.getenv("ECD_TIMEZONE", "Asia/Jakarta")
    proxy: Optional[str] = (os.getenv("ECD_PROXY") or os.getenv("HTTPS_PROXY") or None)

    # Whole-attempt budget and per-step bounds
    timeout_ms: int = int(os.getenv("ECD_TIMEOUT_MS", "60000"))
    page_load_timeout_ms: int = int(os.getenv("ECD_PAGE_LOAD_TIMEOUT_MS", "45000"))
    step_retries: int = int(os.getenv("ECD_STEP_RETRIES", "3"))

    # Custom select widgets
    dropdown_attempts: int = int(os.getenv("ECD_DROPDOWN_ATTEMPTS", "3"))
    dropdown_retry_delay: float = float(os.getenv("ECD_DROPDOWN_RETRY_DELAY", "0.5"))
    open_poll_timeout_ms: int = int(os.getenv("ECD_OPEN_POLL_TIMEOUT_MS", "1500"))

    # Rendering waits
    nav_timeout_ms: int = int(os.getenv("ECD_NAV_TIMEOUT_MS", "5000"))
    submit_outcome_timeout_ms: int = int(os.getenv("ECD_SUBMIT_OUTCOME_TIMEOUT_MS", "10000"))
    dialog_timeout_ms: int = int(os.getenv("ECD_DIALOG_TIMEOUT_MS", "10000"))
    download_timeout_ms: int = int(os.getenv("ECD_DOWNLOAD_TIMEOUT_MS", "15000"))
    poll_interval_ms: int = int(os.getenv("ECD_POLL_INTERVAL_MS", "300"))
    settle_ms: int = int(os.getenv("ECD_SETTLE_MS", "300"))

    # Output locations (created on demand, never at import time)
    artifact_dir: Path = Path(os.getenv("ECD_ARTIFACT_DIR", "./artifacts"))
    download_dir: Path = Path(os.getenv("ECD_DOWNLOAD_DIR", "./downloads"))
    diagnostic_dir: Path = Path(os.getenv("ECD_DIAGNOSTIC_DIR", "./diagnostics"))
    log_dir: Path = Path(os.getenv("ECD_LOG_DIR", "./logs"))
    run_log_enabled: bool = os.getenv("ECD_RUN_LOG", "false").lower() in ["true", "1", "yes"]

    @property
    def poll_interval(self) -> float:
        return self.poll_interval_ms / 1000

    @property
    def settle_delay(self) -> float:
        return self.settle_ms / 1000

    def with_options(self, options: Optional[Dict[str, Any]] = None) -> "Config":
        """Return a copy with per-request overrides (headless, timeout, retries) applied."""
        if not options:
            return replace(self)
        overrides: Dict[str, Any] = {}
        if options.get("headless") is not None:
            overrides["headless"] = bool(options["headless"])
        if options.get("timeout"):
            overrides["timeout_ms"] = int(options["timeout"])
        if options.get("retries"):
            overrides["step_retries"] = max(1, int(options["retries"]))
        return replace(self, **overrides)


config = Config()
