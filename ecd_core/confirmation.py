"""
Submission & Confirmation Extractor

Submits the final step, classifies what the site did, and on success pulls
the confirmation out of the dialog: registration metadata from its headings
and the scannable code image, downloaded when possible and screenshotted
otherwise.
"""

import io
import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Set, Tuple

from PIL import Image

from ecd_core.errors import AutomationError, ExtractionFailure
from ecd_core.field_registry import FormStep
from ecd_core.models import ArtifactImage, CaptureMethod, ConfirmationArtifact, SubmitOutcome
from ecd_core.retry import await_condition, race_completion

logger = logging.getLogger(__name__)

REGISTRATION_NUMBER = re.compile(r"^[A-Za-z0-9]{6}$")
OFFICE_WORDS = ("KPPBC", "BEA", "CUKAI")
DEFAULT_SIZE = (256, 256)
PARTIAL_SUFFIXES = (".crdownload", ".part", ".tmp")


def parse_confirmation(dialog: Optional[Dict[str, Any]]) -> Dict[str, Optional[str]]:
    """
    Pull message, port info, registration number and customs office from the dialog.

    First pass is positional: heading 0 is the port when centred, heading 1
    the registration number when it looks like one, heading 2 the office
    when centred. A second pass fills whatever is still missing by shape
    alone, scanning every heading.
    """
    out: Dict[str, Optional[str]] = {
        "message": None,
        "port_info": None,
        "registration_number": None,
        "customs_office": None,
    }
    if not dialog:
        return out
    out["message"] = (dialog.get("message") or "").strip() or None
    headings = [h for h in dialog.get("headings") or [] if (h.get("text") or "").strip()]
    texts = [h["text"].strip() for h in headings]

    if len(headings) >= 1 and headings[0].get("centered"):
        out["port_info"] = texts[0]
    if len(headings) >= 2 and REGISTRATION_NUMBER.match(texts[1]):
        out["registration_number"] = texts[1]
    if len(headings) >= 3 and headings[2].get("centered"):
        out["customs_office"] = texts[2]

    if not out["registration_number"]:
        out["registration_number"] = next((t for t in texts if REGISTRATION_NUMBER.match(t)), None)
    if not out["port_info"]:
        out["port_info"] = next((t for t in texts if "(" in t and ")" in t), None)
    if not out["customs_office"]:
        out["customs_office"] = next((t for t in texts if any(w in t for w in OFFICE_WORDS)), None)
    return out


def describe_image(data: bytes) -> Tuple[str, int, int]:
    """(format, width, height) of an encoded image; raises ExtractionFailure when unreadable."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.verify()
        with Image.open(io.BytesIO(data)) as img:
            fmt = (img.format or "PNG").lower()
            width, height = img.size
    except Exception as e:
        raise ExtractionFailure(f"Captured image is not readable: {e}") from e
    return fmt, width or DEFAULT_SIZE[0], height or DEFAULT_SIZE[1]


class ConfirmationExtractor:

    def __init__(self, form_page, download_dir: Path, outcome_timeout: float = 10.0,
                 dialog_timeout: float = 10.0, download_timeout: float = 15.0,
                 poll_interval: float = 0.3):
        self.form_page = form_page
        self.download_dir = Path(download_dir)
        self.outcome_timeout = outcome_timeout
        self.dialog_timeout = dialog_timeout
        self.download_timeout = download_timeout
        self.poll_interval = poll_interval
        self.last_download: Optional[Path] = None

    async def submit(self, step: FormStep) -> SubmitOutcome:
        if not await self.form_page.click_button(step.advance_words):
            raise AutomationError(f"Submit button ({'/'.join(step.advance_words)}) not found")
        logger.info("📤 Form submitted")
        return await self.classify_outcome()

    async def classify_outcome(self) -> SubmitOutcome:
        """Wait for the confirmation dialog or a validation error; neither is ambiguous."""
        seen: Dict[str, SubmitOutcome] = {}

        async def _settled():
            state = await self.form_page.dialog_state()
            if state.get("confirmation_dialog_present"):
                seen["outcome"] = SubmitOutcome.CONFIRMED
                return True
            scan = await self.form_page.scan_validation()
            if scan.get("invalid") or scan.get("messages"):
                seen["outcome"] = SubmitOutcome.VALIDATION_ERROR
                return True
            return False

        if await await_condition(_settled, timeout=self.outcome_timeout, interval=self.poll_interval):
            outcome = seen["outcome"]
            logger.info(f"Submit outcome: {outcome.value}")
            return outcome
        logger.warning("Submit outcome ambiguous: no confirmation dialog and no validation error")
        return SubmitOutcome.AMBIGUOUS

    async def wait_for_dialog(self) -> bool:
        async def _ready():
            state = await self.form_page.dialog_state()
            return state.get("confirmation_dialog_present") and state.get("artifact_container_present")

        return await await_condition(_ready, timeout=self.dialog_timeout, interval=self.poll_interval)

    async def extract(self) -> ConfirmationArtifact:
        if not await self.wait_for_dialog():
            raise ExtractionFailure("Confirmation dialog with QR code did not appear")
        details = parse_confirmation(await self.form_page.read_dialog())
        if not details["registration_number"]:
            raise ExtractionFailure("No registration number found in confirmation dialog")
        logger.info(
            f"🧾 Registration {details['registration_number']} "
            f"(port: {details['port_info'] or '-'}, office: {details['customs_office'] or '-'})"
        )

        data, method = await self.capture()
        fmt, width, height = describe_image(data)
        return ConfirmationArtifact(
            registration_number=details["registration_number"],
            port_info=details["port_info"],
            customs_office=details["customs_office"],
            message=details["message"],
            image=ArtifactImage(data=data, format=fmt, width=width, height=height),
            extracted_at=datetime.now(),
            capture_method=method,
        )

    async def capture(self) -> Tuple[bytes, CaptureMethod]:
        """Download the code image; fall back to a screenshot of its container."""
        self.last_download = None
        try:
            path = await self._download()
        except Exception as e:
            logger.warning(f"QR download failed: {e}")
            path = None
        if path is not None:
            data = path.read_bytes()
            try:
                describe_image(data)
            except ExtractionFailure as e:
                logger.warning(f"Downloaded file {path.name} is not the QR image: {e}")
            else:
                self.last_download = path
                return data, CaptureMethod.DIRECT

        logger.info("🔄 Falling back to QR element screenshot")
        try:
            shot = await self.form_page.screenshot_element()
        except Exception as e:
            raise ExtractionFailure(f"QR download and screenshot both failed: {e}") from e
        if not shot:
            raise ExtractionFailure("QR download failed and QR element is not on the page")
        return shot, CaptureMethod.FALLBACK

    def _finished_files(self) -> Set[str]:
        # The browser saves downloads under extensionless GUID names
        return {
            p.name for p in self.download_dir.iterdir()
            if p.is_file() and not p.name.endswith(PARTIAL_SUFFIXES) and not p.name.startswith(".")
        }

    async def _download(self) -> Optional[Path]:
        self.download_dir.mkdir(parents=True, exist_ok=True)
        before = self._finished_files()
        timeout_ms = int(self.download_timeout * 1000)

        async def _event():
            return await self.form_page.wait_for_download(self.download_dir, timeout_ms)

        async def _filesystem():
            sizes: Dict[str, int] = {}
            found: Dict[str, Path] = {}

            def _stable_new_file():
                for name in sorted(self._finished_files() - before):
                    size = (self.download_dir / name).stat().st_size
                    if size and sizes.get(name) == size:
                        found["path"] = self.download_dir / name
                        return True
                    sizes[name] = size
                return False

            if await await_condition(_stable_new_file, timeout=self.download_timeout, interval=self.poll_interval):
                return found["path"]
            return None

        winner = await race_completion(
            {"event": _event, "filesystem": _filesystem},
            timeout=self.download_timeout,
            trigger=self.form_page.click_download,
        )
        if winner is None:
            return None
        channel, path = winner
        logger.info(f"✅ QR image downloaded via {channel}: {Path(path).name}")
        return Path(path)
