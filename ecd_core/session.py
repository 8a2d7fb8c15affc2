"""
Session Controller

Runs one submission attempt end to end: validate the request, open the
browser, walk the registry's steps (fill, repair, advance, verify), submit,
extract and persist the confirmation. Every failure leaves as an
AutomationError; run() turns the outcome into the public envelope.
"""

import asyncio
import base64
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Optional

from ecd_core.artifact_store import save_artifact
from ecd_core.config import Config, config as default_config
from ecd_core.confirmation import ConfirmationExtractor
from ecd_core.diagnostics import capture_diagnostics, diagnose_url_issue
from ecd_core.dom import AntSelectDriver, FormPage
from ecd_core.dropdown import DropdownEngine
from ecd_core.error_handler import create_error_response, format_error_for_logging
from ecd_core.errors import (
    AutomationError,
    AutomationTimeout,
    ExtractionFailure,
    InvalidFormData,
    NavigationFailed,
    StepNotVerified,
    ValidationUnresolved,
)
from ecd_core.field_filler import FieldFiller, FieldFillFailed
from ecd_core.field_registry import FieldRegistry, FormStep, RowGroup, registry as default_registry
from ecd_core.models import (
    ConfirmationArtifact,
    FieldKind,
    FormSubmissionRequest,
    ProgressUpdate,
    RetryPolicy,
    SubmitOutcome,
)
from ecd_core.navigation import NavigationVerifier
from ecd_core.request_validation import find_problems
from ecd_core.retry import NetworkError, RetryContext, await_condition
from ecd_core.validation_repair import ValidationRepairLoop
from ecd_logs import RunLogger

logger = logging.getLogger(__name__)

SUCCESS_MESSAGE = "Customs form submitted successfully"

ProgressCallback = Callable[[ProgressUpdate], Any]


class PlaywrightPageSession:
    """Browser plus the two page adapters the pipeline talks to."""

    def __init__(self, browser_session):
        self.browser_session = browser_session
        self.form_page = FormPage(browser_session.page)
        self.select_driver = AntSelectDriver(browser_session.page)

    async def close(self):
        await self.browser_session.close()


async def open_playwright_session(cfg: Config) -> PlaywrightPageSession:
    from ecd_core.browser_setup import setup_playwright
    return PlaywrightPageSession(await setup_playwright(cfg))


@dataclass
class SubmissionResult:
    artifact: ConfirmationArtifact
    image_path: Path
    sidecar_path: Path
    submitted_at: datetime

    def to_response(self) -> Dict[str, Any]:
        a = self.artifact
        encoded = base64.b64encode(a.image.data).decode("ascii")
        return {
            "success": True,
            "qrCode": {
                "imageData": f"data:image/{a.image.format};base64,{encoded}",
                "format": a.image.format,
                "size": {"width": a.image.width, "height": a.image.height},
            },
            "submissionDetails": {
                "submissionId": a.registration_number,
                "submissionTime": self.submitted_at.isoformat(),
                "status": "completed",
                "referenceNumber": a.registration_number,
                "portInfo": a.port_info,
                "customsOffice": a.customs_office,
            },
            "message": SUCCESS_MESSAGE,
        }


class SessionController:
    """
    Sequences the pipeline components for one submission.

    ``open_session`` returns an object with ``form_page``, ``select_driver``
    and an async ``close()``; the default launches Playwright.
    """

    def __init__(
        self,
        cfg: Optional[Config] = None,
        registry: Optional[FieldRegistry] = None,
        on_progress: Optional[ProgressCallback] = None,
        open_session: Callable[[Config], Awaitable[Any]] = open_playwright_session,
    ):
        self.cfg = cfg or default_config
        self.registry = registry or default_registry
        self.on_progress = on_progress
        self.open_session = open_session
        self.run_log: Optional[RunLogger] = None

    def _progress(self, step: str, progress: int, message: str):
        logger.info(f"[{progress:3d}%] {step}: {message}")
        if self.on_progress is None:
            return
        try:
            self.on_progress(ProgressUpdate(step=step, progress=progress, message=message))
        except Exception as e:
            logger.debug(f"Progress callback failed: {e}")

    async def run(self, form_data: Dict[str, Any]) -> Dict[str, Any]:
        """Validate, run the attempt under the overall timeout and return the response envelope."""
        started = time.monotonic()
        error: Optional[BaseException] = None
        result: Optional[SubmissionResult] = None
        try:
            problems = find_problems(form_data)
            if problems:
                raise InvalidFormData(problems)
            request = FormSubmissionRequest.from_dict(form_data)
            if self.cfg.run_log_enabled:
                self.run_log = RunLogger(passport=request.passport_number, url=self.cfg.target_url,
                                         log_dir=str(self.cfg.log_dir))
            try:
                result = await asyncio.wait_for(self.submit(request), timeout=self.cfg.timeout_ms / 1000)
            except asyncio.TimeoutError:
                raise AutomationTimeout(self.cfg.timeout_ms) from None
        except AutomationError as e:
            error = e
        except Exception as e:
            logger.exception(f"Unexpected automation error: {e}")
            error = e

        duration_ms = int((time.monotonic() - started) * 1000)
        response = create_error_response(error, self.cfg.fallback_url) if error is not None else None
        if self.run_log:
            if response is not None:
                self.run_log.log_json(response["error"], "Error")
            self.run_log.finalize(error is None, duration_ms, str(error) if error else None)
        if response is not None:
            logger.error(format_error_for_logging(error, f"after {duration_ms}ms"))
            return response
        logger.info(f"✅ Submission completed in {duration_ms}ms")
        return result.to_response()

    async def submit(self, request: FormSubmissionRequest) -> SubmissionResult:
        """One attempt against the live site; raises AutomationError subclasses."""
        cfg = self.cfg
        self._progress("initialization", 5, "Launching browser")
        session = await self.open_session(cfg)
        try:
            form_page = session.form_page
            dropdowns = DropdownEngine(
                session.select_driver,
                open_poll_timeout=cfg.open_poll_timeout_ms / 1000,
                poll_interval=cfg.poll_interval,
                settle_delay=cfg.settle_delay,
                policy=RetryPolicy(max_attempts=cfg.dropdown_attempts, delay=cfg.dropdown_retry_delay),
            )
            self.form_page = form_page
            self.filler = FieldFiller(form_page, dropdowns)
            self.verifier = NavigationVerifier(form_page, timeout=cfg.nav_timeout_ms / 1000,
                                               interval=cfg.poll_interval)
            self.repair = ValidationRepairLoop(form_page, self.filler, self.registry)
            self.extractor = ConfirmationExtractor(
                form_page,
                download_dir=cfg.download_dir,
                outcome_timeout=cfg.submit_outcome_timeout_ms / 1000,
                dialog_timeout=cfg.dialog_timeout_ms / 1000,
                download_timeout=cfg.download_timeout_ms / 1000,
                poll_interval=cfg.poll_interval,
            )

            self._progress("navigation", 10, "Opening customs website")
            await self._open_site()

            artifact = None
            for step in self.registry.steps:
                t0 = time.monotonic()
                if self.run_log:
                    self.run_log.log_heading(step.name)
                if step.final:
                    artifact = await self._finish(step, request)
                else:
                    await self._complete_step(step, request)
                if self.run_log:
                    self.run_log.log_step_result(step.name, True, int((time.monotonic() - t0) * 1000))

            if artifact is None:
                raise AutomationError("Form steps ended without a submission step")
            image_path, sidecar_path = save_artifact(artifact, cfg.artifact_dir, self.extractor.last_download)
            self._progress("complete", 100, f"Registration {artifact.registration_number}")
            return SubmissionResult(artifact, image_path, sidecar_path, datetime.now())
        finally:
            await session.close()

    async def _open_site(self):
        url = self.cfg.target_url
        try:
            await self.form_page.goto(url, self.cfg.page_load_timeout_ms, self.cfg.step_retries)
        except NetworkError as e:
            loop = asyncio.get_running_loop()
            connectivity = await loop.run_in_executor(None, diagnose_url_issue, url)
            raise NavigationFailed(f"Could not load {url}: {e}", {"url": url, "connectivity": connectivity}) from e

    async def _complete_step(self, step: FormStep, request: FormSubmissionRequest):
        if step.name == "entry":
            self._progress("form-access", 15, "Opening declaration form")
        else:
            self._progress("form-filling", 25, f"Filling {step.name} details")
            await self._fill_step(step, request)
            self._progress("navigation", 50, f"Leaving {step.name} page")
        await self._advance(step, request)

    async def _fill_step(self, step: FormStep, request: FormSubmissionRequest):
        for key in step.field_keys:
            await self._fill(key, request)
            for group in step.row_groups:
                if group.after_key == key:
                    await self._fill_rows(group, request)
        for group in step.row_groups:
            if group.after_key is None:
                await self._fill_rows(group, request)

    async def _fill(self, key: str, request: FormSubmissionRequest):
        field = self.registry.resolve(key, request)
        if field.kind == FieldKind.RADIO_GROUP and key == "hasTechnologyDevices":
            self._progress("final-steps", 80, "Answering remaining declarations")
        elif field.kind == FieldKind.RADIO_GROUP:
            self._progress("goods-declaration", 65, "Answering goods declaration")
        error = await self.filler.apply(field)
        if self.run_log:
            self.run_log.log_kv(key, "ok" if error is None else f"FAILED ({error.code})")
        if error is None:
            return
        if field.kind == FieldKind.SELECT:
            raise error
        logger.warning(f"{error.message}; leaving it to the validation pass")

    async def _fill_rows(self, group: RowGroup, request: FormSubmissionRequest):
        if not group.enabled(request):
            return
        rows = group.rows(request)
        if rows and group.name == "familyMembers":
            self._progress("family-members", 40, f"Adding {len(rows)} family member(s)")
        for index in range(len(rows)):
            first = group.templates[0].locator_for(index)
            if not await self.form_page.click_add_button(group.add_button_text):
                raise FieldFillFailed(f"{group.name}[{index}]", f"Could not add row {index + 1} to {group.name}", 1)
            appeared = await await_condition(lambda: self.form_page.exists(first),
                                             timeout=self.cfg.nav_timeout_ms / 1000,
                                             interval=self.cfg.poll_interval)
            if not appeared:
                raise FieldFillFailed(f"{group.name}[{index}]", f"Row {index + 1} of {group.name} did not appear", 1)
            for key in group.keys_for_row(index):
                await self._fill(key, request)

    async def _advance(self, step: FormStep, request: FormSubmissionRequest):
        """Repair, click the step's advance button and verify the page really changed."""
        ctx = RetryContext(RetryPolicy(max_attempts=self.cfg.step_retries, delay=self.cfg.settle_delay))
        while ctx.should_retry():
            if step.field_keys or step.row_groups:
                report = await self.repair.run(request)
                if self.run_log and report.issues_before:
                    self.run_log.log_issues(report.issues_after, "Issues left after repair")
            clicked = await self.form_page.click_button(step.advance_words)
            if clicked and await self.verifier.verify(step):
                ctx.success()
                break
            await ctx.failed("advance button not found" if not clicked else "transition not observed")
        if not ctx.succeeded:
            raise StepNotVerified(step.name, ctx.attempt)

    async def _finish(self, step: FormStep, request: FormSubmissionRequest) -> ConfirmationArtifact:
        await self._fill_step(step, request)
        await self.repair.run(request)

        self._progress("submission", 85, "Submitting declaration")
        outcome = await self.extractor.submit(step)
        if outcome == SubmitOutcome.VALIDATION_ERROR:
            report = await self.repair.run(request)
            outcome = await self.extractor.submit(step)
            if outcome == SubmitOutcome.VALIDATION_ERROR:
                remaining = await self.repair.detect() or report.issues_after
                if self.run_log:
                    self.run_log.log_issues(remaining, "Rejected after resubmit")
                raise ValidationUnresolved(remaining)
        if outcome == SubmitOutcome.AMBIGUOUS:
            logger.warning("No confirmation seen after submit; trying extraction anyway")

        self._progress("qr-extraction", 95, "Extracting confirmation QR code")
        try:
            return await self.extractor.extract()
        except Exception as e:
            failure = e if isinstance(e, ExtractionFailure) else ExtractionFailure(f"QR extraction failed: {e}")
            snapshot, path = await capture_diagnostics(self.form_page, self.cfg.diagnostic_dir, failure)
            if path is not None:
                failure.details["diagnosticsPath"] = str(path)
                if self.run_log and snapshot and snapshot.screenshot:
                    self.run_log.log_image(str(path.with_suffix(".png")), "Extraction failure")
            if failure is e:
                raise
            raise failure from e


async def submit_customs_form(
    form_data: Dict[str, Any],
    options: Optional[Dict[str, Any]] = None,
    on_progress: Optional[ProgressCallback] = None,
    open_session: Callable[[Config], Awaitable[Any]] = open_playwright_session,
) -> Dict[str, Any]:
    """Run one submission with per-request option overrides; returns the response envelope."""
    controller = SessionController(
        cfg=default_config.with_options(options),
        on_progress=on_progress,
        open_session=open_session,
    )
    return await controller.run(form_data)
