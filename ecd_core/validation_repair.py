"""
Validation & Repair Loop

Reads the live form for problems the site reports or that it would reject
on submit, fixes what maps back to a known field, and checks once more.
One repair pass per call; the caller decides whether to go on.
"""

import logging
from dataclasses import replace
from typing import Dict, List, Optional

from ecd_core.errors import UnknownFieldKey, ValidationUnresolved
from ecd_core.field_registry import FieldRegistry
from ecd_core.models import (
    FieldKind,
    FormSubmissionRequest,
    IssueReason,
    RepairReport,
    ResolvedField,
    ValidationIssue,
)

logger = logging.getLogger(__name__)

# Declaration questions nobody registered are answered "no".
RADIO_DEFAULT = False


def _radio_locator(group_name: str) -> str:
    if group_name:
        return f'input[type="radio"][name="{group_name}"]'
    return 'input[type="radio"]:not([name])'


class ValidationRepairLoop:

    def __init__(self, form_page, filler, registry: FieldRegistry):
        self.form_page = form_page
        self.filler = filler
        self.registry = registry

    async def detect(self) -> List[ValidationIssue]:
        scan = await self.form_page.scan_validation()
        issues: Dict[str, ValidationIssue] = {}

        def _add(issue: ValidationIssue):
            issues.setdefault(issue.field_ref, issue)

        for item in scan.get("invalid", []):
            ref = item.get("id") or ""
            _add(ValidationIssue(
                field_ref=ref,
                reason=IssueReason.RENDERED_ERROR,
                remediation_hint=item.get("message"),
                field_key=self.registry.key_for_element_id(ref),
            ))

        explained = {i.remediation_hint for i in issues.values()}
        for text in scan.get("messages", []):
            if text in explained:
                continue
            _add(ValidationIssue(field_ref=f"message:{text[:60]}", reason=IssueReason.RENDERED_ERROR,
                                 remediation_hint=text))

        for item in scan.get("empty_required", []):
            ref = item.get("id") or ""
            is_select = bool(item.get("is_select"))
            _add(ValidationIssue(
                field_ref=ref,
                reason=IssueReason.NO_SELECTION if is_select else IssueReason.EMPTY_REQUIRED,
                field_key=self.registry.key_for_element_id(ref),
                kind=FieldKind.SELECT if is_select else FieldKind.TEXT,
            ))

        for name in scan.get("unchecked_radio_groups", []):
            _add(ValidationIssue(
                field_ref=f"radio:{name}",
                reason=IssueReason.NO_SELECTION,
                remediation_hint="answer required",
                field_key=self.registry.radio_group_key(name),
                kind=FieldKind.RADIO_GROUP,
            ))

        found = list(issues.values())
        if found:
            logger.info(f"🔍 {len(found)} validation issue(s): {', '.join(i.field_ref for i in found)}")
        return found

    def _resolve(self, key: str, request: FormSubmissionRequest) -> ResolvedField:
        """Resolve for this request, falling back to the registered default when the request has no value."""
        field = self.registry.resolve(key, request)
        if field.value is None or field.value == "":
            default = self.registry.default_for(key)
            if default is not None:
                logger.info(f"{key} has no value; using default {default!r}")
                field = replace(field, value=default)
        return field

    async def repair_issue(self, issue: ValidationIssue, request: FormSubmissionRequest) -> bool:
        if issue.kind == FieldKind.RADIO_GROUP:
            return await self._repair_radio(issue, request)
        if not issue.field_key:
            return False
        try:
            field = self._resolve(issue.field_key, request)
        except UnknownFieldKey as e:
            logger.debug(f"Leaving {issue.field_ref}: {e}")
            return False
        if not field.optional and not await self.form_page.is_visible(field.locator):
            logger.debug(f"Leaving {issue.field_ref}: control not visible")
            return False
        return await self.filler.apply(field) is None

    async def _repair_radio(self, issue: ValidationIssue, request: FormSubmissionRequest) -> bool:
        group_name = issue.field_ref.split(":", 1)[1] if ":" in issue.field_ref else ""
        if issue.field_key:
            field = self._resolve(issue.field_key, request)
            if group_name:
                # Answer the group that is actually unchecked
                field = replace(field, locator=_radio_locator(group_name))
            return await self.filler.apply(field) is None
        logger.info(f"Answering unmapped radio group '{group_name}' with default 'no'")
        return await self.form_page.choose_radio(_radio_locator(group_name), RADIO_DEFAULT)

    async def repair(self, issues: List[ValidationIssue], request: FormSubmissionRequest) -> List[str]:
        repaired: List[str] = []
        for issue in issues:
            try:
                if await self.repair_issue(issue, request):
                    repaired.append(issue.field_ref)
                    logger.info(f"🔧 Repaired {issue.field_ref}")
                else:
                    logger.info(f"Could not repair {issue.field_ref}")
            except Exception as e:
                logger.warning(f"Repair of {issue.field_ref} raised: {e}")
        return repaired

    async def run(self, request: FormSubmissionRequest, issues: Optional[List[ValidationIssue]] = None) -> RepairReport:
        """Detect (unless issues are given), repair once, detect again."""
        before = issues if issues is not None else await self.detect()
        if not before:
            return RepairReport()
        repaired = await self.repair(before, request)
        after = await self.detect()
        report = RepairReport(issues_before=before, issues_after=after, repaired=repaired)
        if after:
            unresolved = ValidationUnresolved(after)
            logger.warning(f"{unresolved.code}: {unresolved.message}")
        else:
            logger.info(f"✅ All {len(before)} validation issue(s) resolved")
        return report
