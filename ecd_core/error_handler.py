"""
Error envelopes.

Converts pipeline exceptions into the public failure shape
``{success: false, error: {code, message, step, details}, fallbackUrl}``
with a suggestion for the traveler on how to continue.
"""

from typing import Any, Dict, Optional
import logging

from ecd_core.config import config
from ecd_core.errors import AutomationError

logger = logging.getLogger(__name__)


# Error mappings: code -> suggestion / retry hint
ERROR_MAPPINGS = {
    "INVALID_FORM_DATA": {
        "suggestion": "Complete every required field and confirm the declaration is accurate",
        "can_retry": False,
    },
    "UNKNOWN_FIELD_KEY": {
        "suggestion": "This is an internal mapping error; complete the form manually",
        "can_retry": False,
    },
    "DROPDOWN_OPEN_FAILED": {
        "suggestion": "The customs site did not respond to a selection; try again or complete it manually",
        "can_retry": True,
    },
    "OPTION_NOT_FOUND": {
        "suggestion": "Check the selected value (port, nationality, date or currency) is offered by the customs site",
        "can_retry": False,
    },
    "FIELD_FILL_FAILED": {
        "suggestion": "Try again or complete the form manually",
        "can_retry": True,
    },
    "STEP_NOT_VERIFIED": {
        "suggestion": "The customs site did not move to the next page; try again or complete it manually",
        "can_retry": True,
    },
    "NAVIGATION_FAILED": {
        "suggestion": "The customs site could not be reached; check it is online and try again",
        "can_retry": True,
    },
    "BROWSER_LAUNCH_FAILED": {
        "suggestion": "The automation browser could not start; try again later",
        "can_retry": True,
    },
    "VALIDATION_UNRESOLVED": {
        "suggestion": "The customs site rejected some answers; review them and complete the form manually",
        "can_retry": False,
    },
    "QR_EXTRACTION_FAILED": {
        "suggestion": "Your declaration may have been submitted; check your email or complete the form manually",
        "can_retry": False,
    },
    "AUTOMATION_TIMEOUT": {
        "suggestion": "The customs site was slow; try again in a few minutes",
        "can_retry": True,
    },
}

# Substring patterns for exceptions raised outside the pipeline taxonomy
PATTERN_CODES = {
    "timeout": ("AUTOMATION_TIMEOUT", "The customs website took too long to respond"),
    "target closed": ("AUTOMATION_FAILED", "The automation browser closed unexpectedly"),
    "net::err": ("NAVIGATION_FAILED", "The customs website could not be reached"),
    "connection refused": ("NAVIGATION_FAILED", "The customs website could not be reached"),
}


def format_error_envelope(error: BaseException) -> Dict[str, Any]:
    """Return ``{code, message, step, details}`` for any exception."""
    if isinstance(error, AutomationError):
        envelope = {
            "code": error.code,
            "message": error.message,
            "step": error.step,
        }
        details = dict(error.details)
    else:
        error_str = str(error)
        code, message = "AUTOMATION_FAILED", "Customs form automation failed"
        for pattern, (mapped_code, mapped_message) in PATTERN_CODES.items():
            if pattern in error_str.lower():
                code, message = mapped_code, mapped_message
                break
        envelope = {"code": code, "message": message, "step": "submission"}
        details = {"technical": error_str[:500]}

    hint = ERROR_MAPPINGS.get(envelope["code"])
    if hint:
        details.setdefault("suggestion", hint["suggestion"])
        details.setdefault("canRetry", hint["can_retry"])
    if details:
        envelope["details"] = details
    logger.debug(f"Mapped {type(error).__name__} to {envelope['code']}")
    return envelope


def create_error_response(error: BaseException, fallback_url: Optional[str] = None) -> Dict[str, Any]:
    """Standard failure response; always carries the manual-completion URL."""
    return {
        "success": False,
        "error": format_error_envelope(error),
        "fallbackUrl": fallback_url or config.fallback_url,
    }


def format_error_for_logging(error: BaseException, context: str = "") -> str:
    envelope = format_error_envelope(error)
    lines = [
        f"❌ [{envelope['code']}] {envelope['message']}",
        f"📍 Step: {envelope['step']}",
    ]
    suggestion = envelope.get("details", {}).get("suggestion")
    if suggestion:
        lines.append(f"💡 {suggestion}")
    if context:
        lines.insert(0, f"📍 Context: {context}")
    return "\n".join(lines)
