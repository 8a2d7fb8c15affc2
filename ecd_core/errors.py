"""
Error taxonomy for the customs automation pipeline.

Every error carries a machine code and the public pipeline step it is
reported under. Field- and widget-level errors are normally returned inside
result objects; only the session controller turns them into envelopes.
"""

from typing import Any, Dict, List, Optional


class AutomationError(Exception):
    """Base class for all pipeline errors."""

    code = "AUTOMATION_FAILED"
    step = "submission"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class InvalidFormData(AutomationError):
    """Request failed the completeness invariant before any browser work."""

    code = "INVALID_FORM_DATA"
    step = "validation"

    def __init__(self, problems: List[str]):
        super().__init__(
            "Form data validation failed. Please ensure all required fields are completed.",
            {"problems": list(problems)},
        )
        self.problems = list(problems)


class UnknownFieldKey(AutomationError, KeyError):
    """A field key (or row index) is not declared in the registry."""

    code = "UNKNOWN_FIELD_KEY"
    step = "form_fill"

    def __init__(self, key: str, reason: str = "not registered"):
        AutomationError.__init__(self, f"Unknown field key '{key}': {reason}", {"field": key})
        self.key = key

    def __str__(self) -> str:
        return self.message


class FieldError(AutomationError):
    """Failure tied to a single form field."""

    step = "form_fill"

    def __init__(self, field_key: str, message: str, attempts: int = 0, **extra: Any):
        details = {"field": field_key, "attempts": attempts}
        details.update(extra)
        super().__init__(message, details)
        self.field_key = field_key
        self.attempts = attempts


class DropdownOpenFailure(FieldError):
    code = "DROPDOWN_OPEN_FAILED"

    def __init__(self, field_key: str, attempts: int):
        super().__init__(
            field_key,
            f"Could not open dropdown '{field_key}' after {attempts} attempts",
            attempts,
        )


class OptionNotFound(FieldError):
    code = "OPTION_NOT_FOUND"

    def __init__(self, field_key: str, value: str, attempts: int, available: Optional[List[str]] = None):
        super().__init__(
            field_key,
            f"Option '{value}' not found in dropdown '{field_key}' after {attempts} attempts",
            attempts,
            value=value,
            available=(available or [])[:10],
        )
        self.value = value


class StepNotVerified(AutomationError):
    code = "STEP_NOT_VERIFIED"
    step = "navigation"

    def __init__(self, step_name: str, attempts: int):
        super().__init__(
            f"Could not verify transition to step '{step_name}' after {attempts} attempts",
            {"step": step_name, "attempts": attempts},
        )
        self.step_name = step_name


class NavigationFailed(AutomationError):
    code = "NAVIGATION_FAILED"
    step = "navigation"


class BrowserLaunchError(AutomationError):
    code = "BROWSER_LAUNCH_FAILED"
    step = "submission"


class ValidationUnresolved(AutomationError):
    code = "VALIDATION_UNRESOLVED"
    step = "submission"

    def __init__(self, issues: List[Any], message: str = ""):
        refs = [getattr(i, "field_ref", str(i)) for i in issues]
        super().__init__(
            message or f"Validation errors persist after repair: {', '.join(refs)}",
            {"issues": [i.to_dict() if hasattr(i, "to_dict") else str(i) for i in issues]},
        )
        self.issues = list(issues)


class ExtractionFailure(AutomationError):
    code = "QR_EXTRACTION_FAILED"
    step = "qr_extraction"


class AutomationTimeout(AutomationError):
    code = "AUTOMATION_TIMEOUT"
    step = "submission"

    def __init__(self, timeout_ms: int):
        super().__init__(
            "The customs website took too long to respond",
            {"timeout_ms": timeout_ms},
        )
