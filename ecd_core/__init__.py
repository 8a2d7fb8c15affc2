"""
ecd_core - browser automation for the Indonesian e-CD customs declaration

Usage:
    from ecd_core import submit_customs_form

    result = await submit_customs_form(form_data, {"headless": True})
    if result["success"]:
        print(result["submissionDetails"]["submissionId"])
"""

from ecd_core.config import Config, config
from ecd_core.errors import AutomationError
from ecd_core.field_registry import FieldRegistry, registry
from ecd_core.models import ConfirmationArtifact, FormSubmissionRequest, ProgressUpdate
from ecd_core.session import SessionController, submit_customs_form

__all__ = [
    'AutomationError',
    'Config',
    'ConfirmationArtifact',
    'FieldRegistry',
    'FormSubmissionRequest',
    'ProgressUpdate',
    'SessionController',
    'config',
    'registry',
    'submit_customs_form',
]

__version__ = '1.0.0'
