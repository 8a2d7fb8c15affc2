"""Submit route - run one customs declaration"""

import asyncio
import logging
from typing import Any, Dict, Optional

from flask import Blueprint, jsonify, request

from ecd_core.config import config
from ecd_core.models import ProgressUpdate
from ecd_core.request_validation import find_problems
from ecd_core.session import submit_customs_form
from ecd_web.config import SUBMIT_ENDPOINT

logger = logging.getLogger(__name__)

submit_bp = Blueprint('submit', __name__)


def _error(code: str, message: str, step: Optional[str] = 'validation', details: Any = None):
    body: Dict[str, Any] = {
        'success': False,
        'error': {'code': code, 'message': message, 'step': step},
        'fallbackUrl': config.fallback_url,
    }
    if details is not None:
        body['error']['details'] = details
    return jsonify(body), 400


def _log_progress(update: ProgressUpdate):
    logger.info(f"📊 Progress: {update.progress}% - {update.step}: {update.message}")


@submit_bp.route(SUBMIT_ENDPOINT, methods=['POST'])
def submit_customs():
    """Validate the request, run the automation and return its envelope"""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return _error('INVALID_JSON', 'Invalid JSON in request body')

    form_data = data.get('formData')
    if not form_data:
        return _error('MISSING_FORM_DATA', 'Form data is required')

    problems = find_problems(form_data)
    if problems:
        logger.warning(f"Form data validation failed: {problems}")
        return _error(
            'INVALID_FORM_DATA',
            'Form data validation failed. Please ensure all required fields are completed.',
            details={'problems': problems},
        )

    logger.info(
        f"📝 Submission: port {form_data.get('portOfArrival')} on {form_data.get('arrivalDate')}, "
        f"{len(form_data.get('familyMembers') or [])} family member(s), "
        f"goods: {'yes' if form_data.get('hasGoodsToDeclarate') else 'no'}"
    )

    try:
        # Run async pipeline in sync context
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        try:
            result = loop.run_until_complete(
                submit_customs_form(form_data, data.get('options') or {}, on_progress=_log_progress)
            )
        finally:
            loop.close()
    except Exception as e:
        logger.exception(f"💥 Unexpected error in customs submission: {e}")
        return _error(
            'INTERNAL_SERVER_ERROR',
            'An unexpected error occurred while processing your customs submission',
            step=None,
        )

    if result.get('success'):
        logger.info(f"✅ Customs submission completed: {result['submissionDetails'].get('submissionId')}")
        return jsonify(result)
    logger.info(f"❌ Customs submission failed: {result['error'].get('code')} at {result['error'].get('step')}")
    return jsonify(result), 400
