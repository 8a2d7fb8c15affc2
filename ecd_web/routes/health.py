"""Health check routes"""

from datetime import datetime

from flask import Blueprint, jsonify

from ecd_web.config import API_VERSION, SUBMIT_ENDPOINT

health_bp = Blueprint('health', __name__)


def _status():
    return jsonify({
        'status': 'ready',
        'message': 'Indonesian Customs Automation API is ready',
        'version': API_VERSION,
        'endpoints': {
            'submit': f'POST {SUBMIT_ENDPOINT}'
        },
        'timestamp': datetime.now().isoformat()
    })


@health_bp.route(SUBMIT_ENDPOINT, methods=['GET'])
def submit_status():
    """Readiness of the submission endpoint; no side effects"""
    return _status()


@health_bp.route('/health')
def health():
    """Health check endpoint"""
    return _status()
