"""Routes module for ecd_web"""

from ecd_web.routes.health import health_bp
from ecd_web.routes.submit import submit_bp

__all__ = ['health_bp', 'submit_bp']
