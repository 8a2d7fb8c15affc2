"""
ecd_logs - Markdown run logs for customs submissions

Usage:
    from ecd_logs import RunLogger

    run_log = RunLogger(passport=request.passport_number, url=config.target_url)
    run_log.log_heading("passenger")
    run_log.finalize(success=True, duration_ms=elapsed)
"""

from .run_logger import RunLogger, mask_passport

__all__ = [
    'RunLogger',
    'mask_passport',
]

__version__ = '1.0.0'
