"""
ecd_web - HTTP API for the e-CD automation
"""

from ecd_web.app import app
from ecd_web.main import main

__all__ = ['app', 'main']
