"""
DOM module - page adapters for the e-CD form

FormPage wraps inputs, radios, buttons, the validation scan and the
confirmation dialog; AntSelectDriver wraps the custom select widget.
"""

from ecd_core.dom.ant_select import AntSelectDriver
from ecd_core.dom.form_page import FormPage

__all__ = [
    'AntSelectDriver',
    'FormPage',
]
