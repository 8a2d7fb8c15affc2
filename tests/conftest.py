"""
Pytest configuration: fast timings, a fresh fake site and sample requests
"""

import copy
from dataclasses import replace

import pytest

from ecd_core.config import Config
from ecd_core.models import FormSubmissionRequest
from fake_site import FakeSite

MINIMAL_FORM = {
    "passportNumber": "A1234567",
    "fullPassportName": "Jane Doe",
    "dateOfBirth": "1990-05-15",
    "nationality": "US",
    "portOfArrival": "CGK",
    "arrivalDate": "2025-07-20",
    "flightVesselNumber": "ga 881",
    "numberOfLuggage": "2",
    "addressInIndonesia": "Jl. Sudirman No. 1, Jakarta",
    "hasGoodsToDeclarate": False,
    "hasTechnologyDevices": False,
    "consentAccurate": True,
    "familyMembers": [],
    "declaredGoods": [],
}


@pytest.fixture
def form_data():
    """Minimal valid request: no family members, no declared goods"""
    return copy.deepcopy(MINIMAL_FORM)


@pytest.fixture
def request_obj(form_data):
    return FormSubmissionRequest.from_dict(form_data)


@pytest.fixture
def fast_config(tmp_path):
    """Config with millisecond waits and every output directory under tmp_path"""
    return replace(
        Config(),
        artifact_dir=tmp_path / "artifacts",
        download_dir=tmp_path / "downloads",
        diagnostic_dir=tmp_path / "diagnostics",
        log_dir=tmp_path / "logs",
        run_log_enabled=False,
        timeout_ms=20000,
        page_load_timeout_ms=1000,
        step_retries=2,
        dropdown_attempts=2,
        dropdown_retry_delay=0.01,
        open_poll_timeout_ms=50,
        nav_timeout_ms=200,
        submit_outcome_timeout_ms=300,
        dialog_timeout_ms=300,
        download_timeout_ms=300,
        poll_interval_ms=10,
        settle_ms=0,
    )


@pytest.fixture
def site():
    return FakeSite()
