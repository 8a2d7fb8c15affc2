"""Completeness checks on the incoming form data, run before any browser work."""

import re
from typing import Any, Dict, List

ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

REQUIRED_FIELDS = [
    "passportNumber",
    "portOfArrival",
    "arrivalDate",
    "fullPassportName",
    "dateOfBirth",
    "flightVesselNumber",
    "nationality",
    "addressInIndonesia",
    "numberOfLuggage",
]


def _is_blank(value: Any) -> bool:
    if value is None or isinstance(value, bool):
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def find_problems(form_data: Dict[str, Any]) -> List[str]:
    """Return a list of human-readable problems; empty when the request is complete."""
    problems: List[str] = []
    if not isinstance(form_data, dict):
        return ["formData must be an object"]

    for name in REQUIRED_FIELDS:
        if _is_blank(form_data.get(name)):
            problems.append(f"{name} is required")

    for name in ("dateOfBirth", "arrivalDate"):
        value = form_data.get(name)
        if not _is_blank(value) and not ISO_DATE.match(str(value).strip()):
            problems.append(f"{name} must be formatted YYYY-MM-DD")

    for flag in ("hasGoodsToDeclarate", "hasTechnologyDevices"):
        if form_data.get(flag) is None:
            problems.append(f"{flag} must be answered")

    if not form_data.get("consentAccurate"):
        problems.append("consentAccurate must be true")

    if not isinstance(form_data.get("familyMembers"), list):
        problems.append("familyMembers must be a list")

    if form_data.get("hasGoodsToDeclarate") and not isinstance(form_data.get("declaredGoods"), list):
        problems.append("declaredGoods must be a list when goods are declared")

    return problems


def is_complete(form_data: Dict[str, Any]) -> bool:
    return not find_problems(form_data)
