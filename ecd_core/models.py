"""
Data records for the customs automation pipeline.

FormSubmissionRequest is parsed from the camelCase JSON wire shape sent by
the presentation layer. Everything else is produced while a submission runs.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Union


class FieldKind(str, Enum):
    TEXT = "text"
    SELECT = "select"
    CHECKBOX = "checkbox"
    RADIO_GROUP = "radioGroup"


class IssueReason(str, Enum):
    EMPTY_REQUIRED = "empty_required"
    NO_SELECTION = "no_selection"
    RENDERED_ERROR = "rendered_error"


class SubmitOutcome(str, Enum):
    CONFIRMED = "confirmed"
    VALIDATION_ERROR = "validation_error"
    AMBIGUOUS = "ambiguous"


class CaptureMethod(str, Enum):
    DIRECT = "direct"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    delay: float = 0.5


FieldValue = Union[str, bool]


def _text(value: Any) -> str:
    # Numbers arrive as JSON numbers; 0 must survive as "0"
    return "" if value is None else str(value).strip()


@dataclass(frozen=True)
class FieldMapping:
    """Static description of one form control."""
    key: str
    locator: str
    kind: FieldKind
    resolve_value: Callable[["FormSubmissionRequest"], FieldValue]
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)
    list_id: Optional[str] = None
    default: Optional[FieldValue] = None
    optional_locators: tuple = ()


@dataclass
class ResolvedField:
    key: str
    locator: str
    kind: FieldKind
    value: FieldValue
    list_id: Optional[str] = None
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)
    optional_locators: tuple = ()

    @property
    def optional(self) -> bool:
        return bool(self.optional_locators)


@dataclass
class FamilyMember:
    passport_number: str
    name: str
    nationality: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FamilyMember":
        return cls(
            passport_number=str(data.get("passportNumber") or ""),
            name=str(data.get("name") or ""),
            nationality=str(data.get("nationality") or ""),
        )


@dataclass
class DeclaredGood:
    description: str
    quantity: str
    value: str
    currency: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DeclaredGood":
        return cls(
            description=str(data.get("description") or ""),
            quantity=_text(data.get("quantity")),
            value=_text(data.get("value")),
            currency=str(data.get("currency") or ""),
        )


@dataclass
class FormSubmissionRequest:
    """Traveler data for one declaration."""
    passport_number: str
    full_passport_name: str
    date_of_birth: str
    nationality: str
    port_of_arrival: str
    arrival_date: str
    flight_vessel_number: str
    number_of_luggage: str
    address_in_indonesia: str
    has_goods_to_declare: bool
    has_technology_devices: bool
    consent_accurate: bool
    family_members: List[FamilyMember] = field(default_factory=list)
    declared_goods: List[DeclaredGood] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FormSubmissionRequest":
        """Build from the wire shape. Assumes request_validation already passed."""
        return cls(
            passport_number=str(data.get("passportNumber") or ""),
            full_passport_name=str(data.get("fullPassportName") or ""),
            date_of_birth=str(data.get("dateOfBirth") or ""),
            nationality=str(data.get("nationality") or ""),
            port_of_arrival=str(data.get("portOfArrival") or ""),
            arrival_date=str(data.get("arrivalDate") or ""),
            flight_vessel_number=str(data.get("flightVesselNumber") or ""),
            number_of_luggage=_text(data.get("numberOfLuggage")),
            address_in_indonesia=str(data.get("addressInIndonesia") or ""),
            has_goods_to_declare=bool(data.get("hasGoodsToDeclarate")),
            has_technology_devices=bool(data.get("hasTechnologyDevices")),
            consent_accurate=bool(data.get("consentAccurate")),
            family_members=[FamilyMember.from_dict(m) for m in data.get("familyMembers") or []],
            declared_goods=[DeclaredGood.from_dict(g) for g in data.get("declaredGoods") or []],
        )


@dataclass
class ValidationIssue:
    field_ref: str
    reason: IssueReason
    remediation_hint: Optional[str] = None
    field_key: Optional[str] = None
    kind: Optional[FieldKind] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "field": self.field_ref,
            "reason": self.reason.value,
            "hint": self.remediation_hint,
            "key": self.field_key,
        }


@dataclass
class RepairReport:
    issues_before: List[ValidationIssue] = field(default_factory=list)
    issues_after: List[ValidationIssue] = field(default_factory=list)
    repaired: List[str] = field(default_factory=list)

    @property
    def clean(self) -> bool:
        return not self.issues_after


@dataclass
class DropdownResult:
    field_key: str
    success: bool
    attempts: int
    matched_text: Optional[str] = None
    open_strategy: Optional[str] = None
    error: Optional[Exception] = None


@dataclass(frozen=True)
class ArtifactImage:
    data: bytes
    format: str
    width: int
    height: int


@dataclass(frozen=True)
class ConfirmationArtifact:
    """Scannable confirmation plus the registration metadata shown with it."""
    registration_number: str
    port_info: Optional[str]
    customs_office: Optional[str]
    message: Optional[str]
    image: ArtifactImage
    extracted_at: datetime
    capture_method: CaptureMethod


@dataclass
class DiagnosticSnapshot:
    screenshot: Optional[bytes]
    visible_text: str
    timestamp: datetime
    flags: Dict[str, bool] = field(default_factory=dict)
    page_url: Optional[str] = None
    error: Optional[str] = None


@dataclass
class ProgressUpdate:
    step: str
    progress: int
    message: str
    timestamp: datetime = field(default_factory=datetime.now)
