"""
Field Mapping Registry

Declares every control of the e-CD form once: its semantic key, locator,
widget kind and a pure resolver that derives the value from the request.
Row groups (family members, declared goods) are templates expanded by row
index, e.g. ``familyMembers[1].nationality`` -> ``#dataKeluarga_1_kodeNegara``.

The registry is built once at import and never mutated.
"""

import re
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from ecd_core import value_maps
from ecd_core.errors import UnknownFieldKey
from ecd_core.models import (
    FieldKind,
    FieldMapping,
    FormSubmissionRequest,
    ResolvedField,
    RetryPolicy,
)

SELECT_POLICY = RetryPolicy(max_attempts=3, delay=0.5)
INPUT_POLICY = RetryPolicy(max_attempts=2, delay=0.3)

ADDRESS_LOCATORS = (
    "#domisiliJalan",
    "#alamatIndonesia",
    "#alamat",
    '[name="alamatIndonesia"]',
)

GOODS_RADIOS = 'input[type="radio"]:not([name="bringGadgets"])'
GADGET_RADIOS = 'input[type="radio"][name="bringGadgets"]'

ROW_KEY = re.compile(r"^(?P<group>\w+)\[(?P<index>\d+)\]\.(?P<attr>\w+)$")


def _list_id(locator: str) -> str:
    return f"{locator.lstrip('#')}_list"


@dataclass(frozen=True)
class RowFieldTemplate:
    attr: str
    locator: str
    kind: FieldKind
    resolve_row: Callable
    retry_policy: RetryPolicy = INPUT_POLICY

    def locator_for(self, index: int) -> str:
        return self.locator.format(i=index)


@dataclass(frozen=True)
class RowGroup:
    """Repeating block of controls; each row is created by clicking the add button."""
    name: str
    add_button_text: str
    rows: Callable[[FormSubmissionRequest], Sequence]
    templates: Tuple[RowFieldTemplate, ...]
    enabled: Callable[[FormSubmissionRequest], bool] = lambda request: True
    # Filled right after this key of the step; None means after all of them
    after_key: Optional[str] = None

    def keys_for_row(self, index: int) -> List[str]:
        return [f"{self.name}[{index}].{t.attr}" for t in self.templates]


@dataclass(frozen=True)
class FormStep:
    """One page of the site's wizard."""
    name: str
    field_keys: Tuple[str, ...] = ()
    row_groups: Tuple[RowGroup, ...] = ()
    # Words matched case-insensitively against button text to leave the step
    advance_words: Tuple[str, ...] = ("next", "lanjut")
    destination_markers: Tuple[str, ...] = ()
    origin_markers: Tuple[str, ...] = ()
    final: bool = False


def _text(key, locator, resolver, **kw) -> FieldMapping:
    return FieldMapping(key=key, locator=locator, kind=FieldKind.TEXT,
                        resolve_value=resolver, retry_policy=INPUT_POLICY, **kw)


def _select(key, locator, resolver) -> FieldMapping:
    return FieldMapping(key=key, locator=locator, kind=FieldKind.SELECT,
                        resolve_value=resolver, retry_policy=SELECT_POLICY,
                        list_id=_list_id(locator))


def _radio(key, locator, resolver, default) -> FieldMapping:
    return FieldMapping(key=key, locator=locator, kind=FieldKind.RADIO_GROUP,
                        resolve_value=resolver, retry_policy=INPUT_POLICY, default=default)


FIELD_MAPPINGS: Tuple[FieldMapping, ...] = (
    _text("passportNumber", "#paspor", lambda r: r.passport_number.strip()),
    _select("portOfArrival", "#lokasiKedatangan", lambda r: value_maps.port_display(r.port_of_arrival)),
    _select("arrivalDate", "#tanggalKedatangan", lambda r: value_maps.format_arrival_date(r.arrival_date)),
    _text("fullPassportName", "#nama", lambda r: value_maps.passport_name(r.full_passport_name)),
    _select("dateOfBirth.day", "#tanggalLahirTgl", lambda r: value_maps.split_birth_date(r.date_of_birth)[0]),
    _select("dateOfBirth.month", "#tanggalLahirBln", lambda r: value_maps.split_birth_date(r.date_of_birth)[1]),
    _select("dateOfBirth.year", "#tanggalLahirThn", lambda r: value_maps.split_birth_date(r.date_of_birth)[2]),
    _text("flightVesselNumber", "#nomorPengangkut", lambda r: r.flight_vessel_number.strip().upper()),
    _select("nationality", "#kodeNegara", lambda r: value_maps.country_display(r.nationality)),
    _text("numberOfLuggage", "#bagasiDibawa", lambda r: str(r.number_of_luggage).strip()),
    _text("addressInIndonesia", ADDRESS_LOCATORS[0], lambda r: r.address_in_indonesia.strip(),
          optional_locators=ADDRESS_LOCATORS),
    _radio("hasGoodsToDeclare", GOODS_RADIOS, lambda r: r.has_goods_to_declare, default=False),
    _radio("hasTechnologyDevices", GADGET_RADIOS, lambda r: r.has_technology_devices, default=False),
    FieldMapping(key="consentAccurate", locator="#accept", kind=FieldKind.CHECKBOX,
                 resolve_value=lambda r: r.consent_accurate, retry_policy=INPUT_POLICY),
)

FAMILY_MEMBERS = RowGroup(
    name="familyMembers",
    add_button_text="tambah",
    rows=lambda r: r.family_members,
    templates=(
        RowFieldTemplate("passportNumber", "#dataKeluarga_{i}_paspor", FieldKind.TEXT,
                         lambda m: m.passport_number.strip()),
        RowFieldTemplate("name", "#dataKeluarga_{i}_nama", FieldKind.TEXT,
                         lambda m: value_maps.passport_name(m.name)),
        RowFieldTemplate("nationality", "#dataKeluarga_{i}_kodeNegara", FieldKind.SELECT,
                         lambda m: value_maps.country_display(m.nationality), SELECT_POLICY),
    ),
)

DECLARED_GOODS = RowGroup(
    name="declaredGoods",
    add_button_text="tambah",
    rows=lambda r: r.declared_goods,
    enabled=lambda r: r.has_goods_to_declare,
    after_key="hasGoodsToDeclare",
    templates=(
        RowFieldTemplate("description", "#dataBarang_{i}_uraian", FieldKind.TEXT,
                         lambda g: g.description.strip()),
        RowFieldTemplate("quantity", "#dataBarang_{i}_jumlahSatuan", FieldKind.TEXT,
                         lambda g: str(g.quantity).strip()),
        RowFieldTemplate("value", "#dataBarang_{i}_hargaSatuan", FieldKind.TEXT,
                         lambda g: str(g.value).strip()),
        RowFieldTemplate("currency", "#dataBarang_{i}_kodeMataUang", FieldKind.SELECT,
                         lambda g: value_maps.currency_display(g.currency), SELECT_POLICY),
    ),
)

PASSENGER_MARKERS = ("#paspor", "#nama", "#nomorPengangkut")

FORM_STEPS: Tuple[FormStep, ...] = (
    FormStep(
        name="entry",
        destination_markers=PASSENGER_MARKERS,
    ),
    FormStep(
        name="passenger",
        field_keys=(
            "passportNumber", "portOfArrival", "arrivalDate", "fullPassportName",
            "dateOfBirth.day", "dateOfBirth.month", "dateOfBirth.year",
            "flightVesselNumber", "nationality", "numberOfLuggage", "addressInIndonesia",
        ),
        row_groups=(FAMILY_MEMBERS,),
        destination_markers=('input[type="radio"]',),
        origin_markers=PASSENGER_MARKERS,
    ),
    FormStep(
        name="consent",
        field_keys=("hasGoodsToDeclare", "hasTechnologyDevices", "consentAccurate"),
        row_groups=(DECLARED_GOODS,),
        advance_words=("kirim", "submit"),
        final=True,
    ),
)


class FieldRegistry:
    """Read-only lookup over the declared fields and steps."""

    def __init__(
        self,
        mappings: Sequence[FieldMapping] = FIELD_MAPPINGS,
        row_groups: Sequence[RowGroup] = (FAMILY_MEMBERS, DECLARED_GOODS),
        steps: Sequence[FormStep] = FORM_STEPS,
    ):
        self._mappings: Dict[str, FieldMapping] = {}
        for m in mappings:
            if m.key in self._mappings:
                raise ValueError(f"Duplicate field key: {m.key}")
            self._mappings[m.key] = m
        self._row_groups: Dict[str, RowGroup] = {g.name: g for g in row_groups}
        self._steps: Tuple[FormStep, ...] = tuple(steps)

    @property
    def steps(self) -> Tuple[FormStep, ...]:
        return self._steps

    def mapping(self, key: str) -> FieldMapping:
        try:
            return self._mappings[key]
        except KeyError:
            raise UnknownFieldKey(key) from None

    def row_group(self, name: str) -> RowGroup:
        try:
            return self._row_groups[name]
        except KeyError:
            raise UnknownFieldKey(name, "no such row group") from None

    def resolve(self, key: str, request: FormSubmissionRequest) -> ResolvedField:
        """Resolve a flat or row key to its locator, kind and value for this request."""
        match = ROW_KEY.match(key)
        if match:
            return self._resolve_row(key, match, request)
        m = self.mapping(key)
        return ResolvedField(
            key=m.key,
            locator=m.locator,
            kind=m.kind,
            value=m.resolve_value(request),
            list_id=m.list_id,
            retry_policy=m.retry_policy,
            optional_locators=m.optional_locators,
        )

    def _resolve_row(self, key: str, match, request: FormSubmissionRequest) -> ResolvedField:
        group = self.row_group(match.group("group"))
        index = int(match.group("index"))
        rows = group.rows(request)
        if index >= len(rows):
            raise UnknownFieldKey(key, f"row {index} not present in request ({len(rows)} rows)")
        template = next((t for t in group.templates if t.attr == match.group("attr")), None)
        if template is None:
            raise UnknownFieldKey(key, f"no field '{match.group('attr')}' in {group.name}")
        locator = template.locator_for(index)
        return ResolvedField(
            key=key,
            locator=locator,
            kind=template.kind,
            value=template.resolve_row(rows[index]),
            list_id=_list_id(locator) if template.kind == FieldKind.SELECT else None,
            retry_policy=template.retry_policy,
        )

    def default_for(self, key: str) -> Optional[object]:
        """Registered fallback value; None for row keys and fields without one."""
        m = self._mappings.get(key)
        return m.default if m else None

    def key_for_element_id(self, element_id: str) -> Optional[str]:
        """Map a live DOM id (or radio group name) back to a registry key."""
        if not element_id:
            return None
        ident = element_id.lstrip("#")
        for m in self._mappings.values():
            candidates = m.optional_locators or (m.locator,)
            for loc in candidates:
                if loc.startswith("#") and loc[1:] == ident:
                    return m.key
                if f'name="{ident}"' in loc and m.kind != FieldKind.RADIO_GROUP:
                    return m.key
            if m.kind == FieldKind.RADIO_GROUP and m.locator.endswith(f'[name="{ident}"]'):
                return m.key
        for group in self._row_groups.values():
            for t in group.templates:
                pattern = re.escape(t.locator.lstrip("#")).replace(re.escape("{i}"), r"(\d+)")
                hit = re.fullmatch(pattern, ident)
                if hit:
                    return f"{group.name}[{hit.group(1)}].{t.attr}"
        return None

    def radio_group_key(self, group_name: str) -> Optional[str]:
        """Key for a rendered radio group; unnamed groups fall back to the goods question."""
        key = self.key_for_element_id(group_name) if group_name else None
        if key in self._mappings and self._mappings[key].kind == FieldKind.RADIO_GROUP:
            return key
        for m in self._mappings.values():
            if m.kind == FieldKind.RADIO_GROUP and ":not(" in m.locator:
                return m.key
        return None


registry = FieldRegistry()
