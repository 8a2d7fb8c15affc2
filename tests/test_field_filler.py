"""Tests for routing resolved fields to page operations."""

from unittest.mock import AsyncMock, patch

import pytest

from ecd_core.errors import OptionNotFound
from ecd_core.field_filler import FieldFiller, FieldFillFailed
from ecd_core.field_registry import registry
from ecd_core.models import DropdownResult
from fake_site import FakeFormPage

pytestmark = pytest.mark.asyncio


@pytest.fixture
def dropdowns():
    engine = AsyncMock()
    engine.select = AsyncMock(return_value=DropdownResult(field_key="nationality", success=True, attempts=1))
    return engine


@pytest.fixture
def filler(site, dropdowns):
    return FieldFiller(FakeFormPage(site), dropdowns)


async def test_text_field(site, filler, request_obj):
    site.page = "passenger"
    assert await filler.apply(registry.resolve("fullPassportName", request_obj)) is None
    assert site.values["#nama"] == "JANE DOE"


async def test_text_field_failure(site, filler, request_obj):
    site.page = "passenger"
    site.broken_inputs.add("#nama")

    with patch("ecd_core.field_filler.asyncio.sleep", new=AsyncMock()) as pause:
        error = await filler.apply(registry.resolve("fullPassportName", request_obj))

    pause.assert_awaited_once_with(0.3)

    assert isinstance(error, FieldFillFailed)
    assert error.code == "FIELD_FILL_FAILED"
    assert error.attempts == 2


async def test_select_goes_through_dropdown_engine(filler, dropdowns, request_obj):
    field = registry.resolve("nationality", request_obj)
    assert await filler.apply(field) is None
    dropdowns.select.assert_awaited_once_with(field)


async def test_select_failure_is_returned(filler, dropdowns, request_obj):
    error = OptionNotFound("nationality", "XX", 3)
    dropdowns.select.return_value = DropdownResult(field_key="nationality", success=False, attempts=3, error=error)

    assert await filler.apply(registry.resolve("nationality", request_obj)) is error


async def test_optional_field_absent_is_skipped(site, filler, request_obj):
    site.page = "passenger"
    site.address_locator = None
    assert await filler.apply(registry.resolve("addressInIndonesia", request_obj)) is None


async def test_optional_field_present_but_broken(site, filler, request_obj):
    site.page = "passenger"
    site.broken_inputs.add("#domisiliJalan")

    error = await filler.apply(registry.resolve("addressInIndonesia", request_obj))

    assert isinstance(error, FieldFillFailed)


async def test_checkbox_and_radio(site, filler, request_obj):
    site.page = "consent"
    request_obj.has_goods_to_declare = True

    assert await filler.apply(registry.resolve("consentAccurate", request_obj)) is None
    assert await filler.apply(registry.resolve("hasGoodsToDeclare", request_obj)) is None
    assert site.accepted
    assert site.radios["bringGoods"] == "true"
    assert site.radios["bringGadgets"] is None


async def test_applying_twice_is_harmless(site, filler, request_obj):
    site.page = "passenger"
    field = registry.resolve("passportNumber", request_obj)
    await filler.apply(field)
    await filler.apply(field)
    assert site.values["#paspor"] == "A1234567"
